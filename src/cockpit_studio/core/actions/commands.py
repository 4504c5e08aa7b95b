"""Automated actions: one frozen command class per action type.

Actions arrive as ``{"type": "addElement", "params": {...}}`` records with
camelCase parameters. ``parse_action`` turns a record into a command; the
executor matches on the command class.
"""

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, get_args

from cockpit_studio.core.importer.json_reader import camel
from cockpit_studio.errors import InvalidStructuralOperation


def snake(name: str) -> str:
    """Convert a camelCase parameter name to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_keys(updates: Mapping[str, Any]) -> dict[str, Any]:
    return {snake(k): v for k, v in updates.items()}


# Parameter types checked before a command is built, by field annotation.
_TEXT_TYPES = (str, str | None)


def _check_param(action_type: str, name: str, annotation: Any, value: Any) -> None:
    if annotation in _TEXT_TYPES:
        ok = isinstance(value, str)
        wanted = "a string"
    elif annotation is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
        wanted = "an integer"
    else:
        return
    if not ok:
        msg = f"{action_type}: {camel(name)} must be {wanted}, got {value!r}"
        raise InvalidStructuralOperation(msg)


# --- Domains ---


@dataclass(frozen=True)
class AddDomain:
    TYPE: ClassVar[str] = "addDomain"
    name: str
    template_type: str | None = None


@dataclass(frozen=True)
class DeleteDomain:
    TYPE: ClassVar[str] = "deleteDomain"
    ALIASES: ClassVar[dict[str, str]] = {"name": "domain_name"}
    domain_id: str | None = None
    domain_name: str | None = None


@dataclass(frozen=True)
class UpdateDomain:
    TYPE: ClassVar[str] = "updateDomain"
    ALIASES: ClassVar[dict[str, str]] = {"name": "domain_name"}
    domain_id: str | None = None
    domain_name: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReorderDomains:
    TYPE: ClassVar[str] = "reorderDomains"
    domain_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class UpdateMapBounds:
    TYPE: ClassVar[str] = "updateMapBounds"
    top_left: dict[str, Any]
    bottom_right: dict[str, Any]
    domain_id: str | None = None
    domain_name: str | None = None


# --- Categories ---


@dataclass(frozen=True)
class AddCategory:
    TYPE: ClassVar[str] = "addCategory"
    name: str
    domain_id: str | None = None
    domain_name: str | None = None
    orientation: str | None = None


@dataclass(frozen=True)
class UpdateCategory:
    TYPE: ClassVar[str] = "updateCategory"
    ALIASES: ClassVar[dict[str, str]] = {"name": "category_name"}
    category_id: str | None = None
    category_name: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteCategory:
    TYPE: ClassVar[str] = "deleteCategory"
    ALIASES: ClassVar[dict[str, str]] = {"name": "category_name"}
    category_id: str | None = None
    category_name: str | None = None


# --- Elements ---


@dataclass(frozen=True)
class AddElement:
    TYPE: ClassVar[str] = "addElement"
    name: str
    category_id: str | None = None
    category_name: str | None = None


@dataclass(frozen=True)
class AddElements:
    TYPE: ClassVar[str] = "addElements"
    names: tuple[str, ...] = ()
    category_id: str | None = None
    category_name: str | None = None


@dataclass(frozen=True)
class DeleteElement:
    TYPE: ClassVar[str] = "deleteElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "element_name"}
    element_id: str | None = None
    element_name: str | None = None


@dataclass(frozen=True)
class UpdateElement:
    TYPE: ClassVar[str] = "updateElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "element_name"}
    REST_INTO_UPDATES: ClassVar[bool] = True
    element_id: str | None = None
    element_name: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateStatus:
    TYPE: ClassVar[str] = "updateStatus"
    status: str
    element_id: str | None = None
    element_name: str | None = None
    sub_element_id: str | None = None
    sub_element_name: str | None = None


@dataclass(frozen=True)
class CloneElement:
    TYPE: ClassVar[str] = "cloneElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "element_name"}
    element_id: str | None = None
    element_name: str | None = None


@dataclass(frozen=True)
class MoveElement:
    TYPE: ClassVar[str] = "moveElement"
    element_id: str | None = None
    element_name: str | None = None
    to_category_id: str | None = None
    to_category_name: str | None = None


@dataclass(frozen=True)
class ReorderElement:
    TYPE: ClassVar[str] = "reorderElement"
    new_index: int
    element_id: str | None = None
    element_name: str | None = None


@dataclass(frozen=True)
class LinkElement:
    TYPE: ClassVar[str] = "linkElement"
    element_id: str | None = None
    element_name: str | None = None
    target_id: str | None = None
    target_name: str | None = None


@dataclass(frozen=True)
class UnlinkElement:
    TYPE: ClassVar[str] = "unlinkElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "element_name"}
    element_id: str | None = None
    element_name: str | None = None


# --- Sub-categories ---


@dataclass(frozen=True)
class AddSubCategory:
    TYPE: ClassVar[str] = "addSubCategory"
    name: str
    element_id: str | None = None
    element_name: str | None = None
    orientation: str | None = None


@dataclass(frozen=True)
class UpdateSubCategory:
    TYPE: ClassVar[str] = "updateSubCategory"
    ALIASES: ClassVar[dict[str, str]] = {"name": "sub_category_name"}
    sub_category_id: str | None = None
    sub_category_name: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteSubCategory:
    TYPE: ClassVar[str] = "deleteSubCategory"
    ALIASES: ClassVar[dict[str, str]] = {"name": "sub_category_name"}
    sub_category_id: str | None = None
    sub_category_name: str | None = None


# --- Sub-elements ---


@dataclass(frozen=True)
class AddSubElement:
    TYPE: ClassVar[str] = "addSubElement"
    name: str
    sub_category_id: str | None = None
    sub_category_name: str | None = None
    element_id: str | None = None


@dataclass(frozen=True)
class AddSubElements:
    TYPE: ClassVar[str] = "addSubElements"
    names: tuple[str, ...] = ()
    sub_category_id: str | None = None
    sub_category_name: str | None = None
    element_id: str | None = None


@dataclass(frozen=True)
class DeleteSubElement:
    TYPE: ClassVar[str] = "deleteSubElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "sub_element_name"}
    sub_element_id: str | None = None
    sub_element_name: str | None = None


@dataclass(frozen=True)
class UpdateSubElement:
    TYPE: ClassVar[str] = "updateSubElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "sub_element_name"}
    sub_element_id: str | None = None
    sub_element_name: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MoveSubElement:
    TYPE: ClassVar[str] = "moveSubElement"
    sub_element_id: str | None = None
    sub_element_name: str | None = None
    to_sub_category_id: str | None = None
    to_sub_category_name: str | None = None


@dataclass(frozen=True)
class ReorderSubElement:
    TYPE: ClassVar[str] = "reorderSubElement"
    new_index: int
    sub_element_id: str | None = None
    sub_element_name: str | None = None


@dataclass(frozen=True)
class LinkSubElement:
    TYPE: ClassVar[str] = "linkSubElement"
    sub_element_id: str | None = None
    sub_element_name: str | None = None
    target_id: str | None = None
    target_name: str | None = None


@dataclass(frozen=True)
class UnlinkSubElement:
    TYPE: ClassVar[str] = "unlinkSubElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "sub_element_name"}
    sub_element_id: str | None = None
    sub_element_name: str | None = None


# --- Zones ---


@dataclass(frozen=True)
class AddZone:
    TYPE: ClassVar[str] = "addZone"
    name: str
    icon: str | None = None


@dataclass(frozen=True)
class DeleteZone:
    TYPE: ClassVar[str] = "deleteZone"
    ALIASES: ClassVar[dict[str, str]] = {"name": "zone_name"}
    zone_id: str | None = None
    zone_name: str | None = None


# --- Map elements ---


@dataclass(frozen=True)
class AddMapElement:
    TYPE: ClassVar[str] = "addMapElement"
    name: str
    lat: float
    lng: float
    domain_id: str | None = None
    domain_name: str | None = None
    status: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class UpdateMapElement:
    TYPE: ClassVar[str] = "updateMapElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "map_element_name"}
    map_element_id: str | None = None
    map_element_name: str | None = None
    lat: float | None = None
    lng: float | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteMapElement:
    TYPE: ClassVar[str] = "deleteMapElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "map_element_name"}
    map_element_id: str | None = None
    map_element_name: str | None = None


@dataclass(frozen=True)
class CloneMapElement:
    TYPE: ClassVar[str] = "cloneMapElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "map_element_name"}
    map_element_id: str | None = None
    map_element_name: str | None = None


# --- Whole document ---


@dataclass(frozen=True)
class Duplicate:
    TYPE: ClassVar[str] = "duplicate"
    ALIASES: ClassVar[dict[str, str]] = {"id": "node_id", "ref": "node_id"}
    node_id: str


@dataclass(frozen=True)
class UpdateCockpit:
    TYPE: ClassVar[str] = "updateCockpit"
    REST_INTO_UPDATES: ClassVar[bool] = True
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SelectDataDate:
    TYPE: ClassVar[str] = "selectDataDate"
    date: str | None = None


@dataclass(frozen=True)
class RecordSnapshot:
    """Snapshot one tile at date, or every sub-element when no tile is named."""

    TYPE: ClassVar[str] = "recordSnapshot"
    ALIASES: ClassVar[dict[str, str]] = {"id": "node_id", "ref": "node_id"}
    date: str
    node_id: str | None = None
    label: str | None = None


# --- Selection context ---


@dataclass(frozen=True)
class SelectDomain:
    TYPE: ClassVar[str] = "selectDomain"
    ALIASES: ClassVar[dict[str, str]] = {"name": "domain_name"}
    domain_id: str | None = None
    domain_name: str | None = None


@dataclass(frozen=True)
class SelectElement:
    TYPE: ClassVar[str] = "selectElement"
    ALIASES: ClassVar[dict[str, str]] = {"name": "element_name"}
    element_id: str | None = None
    element_name: str | None = None


Command = (
    AddDomain
    | DeleteDomain
    | UpdateDomain
    | ReorderDomains
    | UpdateMapBounds
    | AddCategory
    | UpdateCategory
    | DeleteCategory
    | AddElement
    | AddElements
    | DeleteElement
    | UpdateElement
    | UpdateStatus
    | CloneElement
    | MoveElement
    | ReorderElement
    | LinkElement
    | UnlinkElement
    | AddSubCategory
    | UpdateSubCategory
    | DeleteSubCategory
    | AddSubElement
    | AddSubElements
    | DeleteSubElement
    | UpdateSubElement
    | MoveSubElement
    | ReorderSubElement
    | LinkSubElement
    | UnlinkSubElement
    | AddZone
    | DeleteZone
    | AddMapElement
    | UpdateMapElement
    | DeleteMapElement
    | CloneMapElement
    | Duplicate
    | UpdateCockpit
    | SelectDataDate
    | RecordSnapshot
    | SelectDomain
    | SelectElement
)

COMMANDS: dict[str, type[Command]] = {cls.TYPE: cls for cls in get_args(Command)}


def parse_action(record: Mapping[str, Any]) -> Command:
    """Build the command for one ``{"type", "params"}`` record.

    Parameters are camelCase; each maps to the snake_case field of the same
    name, with a few per-action aliases (``name`` naming the target of a
    delete or update). An ``updates`` object has its keys converted too.

    Raises:
        InvalidStructuralOperation: unknown type, or missing or malformed parameters.
    """
    action_type = record.get("type")
    cls = COMMANDS.get(action_type) if isinstance(action_type, str) else None
    if cls is None:
        msg = f"Unknown action type {action_type!r}"
        raise InvalidStructuralOperation(msg)

    params = record.get("params") or {}
    if not isinstance(params, Mapping):
        msg = f"{action_type}: params must be an object, got {type(params).__name__}"
        raise InvalidStructuralOperation(msg)

    fields = {f.name: f for f in dataclasses.fields(cls)}
    aliases: dict[str, str] = getattr(cls, "ALIASES", {})
    kwargs: dict[str, Any] = {}
    rest: dict[str, Any] = {}
    for key, value in params.items():
        name = snake(key)
        if name not in fields:
            name = aliases.get(key, name)
        if name not in fields:
            rest[key] = value
            continue
        if value is None:
            continue
        if name == "updates":
            if not isinstance(value, Mapping):
                msg = f"{action_type}: updates must be an object"
                raise InvalidStructuralOperation(msg)
            value = snake_keys(value)
        elif name in ("names", "domain_ids"):
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                msg = f"{action_type}: {camel(name)} must be a list"
                raise InvalidStructuralOperation(msg)
            if not all(isinstance(item, str) for item in value):
                msg = f"{action_type}: {camel(name)} must only hold strings"
                raise InvalidStructuralOperation(msg)
            value = tuple(value)
        else:
            _check_param(action_type, name, fields[name].type, value)
        kwargs.setdefault(name, value)

    # Aliased names also fill the name of the update when not given explicitly.
    if "updates" in fields and "name" in params and aliases.get("name"):
        kwargs["updates"] = {"name": params["name"], **kwargs.get("updates", {})}
    if getattr(cls, "REST_INTO_UPDATES", False) and rest:
        kwargs["updates"] = {**snake_keys(rest), **kwargs.get("updates", {})}

    try:
        return cls(**kwargs)
    except TypeError as e:
        msg = f"{action_type}: missing or unexpected parameters ({e})"
        raise InvalidStructuralOperation(msg) from e
