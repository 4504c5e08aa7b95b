"""Field-level merge rules for partial updates."""

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any

from cockpit_studio.core.importer.json_reader import parse_alert, parse_gps, parse_map_bounds
from cockpit_studio.core.tree.index import PARENT_REF_FIELD
from cockpit_studio.errors import InvalidStructuralOperation
from cockpit_studio.models.node import (
    Alert,
    GpsCoords,
    MapBounds,
    Node,
    Orientation,
    Status,
    TemplateType,
    kind_of,
)

MergeRule = Callable[[Any, Any], Any]


def overwrite(old: Any, new: Any) -> Any:
    return new


def is_empty(value: Any) -> bool:
    """True for values that carry no content (None, "", empty bounds or containers)."""
    if value is None:
        return True
    if isinstance(value, MapBounds):
        return value.top_left is None and value.bottom_right is None
    if isinstance(value, (str, list, dict, tuple)):
        return len(value) == 0
    return False


def keep_unless_present(old: Any, new: Any) -> Any:
    """Sticky fields: an empty incoming value never erases a stored one."""
    if is_empty(new) and not is_empty(old):
        return old
    return new


# Large or expensive fields that a partial update must not erase by omission.
MERGE_RULES: dict[str, MergeRule] = {
    "background_image": keep_unless_present,
    "map_bounds": keep_unless_present,
}

# Fields only structural operations may change. Each kind's parent reference is protected too.
PROTECTED_FIELDS = frozenset(
    {
        "id",
        "order",
        "linked_group_id",
        "extras",
        "domains",
        "zones",
        "categories",
        "map_elements",
        "elements",
        "sub_categories",
        "sub_elements",
        "history_columns",
        "history_extras",
    }
)


def _coerce(node: Node, name: str, value: Any) -> Any:
    if name == "name" and (not isinstance(value, str) or not value.strip()):
        msg = f"A name is required, got {value!r}"
        raise InvalidStructuralOperation(msg)
    if value is None:
        return None
    try:
        if name == "status":
            return Status.parse(value)
        if name == "orientation":
            return Orientation(value)
        if name == "template_type":
            return TemplateType(value)
        if name == "gps" and not isinstance(value, GpsCoords):
            return parse_gps(value)
        if name == "map_bounds" and not isinstance(value, MapBounds):
            return parse_map_bounds(value)
        if name == "alert" and not isinstance(value, Alert):
            return parse_alert(value, sub_element_id=node.id)
    except (ValueError, KeyError, TypeError) as e:
        msg = f"Invalid value for {name}: {value!r}"
        raise InvalidStructuralOperation(msg) from e
    if name == "alert":
        return dataclasses.replace(value, sub_element_id=node.id)
    return value


def prepare_updates(node: Node, updates: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and coerce a partial update without touching the node.

    Raises:
        InvalidStructuralOperation: for unknown or protected fields, or bad values.
    """
    field_names = {f.name for f in dataclasses.fields(node)}
    parent_ref = PARENT_REF_FIELD.get(kind_of(node))
    prepared: dict[str, Any] = {}
    for name, value in updates.items():
        if name not in field_names:
            msg = f"{kind_of(node)} has no field {name!r}"
            raise InvalidStructuralOperation(msg)
        if name in PROTECTED_FIELDS or name == parent_ref:
            msg = f"Field {name!r} cannot be set by update"
            raise InvalidStructuralOperation(msg)
        prepared[name] = _coerce(node, name, value)
    return prepared


def merge_fields(node: Node, updates: Mapping[str, Any]) -> set[str]:
    """Apply prepared updates to node using MERGE_RULES; return names that changed."""
    changed: set[str] = set()
    for name, new in updates.items():
        old = getattr(node, name)
        merged = MERGE_RULES.get(name, overwrite)(old, new)
        if merged != old:
            setattr(node, name, merged)
            changed.add(name)
    return changed
