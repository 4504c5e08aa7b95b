"""Convert stored cockpit blobs (camelCase JSON) to domain models and back."""

import dataclasses
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

from cockpit_studio.models.node import (
    Alert,
    Category,
    Cockpit,
    Domain,
    Element,
    GpsCoords,
    HistoryColumn,
    MapBounds,
    MapElement,
    Orientation,
    Snapshot,
    Status,
    SubCategory,
    SubElement,
    TemplateType,
    Zone,
)

T = TypeVar("T")

# Fields handled by hand rather than by the generic camelCase mapping.
_STRUCTURAL_FIELDS = frozenset(
    {
        "extras",
        "history_extras",
        "domains",
        "zones",
        "categories",
        "map_elements",
        "elements",
        "sub_categories",
        "sub_elements",
        "history_columns",
    }
)


def camel(name: str) -> str:
    """Convert a snake_case field name to the camelCase key used in stored blobs."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def parse_status(value: Any) -> Status:
    """Lenient status parsing for stored data: unknown values degrade to ok."""
    try:
        return Status.parse(value)
    except ValueError:
        logger.warning("Unknown status {!r} in stored data, using 'ok'", value)
        return Status.OK


def parse_gps(raw: dict[str, Any]) -> GpsCoords:
    return GpsCoords(lat=float(raw["lat"]), lng=float(raw["lng"]))


def parse_map_bounds(raw: dict[str, Any]) -> MapBounds:
    top_left = raw.get("topLeft")
    bottom_right = raw.get("bottomRight")
    return MapBounds(
        top_left=parse_gps(top_left) if top_left else None,
        bottom_right=parse_gps(bottom_right) if bottom_right else None,
    )


def parse_alert(raw: dict[str, Any], *, sub_element_id: str) -> Alert:
    return _build(Alert, raw, overrides={"sub_element_id": sub_element_id})


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "status": parse_status,
    "orientation": Orientation,
    "template_type": TemplateType,
    "gps": parse_gps,
    "map_bounds": parse_map_bounds,
    "order": int,
    "publiable": bool,
    "enable_clustering": bool,
}


def _build(cls: type[T], raw: dict[str, Any], *, overrides: dict[str, Any] | None = None) -> T:
    """Instantiate a model dataclass from a camelCase dict.

    Unknown keys are kept in ``extras`` so a load/save round trip never
    drops data written by other tools.
    """
    overrides = overrides or {}
    kwargs: dict[str, Any] = {}
    known_keys: set[str] = set()
    for f in dataclasses.fields(cls):  # type: ignore[arg-type]
        key = camel(f.name)
        known_keys.add(key)
        if f.name in _STRUCTURAL_FIELDS or f.name == "alert":
            continue
        if f.name in overrides:
            stored = raw.get(key)
            if stored is not None and stored != overrides[f.name]:
                logger.debug(
                    "Rewriting {}.{} {!r} -> {!r} to match containment",
                    cls.__name__, f.name, stored, overrides[f.name],
                )
            kwargs[f.name] = overrides[f.name]
            continue
        value = raw.get(key)
        if value is None:
            continue
        converter = _CONVERTERS.get(f.name)
        kwargs[f.name] = converter(value) if converter else value

    if "extras" in {f.name for f in dataclasses.fields(cls)}:  # type: ignore[arg-type]
        kwargs["extras"] = {
            k: v for k, v in raw.items() if k not in known_keys and k not in _NESTED_KEYS
        }
    try:
        return cls(**kwargs)
    except TypeError as e:
        msg = f"Invalid {cls.__name__} record {raw.get('id')!r}: {e}"
        raise ValueError(msg) from e


_NESTED_KEYS = frozenset({"dataHistory"})


def parse_sub_element(raw: dict[str, Any], *, sub_category_id: str) -> SubElement:
    sub_element = _build(SubElement, raw, overrides={"sub_category_id": sub_category_id})
    if raw.get("alert"):
        sub_element.alert = parse_alert(raw["alert"], sub_element_id=sub_element.id)
    return sub_element


def parse_sub_category(raw: dict[str, Any], *, element_id: str) -> SubCategory:
    sub_category = _build(SubCategory, raw, overrides={"element_id": element_id})
    sub_category.sub_elements = [
        parse_sub_element(se, sub_category_id=sub_category.id)
        for se in raw.get("subElements") or []
    ]
    return sub_category


def parse_element(raw: dict[str, Any], *, category_id: str) -> Element:
    element = _build(Element, raw, overrides={"category_id": category_id})
    element.sub_categories = [
        parse_sub_category(sc, element_id=element.id) for sc in raw.get("subCategories") or []
    ]
    return element


def parse_category(raw: dict[str, Any], *, domain_id: str) -> Category:
    category = _build(Category, raw, overrides={"domain_id": domain_id})
    category.elements = [
        parse_element(e, category_id=category.id) for e in raw.get("elements") or []
    ]
    return category


def parse_map_element(raw: dict[str, Any], *, domain_id: str) -> MapElement:
    return _build(MapElement, raw, overrides={"domain_id": domain_id})


def parse_domain(raw: dict[str, Any], *, cockpit_id: str) -> Domain:
    domain = _build(Domain, raw, overrides={"cockpit_id": cockpit_id})
    domain.categories = [
        parse_category(c, domain_id=domain.id) for c in raw.get("categories") or []
    ]
    domain.map_elements = [
        parse_map_element(m, domain_id=domain.id) for m in raw.get("mapElements") or []
    ]
    return domain


def parse_zone(raw: dict[str, Any], *, cockpit_id: str) -> Zone:
    return _build(Zone, raw, overrides={"cockpit_id": cockpit_id})


def parse_snapshot(raw: dict[str, Any]) -> Snapshot:
    status = raw.get("status")
    return Snapshot(
        status=parse_status(status) if status is not None else None,
        value=raw.get("value"),
        unit=raw.get("unit"),
        alert_description=raw.get("alertDescription"),
    )


def parse_history(raw: dict[str, Any] | None) -> list[HistoryColumn]:
    """Parse the ``dataHistory`` record; columns come back sorted by date."""
    if not raw:
        return []
    columns = [
        HistoryColumn(
            date=col["date"],
            label=col.get("label"),
            data={key: parse_snapshot(snap) for key, snap in (col.get("data") or {}).items()},
        )
        for col in raw.get("columns") or []
    ]
    return sorted(columns, key=lambda c: c.date)


def parse_cockpit(data: dict[str, Any]) -> Cockpit:
    """Parse a whole-document blob into a Cockpit.

    Args:
        data: Cockpit record with ``domains``, ``zones`` and optional ``dataHistory``.

    Returns:
        Cockpit whose denormalized parent references match the nesting.
    """
    cockpit = _build(Cockpit, data)
    cockpit.domains = [parse_domain(d, cockpit_id=cockpit.id) for d in data.get("domains") or []]
    cockpit.zones = [parse_zone(z, cockpit_id=cockpit.id) for z in data.get("zones") or []]
    cockpit.history_columns = parse_history(data.get("dataHistory"))
    cockpit.history_extras = {
        k: v for k, v in (data.get("dataHistory") or {}).items() if k != "columns"
    }
    return cockpit


# --- Serialization ---


def _dump_value(value: Any) -> Any:
    if isinstance(value, (GpsCoords, MapBounds, Alert)):
        return dump_record(value)
    return value


def dump_record(obj: Any) -> dict[str, Any]:
    """Serialize a model dataclass to a camelCase dict, dropping None values."""
    out: dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        if f.name == "extras":
            continue
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, list):
            out[camel(f.name)] = [dump_record(item) for item in value]
        else:
            out[camel(f.name)] = _dump_value(value)
    extras = getattr(obj, "extras", None)
    if extras:
        for key, value in extras.items():
            out.setdefault(key, value)
    return out


def dump_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    return {
        k: v
        for k, v in {
            "status": snapshot.status.value if snapshot.status else None,
            "value": snapshot.value,
            "unit": snapshot.unit,
            "alertDescription": snapshot.alert_description,
        }.items()
        if v is not None
    }


def dump_cockpit(cockpit: Cockpit) -> dict[str, Any]:
    """Serialize a Cockpit into the stored blob shape."""
    columns = cockpit.history_columns
    cockpit_copy = dataclasses.replace(cockpit, history_columns=[], history_extras={})
    out = dump_record(cockpit_copy)
    out.pop("historyColumns", None)
    out.pop("historyExtras", None)
    if columns or cockpit.history_extras:
        out["dataHistory"] = {
            **cockpit.history_extras,
            "columns": [
                {
                    "date": col.date,
                    **({"label": col.label} if col.label else {}),
                    "data": {key: dump_snapshot(snap) for key, snap in col.data.items()},
                }
                for col in columns
            ]
        }
    return out
