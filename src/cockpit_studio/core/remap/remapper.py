"""Regenerate identifiers when a subtree is duplicated or imported."""

import dataclasses
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

# Reference fields, both as model attributes and as stored camelCase keys.
REFERENCE_FIELDS = frozenset(
    {
        "cockpit_id",
        "domain_id",
        "category_id",
        "element_id",
        "sub_category_id",
        "sub_element_id",
        "cockpitId",
        "domainId",
        "categoryId",
        "elementId",
        "subCategoryId",
        "subElementId",
    }
)

# Link membership never survives a copy.
LINK_FIELDS = frozenset({"linked_group_id", "linkedGroupId"})

# Cross references that are rewritten only when their target is part of the copy.
SOFT_REFERENCE_FIELDS = frozenset({"inherit_from_domain_id", "inheritFromDomainId"})


def generate_id() -> str:
    return str(uuid.uuid4())


class IdentifierRemapper:
    """Deep-copies a subtree, giving every identifier a fresh value.

    The old -> new mapping is built lazily during a depth-first walk: the
    first occurrence of an id (as a node id or as a reference) mints the new
    value, and every later occurrence reuses it. References to ids outside
    the copied subtree are also given fresh values, so the copy never points
    back into the original.

    One instance performs one traversal; use a new instance per copy.
    """

    def __init__(self, id_factory: Callable[[], str] = generate_id) -> None:
        self._id_factory = id_factory
        self.mapping: dict[str, str] = {}
        self._soft: list[tuple[Any, str, str]] = []

    def _map(self, old_id: str) -> str:
        if old_id not in self.mapping:
            self.mapping[old_id] = self._id_factory()
        return self.mapping[old_id]

    def remap(self, root: T) -> T:
        """Return a remapped deep copy of root (a model dataclass, dict or list)."""
        if self.mapping:
            msg = "IdentifierRemapper instances are single-use"
            raise RuntimeError(msg)
        copy = self._copy(root)
        # Soft references resolve after the walk, once every copied id is known.
        for container, key, old_id in self._soft:
            new_id = self.mapping.get(old_id, old_id)
            if isinstance(container, dict):
                container[key] = new_id
            else:
                setattr(container, key, new_id)
        return copy

    def _rewrite(self, key: str, value: Any) -> tuple[bool, Any]:
        """Return (handled, new value) for id-bearing keys."""
        if key == "id" and isinstance(value, str):
            return True, self._map(value)
        if key in REFERENCE_FIELDS and isinstance(value, str) and value:
            return True, self._map(value)
        if key in LINK_FIELDS:
            return True, None
        return False, value

    def _copy(self, obj: Any) -> Any:
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            values: dict[str, Any] = {}
            soft: list[tuple[str, str]] = []
            for f in dataclasses.fields(obj):
                value = getattr(obj, f.name)
                handled, new_value = self._rewrite(f.name, value)
                if handled:
                    values[f.name] = new_value
                elif f.name in SOFT_REFERENCE_FIELDS and value:
                    values[f.name] = value
                    soft.append((f.name, value))
                else:
                    values[f.name] = self._copy(value)
            copy = type(obj)(**values)
            self._soft.extend((copy, name, old) for name, old in soft)
            return copy
        if isinstance(obj, dict):
            out: dict[Any, Any] = {}
            for key, value in obj.items():
                handled, new_value = self._rewrite(key, value)
                if handled:
                    if new_value is not None:
                        out[key] = new_value
                elif key in SOFT_REFERENCE_FIELDS and value:
                    out[key] = value
                    self._soft.append((out, key, value))
                else:
                    out[key] = self._copy(value)
            return out
        if isinstance(obj, list):
            return [self._copy(item) for item in obj]
        return obj


def remap_subtree(
    root: T, *, id_factory: Callable[[], str] = generate_id
) -> tuple[T, dict[str, str]]:
    """Copy root with fresh identifiers; return the copy and the old -> new mapping."""
    remapper = IdentifierRemapper(id_factory)
    copy = remapper.remap(root)
    return copy, remapper.mapping
