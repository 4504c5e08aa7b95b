"""Named document operations: the only write surface over a cockpit tree."""

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from cockpit_studio.config import CLONE_SUFFIX
from cockpit_studio.core.history.overlay import HistoryOverlay, check_date, sync_key
from cockpit_studio.core.importer.json_reader import parse_domain, parse_gps
from cockpit_studio.core.remap.remapper import remap_subtree
from cockpit_studio.core.status.resolver import StatusResolver
from cockpit_studio.core.tree.index import TILE_KINDS
from cockpit_studio.core.tree.merge import merge_fields, prepare_updates
from cockpit_studio.core.tree.store import EntityTreeStore
from cockpit_studio.errors import InvalidStructuralOperation
from cockpit_studio.models.node import (
    Category,
    Cockpit,
    Domain,
    Element,
    GpsCoords,
    MapBounds,
    MapElement,
    Node,
    NodeKind,
    Orientation,
    Snapshot,
    Status,
    SubCategory,
    SubElement,
    TemplateType,
    Zone,
)

# Cockpit-level fields editable through update_cockpit.
COCKPIT_FIELDS = frozenset({"name", "logo", "scrolling_banner"})

# Default for date arguments: use the cockpit's selected history date.
SELECTED_DATE: Any = object()


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        msg = f"A name is required, got {name!r}"
        raise InvalidStructuralOperation(msg)
    return name.strip()


def _gps(value: GpsCoords | Mapping[str, Any]) -> GpsCoords:
    if isinstance(value, GpsCoords):
        return value
    try:
        return parse_gps(dict(value))
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Invalid GPS coordinates: {value!r}"
        raise InvalidStructuralOperation(msg) from e


class MutationApi:
    """Every edit to a cockpit goes through one of these methods.

    The UI-facing CLI, the MCP tools and the automated action executor all
    call the same methods, so invariants (dense sibling order, link groups
    of two or more, the domain cap, fresh ids on copy) are enforced in one
    place. Each method validates before mutating and raises a
    ``CockpitError`` subclass on failure, leaving the tree unchanged.
    """

    def __init__(self, store: EntityTreeStore) -> None:
        self.store = store
        self.overlay = HistoryOverlay(store.cockpit)
        self.resolver = StatusResolver(store.cockpit, self.overlay)

    @classmethod
    def for_cockpit(cls, cockpit: Cockpit) -> "MutationApi":
        return cls(EntityTreeStore(cockpit))

    @property
    def cockpit(self) -> Cockpit:
        return self.store.cockpit

    def _new(self, node: Node, fields: Mapping[str, Any] | None) -> Node:
        """Apply validated initial fields to a node that is not yet in the tree."""
        if fields:
            merge_fields(node, prepare_updates(node, fields))
        return node

    def _delete(self, ref: str, kind: NodeKind) -> list[str]:
        with self.store.locked():
            removed = self.store.remove(ref, kind)
            dropped = self.overlay.drop_keys(removed)
            if dropped:
                logger.debug("Dropped {} history entries of deleted {}", dropped, kind)
            return removed

    # --- Domains ---

    def add_domain(
        self,
        name: str,
        *,
        template_type: TemplateType | str = TemplateType.STANDARD,
        fields: Mapping[str, Any] | None = None,
    ) -> str:
        """Append a domain (tab); raises ConstraintViolation past the domain cap."""
        with self.store.locked():
            domain = Domain(
                id=self.store.new_id(),
                cockpit_id=self.cockpit.id,
                name=_check_name(name),
            )
            self._new(domain, {"template_type": template_type, **(fields or {})})
            return self.store.add_child(self.cockpit.id, domain)

    def update_domain(self, domain_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(domain_id, fields, NodeKind.DOMAIN)

    def delete_domain(self, domain_id: str) -> list[str]:
        return self._delete(domain_id, NodeKind.DOMAIN)

    def reorder_domains(self, domain_ids: list[str]) -> None:
        self.store.reorder_all(self.cockpit.id, NodeKind.DOMAIN, list(domain_ids))

    def update_map_bounds(
        self,
        domain_id: str,
        top_left: GpsCoords | Mapping[str, Any],
        bottom_right: GpsCoords | Mapping[str, Any],
    ) -> set[str]:
        bounds = MapBounds(top_left=_gps(top_left), bottom_right=_gps(bottom_right))
        return self.store.update(domain_id, {"map_bounds": bounds}, NodeKind.DOMAIN)

    def import_domain(self, domain: Domain | Mapping[str, Any]) -> str:
        """Add a copy of a domain exported from any cockpit, with fresh ids throughout."""
        with self.store.locked():
            if not isinstance(domain, Domain):
                try:
                    domain = parse_domain(dict(domain), cockpit_id=self.cockpit.id)
                except (KeyError, TypeError, ValueError) as e:
                    msg = f"Invalid domain record: {e}"
                    raise InvalidStructuralOperation(msg) from e
            copy, _mapping = remap_subtree(domain, id_factory=self.store.new_id)
            new_id = self.store.add_child(self.cockpit.id, copy)
            logger.info("Imported domain {!r} as {!r}", domain.name, new_id)
            return new_id

    # --- Categories ---

    def add_category(
        self,
        domain_id: str,
        name: str,
        *,
        orientation: Orientation | str = Orientation.HORIZONTAL,
    ) -> str:
        with self.store.locked():
            self.store.entry(domain_id, NodeKind.DOMAIN)
            category = Category(id=self.store.new_id(), domain_id=domain_id, name=_check_name(name))
            self._new(category, {"orientation": orientation})
            return self.store.add_child(domain_id, category)

    def update_category(self, category_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(category_id, fields, NodeKind.CATEGORY)

    def delete_category(self, category_id: str) -> list[str]:
        return self._delete(category_id, NodeKind.CATEGORY)

    # --- Elements ---

    def add_element(
        self, category_id: str, name: str, *, fields: Mapping[str, Any] | None = None
    ) -> str:
        with self.store.locked():
            self.store.entry(category_id, NodeKind.CATEGORY)
            element = Element(id=self.store.new_id(), category_id=category_id, name=_check_name(name))
            self._new(element, fields)
            return self.store.add_child(category_id, element)

    def add_elements(self, category_id: str, names: Iterable[str]) -> list[str]:
        """Add several elements at once; nothing is added if any name is invalid."""
        with self.store.locked():
            self.store.entry(category_id, NodeKind.CATEGORY)
            checked = [_check_name(n) for n in names]
            if not checked:
                msg = "No element names given"
                raise InvalidStructuralOperation(msg)
            return [self.add_element(category_id, n) for n in checked]

    def update_element(self, element_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(element_id, fields, NodeKind.ELEMENT)

    def delete_element(self, element_id: str) -> list[str]:
        return self._delete(element_id, NodeKind.ELEMENT)

    def clone_element(self, element_id: str) -> str:
        """Copy an element into its own category, suffixing its name."""
        with self.store.locked():
            original = self.store.get(element_id, NodeKind.ELEMENT)
            new_id = self.store.duplicate(element_id, NodeKind.ELEMENT)
            self.store.update(new_id, {"name": original.name + CLONE_SUFFIX})
            return new_id

    def move_element(self, element_id: str, to_category_id: str) -> None:
        with self.store.locked():
            self.store.entry(to_category_id, NodeKind.CATEGORY)
            self.store.move(element_id, to_category_id, NodeKind.ELEMENT)

    def reorder_element(self, element_id: str, new_index: int) -> None:
        self.store.reorder(element_id, new_index, NodeKind.ELEMENT)

    # --- Sub-categories ---

    def add_sub_category(
        self,
        element_id: str,
        name: str,
        *,
        orientation: Orientation | str = Orientation.HORIZONTAL,
    ) -> str:
        with self.store.locked():
            self.store.entry(element_id, NodeKind.ELEMENT)
            sub_category = SubCategory(
                id=self.store.new_id(), element_id=element_id, name=_check_name(name)
            )
            self._new(sub_category, {"orientation": orientation})
            return self.store.add_child(element_id, sub_category)

    def update_sub_category(self, sub_category_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(sub_category_id, fields, NodeKind.SUB_CATEGORY)

    def delete_sub_category(self, sub_category_id: str) -> list[str]:
        return self._delete(sub_category_id, NodeKind.SUB_CATEGORY)

    # --- Sub-elements ---

    def add_sub_element(
        self, sub_category_id: str, name: str, *, fields: Mapping[str, Any] | None = None
    ) -> str:
        with self.store.locked():
            self.store.entry(sub_category_id, NodeKind.SUB_CATEGORY)
            sub_element = SubElement(
                id=self.store.new_id(), sub_category_id=sub_category_id, name=_check_name(name)
            )
            self._new(sub_element, fields)
            return self.store.add_child(sub_category_id, sub_element)

    def add_sub_elements(self, sub_category_id: str, names: Iterable[str]) -> list[str]:
        """Add several sub-elements at once; nothing is added if any name is invalid."""
        with self.store.locked():
            self.store.entry(sub_category_id, NodeKind.SUB_CATEGORY)
            checked = [_check_name(n) for n in names]
            if not checked:
                msg = "No sub-element names given"
                raise InvalidStructuralOperation(msg)
            return [self.add_sub_element(sub_category_id, n) for n in checked]

    def update_sub_element(self, sub_element_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(sub_element_id, fields, NodeKind.SUB_ELEMENT)

    def delete_sub_element(self, sub_element_id: str) -> list[str]:
        return self._delete(sub_element_id, NodeKind.SUB_ELEMENT)

    def move_sub_element(self, sub_element_id: str, to_sub_category_id: str) -> None:
        with self.store.locked():
            self.store.entry(to_sub_category_id, NodeKind.SUB_CATEGORY)
            self.store.move(sub_element_id, to_sub_category_id, NodeKind.SUB_ELEMENT)

    def reorder_sub_element(self, sub_element_id: str, new_index: int) -> None:
        self.store.reorder(sub_element_id, new_index, NodeKind.SUB_ELEMENT)

    # --- Links ---

    def link(self, ref_a: str, ref_b: str) -> str:
        """Link any two tiles, e.g. a map point and the grid element it stands for."""
        return self.store.links.link(ref_a, ref_b)

    def link_elements(self, element_a: str, element_b: str) -> str:
        with self.store.locked():
            self.store.entry(element_a, NodeKind.ELEMENT)
            self.store.entry(element_b, NodeKind.ELEMENT)
            return self.store.links.link(element_a, element_b)

    def link_sub_elements(self, sub_element_a: str, sub_element_b: str) -> str:
        with self.store.locked():
            self.store.entry(sub_element_a, NodeKind.SUB_ELEMENT)
            self.store.entry(sub_element_b, NodeKind.SUB_ELEMENT)
            return self.store.links.link(sub_element_a, sub_element_b)

    def unlink(self, ref: str) -> list[str]:
        return self.store.links.unlink(ref)

    def unlink_element(self, element_id: str) -> list[str]:
        with self.store.locked():
            self.store.entry(element_id, NodeKind.ELEMENT)
            return self.store.links.unlink(element_id)

    def unlink_sub_element(self, sub_element_id: str) -> list[str]:
        with self.store.locked():
            self.store.entry(sub_element_id, NodeKind.SUB_ELEMENT)
            return self.store.links.unlink(sub_element_id)

    # --- Zones ---

    def add_zone(self, name: str, *, icon: str | None = None) -> str:
        with self.store.locked():
            zone = Zone(
                id=self.store.new_id(), cockpit_id=self.cockpit.id, name=_check_name(name), icon=icon
            )
            return self.store.add_child(self.cockpit.id, zone)

    def delete_zone(self, zone_id: str) -> list[str]:
        return self._delete(zone_id, NodeKind.ZONE)

    # --- Map elements ---

    def add_map_element(
        self,
        domain_id: str,
        name: str,
        gps: GpsCoords | Mapping[str, Any],
        *,
        status: Status | str = Status.OK,
        icon: str | None = None,
        element_id: str | None = None,
    ) -> str:
        with self.store.locked():
            self.store.entry(domain_id, NodeKind.DOMAIN)
            if element_id is not None:
                self.store.entry(element_id, NodeKind.ELEMENT)
            map_element = MapElement(
                id=self.store.new_id(),
                domain_id=domain_id,
                name=_check_name(name),
                gps=_gps(gps),
                icon=icon,
                element_id=element_id,
            )
            self._new(map_element, {"status": status})
            return self.store.add_child(domain_id, map_element)

    def update_map_element(self, map_element_id: str, fields: Mapping[str, Any]) -> set[str]:
        return self.store.update(map_element_id, fields, NodeKind.MAP_ELEMENT)

    def delete_map_element(self, map_element_id: str) -> list[str]:
        return self._delete(map_element_id, NodeKind.MAP_ELEMENT)

    def clone_map_element(self, map_element_id: str) -> str:
        with self.store.locked():
            original = self.store.get(map_element_id, NodeKind.MAP_ELEMENT)
            new_id = self.store.duplicate(map_element_id, NodeKind.MAP_ELEMENT)
            # The copy still stands for the same grid tile.
            self.store.update(
                new_id,
                {"name": original.name + CLONE_SUFFIX, "element_id": original.element_id},
            )
            return new_id

    # --- Whole tree ---

    def duplicate(self, ref: str) -> str:
        """Deep-copy any node next to the original, with fresh ids and no links."""
        return self.store.duplicate(ref)

    def update_cockpit(self, fields: Mapping[str, Any]) -> set[str]:
        unknown = set(fields) - COCKPIT_FIELDS
        if unknown:
            msg = f"Cockpit fields cannot be updated: {sorted(unknown)!r}"
            raise InvalidStructuralOperation(msg)
        return self.store.update(self.cockpit.id, fields, NodeKind.COCKPIT)

    def update_status(self, ref: str, status: Status | str) -> set[str]:
        """Set the status of any tile: element, sub-element or map point."""
        with self.store.locked():
            entry = self.store.entry(ref)
            if entry.kind not in TILE_KINDS:
                msg = f"A {entry.kind} has no status"
                raise InvalidStructuralOperation(msg)
            return self.store.update(ref, {"status": status})

    # --- History ---

    def select_data_date(self, date: str | None) -> None:
        """Choose the date whose snapshots tiles display; None shows live data."""
        with self.store.locked():
            if date is not None:
                check_date(date)
            self.cockpit.selected_data_date = date
            self.store.touch()

    def record_snapshot(self, ref: str, date: str, *, label: str | None = None) -> str:
        """Store a tile's live status and value as its history at date; return the key."""
        with self.store.locked():
            entry = self.store.entry(ref)
            if entry.kind not in TILE_KINDS:
                msg = f"A {entry.kind} has no status to record"
                raise InvalidStructuralOperation(msg)
            node = entry.node
            live = self.overlay.resolve(node, None)
            key = sync_key(node)
            self.overlay.snapshot(
                key,
                date,
                Snapshot(
                    status=live.status,
                    value=live.value,
                    unit=live.unit,
                    alert_description=live.alert_description,
                ),
                label=label,
            )
            self.store.touch()
            return key

    def capture_all(self, date: str, *, label: str | None = None) -> int:
        """Snapshot every sub-element at date, one entry per history key."""
        with self.store.locked():
            self.overlay.ensure_column(date, label=label)
            seen: set[str] = set()
            for node in self.store.index.of_kind(NodeKind.SUB_ELEMENT):
                key = sync_key(node)
                if key in seen:
                    continue
                seen.add(key)
                self.record_snapshot(node.id, date, label=label)
            logger.info("Captured {} history entries at {}", len(seen), date)
            return len(seen)

    # --- Reads ---

    def effective_status(self, ref: str, selected_date: Any = SELECTED_DATE) -> Status:
        """Rolled-up status of ref.

        By default the cockpit's own selected date is used; pass a date to
        look at that snapshot, or None for live data.
        """
        node = self.store.get(ref)
        if selected_date is SELECTED_DATE:
            selected_date = self.cockpit.selected_data_date
        return self.resolver.effective_status(node, selected_date)
