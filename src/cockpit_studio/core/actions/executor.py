"""Run lists of automated actions against the mutation API."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, assert_never

from loguru import logger

from cockpit_studio.core.actions.commands import (
    AddCategory,
    AddDomain,
    AddElement,
    AddElements,
    AddMapElement,
    AddSubCategory,
    AddSubElement,
    AddSubElements,
    AddZone,
    CloneElement,
    CloneMapElement,
    Command,
    DeleteCategory,
    DeleteDomain,
    DeleteElement,
    DeleteMapElement,
    DeleteSubCategory,
    DeleteSubElement,
    DeleteZone,
    Duplicate,
    LinkElement,
    LinkSubElement,
    MoveElement,
    MoveSubElement,
    RecordSnapshot,
    ReorderDomains,
    ReorderElement,
    ReorderSubElement,
    SelectDataDate,
    SelectDomain,
    SelectElement,
    UnlinkElement,
    UnlinkSubElement,
    UpdateCategory,
    UpdateCockpit,
    UpdateDomain,
    UpdateElement,
    UpdateMapBounds,
    UpdateMapElement,
    UpdateStatus,
    UpdateSubCategory,
    UpdateSubElement,
    parse_action,
)
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.core.tree.lookup import find_by_name, resolve_ref
from cockpit_studio.errors import CockpitError, InvalidStructuralOperation, ReferenceNotFound
from cockpit_studio.models.node import Node, NodeKind


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one action of a batch."""

    index: int
    type: str
    success: bool
    message: str


class ActionExecutor:
    """Applies action records one by one, isolating failures.

    A failed action is reported in its ``ActionResult`` and the batch goes
    on; since every mutation is atomic, a failure leaves no partial change.

    The executor remembers the current domain and element (set by
    ``selectDomain``/``selectElement`` or by the caller) and uses them when
    an action names no target, as an interactive editor would.
    """

    def __init__(
        self,
        api: MutationApi,
        *,
        current_domain_id: str | None = None,
        current_element_id: str | None = None,
    ) -> None:
        self.api = api
        self.current_domain_id = current_domain_id
        self.current_element_id = current_element_id

    def run(
        self, records: Iterable[Mapping[str, Any]] | Mapping[str, Any]
    ) -> list[ActionResult]:
        """Execute records in order; return one result per record."""
        if isinstance(records, Mapping):
            records = [records]
        results: list[ActionResult] = []
        for index, record in enumerate(records):
            action_type = str(record.get("type")) if isinstance(record, Mapping) else "?"
            try:
                if not isinstance(record, Mapping):
                    msg = f"Action must be an object, got {type(record).__name__}"
                    raise InvalidStructuralOperation(msg)
                message = self.execute(parse_action(record))
            except CockpitError as e:
                logger.warning("Action {} ({}) failed: {}", index, action_type, e)
                results.append(ActionResult(index, action_type, False, str(e)))
            else:
                results.append(ActionResult(index, action_type, True, message))
        succeeded = sum(r.success for r in results)
        logger.info("Applied {}/{} actions", succeeded, len(results))
        return results

    # --- Reference resolution ---

    def _resolve(
        self,
        kind: NodeKind,
        ref_id: str | None,
        name: str | None,
        *,
        fallback: str | None = None,
        within: str | None = None,
    ) -> Node:
        if not ref_id and not name and fallback:
            ref_id = fallback
        return resolve_ref(self.api.store.index, kind, ref_id=ref_id, name=name, within=within)

    def _domain(self, domain_id: str | None, name: str | None, *, current: bool = True) -> str:
        fallback = self.current_domain_id if current else None
        return self._resolve(NodeKind.DOMAIN, domain_id, name, fallback=fallback).id

    def _element(self, element_id: str | None, name: str | None, *, current: bool = True) -> str:
        fallback = self.current_element_id if current else None
        return self._resolve(NodeKind.ELEMENT, element_id, name, fallback=fallback).id

    def _category_for_new_element(self, category_id: str | None, name: str | None) -> str:
        if category_id or name:
            return self._resolve(NodeKind.CATEGORY, category_id, name).id
        # Without a target, new elements go to the first category of the current domain.
        if self.current_domain_id:
            domain = self.api.store.find(self.current_domain_id, NodeKind.DOMAIN)
            if domain is not None and domain.node.categories:  # type: ignore[union-attr]
                return domain.node.categories[0].id  # type: ignore[union-attr]
        raise ReferenceNotFound(None, str(NodeKind.CATEGORY))

    def _sub_category_for_new(
        self, sub_category_id: str | None, name: str | None, element_id: str | None
    ) -> str:
        index = self.api.store.index
        if sub_category_id and sub_category_id in index:
            return self._resolve(NodeKind.SUB_CATEGORY, sub_category_id, None).id
        if name:
            # Prefer a sub-category of the given (or current) element, then any.
            scope = element_id or self.current_element_id
            if scope and scope in index:
                node = find_by_name(index, name, NodeKind.SUB_CATEGORY, within=scope)
                if node is not None:
                    return node.id
        return self._resolve(NodeKind.SUB_CATEGORY, sub_category_id, name).id

    def _status_target(self, command: UpdateStatus) -> str:
        if command.element_id or command.element_name:
            try:
                return self._element(command.element_id, command.element_name, current=False)
            except ReferenceNotFound:
                if not (command.sub_element_id or command.sub_element_name):
                    raise
        if command.sub_element_id or command.sub_element_name:
            return self._resolve(
                NodeKind.SUB_ELEMENT, command.sub_element_id, command.sub_element_name
            ).id
        return self._element(None, None)

    # --- Dispatch ---

    def execute(self, command: Command) -> str:
        """Apply one command and return a short description of what changed.

        Raises:
            CockpitError: the command could not be applied; nothing was changed.
        """
        api = self.api
        match command:
            case AddDomain(name=name, template_type=template_type):
                # Domain tabs are displayed upper-case.
                label = str(name).upper()
                self.current_domain_id = api.add_domain(
                    label, template_type=template_type or "standard"
                )
                return f'Domain "{label}" created'
            case DeleteDomain(domain_id=ref_id, domain_name=name):
                domain_id = self._domain(ref_id, name, current=False)
                api.delete_domain(domain_id)
                if self.current_domain_id == domain_id:
                    self.current_domain_id = None
                return "Domain deleted"
            case UpdateDomain(domain_id=ref_id, domain_name=name, updates=updates):
                api.update_domain(self._domain(ref_id, name), updates)
                return "Domain updated"
            case ReorderDomains(domain_ids=domain_ids):
                if not domain_ids:
                    msg = "Empty domain list"
                    raise InvalidStructuralOperation(msg)
                api.reorder_domains(list(domain_ids))
                return "Domain order updated"
            case UpdateMapBounds(
                top_left=top_left, bottom_right=bottom_right, domain_id=ref_id, domain_name=name
            ):
                api.update_map_bounds(self._domain(ref_id, name), top_left, bottom_right)
                return "Map bounds updated"
            case AddCategory(name=name, domain_id=ref_id, domain_name=domain_name, orientation=o):
                domain_id = self._domain(ref_id, domain_name)
                api.add_category(domain_id, name, orientation=o or "horizontal")
                return f'Category "{name}" created'
            case UpdateCategory(category_id=ref_id, category_name=name, updates=updates):
                api.update_category(self._resolve(NodeKind.CATEGORY, ref_id, name).id, updates)
                return "Category updated"
            case DeleteCategory(category_id=ref_id, category_name=name):
                api.delete_category(self._resolve(NodeKind.CATEGORY, ref_id, name).id)
                return "Category deleted"
            case AddElement(name=name, category_id=ref_id, category_name=category_name):
                api.add_element(self._category_for_new_element(ref_id, category_name), name)
                return f'Element "{name}" created'
            case AddElements(names=names, category_id=ref_id, category_name=category_name):
                ids = api.add_elements(self._category_for_new_element(ref_id, category_name), names)
                return f"{len(ids)} elements created"
            case DeleteElement(element_id=ref_id, element_name=name):
                element_id = self._element(ref_id, name, current=False)
                api.delete_element(element_id)
                if self.current_element_id == element_id:
                    self.current_element_id = None
                return "Element deleted"
            case UpdateElement(element_id=ref_id, element_name=name, updates=updates):
                api.update_element(self._element(ref_id, name), updates)
                return "Element updated"
            case UpdateStatus(status=status):
                target = self._status_target(command)
                api.update_status(target, status)
                return f"Status -> {status}"
            case CloneElement(element_id=ref_id, element_name=name):
                api.clone_element(self._element(ref_id, name))
                return "Element cloned"
            case MoveElement(
                element_id=ref_id,
                element_name=name,
                to_category_id=to_id,
                to_category_name=to_name,
            ):
                element_id = self._element(ref_id, name, current=False)
                to_category = self._resolve(NodeKind.CATEGORY, to_id, to_name)
                api.move_element(element_id, to_category.id)
                return "Element moved"
            case ReorderElement(new_index=new_index, element_id=ref_id, element_name=name):
                api.reorder_element(self._element(ref_id, name, current=False), new_index)
                return "Element order updated"
            case LinkElement(
                element_id=ref_id, element_name=name, target_id=target_id, target_name=target_name
            ):
                group_id = api.link_elements(
                    self._element(ref_id, name),
                    self._element(target_id, target_name, current=False),
                )
                return f"Elements linked ({group_id})"
            case UnlinkElement(element_id=ref_id, element_name=name):
                cleared = api.unlink_element(self._element(ref_id, name))
                return f"{len(cleared)} elements unlinked"
            case AddSubCategory(name=name, element_id=ref_id, element_name=element_name, orientation=o):
                api.add_sub_category(
                    self._element(ref_id, element_name), name, orientation=o or "horizontal"
                )
                return f'Sub-category "{name}" created'
            case UpdateSubCategory(sub_category_id=ref_id, sub_category_name=name, updates=updates):
                api.update_sub_category(
                    self._resolve(NodeKind.SUB_CATEGORY, ref_id, name).id, updates
                )
                return "Sub-category updated"
            case DeleteSubCategory(sub_category_id=ref_id, sub_category_name=name):
                api.delete_sub_category(self._resolve(NodeKind.SUB_CATEGORY, ref_id, name).id)
                return "Sub-category deleted"
            case AddSubElement(
                name=name, sub_category_id=ref_id, sub_category_name=sc_name, element_id=element_id
            ):
                api.add_sub_element(self._sub_category_for_new(ref_id, sc_name, element_id), name)
                return f'Sub-element "{name}" created'
            case AddSubElements(
                names=names, sub_category_id=ref_id, sub_category_name=sc_name, element_id=element_id
            ):
                ids = api.add_sub_elements(
                    self._sub_category_for_new(ref_id, sc_name, element_id), names
                )
                return f"{len(ids)} sub-elements created"
            case DeleteSubElement(sub_element_id=ref_id, sub_element_name=name):
                api.delete_sub_element(self._resolve(NodeKind.SUB_ELEMENT, ref_id, name).id)
                return "Sub-element deleted"
            case UpdateSubElement(sub_element_id=ref_id, sub_element_name=name, updates=updates):
                api.update_sub_element(self._resolve(NodeKind.SUB_ELEMENT, ref_id, name).id, updates)
                return "Sub-element updated"
            case MoveSubElement(
                sub_element_id=ref_id,
                sub_element_name=name,
                to_sub_category_id=to_id,
                to_sub_category_name=to_name,
            ):
                sub_element = self._resolve(NodeKind.SUB_ELEMENT, ref_id, name)
                to_sub_category = self._resolve(NodeKind.SUB_CATEGORY, to_id, to_name)
                api.move_sub_element(sub_element.id, to_sub_category.id)
                return "Sub-element moved"
            case ReorderSubElement(new_index=new_index, sub_element_id=ref_id, sub_element_name=name):
                sub_element = self._resolve(NodeKind.SUB_ELEMENT, ref_id, name)
                api.reorder_sub_element(sub_element.id, new_index)
                return "Sub-element order updated"
            case LinkSubElement(
                sub_element_id=ref_id,
                sub_element_name=name,
                target_id=target_id,
                target_name=target_name,
            ):
                group_id = api.link_sub_elements(
                    self._resolve(NodeKind.SUB_ELEMENT, ref_id, name).id,
                    self._resolve(NodeKind.SUB_ELEMENT, target_id, target_name).id,
                )
                return f"Sub-elements linked ({group_id})"
            case UnlinkSubElement(sub_element_id=ref_id, sub_element_name=name):
                cleared = api.unlink_sub_element(
                    self._resolve(NodeKind.SUB_ELEMENT, ref_id, name).id
                )
                return f"{len(cleared)} sub-elements unlinked"
            case AddZone(name=name, icon=icon):
                api.add_zone(name, icon=icon)
                return f'Zone "{name}" created'
            case DeleteZone(zone_id=ref_id, zone_name=name):
                api.delete_zone(self._resolve(NodeKind.ZONE, ref_id, name).id)
                return "Zone deleted"
            case AddMapElement(
                name=name,
                lat=lat,
                lng=lng,
                domain_id=ref_id,
                domain_name=domain_name,
                status=status,
                icon=icon,
            ):
                api.add_map_element(
                    self._domain(ref_id, domain_name),
                    name,
                    {"lat": lat, "lng": lng},
                    status=status or "ok",
                    icon=icon,
                )
                return f'Map point "{name}" added'
            case UpdateMapElement(
                map_element_id=ref_id, map_element_name=name, lat=lat, lng=lng, updates=updates
            ):
                fields = dict(updates)
                if lat is not None and lng is not None:
                    fields["gps"] = {"lat": lat, "lng": lng}
                api.update_map_element(self._resolve(NodeKind.MAP_ELEMENT, ref_id, name).id, fields)
                return "Map point updated"
            case DeleteMapElement(map_element_id=ref_id, map_element_name=name):
                api.delete_map_element(self._resolve(NodeKind.MAP_ELEMENT, ref_id, name).id)
                return "Map point deleted"
            case CloneMapElement(map_element_id=ref_id, map_element_name=name):
                api.clone_map_element(self._resolve(NodeKind.MAP_ELEMENT, ref_id, name).id)
                return "Map point cloned"
            case Duplicate(node_id=node_id):
                new_id = api.duplicate(node_id)
                return f"Duplicated as {new_id}"
            case UpdateCockpit(updates=updates):
                api.update_cockpit(updates)
                return "Cockpit updated"
            case SelectDataDate(date=date):
                api.select_data_date(date)
                return f"Showing {date}" if date else "Showing live data"
            case RecordSnapshot(date=date, node_id=node_id, label=label):
                if node_id:
                    api.record_snapshot(node_id, date, label=label)
                    return f"Snapshot recorded at {date}"
                count = api.capture_all(date, label=label)
                return f"{count} snapshots recorded at {date}"
            case SelectDomain(domain_id=ref_id, domain_name=name):
                self.current_domain_id = self._domain(ref_id, name, current=False)
                return "Domain selected"
            case SelectElement(element_id=ref_id, element_name=name):
                self.current_element_id = self._element(ref_id, name, current=False)
                return "Element selected"
            case _:
                assert_never(command)
