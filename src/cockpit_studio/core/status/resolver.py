"""Effective status of any node: history overlay, own field, then rollup."""

from collections.abc import Iterable

from cockpit_studio.core.history.overlay import HistoryOverlay
from cockpit_studio.core.tree.index import TILE_KINDS, walk
from cockpit_studio.models.node import Cockpit, Domain, EffectiveData, Node, Status, kind_of

# Lowest to highest. Disconnected ranks below minor: an unreachable probe
# is reported, but a confirmed degradation elsewhere dominates it.
SEVERITY_ORDER: tuple[Status, ...] = (
    Status.OK,
    Status.DISCONNECTED,
    Status.MINOR,
    Status.CRITICAL,
    Status.FATAL,
)

_RANK: dict[Status, float] = {status: rank for rank, status in enumerate(SEVERITY_ORDER)}
# Information outranks ok so an ok child never hides it, but any real
# degradation outranks information.
_RANK[Status.INFORMATION] = 0.5


def severity_rank(status: Status) -> float:
    """Rank of status in SEVERITY_ORDER, 0.5 for information, -1 for unresolved statuses."""
    return _RANK.get(status, -1)


def worst(statuses: Iterable[Status], default: Status = Status.OK) -> Status:
    """Highest-severity status among statuses, or default if none outranks it."""
    result = default
    for status in statuses:
        if severity_rank(status) > severity_rank(result):
            result = status
    return result


class StatusResolver:
    """Computes what status a node shows for a selected date.

    Resolution is a pure function of the tree, the history and the date:
    nothing is cached, and a missing or malformed input degrades to ``ok``
    instead of raising.
    """

    def __init__(self, cockpit: Cockpit, overlay: HistoryOverlay | None = None) -> None:
        self.cockpit = cockpit
        self.overlay = overlay or HistoryOverlay(cockpit)

    def own_status(self, node: Node, selected_date: str | None = None) -> Status:
        """Status of node itself, with history applied and derived statuses resolved.

        Containers without a status field (cockpit, domain, category,
        sub-category) have ``ok`` as their own status.
        """
        return self._own(node, selected_date, frozenset())

    def effective_status(self, node: Node, selected_date: str | None = None) -> Status:
        """Worst of node's own status and the statuses of every tile below it."""
        return self._rollup(node, selected_date, frozenset())

    def effective_data(self, node: Node, selected_date: str | None = None) -> EffectiveData:
        """Overlay-resolved display data, with derived statuses replaced by their result."""
        data = self.overlay.resolve(node, selected_date)
        status = self.own_status(node, selected_date)
        if status == data.status:
            return data
        return EffectiveData(
            status=status,
            value=data.value,
            unit=data.unit,
            alert_description=data.alert_description,
            is_from_history=data.is_from_history,
        )

    def _find_domain(self, domain_id: str | None) -> Domain | None:
        for domain in self.cockpit.domains:
            if domain.id == domain_id:
                return domain
        return None

    def _own(self, node: Node, selected_date: str | None, visiting: frozenset[str]) -> Status:
        if kind_of(node) not in TILE_KINDS:
            return Status.OK
        status = self.overlay.resolve(node, selected_date).status
        if status == Status.INHERITED:
            return worst(
                self._own(entry.node, selected_date, visiting)
                for entry in walk(node)
                if entry.node is not node and entry.kind in TILE_KINDS
            )
        if status == Status.INHERITED_DOMAIN:
            domain_id = getattr(node, "inherit_from_domain_id", None)
            domain = self._find_domain(domain_id)
            if domain is None or domain.id in visiting:
                return Status.OK
            return self._rollup(domain, selected_date, visiting | {domain.id})
        return status

    def _rollup(self, node: Node, selected_date: str | None, visiting: frozenset[str]) -> Status:
        if isinstance(node, Domain):
            visiting = visiting | {node.id}
        result = self._own(node, selected_date, visiting)
        for entry in walk(node):
            if entry.node is node or entry.kind not in TILE_KINDS:
                continue
            status = self._own(entry.node, selected_date, visiting)
            if severity_rank(status) > severity_rank(result):
                result = status
        return result
