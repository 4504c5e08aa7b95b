"""Resolve references by id, falling back to a best-effort name match."""

from loguru import logger

from cockpit_studio.core.tree.index import TreeIndex, walk
from cockpit_studio.errors import ReferenceNotFound
from cockpit_studio.models.node import Node, NodeKind


def _normalize_name(name: str) -> str:
    return " ".join(name.split()).casefold()


def find_by_name(
    index: TreeIndex, name: str, kind: NodeKind, *, within: str | None = None
) -> Node | None:
    """First node of kind named name (case-insensitive), in document order.

    Args:
        index: Index of the tree to search.
        name: Display name to match; surrounding and repeated spaces are ignored.
        kind: Kind of node wanted.
        within: Restrict the search to the subtree of this id.

    Returns:
        The matching node, or None. When several nodes share a name the
        first one wins, so callers should prefer ids whenever they have one.
    """
    if not isinstance(name, str):
        return None
    wanted = _normalize_name(name)
    if not wanted:
        return None
    if within is not None:
        scope = index.get(within)
        if scope is None:
            return None
        entries = walk(scope.node, scope.parent)
    else:
        entries = index.entries()
    for entry in entries:
        if entry.kind == kind and _normalize_name(getattr(entry.node, "name", "")) == wanted:
            return entry.node
    return None


def resolve_ref(
    index: TreeIndex,
    kind: NodeKind,
    *,
    ref_id: str | None = None,
    name: str | None = None,
    within: str | None = None,
) -> Node:
    """Resolve a node by id, then by name.

    The id is authoritative; the name is only consulted when the id is
    missing or stale. Raises ReferenceNotFound when neither resolves.
    """
    if ref_id:
        entry = index.get(ref_id)
        if entry is not None and entry.kind == kind:
            return entry.node
    if name:
        node = find_by_name(index, name, kind, within=within)
        if node is not None:
            if ref_id:
                logger.debug("Stale {} id {!r}, resolved by name {!r}", kind, ref_id, name)
            return node
    raise ReferenceNotFound(ref_id or name, str(kind))
