"""Link groups: tiles that show the same real-world indicator."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from cockpit_studio.core.tree.index import TILE_KINDS
from cockpit_studio.errors import InvalidStructuralOperation
from cockpit_studio.models.node import Node

if TYPE_CHECKING:
    from cockpit_studio.core.tree.store import EntityTreeStore

# Fields kept identical across a link group. Identity fields (name, icon) stay per node.
SYNC_FIELDS = ("status", "value", "unit")


def _sync_values(node: Node) -> dict[str, Any]:
    return {f: getattr(node, f) for f in SYNC_FIELDS if hasattr(node, f)}


def _apply(node: Node, changes: Mapping[str, Any]) -> bool:
    """Write the synchronized fields node carries; return True if anything changed."""
    changed = False
    for name, value in changes.items():
        if name not in SYNC_FIELDS or not hasattr(node, name):
            continue
        if getattr(node, name) != value:
            setattr(node, name, value)
            changed = True
    return changed


class LinkRegistry:
    """Index of link groups over the store's tree.

    Membership lives on the nodes themselves (``linked_group_id``); the
    registry derives groups from the tree on demand, so it never holds
    state that could drift from the document.
    """

    def __init__(self, store: "EntityTreeStore") -> None:
        self._store = store

    def groups(self) -> dict[str, list[Node]]:
        """All groups in document order, keyed by group id."""
        out: dict[str, list[Node]] = {}
        for entry in self._store.index.entries():
            group_id = getattr(entry.node, "linked_group_id", None)
            if group_id:
                out.setdefault(group_id, []).append(entry.node)
        return out

    def members(self, group_id: str | None) -> list[Node]:
        if not group_id:
            return []
        return self.groups().get(group_id, [])

    def group_of(self, ref: str) -> list[Node]:
        """Members of ref's group, ref included; empty if ref is not linked."""
        node = self._store.get(ref)
        return self.members(getattr(node, "linked_group_id", None))

    def _linkable(self, ref: str) -> Node:
        entry = self._store.entry(ref)
        if entry.kind not in TILE_KINDS:
            msg = f"A {entry.kind} cannot be linked"
            raise InvalidStructuralOperation(msg)
        return entry.node

    def link(self, ref_a: str, ref_b: str) -> str:
        """Put ref_a and ref_b in the same group and return its id.

        The node that joins an existing group takes that group's status,
        value and unit. When both nodes already belong to different groups
        the smaller group is absorbed by the larger one (ref_a's group wins
        a tie) and its members take the surviving group's values.

        Raises:
            ReferenceNotFound: either ref does not resolve.
            InvalidStructuralOperation: linking a node to itself, or a non-tile node.
        """
        with self._store.locked():
            if ref_a == ref_b:
                msg = f"Cannot link {ref_a!r} to itself"
                raise InvalidStructuralOperation(msg)
            node_a = self._linkable(ref_a)
            node_b = self._linkable(ref_b)
            group_a = node_a.linked_group_id  # type: ignore[union-attr]
            group_b = node_b.linked_group_id  # type: ignore[union-attr]

            if group_a and group_a == group_b:
                return group_a

            if not group_a and not group_b:
                group_id = self._store.new_id()
                node_a.linked_group_id = group_id  # type: ignore[union-attr]
                node_b.linked_group_id = group_id  # type: ignore[union-attr]
                _apply(node_b, _sync_values(node_a))
            elif group_a and not group_b:
                group_id = group_a
                node_b.linked_group_id = group_id  # type: ignore[union-attr]
                _apply(node_b, _sync_values(node_a))
            elif group_b and not group_a:
                group_id = group_b
                node_a.linked_group_id = group_id  # type: ignore[union-attr]
                _apply(node_a, _sync_values(node_b))
            else:
                members_a = self.members(group_a)
                members_b = self.members(group_b)
                if len(members_b) > len(members_a):
                    survivor, absorbed, source = group_b, members_a, node_b
                else:
                    survivor, absorbed, source = group_a, members_b, node_a
                values = _sync_values(source)
                for member in absorbed:
                    member.linked_group_id = survivor  # type: ignore[union-attr]
                    _apply(member, values)
                group_id = survivor  # type: ignore[assignment]
                logger.debug("Merged {} members into link group {!r}", len(absorbed), group_id)

            self._store.touch()
            logger.debug("Linked {!r} and {!r} in group {!r}", ref_a, ref_b, group_id)
            return group_id  # type: ignore[return-value]

    def unlink(self, ref: str) -> list[str]:
        """Take ref out of its group; return the ids whose membership was cleared.

        A group left with a single member is dissolved. Unlinking a node
        that is not linked is a no-op.
        """
        with self._store.locked():
            node = self._linkable(ref)
            group_id = node.linked_group_id  # type: ignore[union-attr]
            if not group_id:
                return []
            node.linked_group_id = None  # type: ignore[union-attr]
            cleared = [node.id]
            remaining = self.members(group_id)
            if len(remaining) == 1:
                remaining[0].linked_group_id = None  # type: ignore[union-attr]
                cleared.append(remaining[0].id)
                logger.debug(
                    "Link group {!r} dissolved; history entries under it are left in place",
                    group_id,
                )
            self._store.touch()
            return cleared

    def propagate(self, source_ref: str, changes: Mapping[str, Any]) -> list[str]:
        """Copy status, value and unit changes to every other member of source_ref's group.

        Other keys in changes are ignored. Returns the ids of members that
        actually changed, so applying the same change twice returns [] the
        second time.
        """
        with self._store.locked():
            source = self._store.get(source_ref)
            updated: list[str] = []
            for member in self.members(getattr(source, "linked_group_id", None)):
                if member is source:
                    continue
                if _apply(member, changes):
                    updated.append(member.id)
            if updated:
                logger.debug("Propagated {} from {!r} to {}", sorted(changes), source_ref, updated)
            return updated

    def normalize(self) -> list[str]:
        """Clear the membership of every group that has a single member."""
        cleared: list[str] = []
        with self._store.locked():
            for group_id, members in self.groups().items():
                if len(members) == 1:
                    members[0].linked_group_id = None  # type: ignore[union-attr]
                    cleared.append(members[0].id)
                    logger.debug("Dissolved single-member link group {!r}", group_id)
        return cleared
