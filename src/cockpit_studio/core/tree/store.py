"""Entity tree store: the canonical tree of one open cockpit."""

import functools
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from cockpit_studio.config import MAX_DOMAINS
from cockpit_studio.core.links.registry import SYNC_FIELDS, LinkRegistry
from cockpit_studio.core.remap.remapper import generate_id, remap_subtree
from cockpit_studio.core.tree.index import (
    CHILD_COLLECTIONS,
    ORDERED_KINDS,
    PARENT_REF_FIELD,
    IndexEntry,
    TreeIndex,
    child_collections,
    walk,
)
from cockpit_studio.core.tree.merge import merge_fields, prepare_updates
from cockpit_studio.errors import (
    ConstraintViolation,
    InvalidStructuralOperation,
    ReferenceNotFound,
)
from cockpit_studio.models.node import Cockpit, Node, NodeKind, kind_of

P = ParamSpec("P")
R = TypeVar("R")


def _synchronized(method: Callable[P, R]) -> Callable[P, R]:
    @functools.wraps(method)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        self = args[0]
        with self._lock:  # type: ignore[attr-defined]
            return method(*args, **kwargs)

    return wrapper


def renumber(siblings: list[Node]) -> None:
    """Restore the dense zero-based ``order`` of a sibling list."""
    for i, sibling in enumerate(siblings):
        sibling.order = i  # type: ignore[union-attr]


class EntityTreeStore:
    """Owns one cockpit tree and exposes its structural mutations.

    Every public method validates its arguments before touching the tree,
    so a failed call leaves the tree unchanged. Calls are serialized by a
    re-entrant lock; readers that need a consistent view across several
    calls should hold ``locked()``.

    The store only guarantees single-writer semantics inside one process.
    Persistence is whole-document and last-write-wins: two sessions editing
    the same cockpit concurrently can overwrite each other.
    """

    def __init__(self, cockpit: Cockpit, *, id_factory: Callable[[], str] = generate_id) -> None:
        self.cockpit = cockpit
        self.id_factory = id_factory
        self._lock = threading.RLock()
        self._retired_ids: set[str] = set()
        self.index = TreeIndex(cockpit)
        self.links = LinkRegistry(self)
        self._normalize()

    def _normalize(self) -> None:
        """Repair sibling orders and single-member link groups of a freshly loaded tree."""
        for entry in list(self.index.entries()):
            for child_kind, children in child_collections(entry.node):
                if child_kind in ORDERED_KINDS:
                    children.sort(key=lambda n: n.order)  # type: ignore[union-attr]
                    renumber(children)
        cleared = self.links.normalize()
        if cleared:
            logger.info("Cleared {} single-member link memberships on load", len(cleared))

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def touch(self) -> None:
        self.cockpit.updated_at = datetime.now(UTC).isoformat()

    def new_id(self) -> str:
        node_id = self.id_factory()
        while node_id in self.index or node_id in self._retired_ids:
            node_id = self.id_factory()
        return node_id

    # --- Lookup ---

    def find(self, ref: str | None, kind: NodeKind | None = None) -> IndexEntry | None:
        entry = self.index.get(ref)
        if entry is None or (kind is not None and entry.kind != kind):
            return None
        return entry

    def entry(self, ref: str | None, kind: NodeKind | None = None) -> IndexEntry:
        """Return the entry for ref, raising ReferenceNotFound if absent or of another kind."""
        entry = self.find(ref, kind)
        if entry is None:
            raise ReferenceNotFound(ref, str(kind or "node"))
        return entry

    def get(self, ref: str | None, kind: NodeKind | None = None) -> Any:
        return self.entry(ref, kind).node

    def children(self, ref: str) -> list[Node]:
        node = self.get(ref)
        out: list[Node] = []
        for _kind, items in child_collections(node):
            out.extend(items)
        return out

    # --- Mutations ---

    @_synchronized
    def add_child(self, parent_ref: str, node: Node) -> str:
        """Append node under parent_ref with ``order = n``; return its id.

        Raises:
            ReferenceNotFound: parent_ref does not resolve.
            InvalidStructuralOperation: node cannot live under that parent, or its id is taken.
            ConstraintViolation: adding a domain beyond MAX_DOMAINS.
        """
        parent_entry = self.entry(parent_ref)
        kind = kind_of(node)
        attr = CHILD_COLLECTIONS.get((parent_entry.kind, kind))
        if attr is None:
            msg = f"A {kind} cannot be added under a {parent_entry.kind}"
            raise InvalidStructuralOperation(msg)
        seen: set[str] = set()
        for sub in walk(node):
            sub_id = sub.node.id
            if sub_id in seen or sub_id in self.index or sub_id in self._retired_ids:
                msg = f"Id {sub_id!r} is already in use"
                raise InvalidStructuralOperation(msg)
            seen.add(sub_id)
        siblings: list[Node] = getattr(parent_entry.node, attr)
        if kind == NodeKind.DOMAIN and len(siblings) >= MAX_DOMAINS:
            msg = f"A cockpit holds at most {MAX_DOMAINS} domains"
            raise ConstraintViolation(msg)

        setattr(node, PARENT_REF_FIELD[kind], parent_entry.node.id)
        siblings.append(node)
        if kind in ORDERED_KINDS:
            renumber(siblings)
        self.index.rebuild()
        self.touch()
        logger.debug("Added {} {!r} under {} {!r}", kind, node.id, parent_entry.kind, parent_ref)
        return node.id

    @_synchronized
    def update(self, ref: str, fields: Mapping[str, Any], kind: NodeKind | None = None) -> set[str]:
        """Shallow-merge fields into a node; return the names that changed.

        Children are never touched. A change to status, value or unit on a
        linked node is propagated to the rest of its link group.
        """
        entry = self.entry(ref, kind)
        prepared = prepare_updates(entry.node, fields)
        changed = merge_fields(entry.node, prepared)
        if not changed:
            return changed
        synced = {f: getattr(entry.node, f) for f in SYNC_FIELDS if f in changed}
        if synced and getattr(entry.node, "linked_group_id", None):
            self.links.propagate(ref, synced)
        self.touch()
        logger.debug("Updated {} {!r}: {}", entry.kind, ref, sorted(changed))
        return changed

    @_synchronized
    def remove(self, ref: str, kind: NodeKind | None = None) -> list[str]:
        """Delete a node and its subtree; return every removed id.

        Link groups left with a single member are dissolved.
        """
        entry = self.entry(ref, kind)
        if entry.parent is None:
            msg = "The cockpit itself cannot be removed"
            raise InvalidStructuralOperation(msg)
        removed = self.index.subtree_ids(ref)
        siblings = entry.siblings
        siblings.remove(entry.node)
        if entry.kind in ORDERED_KINDS:
            renumber(siblings)
        self._retired_ids.update(removed)
        self.index.rebuild()
        self.links.normalize()
        self.touch()
        logger.debug("Removed {} {!r} ({} nodes)", entry.kind, ref, len(removed))
        return removed

    @_synchronized
    def move(self, ref: str, new_parent_ref: str, kind: NodeKind | None = None) -> None:
        """Detach a node, close the gap among its old siblings, append it to the new parent."""
        entry = self.entry(ref, kind)
        if entry.parent is None:
            msg = "The cockpit itself cannot be moved"
            raise InvalidStructuralOperation(msg)
        new_parent = self.entry(new_parent_ref)
        attr = CHILD_COLLECTIONS.get((new_parent.kind, entry.kind))
        if attr is None:
            msg = f"A {entry.kind} cannot be moved under a {new_parent.kind}"
            raise InvalidStructuralOperation(msg)

        old_siblings = entry.siblings
        old_siblings.remove(entry.node)
        new_siblings: list[Node] = getattr(new_parent.node, attr)
        new_siblings.append(entry.node)
        setattr(entry.node, PARENT_REF_FIELD[entry.kind], new_parent.node.id)
        if entry.kind in ORDERED_KINDS:
            renumber(old_siblings)
            renumber(new_siblings)
        self.index.rebuild()
        self.touch()
        logger.debug("Moved {} {!r} to {} {!r}", entry.kind, ref, new_parent.kind, new_parent_ref)

    @_synchronized
    def reorder(self, ref: str, new_index: int, kind: NodeKind | None = None) -> None:
        """Move a node to new_index among its siblings (clamped to the valid range)."""
        entry = self.entry(ref, kind)
        if entry.kind not in ORDERED_KINDS:
            msg = f"{entry.kind} siblings are not ordered"
            raise InvalidStructuralOperation(msg)
        if isinstance(new_index, bool) or not isinstance(new_index, int):
            msg = f"Index must be an integer, got {new_index!r}"
            raise InvalidStructuralOperation(msg)
        siblings = entry.siblings
        current = siblings.index(entry.node)
        if new_index == current:
            return
        siblings.pop(current)
        target = max(0, min(new_index, len(siblings)))
        siblings.insert(target, entry.node)
        renumber(siblings)
        self.touch()
        logger.debug("Reordered {} {!r}: {} -> {}", entry.kind, ref, current, target)

    @_synchronized
    def reorder_all(self, parent_ref: str, child_kind: NodeKind, ordered_ids: list[str]) -> None:
        """Reorder all children of one kind to match ordered_ids (a permutation)."""
        parent = self.entry(parent_ref)
        attr = CHILD_COLLECTIONS.get((parent.kind, child_kind))
        if attr is None or child_kind not in ORDERED_KINDS:
            msg = f"{parent.kind} has no ordered {child_kind} children"
            raise InvalidStructuralOperation(msg)
        siblings: list[Node] = getattr(parent.node, attr)
        by_id = {n.id: n for n in siblings}
        if len(ordered_ids) != len(by_id) or set(ordered_ids) != set(by_id):
            msg = f"Expected a permutation of {sorted(by_id)!r}, got {ordered_ids!r}"
            raise InvalidStructuralOperation(msg)
        siblings[:] = [by_id[i] for i in ordered_ids]
        renumber(siblings)
        self.touch()

    @_synchronized
    def duplicate(self, ref: str, kind: NodeKind | None = None) -> str:
        """Deep-copy the subtree at ref next to the original; return the copy's id.

        The copy gets fresh ids throughout and is not linked to anything.
        """
        entry = self.entry(ref, kind)
        if entry.parent is None:
            msg = "The cockpit itself cannot be duplicated here"
            raise InvalidStructuralOperation(msg)
        copy, mapping = remap_subtree(entry.node, id_factory=self.new_id)
        new_id = self.add_child(entry.parent.id, copy)
        logger.debug("Duplicated {} {!r} -> {!r} ({} ids)", entry.kind, ref, new_id, len(mapping))
        return new_id

