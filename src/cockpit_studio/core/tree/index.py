"""Tree index: id lookup, parent links, sibling lists and subtree walks."""

from collections.abc import Iterator
from dataclasses import dataclass

from cockpit_studio.errors import ConstraintViolation
from cockpit_studio.models.node import Cockpit, Node, NodeKind, kind_of

# (parent kind, child kind) -> attribute holding the children on the parent.
CHILD_COLLECTIONS: dict[tuple[NodeKind, NodeKind], str] = {
    (NodeKind.COCKPIT, NodeKind.DOMAIN): "domains",
    (NodeKind.COCKPIT, NodeKind.ZONE): "zones",
    (NodeKind.DOMAIN, NodeKind.CATEGORY): "categories",
    (NodeKind.DOMAIN, NodeKind.MAP_ELEMENT): "map_elements",
    (NodeKind.CATEGORY, NodeKind.ELEMENT): "elements",
    (NodeKind.ELEMENT, NodeKind.SUB_CATEGORY): "sub_categories",
    (NodeKind.SUB_CATEGORY, NodeKind.SUB_ELEMENT): "sub_elements",
}

PARENT_KIND: dict[NodeKind, NodeKind] = {child: parent for parent, child in CHILD_COLLECTIONS}

# Denormalized reference to the parent, stored on each child record.
PARENT_REF_FIELD: dict[NodeKind, str] = {
    NodeKind.DOMAIN: "cockpit_id",
    NodeKind.ZONE: "cockpit_id",
    NodeKind.CATEGORY: "domain_id",
    NodeKind.MAP_ELEMENT: "domain_id",
    NodeKind.ELEMENT: "category_id",
    NodeKind.SUB_CATEGORY: "element_id",
    NodeKind.SUB_ELEMENT: "sub_category_id",
}

# Kinds whose siblings carry a dense zero-based ``order``.
ORDERED_KINDS = frozenset(
    {
        NodeKind.DOMAIN,
        NodeKind.CATEGORY,
        NodeKind.ELEMENT,
        NodeKind.SUB_CATEGORY,
        NodeKind.SUB_ELEMENT,
    }
)

# Kinds that carry a status of their own and may join a link group.
TILE_KINDS = frozenset({NodeKind.ELEMENT, NodeKind.SUB_ELEMENT, NodeKind.MAP_ELEMENT})


@dataclass(frozen=True)
class IndexEntry:
    """A node together with its kind and its parent (None for the cockpit)."""

    node: Node
    kind: NodeKind
    parent: Node | None

    @property
    def siblings(self) -> list[Node]:
        """The list this node lives in (mutable, owned by the parent)."""
        if self.parent is None:
            return [self.node]
        attr = CHILD_COLLECTIONS[(kind_of(self.parent), self.kind)]
        return getattr(self.parent, attr)  # type: ignore[no-any-return]


def child_collections(node: Node) -> Iterator[tuple[NodeKind, list[Node]]]:
    """Yield (child kind, child list) for every collection owned by node."""
    node_kind = kind_of(node)
    for (parent_kind, child_kind), attr in CHILD_COLLECTIONS.items():
        if parent_kind == node_kind:
            yield child_kind, getattr(node, attr)


def walk(node: Node, parent: Node | None = None) -> Iterator[IndexEntry]:
    """Pre-order depth-first walk of node and all its descendants."""
    todo: list[tuple[Node, Node | None]] = [(node, parent)]
    while todo:
        current, current_parent = todo.pop()
        yield IndexEntry(node=current, kind=kind_of(current), parent=current_parent)
        children: list[tuple[Node, Node | None]] = []
        for _child_kind, items in child_collections(current):
            children.extend((child, current) for child in items)
        todo.extend(reversed(children))


class TreeIndex:
    """Id -> entry map over one cockpit.

    The index is a pure function of the tree; callers rebuild it after
    every structural change instead of patching it.
    """

    def __init__(self, cockpit: Cockpit) -> None:
        self.cockpit = cockpit
        self._entries: dict[str, IndexEntry] = {}
        self.rebuild()

    def rebuild(self) -> None:
        entries: dict[str, IndexEntry] = {}
        for entry in walk(self.cockpit):
            node_id = entry.node.id
            if node_id in entries:
                msg = f"Duplicate id {node_id!r} ({entries[node_id].kind} and {entry.kind})"
                raise ConstraintViolation(msg)
            entries[node_id] = entry
        self._entries = entries

    def get(self, node_id: str | None) -> IndexEntry | None:
        if not node_id:
            return None
        return self._entries.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Iterator[IndexEntry]:
        """All entries in document (pre-order) order."""
        return iter(self._entries.values())

    def of_kind(self, kind: NodeKind) -> list[Node]:
        return [e.node for e in self._entries.values() if e.kind == kind]

    def subtree_ids(self, node_id: str) -> list[str]:
        entry = self._entries[node_id]
        return [e.node.id for e in walk(entry.node, entry.parent)]

    def ancestors(self, node_id: str) -> list[IndexEntry]:
        """Entries from the cockpit down to the immediate parent."""
        chain: list[IndexEntry] = []
        entry = self._entries.get(node_id)
        while entry is not None and entry.parent is not None:
            entry = self._entries[entry.parent.id]
            chain.append(entry)
        return list(reversed(chain))
