"""Tests for the entity tree store."""

import itertools

import pytest

from cockpit_studio.core.importer.json_reader import parse_cockpit
from cockpit_studio.core.tree.index import ORDERED_KINDS, child_collections, walk
from cockpit_studio.core.tree.store import EntityTreeStore
from cockpit_studio.errors import (
    ConstraintViolation,
    InvalidStructuralOperation,
    ReferenceNotFound,
)
from cockpit_studio.models.node import (
    Category,
    Cockpit,
    Domain,
    Element,
    NodeKind,
    Status,
    SubCategory,
    SubElement,
)


def assert_orders_dense(cockpit: Cockpit) -> None:
    for entry in walk(cockpit):
        for kind, children in child_collections(entry.node):
            if kind in ORDERED_KINDS:
                assert [c.order for c in children] == list(range(len(children))), entry.node.id


def test_load_repairs_sibling_orders() -> None:
    cockpit = parse_cockpit(
        {
            "id": "ck",
            "name": "C",
            "domains": [
                {"id": "b", "name": "B", "order": 7},
                {"id": "a", "name": "A", "order": 3},
            ],
        }
    )
    EntityTreeStore(cockpit)
    assert [(d.id, d.order) for d in cockpit.domains] == [("a", 0), ("b", 1)]


def test_load_clears_single_member_link_groups(cockpit: Cockpit) -> None:
    cockpit.domains[0].categories[0].elements[0].linked_group_id = "lonely"
    EntityTreeStore(cockpit)
    assert cockpit.domains[0].categories[0].elements[0].linked_group_id is None


def test_add_child_appends_with_next_order(store: EntityTreeStore) -> None:
    new_id = store.add_child("c1", Element(id="fresh", category_id="", name="Marseille"))
    assert new_id == "fresh"
    node = store.get("fresh")
    assert node.order == 2
    assert node.category_id == "c1"
    assert store.entry("fresh").parent.id == "c1"  # type: ignore[union-attr]


def test_add_child_rejects_wrong_parent_kind(store: EntityTreeStore, cockpit: Cockpit) -> None:
    before = len(store.index)
    with pytest.raises(InvalidStructuralOperation):
        store.add_child("d1", Element(id="x", category_id="", name="X"))
    assert len(store.index) == before
    assert len(cockpit.domains[0].categories) == 2


def test_add_child_rejects_ids_in_use(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation, match="e2"):
        store.add_child("c1", Element(id="e2", category_id="", name="Again"))
    subtree = Element(
        id="x",
        category_id="",
        name="X",
        sub_categories=[SubCategory(id="x", element_id="", name="Same id")],
    )
    with pytest.raises(InvalidStructuralOperation):
        store.add_child("c1", subtree)
    assert "x" not in store.index


def test_add_child_unknown_parent(store: EntityTreeStore) -> None:
    with pytest.raises(ReferenceNotFound) as exc_info:
        store.add_child("missing", Element(id="x", category_id="", name="X"))
    assert exc_info.value.ref == "missing"


def test_domain_cap(store: EntityTreeStore, cockpit: Cockpit) -> None:
    for i in range(4):
        store.add_child("ck1", Domain(id=f"dom{i}", cockpit_id="", name=f"D{i}"))
    assert len(cockpit.domains) == 6
    with pytest.raises(ConstraintViolation):
        store.add_child("ck1", Domain(id="seventh", cockpit_id="", name="Too many"))
    assert len(cockpit.domains) == 6
    assert "seventh" not in store.index


def test_remove_closes_gap_and_returns_subtree(store: EntityTreeStore, cockpit: Cockpit) -> None:
    removed = store.remove("e1", NodeKind.ELEMENT)
    assert removed == ["e1", "sc1", "se1", "se2"]
    elements = cockpit.domains[0].categories[0].elements
    assert [(e.id, e.order) for e in elements] == [("e2", 0)]
    assert "se1" not in store.index


def test_remove_checks_kind(store: EntityTreeStore) -> None:
    with pytest.raises(ReferenceNotFound):
        store.remove("e1", NodeKind.CATEGORY)
    assert "e1" in store.index


def test_cockpit_cannot_be_removed_moved_or_duplicated(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.remove("ck1")
    with pytest.raises(InvalidStructuralOperation):
        store.move("ck1", "d1")
    with pytest.raises(InvalidStructuralOperation):
        store.duplicate("ck1")


def test_removed_ids_are_never_reissued(cockpit: Cockpit) -> None:
    candidates = iter(["se2", "se2", "brand-new"])
    store = EntityTreeStore(cockpit, id_factory=lambda: next(candidates))
    store.remove("se2")
    assert store.new_id() == "brand-new"


def test_move_renumbers_both_sides(store: EntityTreeStore, cockpit: Cockpit) -> None:
    store.move("e1", "c2", NodeKind.ELEMENT)
    c1, c2 = cockpit.domains[0].categories
    assert [(e.id, e.order) for e in c1.elements] == [("e2", 0)]
    assert [(e.id, e.order) for e in c2.elements] == [("e3", 0), ("e1", 1)]
    assert store.get("e1").category_id == "c2"
    assert store.entry("se1").parent.id == "sc1"  # type: ignore[union-attr]


def test_move_rejects_incompatible_parent(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.move("e1", "sc1")


def test_reorder_moves_and_clamps(store: EntityTreeStore, cockpit: Cockpit) -> None:
    store.add_child("c1", Element(id="e5", category_id="", name="Nice"))
    store.reorder("e5", 0)
    elements = cockpit.domains[0].categories[0].elements
    assert [e.id for e in elements] == ["e5", "e1", "e2"]
    store.reorder("e5", 99)
    assert [e.id for e in elements] == ["e1", "e2", "e5"]
    store.reorder("e2", -4)
    assert [e.id for e in elements] == ["e2", "e1", "e5"]
    assert_orders_dense(cockpit)


def test_reorder_rejects_bad_index_and_unordered_kinds(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.reorder("e1", True)  # type: ignore[arg-type]
    with pytest.raises(InvalidStructuralOperation):
        store.reorder("e1", "1")  # type: ignore[arg-type]
    with pytest.raises(InvalidStructuralOperation):
        store.reorder("z1", 0)


def test_reorder_all_requires_a_permutation(store: EntityTreeStore, cockpit: Cockpit) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.reorder_all("ck1", NodeKind.DOMAIN, ["d2"])
    with pytest.raises(InvalidStructuralOperation):
        store.reorder_all("ck1", NodeKind.DOMAIN, ["d1", 2])  # type: ignore[list-item]
    assert [d.id for d in cockpit.domains] == ["d1", "d2"]
    store.reorder_all("ck1", NodeKind.DOMAIN, ["d2", "d1"])
    assert [(d.id, d.order) for d in cockpit.domains] == [("d2", 0), ("d1", 1)]


def test_update_merges_and_reports_changes(store: EntityTreeStore) -> None:
    changed = store.update("e2", {"value": "99", "status": "critical", "unit": None})
    assert changed == {"value"}
    node = store.get("e2")
    assert node.value == "99"
    assert node.status == Status.CRITICAL


def test_update_is_all_or_nothing(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.update("e2", {"value": "5", "bogus": 1})
    assert store.get("e2").value is None
    with pytest.raises(InvalidStructuralOperation):
        store.update("e2", {"value": "5", "status": "purple"})
    assert store.get("e2").value is None


def test_update_refuses_structural_fields(store: EntityTreeStore) -> None:
    for fields in ({"id": "x"}, {"order": 3}, {"category_id": "c2"}, {"sub_categories": []}):
        with pytest.raises(InvalidStructuralOperation):
            store.update("e1", fields)


def test_mutations_touch_updated_at(store: EntityTreeStore, cockpit: Cockpit) -> None:
    assert cockpit.updated_at is None
    store.update("e1", {"value": "13"})
    assert cockpit.updated_at is not None


def test_duplicate_copies_subtree_with_fresh_ids(store: EntityTreeStore, cockpit: Cockpit) -> None:
    new_id = store.duplicate("e1")
    elements = cockpit.domains[0].categories[0].elements
    assert [e.id for e in elements] == ["e1", "e2", new_id]
    copy = elements[2]
    assert copy.name == "Paris"
    assert copy.order == 2
    assert copy.category_id == "c1"
    sub_category = copy.sub_categories[0]
    assert sub_category.element_id == new_id
    assert [se.sub_category_id for se in sub_category.sub_elements] == [sub_category.id] * 2
    original_ids = set(store.index.subtree_ids("e1"))
    assert original_ids.isdisjoint(store.index.subtree_ids(new_id))


def test_order_stays_dense_after_mixed_operations(store: EntityTreeStore, cockpit: Cockpit) -> None:
    names = itertools.count()
    for _ in range(3):
        store.add_child("sc1", SubElement(id=f"s{next(names)}", sub_category_id="", name="S"))
    store.remove("se1")
    store.reorder("s2", 0)
    store.add_child("d2", Category(id="c9", domain_id="", name="Extra"))
    store.move("e2", "c9")
    store.duplicate("c1")
    store.reorder("d2", 0)
    assert_orders_dense(cockpit)
