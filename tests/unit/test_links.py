"""Tests for link groups."""

import pytest

from cockpit_studio.core.tree.store import EntityTreeStore
from cockpit_studio.errors import InvalidStructuralOperation, ReferenceNotFound
from cockpit_studio.models.node import Status


def test_link_shares_group_and_adopts_values(store: EntityTreeStore) -> None:
    group_id = store.links.link("e1", "e2")
    e1, e2 = store.get("e1"), store.get("e2")
    assert e1.linked_group_id == e2.linked_group_id == group_id
    assert (e2.status, e2.value, e2.unit) == (Status.OK, "12", "ms")
    assert e2.name == "Lyon"
    assert [n.id for n in store.links.group_of("e2")] == ["e1", "e2"]


def test_link_is_transitive(store: EntityTreeStore) -> None:
    group_id = store.links.link("e1", "e2")
    assert store.links.link("e2", "e3") == group_id
    assert {n.id for n in store.links.members(group_id)} == {"e1", "e2", "e3"}
    assert len(store.links.groups()) == 1


def test_linking_members_of_one_group_again_is_a_no_op(store: EntityTreeStore) -> None:
    group_id = store.links.link("e1", "e2")
    assert store.links.link("e2", "e1") == group_id


def test_smaller_group_merges_into_larger(store: EntityTreeStore) -> None:
    small = store.links.link("e1", "e2")
    store.update("se1", {"status": "fatal"})
    large = store.links.link("se1", "se2")
    store.links.link("e3", "se1")
    assert len(store.links.members(large)) == 3

    assert store.links.link("e1", "e3") == large
    assert store.links.members(small) == []
    for ref in ("e1", "e2", "e3", "se1", "se2"):
        assert store.get(ref).linked_group_id == large
        assert store.get(ref).status == Status.FATAL


def test_update_propagates_sync_fields_only(store: EntityTreeStore) -> None:
    store.links.link("e1", "e2")
    store.update("e1", {"status": "critical", "value": "40", "name": "Paris Nord"})
    e2 = store.get("e2")
    assert e2.status == Status.CRITICAL
    assert e2.value == "40"
    assert e2.name == "Lyon"


def test_propagate_is_idempotent(store: EntityTreeStore) -> None:
    store.links.link("e1", "e2")
    store.links.link("e1", "e3")
    assert store.links.propagate("e1", {"status": Status.FATAL}) == ["e2", "e3"]
    assert store.links.propagate("e1", {"status": Status.FATAL}) == []
    assert store.get("e1").status == Status.OK
    assert store.get("e3").status == Status.FATAL


def test_map_point_links_to_element(store: EntityTreeStore) -> None:
    store.links.link("e2", "m1")
    store.update("e2", {"status": "minor", "value": "3"})
    assert store.get("m1").status == Status.MINOR


def test_link_rejects_self_and_non_tiles(store: EntityTreeStore) -> None:
    with pytest.raises(InvalidStructuralOperation):
        store.links.link("e1", "e1")
    with pytest.raises(InvalidStructuralOperation):
        store.links.link("e1", "c2")
    with pytest.raises(ReferenceNotFound):
        store.links.link("e1", "ghost")
    assert store.get("e1").linked_group_id is None


def test_unlink_dissolves_pair(store: EntityTreeStore) -> None:
    store.links.link("e1", "e2")
    assert store.links.unlink("e2") == ["e2", "e1"]
    assert store.get("e1").linked_group_id is None
    assert store.links.groups() == {}


def test_unlink_keeps_larger_group(store: EntityTreeStore) -> None:
    group_id = store.links.link("e1", "e2")
    store.links.link("e1", "e3")
    assert store.links.unlink("e3") == ["e3"]
    assert {n.id for n in store.links.members(group_id)} == {"e1", "e2"}
    store.update("e1", {"status": "minor"})
    assert store.get("e3").status == Status.OK


def test_unlink_of_unlinked_node_is_a_no_op(store: EntityTreeStore) -> None:
    assert store.links.unlink("e1") == []


def test_removing_a_member_dissolves_remaining_single(store: EntityTreeStore) -> None:
    store.links.link("e1", "e2")
    store.remove("e2")
    assert store.get("e1").linked_group_id is None


def test_duplicate_is_not_linked(store: EntityTreeStore) -> None:
    store.links.link("e1", "e2")
    copy_id = store.duplicate("e1")
    assert store.get(copy_id).linked_group_id is None
    assert len(store.links.group_of("e1")) == 2
