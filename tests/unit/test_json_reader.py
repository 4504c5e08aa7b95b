"""Tests for the stored blob reader and writer."""

from typing import Any

from cockpit_studio.core.importer.json_reader import (
    camel,
    dump_cockpit,
    parse_cockpit,
    parse_history,
    parse_snapshot,
)
from cockpit_studio.models.node import Orientation, Status, TemplateType


def test_camel_converts_field_names() -> None:
    assert camel("sub_category_id") == "subCategoryId"
    assert camel("name") == "name"


def test_parse_cockpit_builds_nested_tree(blob: dict[str, Any]) -> None:
    cockpit = parse_cockpit(blob)
    assert cockpit.id == "ck1"
    assert [d.name for d in cockpit.domains] == ["RESEAU", "APPLICATIONS"]
    domain = cockpit.domains[0]
    assert domain.template_type == TemplateType.STANDARD
    element = domain.categories[0].elements[0]
    assert element.value == "12"
    sub_element = element.sub_categories[0].sub_elements[0]
    assert sub_element.status == Status.MINOR
    assert domain.map_elements[0].gps.lat == 48.85
    assert domain.map_elements[0].element_id == "e1"
    assert cockpit.domains[1].publiable is False
    assert cockpit.domains[1].categories[0].orientation == Orientation.HORIZONTAL


def test_parse_cockpit_rewrites_parent_references(blob: dict[str, Any]) -> None:
    blob["domains"][0]["categories"][0]["domainId"] = "somewhere-else"
    cockpit = parse_cockpit(blob)
    category = cockpit.domains[0].categories[0]
    assert category.domain_id == "d1"
    assert category.elements[0].category_id == "c1"
    assert category.elements[0].sub_categories[0].sub_elements[0].sub_category_id == "sc1"
    assert cockpit.zones[0].cockpit_id == "ck1"


def test_unknown_status_degrades_to_ok(blob: dict[str, Any]) -> None:
    blob["domains"][0]["categories"][0]["elements"][1]["status"] = "unheard-of"
    cockpit = parse_cockpit(blob)
    assert cockpit.domains[0].categories[0].elements[1].status == Status.OK


def test_unknown_keys_survive_round_trip(blob: dict[str, Any]) -> None:
    blob["domains"][0]["categories"][0]["elements"][0]["customWidget"] = {"w": 3}
    blob["theme"] = "dark"
    dumped = dump_cockpit(parse_cockpit(blob))
    assert dumped["theme"] == "dark"
    assert dumped["domains"][0]["categories"][0]["elements"][0]["customWidget"] == {"w": 3}


def test_history_record_keys_survive_round_trip(blob: dict[str, Any]) -> None:
    listing = [{"id": "se1", "name": "Fibre", "location": "RESEAU > Sites > Paris > Liens"}]
    blob["dataHistory"]["subElements"] = listing
    blob["dataHistory"]["lastUpdated"] = "2024-01-16T08:00:00Z"
    cockpit = parse_cockpit(blob)
    assert cockpit.history_extras == {
        "subElements": listing,
        "lastUpdated": "2024-01-16T08:00:00Z",
    }
    history = dump_cockpit(cockpit)["dataHistory"]
    assert history["subElements"] == listing
    assert history["lastUpdated"] == "2024-01-16T08:00:00Z"
    assert [c["date"] for c in history["columns"]] == ["2024-01-15"]
    assert "historyExtras" not in dump_cockpit(cockpit)


def test_dump_cockpit_uses_stored_shape(blob: dict[str, Any]) -> None:
    dumped = dump_cockpit(parse_cockpit(blob))
    assert "historyColumns" not in dumped
    assert dumped["dataHistory"]["columns"][0]["date"] == "2024-01-15"
    assert dumped["dataHistory"]["columns"][0]["data"]["se1"] == {"status": "fatal", "value": "0"}
    element = dumped["domains"][0]["categories"][0]["elements"][0]
    assert element["subCategories"][0]["subElements"][1]["name"] == "ADSL"
    assert "linkedGroupId" not in element
    assert dumped["domains"][0]["mapElements"][0]["gps"] == {"lat": 48.85, "lng": 2.35}


def test_dump_then_parse_keeps_tree(blob: dict[str, Any]) -> None:
    cockpit = parse_cockpit(blob)
    assert parse_cockpit(dump_cockpit(cockpit)) == cockpit


def test_snapshot_without_status_is_kept_incomplete() -> None:
    snap = parse_snapshot({"value": "3"})
    assert snap.status is None
    assert snap.value == "3"


def test_parse_history_sorts_columns_by_date() -> None:
    columns = parse_history(
        {"columns": [{"date": "2024-03-01", "data": {}}, {"date": "2024-01-01", "data": {}}]}
    )
    assert [c.date for c in columns] == ["2024-01-01", "2024-03-01"]
    assert parse_history(None) == []
