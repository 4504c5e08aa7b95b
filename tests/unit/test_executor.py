"""Tests for the automated action executor."""

from cockpit_studio.core.actions.commands import AddZone, SelectDomain
from cockpit_studio.core.actions.executor import ActionExecutor, ActionResult
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.models.node import Status


def test_batch_continues_after_failures(api: MutationApi) -> None:
    executor = ActionExecutor(api)
    results = executor.run(
        [
            {"type": "addElement", "params": {"categoryName": "sites", "name": "Marseille"}},
            {"type": "deleteElement", "params": {"elementName": "Atlantis"}},
            {"type": "bogus", "params": {}},
            "not a record",
            {"type": "updateStatus", "params": {"elementName": "marseille", "status": "minor"}},
        ]
    )
    assert [r.success for r in results] == [True, False, False, False, True]
    assert [r.index for r in results] == [0, 1, 2, 3, 4]
    assert results[1].type == "deleteElement"
    assert "Atlantis" in results[1].message
    assert results[3].type == "?"
    marseille = api.store.get("c1").elements[-1]
    assert marseille.name == "Marseille"
    assert marseille.status == Status.MINOR


def test_single_record(api: MutationApi) -> None:
    results = ActionExecutor(api).run({"type": "addZone", "params": {"name": "Est"}})
    assert results == [ActionResult(0, "addZone", True, 'Zone "Est" created')]


def test_add_domain_is_upper_cased_and_selected(api: MutationApi) -> None:
    executor = ActionExecutor(api)
    executor.run(
        [
            {"type": "addDomain", "params": {"name": "Sécurité"}},
            {"type": "addCategory", "params": {"name": "Pare-feu"}},
            {"type": "addElement", "params": {"name": "FW1"}},
        ]
    )
    domain = api.cockpit.domains[-1]
    assert domain.name == "SÉCURITÉ"
    assert executor.current_domain_id == domain.id
    assert domain.categories[0].name == "Pare-feu"
    assert domain.categories[0].elements[0].name == "FW1"


def test_stale_id_falls_back_to_name(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        {
            "type": "updateElement",
            "params": {"elementId": "old-id", "elementName": "Lyon", "value": "7"},
        }
    )
    assert results[0].success, results[0].message
    assert api.store.get("e2").value == "7"


def test_selection_context(api: MutationApi) -> None:
    executor = ActionExecutor(api)
    results = executor.run(
        [
            {"type": "selectElement", "params": {"name": "Paris"}},
            {"type": "addSubCategory", "params": {"name": "Serveurs"}},
            {
                "type": "addSubElements",
                "params": {"subCategoryName": "serveurs", "names": ["A", "B"]},
            },
            {"type": "updateStatus", "params": {"status": "fatal"}},
        ]
    )
    assert all(r.success for r in results), results
    paris = api.store.get("e1")
    assert [sc.name for sc in paris.sub_categories] == ["Liens", "Serveurs"]
    assert [se.name for se in paris.sub_categories[1].sub_elements] == ["A", "B"]
    assert paris.status == Status.FATAL


def test_sub_category_lookup_prefers_current_element(api: MutationApi) -> None:
    api.add_sub_category("e2", "Liens")
    executor = ActionExecutor(api, current_element_id="e2")
    results = executor.run(
        {"type": "addSubElement", "params": {"subCategoryName": "Liens", "name": "Radio"}}
    )
    assert results[0].success
    assert api.store.get("e2").sub_categories[0].sub_elements[0].name == "Radio"
    assert [se.name for se in api.store.get("sc1").sub_elements] == ["Fibre", "ADSL"]


def test_add_element_without_category_or_domain_fails(api: MutationApi) -> None:
    results = ActionExecutor(api).run({"type": "addElement", "params": {"name": "Orphan"}})
    assert not results[0].success
    assert "category" in results[0].message


def test_links_and_moves(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        [
            {"type": "linkElement", "params": {"elementName": "Paris", "targetName": "Web"}},
            {"type": "updateStatus", "params": {"elementId": "e3", "status": "critical"}},
            {"type": "moveElement", "params": {"elementName": "Web", "toCategoryName": "Sites"}},
            {"type": "reorderElement", "params": {"elementName": "Web", "newIndex": 0}},
            {"type": "linkSubElement", "params": {"subElementName": "Fibre", "targetName": "ADSL"}},
            {"type": "unlinkElement", "params": {"elementName": "Web"}},
        ]
    )
    assert all(r.success for r in results), results
    assert api.store.get("e1").status == Status.CRITICAL
    assert api.store.get("e1").linked_group_id is None
    assert [e.id for e in api.store.get("c1").elements] == ["e3", "e1", "e2"]
    assert api.store.get("se2").status == Status.MINOR


def test_update_status_on_sub_element(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        {"type": "updateStatus", "params": {"subElementName": "ADSL", "status": "disconnected"}}
    )
    assert results[0].success
    assert api.store.get("se2").status == Status.DISCONNECTED


def test_map_and_history_actions(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        [
            {
                "type": "addMapElement",
                "params": {"domainName": "reseau", "name": "Lille", "lat": 50.6, "lng": 3.06},
            },
            {"type": "updateMapElement", "params": {"name": "Lille", "lat": 50.63, "lng": 3.07}},
            {"type": "cloneMapElement", "params": {"name": "Point Paris"}},
            {"type": "recordSnapshot", "params": {"date": "2024-02-01", "label": "Février"}},
            {"type": "selectDataDate", "params": {"date": "2024-02-01"}},
            {"type": "duplicate", "params": {"id": "c2"}},
        ]
    )
    assert all(r.success for r in results), results
    points = api.store.get("d1").map_elements
    assert [p.name for p in points] == ["Point Paris", "Lille", "Point Paris (copie)"]
    assert points[1].gps.lat == 50.63
    assert api.cockpit.selected_data_date == "2024-02-01"
    assert results[3].message == "2 snapshots recorded at 2024-02-01"
    assert [c.name for c in api.store.get("d1").categories] == ["Sites", "Serveurs", "Serveurs"]


def test_execute_accepts_commands(api: MutationApi) -> None:
    executor = ActionExecutor(api)
    assert executor.execute(SelectDomain(domain_name="applications")) == "Domain selected"
    assert executor.current_domain_id == "d2"
    assert executor.execute(AddZone(name="Ouest")) == 'Zone "Ouest" created'


def test_malformed_reference_fails_alone(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        [
            {"type": "deleteCategory", "params": {"name": 42}},
            {"type": "updateStatus", "params": {"elementId": ["e2"], "status": "ok"}},
            {"type": "reorderElement", "params": {"elementName": "Web", "newIndex": "1"}},
            {"type": "addZone", "params": {"name": "Est"}},
        ]
    )
    assert [r.success for r in results] == [False, False, False, True]
    assert "categoryName must be a string" in results[0].message
    assert "elementId must be a string" in results[1].message
    assert "newIndex must be an integer" in results[2].message
    assert [c.id for c in api.store.get("d1").categories] == ["c1", "c2"]
    assert [z.name for z in api.cockpit.zones] == ["Nord", "Est"]


def test_mixed_domain_ids_fail_alone(api: MutationApi) -> None:
    results = ActionExecutor(api).run(
        [
            {"type": "reorderDomains", "params": {"domainIds": ["d1", 2]}},
            {"type": "reorderDomains", "params": {"domainIds": ["d2", "d1"]}},
        ]
    )
    assert [r.success for r in results] == [False, True]
    assert "domainIds must only hold strings" in results[0].message
    assert [d.id for d in api.cockpit.domains] == ["d2", "d1"]
