"""Shared test fixtures."""

import copy
import itertools
from pathlib import Path
from typing import Any

import pytest

from cockpit_studio.core.importer.json_reader import parse_cockpit
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.core.tree.store import EntityTreeStore
from cockpit_studio.models.node import Cockpit
from cockpit_studio.storage.database import blob_to_record
from cockpit_studio.storage.file import FileDocumentStore

SAMPLE_COCKPIT: dict[str, Any] = {
    "id": "ck1",
    "name": "Supervision",
    "logo": "logo.png",
    "domains": [
        {
            "id": "d1",
            "name": "RESEAU",
            "order": 0,
            "templateType": "standard",
            "categories": [
                {
                    "id": "c1",
                    "name": "Sites",
                    "order": 0,
                    "elements": [
                        {
                            "id": "e1",
                            "name": "Paris",
                            "order": 0,
                            "status": "ok",
                            "value": "12",
                            "unit": "ms",
                            "subCategories": [
                                {
                                    "id": "sc1",
                                    "name": "Liens",
                                    "order": 0,
                                    "subElements": [
                                        {
                                            "id": "se1",
                                            "name": "Fibre",
                                            "order": 0,
                                            "status": "minor",
                                        },
                                        {"id": "se2", "name": "ADSL", "order": 1, "status": "ok"},
                                    ],
                                }
                            ],
                        },
                        {"id": "e2", "name": "Lyon", "order": 1, "status": "critical"},
                    ],
                },
                {
                    "id": "c2",
                    "name": "Serveurs",
                    "order": 1,
                    "elements": [{"id": "e3", "name": "Web", "order": 0, "status": "ok"}],
                },
            ],
            "mapElements": [
                {
                    "id": "m1",
                    "name": "Point Paris",
                    "gps": {"lat": 48.85, "lng": 2.35},
                    "status": "ok",
                    "elementId": "e1",
                }
            ],
        },
        {
            "id": "d2",
            "name": "APPLICATIONS",
            "order": 1,
            "publiable": False,
            "categories": [
                {
                    "id": "c3",
                    "name": "Apps",
                    "order": 0,
                    "elements": [
                        {
                            "id": "e4",
                            "name": "CRM",
                            "order": 0,
                            "status": "inherited_domain",
                            "inheritFromDomainId": "d1",
                        }
                    ],
                }
            ],
        },
    ],
    "zones": [{"id": "z1", "name": "Nord"}],
    "dataHistory": {
        "columns": [
            {
                "date": "2024-01-15",
                "label": "Janvier",
                "data": {"se1": {"status": "fatal", "value": "0"}},
            }
        ]
    },
}


def sample_blob() -> dict[str, Any]:
    """Fresh deep copy of the sample cockpit blob."""
    return copy.deepcopy(SAMPLE_COCKPIT)


def counter_ids(prefix: str = "n") -> Any:
    """Deterministic id factory: n1, n2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def cockpit() -> Cockpit:
    return parse_cockpit(sample_blob())


@pytest.fixture
def store(cockpit: Cockpit) -> EntityTreeStore:
    return EntityTreeStore(cockpit, id_factory=counter_ids())


@pytest.fixture
def api(store: EntityTreeStore) -> MutationApi:
    return MutationApi(store)


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    """A local database file holding the sample cockpit."""
    path = tmp_path / "cockpits.json"
    FileDocumentStore(path)._write_db({"cockpits": [blob_to_record(sample_blob(), None)]})
    return path


@pytest.fixture
def blob() -> dict[str, Any]:
    return sample_blob()


@pytest.fixture
def ids() -> Any:
    return counter_ids("new")
