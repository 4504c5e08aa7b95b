"""Shared database layout: every cockpit record inside one JSON document."""

from datetime import UTC, datetime
from typing import Any

from loguru import logger

from cockpit_studio.core.importer.json_reader import dump_cockpit, parse_cockpit
from cockpit_studio.errors import ReferenceNotFound
from cockpit_studio.models.node import Cockpit

# Record keys kept outside the ``data`` blob.
_RECORD_KEYS = ("id", "name", "updatedAt")


def empty_database() -> dict[str, Any]:
    return {"cockpits": []}


def record_to_blob(record: dict[str, Any]) -> dict[str, Any]:
    """Flatten a stored cockpit record into the blob parse_cockpit reads."""
    blob = dict(record.get("data") or {})
    blob["id"] = record["id"]
    blob["name"] = record.get("name", "")
    if record.get("updatedAt"):
        blob["updatedAt"] = record["updatedAt"]
    return blob


def blob_to_record(blob: dict[str, Any], previous: dict[str, Any] | None) -> dict[str, Any]:
    """Wrap a cockpit blob into a stored record, keeping owner and creation date."""
    now = datetime.now(UTC).isoformat()
    previous = previous or {}
    record = {k: v for k, v in previous.items() if k != "data"}
    record.update(
        {
            "id": blob["id"],
            "name": blob.get("name", ""),
            "userId": previous.get("userId"),
            "createdAt": previous.get("createdAt") or now,
            "updatedAt": blob.get("updatedAt") or now,
            "data": {k: v for k, v in blob.items() if k not in _RECORD_KEYS},
        }
    )
    return record


class DatabaseDocumentStore:
    """Cockpit persistence over a whole-database read and write.

    Subclasses provide ``_read_db`` and ``_write_db``. A save reads the
    whole database, replaces one record and writes everything back, with
    no locking: concurrent writers silently overwrite each other.
    """

    def _read_db(self) -> dict[str, Any]:
        raise NotImplementedError

    def _write_db(self, db: dict[str, Any]) -> None:
        raise NotImplementedError

    def list_cockpits(self) -> list[dict[str, Any]]:
        return [
            {k: rec.get(k) for k in ("id", "name", "userId", "createdAt", "updatedAt")}
            for rec in self._read_db().get("cockpits") or []
        ]

    def load(self, cockpit_id: str) -> Cockpit:
        for record in self._read_db().get("cockpits") or []:
            if record.get("id") == cockpit_id:
                return parse_cockpit(record_to_blob(record))
        raise ReferenceNotFound(cockpit_id, "cockpit")

    def save(self, cockpit: Cockpit) -> None:
        db = self._read_db()
        records: list[dict[str, Any]] = db.setdefault("cockpits", [])
        blob = dump_cockpit(cockpit)
        for i, record in enumerate(records):
            if record.get("id") == cockpit.id:
                records[i] = blob_to_record(blob, record)
                break
        else:
            records.append(blob_to_record(blob, None))
        self._write_db(db)
        logger.debug("Saved cockpit {!r} ({} records)", cockpit.id, len(records))
