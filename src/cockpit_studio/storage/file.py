"""Cockpit persistence in a local JSON file."""

import json
from pathlib import Path
from typing import Any

from cockpit_studio.config import DB_FILENAME, resolve_data_directory
from cockpit_studio.storage.database import DatabaseDocumentStore, empty_database


class FileDocumentStore(DatabaseDocumentStore):
    """Whole database stored in one JSON file (same layout as the key-value store)."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else resolve_data_directory() / DB_FILENAME

    def _read_db(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)  # type: ignore[no-any-return]
        except FileNotFoundError:
            return empty_database()

    def _write_db(self, db: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(db, f, ensure_ascii=False, indent=2)
            f.write("\n")
        tmp.replace(self.path)
