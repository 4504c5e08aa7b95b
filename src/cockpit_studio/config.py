"""Configuration constants for cockpit-studio."""

import os
from pathlib import Path

# Hard cap on the number of domains (tabs) a cockpit may hold.
MAX_DOMAINS: int = 6

# Appended to the name of a cloned element or map point.
CLONE_SUFFIX: str = " (copie)"

# Key under which the whole database is stored in the key-value store.
KV_DB_KEY: str = "somone-cockpit-db"

# Environment variables holding the key-value REST endpoint. First one set is used.
KV_URL_ENV_VARS: tuple[str, ...] = ("UPSTASH_REDIS_REST_URL", "KV_REST_API_URL")
KV_TOKEN_ENV_VARS: tuple[str, ...] = ("UPSTASH_REDIS_REST_TOKEN", "KV_REST_API_TOKEN")

# Token files, tried when no token environment variable is set. First file found is used.
KV_TOKEN_FILES: list[Path] = [
    Path("~/.config/cockpit-studio-token.txt").expanduser(),
    Path("~/.config/secret/cockpit-studio-token.txt").expanduser(),
]

# Seconds before a key-value request is abandoned.
KV_TIMEOUT: float = 30.0

# Directory with local database files. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/cockpit-studio").expanduser(),
    Path("~/.cockpit-studio").expanduser(),
    Path("/tmp/cockpit-studio"),
]

# Name of the local database file inside a data directory.
DB_FILENAME: str = "cockpits.json"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate if none exist."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]


def first_env(names: tuple[str, ...]) -> str | None:
    """Return the value of the first non-empty environment variable in names."""
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None
