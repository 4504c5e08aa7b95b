"""Cockpit persistence in a Redis database reached over its REST API."""

import json
from typing import Any

import requests
from loguru import logger

from cockpit_studio.config import (
    KV_DB_KEY,
    KV_TIMEOUT,
    KV_TOKEN_ENV_VARS,
    KV_TOKEN_FILES,
    KV_URL_ENV_VARS,
    first_env,
)
from cockpit_studio.protocols import KvClientProtocol
from cockpit_studio.storage.database import DatabaseDocumentStore, empty_database


class RedisRestClient:
    """Minimal Redis REST client (Upstash-style ``/get`` and ``/set`` endpoints)."""

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        *,
        timeout: float = KV_TIMEOUT,
    ) -> None:
        self.url = (url or first_env(KV_URL_ENV_VARS) or "").rstrip("/")
        if not self.url:
            msg = f"No key-value URL configured, set one of {KV_URL_ENV_VARS!r}"
            raise RuntimeError(msg)
        self.timeout = timeout
        self.sess = requests.Session()

        token_source = "argument"
        if token is None:
            token = first_env(KV_TOKEN_ENV_VARS)
            token_source = "environment"
        if token is None:
            for token_path in KV_TOKEN_FILES:
                try:
                    token = token_path.read_text(encoding="utf-8").strip()
                    token_source = str(token_path)
                    break
                except FileNotFoundError:
                    pass
            else:
                msg = (
                    f"Cannot find key-value token, set one of {KV_TOKEN_ENV_VARS!r} "
                    f"or create one of {KV_TOKEN_FILES!r}"
                )
                raise RuntimeError(msg)
        self.sess.headers["Authorization"] = f"Bearer {token}"
        logger.debug("Key-value client ready: {} (token from {})", self.url, token_source)

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        r = self.sess.request(method, f"{self.url}/{path}", timeout=self.timeout, **kwargs)
        r.raise_for_status()
        rv: dict[str, Any] = r.json()
        if "error" in rv:
            msg = f"Key-value call failed: {method} {path!r} -> {rv['error']!r}"
            raise RuntimeError(msg)
        return rv.get("result")

    def get(self, key: str) -> Any | None:
        result = self._call("GET", f"get/{key}")
        if isinstance(result, str):
            # Values are stored JSON-encoded.
            return json.loads(result)
        return result

    def set(self, key: str, value: Any) -> None:
        self._call("POST", f"set/{key}", data=json.dumps(value))


class KvDocumentStore(DatabaseDocumentStore):
    """Whole database stored as one JSON value under a single key.

    Every save is a read-modify-write of the complete database with no
    locking: the last writer wins.
    """

    def __init__(self, client: KvClientProtocol | None = None, *, key: str = KV_DB_KEY) -> None:
        self.client = client if client is not None else RedisRestClient()
        self.key = key

    def _read_db(self) -> dict[str, Any]:
        db = self.client.get(self.key)
        if not db:
            logger.info("Key {!r} is empty, starting a new database", self.key)
            return empty_database()
        return db  # type: ignore[no-any-return]

    def _write_db(self, db: dict[str, Any]) -> None:
        self.client.set(self.key, db)
