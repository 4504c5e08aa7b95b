"""Tests for the key-value store backend."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from cockpit_studio.config import KV_DB_KEY
from cockpit_studio.errors import ReferenceNotFound
from cockpit_studio.models.node import Cockpit
from cockpit_studio.protocols import DocumentStoreProtocol, KvClientProtocol
from cockpit_studio.storage.kv import KvDocumentStore, RedisRestClient
from tests.unit.fakes import FakeKvClient


@pytest.fixture
def no_kv_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "UPSTASH_REDIS_REST_URL",
        "KV_REST_API_URL",
        "UPSTASH_REDIS_REST_TOKEN",
        "KV_REST_API_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("cockpit_studio.storage.kv.KV_TOKEN_FILES", [tmp_path / "missing.txt"])


@pytest.fixture
def client_with_mock_session(no_kv_env: None) -> tuple[RedisRestClient, MagicMock]:
    """A RedisRestClient with a mocked requests.Session."""
    with patch("cockpit_studio.storage.kv.requests.Session") as mock_session_cls:
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session_cls.return_value = mock_session
        client = RedisRestClient("https://kv.example/", "secret")
    return client, mock_session


def _make_response(data: dict[str, Any]) -> MagicMock:
    response = MagicMock()
    response.json.return_value = data
    return response


def test_client_reads_url_and_token_from_env(
    no_kv_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("KV_REST_API_URL", "https://kv.example")
    monkeypatch.setenv("KV_REST_API_TOKEN", "from-env")
    with patch("cockpit_studio.storage.kv.requests.Session") as mock_session_cls:
        mock_session_cls.return_value.headers = {}
        client = RedisRestClient()
    assert client.url == "https://kv.example"
    assert client.sess.headers["Authorization"] == "Bearer from-env"


def test_client_reads_token_file(
    no_kv_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    token_file = tmp_path / "token.txt"
    token_file.write_text("file-token\n")
    monkeypatch.setattr(
        "cockpit_studio.storage.kv.KV_TOKEN_FILES", [tmp_path / "missing.txt", token_file]
    )
    with patch("cockpit_studio.storage.kv.requests.Session") as mock_session_cls:
        mock_session_cls.return_value.headers = {}
        client = RedisRestClient("https://kv.example")
    assert client.sess.headers["Authorization"] == "Bearer file-token"


def test_client_requires_url_and_token(no_kv_env: None) -> None:
    with pytest.raises(RuntimeError, match="No key-value URL"):
        RedisRestClient()
    with pytest.raises(RuntimeError, match="Cannot find key-value token"):
        RedisRestClient("https://kv.example")


def test_get_decodes_json_string(
    client_with_mock_session: tuple[RedisRestClient, MagicMock],
) -> None:
    client, mock_session = client_with_mock_session
    mock_session.request.return_value = _make_response({"result": json.dumps({"cockpits": []})})

    assert client.get("db") == {"cockpits": []}
    args, kwargs = mock_session.request.call_args
    assert args == ("GET", "https://kv.example/get/db")
    assert kwargs["timeout"] == client.timeout


def test_get_missing_key(client_with_mock_session: tuple[RedisRestClient, MagicMock]) -> None:
    client, mock_session = client_with_mock_session
    mock_session.request.return_value = _make_response({"result": None})
    assert client.get("db") is None


def test_set_posts_json_body(client_with_mock_session: tuple[RedisRestClient, MagicMock]) -> None:
    client, mock_session = client_with_mock_session
    mock_session.request.return_value = _make_response({"result": "OK"})

    client.set("db", {"cockpits": [1]})

    args, kwargs = mock_session.request.call_args
    assert args == ("POST", "https://kv.example/set/db")
    assert json.loads(kwargs["data"]) == {"cockpits": [1]}


def test_error_reply_raises(client_with_mock_session: tuple[RedisRestClient, MagicMock]) -> None:
    client, mock_session = client_with_mock_session
    mock_session.request.return_value = _make_response({"error": "WRONGPASS"})
    with pytest.raises(RuntimeError, match="WRONGPASS"):
        client.get("db")


def test_store_satisfies_protocols() -> None:
    assert isinstance(FakeKvClient(), KvClientProtocol)
    assert isinstance(KvDocumentStore(FakeKvClient()), DocumentStoreProtocol)


def test_empty_key_is_an_empty_database() -> None:
    store = KvDocumentStore(FakeKvClient())
    assert store.list_cockpits() == []
    with pytest.raises(ReferenceNotFound):
        store.load("ck1")


def test_save_then_load(cockpit: Cockpit) -> None:
    client = FakeKvClient()
    store = KvDocumentStore(client)
    cockpit.scrolling_banner = "Maintenance"

    store.save(cockpit)

    assert client.calls == [("get", KV_DB_KEY), ("set", KV_DB_KEY)]
    record = json.loads(client.values[KV_DB_KEY])["cockpits"][0]
    assert record["id"] == "ck1"
    assert "id" not in record["data"]
    loaded = store.load("ck1")
    assert loaded.scrolling_banner == "Maintenance"
    assert [d.id for d in loaded.domains] == ["d1", "d2"]
    assert [s["id"] for s in store.list_cockpits()] == ["ck1"]


def test_custom_key(cockpit: Cockpit) -> None:
    client = FakeKvClient()
    KvDocumentStore(client, key="other").save(cockpit)
    assert set(client.values) == {"other"}
