"""Protocols for dependency injection of persistence backends."""

from typing import Any, Protocol, runtime_checkable

from cockpit_studio.models.node import Cockpit


@runtime_checkable
class KvClientProtocol(Protocol):
    """Protocol for key-value clients holding JSON values."""

    def get(self, key: str) -> Any | None:
        """Return the decoded value stored under key, or None."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""
        ...


@runtime_checkable
class DocumentStoreProtocol(Protocol):
    """Protocol for whole-document cockpit persistence.

    Loads and saves always move the complete cockpit. There is no locking:
    two sessions saving the same cockpit overwrite each other, and the last
    write wins.
    """

    def list_cockpits(self) -> list[dict[str, Any]]:
        """Return id, name and timestamps of every stored cockpit."""
        ...

    def load(self, cockpit_id: str) -> Cockpit:
        """Return the stored cockpit, raising ReferenceNotFound if absent."""
        ...

    def save(self, cockpit: Cockpit) -> None:
        """Store the cockpit, replacing any previous version."""
        ...
