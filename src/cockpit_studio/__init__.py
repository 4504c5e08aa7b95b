"""Cockpit dashboards: document model, automated actions and storage."""

from cockpit_studio.core.actions.executor import ActionExecutor, ActionResult
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.models.node import Cockpit, Status
from cockpit_studio.protocols import DocumentStoreProtocol, KvClientProtocol
from cockpit_studio.storage.file import FileDocumentStore
from cockpit_studio.storage.kv import KvDocumentStore

__all__ = [
    "ActionExecutor",
    "ActionResult",
    "Cockpit",
    "DocumentStoreProtocol",
    "FileDocumentStore",
    "KvClientProtocol",
    "KvDocumentStore",
    "MutationApi",
    "Status",
]
