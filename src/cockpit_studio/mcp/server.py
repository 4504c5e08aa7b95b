"""MCP server exposing cockpit reading and editing tools."""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from cockpit_studio.config import KV_URL_ENV_VARS, first_env
from cockpit_studio.core.actions.executor import ActionExecutor
from cockpit_studio.core.export.rows import export_rows, row_to_dict
from cockpit_studio.core.importer.json_reader import dump_cockpit, dump_record
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.core.tree.index import TreeIndex
from cockpit_studio.core.tree.outline import render_outline
from cockpit_studio.errors import CockpitError
from cockpit_studio.logging_config import configure_logging
from cockpit_studio.protocols import DocumentStoreProtocol

# Max actions accepted in one cockpit_apply_actions call.
MAX_ACTIONS = 200


# --- Core functions (testable without MCP context) ---


def cockpit_list(store: DocumentStoreProtocol) -> dict[str, Any]:
    """List stored cockpits with id, name and timestamps."""
    cockpits = store.list_cockpits()
    return {"cockpits": cockpits, "count": len(cockpits)}


def cockpit_read(
    store: DocumentStoreProtocol,
    *,
    cockpit_id: str,
    node_id: str | None = None,
    selected_date: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a cockpit, or one node's subtree, as an outline or as JSON.

    Args:
        cockpit_id: Cockpit to read.
        node_id: Start from this node instead of the whole cockpit.
        selected_date: History date to show (YYYY-MM-DD); default is the cockpit's own selection.
        max_depth: Max levels to include in the markdown outline (None = unlimited).
        output_format: "markdown" (outline with effective statuses) or "json" (stored form).
    """
    try:
        cockpit = store.load(cockpit_id)
    except CockpitError as e:
        return {"error": str(e)}

    date = selected_date or cockpit.selected_data_date
    if node_id is not None and node_id not in TreeIndex(cockpit):
        return {"error": f"Node '{node_id}' not found."}

    if output_format == "json":
        if node_id is None:
            return {"cockpit": dump_cockpit(cockpit)}
        entry = TreeIndex(cockpit).get(node_id)
        return {"node": dump_record(entry.node), "kind": str(entry.kind)}  # type: ignore[union-attr]

    outline = render_outline(
        cockpit, selected_date=date, root_id=node_id, max_depth=max_depth, show_ids=True
    )
    return {
        "content": outline,
        "cockpit_id": cockpit.id,
        "name": cockpit.name,
        "selected_date": date,
        "history_dates": [c.date for c in cockpit.history_columns],
        "updated_at": cockpit.updated_at,
    }


def cockpit_apply_actions(
    store: DocumentStoreProtocol,
    *,
    cockpit_id: str,
    actions: list[dict[str, Any]],
    current_domain_id: str | None = None,
    current_element_id: str | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Apply a list of ``{"type", "params"}`` actions, then save the cockpit.

    Failed actions are reported and skipped; the others still apply. The
    cockpit is saved once at the end if any action succeeded.

    Args:
        cockpit_id: Cockpit to edit.
        actions: Action records, e.g. ``{"type": "addElement", "params": {"categoryName": "Sites", "name": "Paris"}}``.
        current_domain_id: Domain used by actions that name none.
        current_element_id: Element used by actions that name none.
        dry_run: Apply in memory only; do not save.
    """
    if not actions:
        return {"error": "No actions provided.", "results": []}
    if len(actions) > MAX_ACTIONS:
        return {"error": f"Too many actions ({len(actions)}), max {MAX_ACTIONS}.", "results": []}
    try:
        cockpit = store.load(cockpit_id)
    except CockpitError as e:
        return {"error": str(e), "results": []}

    executor = ActionExecutor(
        MutationApi.for_cockpit(cockpit),
        current_domain_id=current_domain_id,
        current_element_id=current_element_id,
    )
    results = executor.run(actions)
    succeeded = sum(r.success for r in results)
    saved = False
    if succeeded and not dry_run:
        store.save(cockpit)
        saved = True
    return {
        "results": [
            {"index": r.index, "type": r.type, "success": r.success, "message": r.message}
            for r in results
        ],
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
        "saved": saved,
        "current_domain_id": executor.current_domain_id,
        "current_element_id": executor.current_element_id,
    }


def cockpit_effective_status(
    store: DocumentStoreProtocol,
    *,
    cockpit_id: str,
    node_id: str,
    selected_date: str | None = None,
) -> dict[str, Any]:
    """Resolve the status a node shows, its own status and its history.

    Args:
        cockpit_id: Cockpit holding the node.
        node_id: Node to resolve.
        selected_date: History date (YYYY-MM-DD); default is the cockpit's own selection.
    """
    try:
        api = MutationApi.for_cockpit(store.load(cockpit_id))
        entry = api.store.entry(node_id)
    except CockpitError as e:
        return {"error": str(e)}

    date = selected_date or api.cockpit.selected_data_date
    node = entry.node
    data = api.resolver.effective_data(node, date)
    return {
        "node_id": node.id,
        "name": node.name,
        "kind": str(entry.kind),
        "selected_date": date,
        "effective_status": str(api.resolver.effective_status(node, date)),
        "own_status": str(data.status),
        "value": data.value,
        "unit": data.unit,
        "is_from_history": data.is_from_history,
        "linked_group_id": getattr(node, "linked_group_id", None),
        "history": [
            {"date": h.date, "label": h.label, "status": str(h.snapshot.status), "value": h.snapshot.value}
            for h in api.overlay.history_of(node)
        ],
    }


def cockpit_export_rows(
    store: DocumentStoreProtocol,
    *,
    cockpit_id: str,
    selected_date: str | None = None,
    include_unpublished: bool = False,
) -> dict[str, Any]:
    """Flatten a cockpit into one row per leaf tile.

    Args:
        cockpit_id: Cockpit to export.
        selected_date: History date (YYYY-MM-DD); default is the cockpit's own selection.
        include_unpublished: Also export domains and elements marked not publiable.
    """
    try:
        cockpit = store.load(cockpit_id)
    except CockpitError as e:
        return {"error": str(e), "rows": [], "count": 0}
    rows = [
        row_to_dict(r)
        for r in export_rows(
            cockpit,
            selected_date or cockpit.selected_data_date,
            published_only=not include_unpublished,
        )
    ]
    return {"rows": rows, "count": len(rows)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: DocumentStoreProtocol
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _resolve_store() -> DocumentStoreProtocol:
    """Local file if COCKPIT_STUDIO_DB_FILE is set, else key-value if configured, else local file."""
    from cockpit_studio.storage.file import FileDocumentStore

    db_file = os.environ.get("COCKPIT_STUDIO_DB_FILE")
    if db_file:
        return FileDocumentStore(Path(db_file).expanduser())
    if first_env(KV_URL_ENV_VARS):
        from cockpit_studio.storage.kv import KvDocumentStore

        return KvDocumentStore()
    return FileDocumentStore()


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Pick the document store on startup."""
    store = _resolve_store()
    logger.info("Serving cockpits from {}", type(store).__name__)
    yield ServerContext(store=store)


mcp_server = FastMCP(
    "cockpit-studio",
    instructions="""\
A cockpit is a dashboard: domains (tabs) hold categories, categories hold
elements (tiles), elements hold sub-categories of sub-elements. Tiles carry a
status (ok < disconnected < minor < critical < fatal), a value and a unit.

## Workflow

1. cockpit_list_tool to find the cockpit id.
2. cockpit_read_tool to see the tree with ids and effective statuses.
3. cockpit_apply_actions_tool with a list of actions to edit it. Prefer ids
   from cockpit_read_tool; names are matched case-insensitively as a fallback.

## Tips
- Linked tiles share status, value and unit: updating one updates all.
- A container's status is the worst status of the tiles below it.
- Pass selected_date to see the statuses recorded in the history at that date.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def cockpit_list_tool(ctx: Context) -> dict[str, Any]:
    """List stored cockpits with their ids and names."""
    return cockpit_list(_ctx(ctx).store)


@mcp_server.tool()
async def cockpit_read_tool(
    ctx: Context,
    cockpit_id: str,
    node_id: str | None = None,
    selected_date: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a cockpit as an outline of nodes with ids and effective statuses.

    Args:
        cockpit_id: Cockpit id from cockpit_list_tool.
        node_id: Read only this node's subtree.
        selected_date: Show statuses recorded at this history date (YYYY-MM-DD).
        max_depth: Max levels to include (None = unlimited).
        output_format: "markdown" (outline) or "json" (stored form).
    """
    return cockpit_read(
        _ctx(ctx).store,
        cockpit_id=cockpit_id,
        node_id=node_id,
        selected_date=selected_date,
        max_depth=max_depth,
        output_format=output_format,
    )


@mcp_server.tool()
async def cockpit_apply_actions_tool(
    ctx: Context,
    cockpit_id: str,
    actions: list[dict[str, Any]],
    current_domain_id: str | None = None,
    current_element_id: str | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Edit a cockpit with a list of actions, applied in order.

    Each action is {"type": ..., "params": {...}} with camelCase params.
    Types include addDomain, addCategory, addElement(s), updateElement,
    updateStatus, addSubCategory, addSubElement(s), moveElement,
    reorderElement, linkElement, unlinkElement, cloneElement,
    addMapElement, duplicate, recordSnapshot and their delete/update
    counterparts. Targets are given as <kind>Id or <kind>Name.

    A failing action is reported and skipped; the rest still apply.

    Args:
        cockpit_id: Cockpit to edit.
        actions: List of action records.
        current_domain_id: Domain used by actions that name none.
        current_element_id: Element used by actions that name none.
        dry_run: Report results without saving.
    """
    async with _ctx(ctx).write_lock:
        return cockpit_apply_actions(
            _ctx(ctx).store,
            cockpit_id=cockpit_id,
            actions=actions,
            current_domain_id=current_domain_id,
            current_element_id=current_element_id,
            dry_run=dry_run,
        )


@mcp_server.tool()
async def cockpit_effective_status_tool(
    ctx: Context,
    cockpit_id: str,
    node_id: str,
    selected_date: str | None = None,
) -> dict[str, Any]:
    """Explain a node's status: rolled-up status, own status, link group and history.

    Args:
        cockpit_id: Cockpit holding the node.
        node_id: Node id from cockpit_read_tool.
        selected_date: History date (YYYY-MM-DD).
    """
    return cockpit_effective_status(
        _ctx(ctx).store, cockpit_id=cockpit_id, node_id=node_id, selected_date=selected_date
    )


@mcp_server.tool()
async def cockpit_export_rows_tool(
    ctx: Context,
    cockpit_id: str,
    selected_date: str | None = None,
    include_unpublished: bool = False,
) -> dict[str, Any]:
    """Export a cockpit as flat rows (domain, category, element, sub-element, value, status).

    Args:
        cockpit_id: Cockpit to export.
        selected_date: History date (YYYY-MM-DD).
        include_unpublished: Include domains and elements marked not publiable.
    """
    return cockpit_export_rows(
        _ctx(ctx).store,
        cockpit_id=cockpit_id,
        selected_date=selected_date,
        include_unpublished=include_unpublished,
    )


def run_mcp_server() -> None:
    """Start the MCP server with stdio transport."""
    configure_logging()
    mcp_server.run(transport="stdio")
