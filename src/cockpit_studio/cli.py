"""CLI for cockpit-studio (show, edit, export, history, MCP server)."""

import csv
import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from cockpit_studio.core.actions.executor import ActionExecutor
from cockpit_studio.core.export.rows import EXPORT_COLUMNS, export_rows, row_to_dict
from cockpit_studio.core.mutations import MutationApi
from cockpit_studio.core.tree.outline import render_outline
from cockpit_studio.errors import CockpitError
from cockpit_studio.logging_config import configure_logging
from cockpit_studio.protocols import DocumentStoreProtocol
from cockpit_studio.storage.file import FileDocumentStore

app = typer.Typer(help="Cockpit studio: inspect and edit status dashboards.")

FileOption = Annotated[
    Path | None,
    typer.Option("--file", "-f", help="Local JSON database (default: data directory)"),
]
KvOption = Annotated[
    bool,
    typer.Option("--kv", help="Use the key-value store configured in the environment"),
]
DateOption = Annotated[
    str | None,
    typer.Option("--date", help="History date to show (YYYY-MM-DD)"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_store(file: Path | None, kv: bool) -> DocumentStoreProtocol:
    if kv:
        if file is not None:
            typer.echo("--file and --kv are mutually exclusive.")
            raise typer.Exit(1)
        from cockpit_studio.storage.kv import KvDocumentStore

        try:
            return KvDocumentStore()
        except RuntimeError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
    return FileDocumentStore(file)


def _load_api(store: DocumentStoreProtocol, cockpit_id: str) -> MutationApi:
    try:
        return MutationApi.for_cockpit(store.load(cockpit_id))
    except CockpitError as e:
        typer.echo(str(e))
        raise typer.Exit(1) from e


@app.command(name="list")
def list_cmd(file: FileOption = None, kv: KvOption = False) -> None:
    """List stored cockpits."""
    cockpits = _open_store(file, kv).list_cockpits()
    typer.echo(f"{len(cockpits)} cockpits:\n")
    for c in cockpits:
        typer.echo(f"  {c['name']}  [id={c['id']}]  updated {c.get('updatedAt') or '-'}")


@app.command()
def show(
    cockpit_id: str = typer.Argument(..., help="Cockpit id"),
    node: Annotated[
        str | None,
        typer.Option("--node", "-n", help="Show only this node's subtree"),
    ] = None,
    date: DateOption = None,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
    ids: bool = typer.Option(False, "--ids", help="Show node ids"),
    file: FileOption = None,
    kv: KvOption = False,
) -> None:
    """Show the cockpit tree with effective statuses."""
    api = _load_api(_open_store(file, kv), cockpit_id)
    outline = render_outline(
        api.cockpit,
        selected_date=date or api.cockpit.selected_data_date,
        root_id=node,
        max_depth=max_depth,
        show_ids=ids,
    )
    if not outline:
        typer.echo(f"Node '{node}' not found.")
        raise typer.Exit(1)
    typer.echo(outline, nl=False)


@app.command()
def apply(
    cockpit_id: str = typer.Argument(..., help="Cockpit id"),
    actions_file: Path = typer.Argument(..., help="JSON file with a list of actions ('-' for stdin)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not save the result"),
    file: FileOption = None,
    kv: KvOption = False,
) -> None:
    """Apply a list of actions to a cockpit and save it."""
    try:
        if str(actions_file) == "-":
            records = json.load(sys.stdin)
        else:
            records = json.loads(actions_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"Cannot read actions: {e}")
        raise typer.Exit(1) from e

    store = _open_store(file, kv)
    api = _load_api(store, cockpit_id)
    results = ActionExecutor(api).run(records)
    for r in results:
        mark = "ok" if r.success else "FAILED"
        typer.echo(f"  {r.index}. {r.type}: {mark} - {r.message}")

    succeeded = sum(r.success for r in results)
    if succeeded and not dry_run:
        store.save(api.cockpit)
        typer.echo(f"Saved {cockpit_id} ({succeeded}/{len(results)} actions applied)")
    else:
        typer.echo(f"Not saved ({succeeded}/{len(results)} actions applied)")
    if succeeded < len(results):
        raise typer.Exit(1)


@app.command()
def export(
    cockpit_id: str = typer.Argument(..., help="Cockpit id"),
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: json or csv"),
    ] = "json",
    date: DateOption = None,
    include_all: bool = typer.Option(False, "--all", help="Include non-publiable domains and elements"),
    file: FileOption = None,
    kv: KvOption = False,
) -> None:
    """Export one row per leaf tile."""
    if output_format not in ("json", "csv"):
        typer.echo(f"Unknown format '{output_format}', use json or csv.")
        raise typer.Exit(1)
    api = _load_api(_open_store(file, kv), cockpit_id)
    rows = [
        row_to_dict(r)
        for r in export_rows(
            api.cockpit,
            date or api.cockpit.selected_data_date,
            published_only=not include_all,
        )
    ]
    if output_format == "json":
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    writer = csv.DictWriter(sys.stdout, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)


@app.command()
def history(
    cockpit_id: str = typer.Argument(..., help="Cockpit id"),
    record: Annotated[
        str | None,
        typer.Option("--record", "-r", help="Record a snapshot at this date (YYYY-MM-DD)"),
    ] = None,
    label: Annotated[
        str | None,
        typer.Option("--label", "-l", help="Label of the recorded column"),
    ] = None,
    node: Annotated[
        str | None,
        typer.Option("--node", "-n", help="Record only this node (default: every sub-element)"),
    ] = None,
    file: FileOption = None,
    kv: KvOption = False,
) -> None:
    """List history dates, or record a snapshot of current values."""
    store = _open_store(file, kv)
    api = _load_api(store, cockpit_id)

    if record is None:
        columns = api.overlay.columns
        typer.echo(f"{len(columns)} history dates:\n")
        for column in columns:
            marker = "*" if column.date == api.cockpit.selected_data_date else " "
            label_text = f" ({column.label})" if column.label else ""
            typer.echo(f" {marker} {column.date}{label_text} - {len(column.data)} entries")
        return

    try:
        if node is None:
            count = api.capture_all(record, label=label)
            message = f"Recorded {count} entries at {record}"
        else:
            key = api.record_snapshot(node, record, label=label)
            message = f"Recorded {key} at {record}"
    except CockpitError as e:
        typer.echo(str(e))
        raise typer.Exit(1) from e
    store.save(api.cockpit)
    typer.echo(message)


@app.command()
def duplicate(
    cockpit_id: str = typer.Argument(..., help="Cockpit id"),
    ref: str = typer.Argument(..., help="Id of the node to duplicate"),
    file: FileOption = None,
    kv: KvOption = False,
) -> None:
    """Duplicate a node with its subtree next to the original."""
    store = _open_store(file, kv)
    api = _load_api(store, cockpit_id)
    try:
        new_id = api.duplicate(ref)
    except CockpitError as e:
        typer.echo(str(e))
        raise typer.Exit(1) from e
    store.save(api.cockpit)
    typer.echo(f"Duplicated {ref} as {new_id}")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from cockpit_studio.mcp.server import run_mcp_server

    run_mcp_server()


if __name__ == "__main__":
    app()
