"""Render a cockpit tree as an indented markdown outline."""

import io

from cockpit_studio.core.status.resolver import StatusResolver
from cockpit_studio.core.tree.index import TreeIndex, walk
from cockpit_studio.models.node import Cockpit, NodeKind


def render_outline(
    cockpit: Cockpit,
    *,
    selected_date: str | None = None,
    root_id: str | None = None,
    max_depth: int | None = None,
    show_ids: bool = False,
) -> str:
    """Render the cockpit (or the subtree at root_id) as a bullet outline.

    Args:
        cockpit: Cockpit to render.
        selected_date: History date whose statuses are shown (live when None).
        root_id: Start from this node instead of the cockpit.
        max_depth: Max levels below the start node to include (None = unlimited).
        show_ids: Append each node's id.

    Returns:
        Markdown with one ``- [status] name`` line per node; empty if root_id is unknown.
    """
    if root_id is None:
        entries = walk(cockpit)
    else:
        start = TreeIndex(cockpit).get(root_id)
        if start is None:
            return ""
        entries = walk(start.node, start.parent)

    resolver = StatusResolver(cockpit)
    depths: dict[str, int] = {}
    out = io.StringIO()
    for entry in entries:
        node = entry.node
        parent_depth = depths.get(entry.parent.id) if entry.parent is not None else None
        depth = 0 if parent_depth is None else parent_depth + 1
        depths[node.id] = depth
        if max_depth is not None and depth > max_depth:
            continue

        if entry.kind == NodeKind.COCKPIT:
            line = node.name
        else:
            line = f"[{resolver.effective_status(node, selected_date)}] {node.name}"
        value = getattr(node, "value", None)
        if value:
            unit = getattr(node, "unit", None)
            line += f" ({value} {unit})" if unit else f" ({value})"
        if getattr(node, "linked_group_id", None):
            line += " [linked]"
        if show_ids:
            line += f"  id={node.id}"
        out.write(f"{'    ' * depth}- {line}\n")
    return out.getvalue()
