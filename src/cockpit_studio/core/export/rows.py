"""Flat row-per-leaf projection of a cockpit, for spreadsheet export."""

from collections.abc import Iterator
from dataclasses import asdict
from typing import Any

from cockpit_studio.core.history.overlay import HistoryOverlay
from cockpit_studio.core.status.resolver import StatusResolver
from cockpit_studio.models.node import Cockpit, ExportRow

EXPORT_COLUMNS: tuple[str, ...] = (
    "domain",
    "category",
    "element",
    "sub_category",
    "sub_element",
    "value",
    "unit",
    "status",
    "order",
)


def export_rows(
    cockpit: Cockpit,
    selected_date: str | None = None,
    *,
    published_only: bool = True,
) -> Iterator[ExportRow]:
    """Yield one row per leaf: each sub-element, and each element without any.

    Values and statuses are those shown at selected_date (live when None).
    Domains and elements marked not publiable are skipped unless
    published_only is False. The tree is only read.
    """
    overlay = HistoryOverlay(cockpit)
    resolver = StatusResolver(cockpit, overlay)
    for domain in cockpit.domains:
        if published_only and not domain.publiable:
            continue
        for category in domain.categories:
            for element in category.elements:
                if published_only and not element.publiable:
                    continue
                leaves = [
                    (sub_category, sub_element)
                    for sub_category in element.sub_categories
                    for sub_element in sub_category.sub_elements
                ]
                if not leaves:
                    data = resolver.effective_data(element, selected_date)
                    yield ExportRow(
                        domain=domain.name,
                        category=category.name,
                        element=element.name,
                        sub_category=None,
                        sub_element=None,
                        value=data.value,
                        unit=data.unit,
                        status=data.status,
                        order=element.order,
                    )
                    continue
                for sub_category, sub_element in leaves:
                    data = resolver.effective_data(sub_element, selected_date)
                    yield ExportRow(
                        domain=domain.name,
                        category=category.name,
                        element=element.name,
                        sub_category=sub_category.name,
                        sub_element=sub_element.name,
                        value=data.value,
                        unit=data.unit,
                        status=data.status,
                        order=sub_element.order,
                    )


def row_to_dict(row: ExportRow) -> dict[str, Any]:
    out = asdict(row)
    out["status"] = row.status.value
    return out
