"""Dated snapshots that replace live tile values for playback."""

import bisect
import warnings
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date as date_type

from loguru import logger

from cockpit_studio.errors import HistoryResolutionMismatch, InvalidStructuralOperation
from cockpit_studio.models.node import (
    Cockpit,
    EffectiveData,
    HistoryColumn,
    Node,
    Snapshot,
    Status,
)


def sync_key(node: Node) -> str:
    """History key of a node: its link group if it has one, else its own id."""
    return getattr(node, "linked_group_id", None) or node.id


def live_data(node: Node) -> EffectiveData:
    alert = getattr(node, "alert", None)
    return EffectiveData(
        status=getattr(node, "status", Status.OK),
        value=getattr(node, "value", None),
        unit=getattr(node, "unit", None),
        alert_description=alert.description if alert else None,
        is_from_history=False,
    )


def check_date(value: str) -> str:
    try:
        date_type.fromisoformat(value)
    except (TypeError, ValueError) as e:
        msg = f"Invalid history date {value!r}, expected YYYY-MM-DD"
        raise InvalidStructuralOperation(msg) from e
    return value


@dataclass(frozen=True)
class HistoryEntry:
    """One dated snapshot of a node, as listed by ``history_of``."""

    date: str
    label: str | None
    snapshot: Snapshot


class HistoryOverlay:
    """Columns of snapshots stored on the cockpit, sorted by date.

    The overlay holds no state of its own: it reads and writes
    ``cockpit.history_columns`` so that the history is saved and loaded
    with the document it describes.
    """

    def __init__(self, cockpit: Cockpit) -> None:
        self.cockpit = cockpit

    @property
    def columns(self) -> list[HistoryColumn]:
        return self.cockpit.history_columns

    def dates(self) -> list[str]:
        return [c.date for c in self.columns]

    def column(self, date: str | None) -> HistoryColumn | None:
        if not date:
            return None
        for col in self.columns:
            if col.date == date:
                return col
        return None

    def ensure_column(self, date: str, *, label: str | None = None) -> HistoryColumn:
        """Return the column for date, creating it in date order if missing.

        Raises:
            InvalidStructuralOperation: date is not an ISO ``YYYY-MM-DD`` date.
        """
        col = self.column(check_date(date))
        if col is None:
            col = HistoryColumn(date=date, label=label)
            self.columns.insert(bisect.bisect(self.dates(), date), col)
            logger.debug("Created history column {}", date)
        elif label is not None:
            col.label = label
        return col

    def snapshot(
        self, key: str, date: str, data: Snapshot, *, label: str | None = None
    ) -> HistoryColumn:
        """Upsert the snapshot of key at date, creating the column if needed.

        Raises:
            InvalidStructuralOperation: date is not an ISO ``YYYY-MM-DD`` date.
        """
        col = self.ensure_column(date, label=label)
        col.data[key] = data
        return col

    def resolve(self, node: Node, selected_date: str | None) -> EffectiveData:
        """What node should display at selected_date.

        Live fields are returned unless a snapshot exists for the node's key
        at that date, in which case the snapshot is returned as a whole. A
        snapshot without a status is unusable: a HistoryResolutionMismatch
        warning is emitted and live fields are returned. Never raises.
        """
        col = self.column(selected_date)
        if col is None:
            return live_data(node)
        key = sync_key(node)
        snap = col.data.get(key)
        if snap is None:
            return live_data(node)
        if snap.status is None:
            warnings.warn(HistoryResolutionMismatch(key, col.date, ("status",)), stacklevel=2)
            return live_data(node)
        return EffectiveData(
            status=snap.status,
            value=snap.value,
            unit=snap.unit,
            alert_description=snap.alert_description,
            is_from_history=True,
        )

    def history_of(self, node: Node) -> list[HistoryEntry]:
        """Every snapshot of node's key, oldest first."""
        key = sync_key(node)
        return [
            HistoryEntry(date=col.date, label=col.label, snapshot=col.data[key])
            for col in self.columns
            if key in col.data
        ]

    def keys(self) -> set[str]:
        return {key for col in self.columns for key in col.data}

    def drop_keys(self, keys: Iterable[str]) -> int:
        """Delete every snapshot stored under keys; return how many were removed."""
        wanted = set(keys)
        removed = 0
        for col in self.columns:
            for key in wanted & col.data.keys():
                del col.data[key]
                removed += 1
        return removed

    def orphaned_keys(self, live_keys: Iterable[str]) -> set[str]:
        """Keys with history but no node left to display them."""
        return self.keys() - set(live_keys)

    def delete_column(self, date: str) -> bool:
        col = self.column(date)
        if col is None:
            return False
        self.columns.remove(col)
        return True
