"""Error kinds raised by the cockpit document model."""


class CockpitError(Exception):
    """Base class for all document model errors."""


class ReferenceNotFound(CockpitError):
    """A supplied id or name does not resolve to an existing node of the expected kind."""

    def __init__(self, ref: str | None, kind: str) -> None:
        self.ref = ref
        self.kind = kind
        super().__init__(f"{kind} not found: {ref!r}")


class InvalidStructuralOperation(CockpitError):
    """The requested structural change is not meaningful for its arguments."""


class ConstraintViolation(CockpitError):
    """The requested change would break a document-wide constraint."""


class HistoryResolutionMismatch(CockpitError, UserWarning):
    """A history snapshot exists for a node but lacks required fields.

    Emitted as a warning by read paths, which fall back to live data.
    """

    def __init__(self, key: str, date: str, missing: tuple[str, ...]) -> None:
        self.key = key
        self.date = date
        self.missing = missing
        super().__init__(f"Snapshot {key!r} at {date} is missing {', '.join(missing)}")
