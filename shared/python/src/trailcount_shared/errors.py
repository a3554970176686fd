"""
errors.py — Exception taxonomy for the trail count importer.

    TrailCountError
    ├── ConfigError            missing/invalid settings at startup
    ├── ExportError            anything wrong with the export file itself
    │   ├── ParseError         unparseable timestamp
    │   ├── RowWidthMismatch   data row field count differs from the header
    │   ├── HeaderMismatch     header row differs from the expected layout
    │   └── LayoutMismatch     capability flags disagree with column span
    └── SinkError              delete / insert / commit failure
        └── PoolError          no pooled connection could be obtained

Every error carries structured context so it can be logged as key/value
pairs via ``exc.context``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class TrailCountError(Exception):
    """Base class for all importer errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ConfigError(TrailCountError):
    """Startup configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Export file errors: abort the run before any sink call
# ---------------------------------------------------------------------------


class ExportError(TrailCountError):
    """The export file cannot be imported."""


class ParseError(ExportError):
    """A field that must parse (the row timestamp) did not."""

    def __init__(self, message: str, *, row: int | None = None, value: str | None = None) -> None:
        super().__init__(message, row=row, value=value)
        self.row = row
        self.value = value


class RowWidthMismatch(ExportError):
    """A data row has more or fewer fields than the expected header."""

    def __init__(self, message: str, *, row: int | None, expected_columns: int, found_columns: int) -> None:
        super().__init__(
            message,
            row=row,
            expected_columns=expected_columns,
            found_columns=found_columns,
        )
        self.row = row
        self.expected_columns = expected_columns
        self.found_columns = found_columns


class HeaderMismatch(ExportError):
    """
    The declared header row differs from the expected header.

    ``differences`` is a list of (column index, expected, found) tuples;
    ``found`` is None when the file has fewer columns than expected.
    """

    def __init__(
        self,
        message: str,
        *,
        differences: list[tuple[int, str | None, str | None]],
        expected_columns: int,
        found_columns: int,
    ) -> None:
        super().__init__(
            message,
            expected_columns=expected_columns,
            found_columns=found_columns,
            first_difference=differences[0] if differences else None,
        )
        self.differences = differences
        self.expected_columns = expected_columns
        self.found_columns = found_columns


class LayoutMismatchKind(str, Enum):
    TOO_FEW = "TooFew"
    TOO_MANY = "TooMany"
    UNEXPECTED_ARITY = "UnexpectedArity"


_LAYOUT_MESSAGES = {
    LayoutMismatchKind.TOO_FEW: "Misconfiguration of count: expected more fields",
    LayoutMismatchKind.TOO_MANY: "Misconfiguration of count: expected fewer fields",
    LayoutMismatchKind.UNEXPECTED_ARITY: "Expected 3 or 5 fields, got a different amount",
}


class LayoutMismatch(ExportError):
    """A station's capability flags do not fit its column span."""

    def __init__(
        self,
        kind: LayoutMismatchKind,
        *,
        location_id: int,
        station: str | None = None,
        span: int,
        row: int | None = None,
    ) -> None:
        super().__init__(
            _LAYOUT_MESSAGES[kind],
            kind=kind.value,
            location_id=location_id,
            station=station,
            span=span,
            row=row,
        )
        self.kind = kind
        self.location_id = location_id
        self.span = span


# ---------------------------------------------------------------------------
# Sink errors: fatal to the run, never retried in-run
# ---------------------------------------------------------------------------


class SinkError(TrailCountError):
    """A delete, insert or commit against the sink failed."""

    def __init__(self, message: str, *, operation: str, **context: Any) -> None:
        super().__init__(message, operation=operation, **context)
        self.operation = operation


class PoolError(SinkError):
    """The pool could not be built, or no connection could be checked out."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, operation="checkout", **context)
