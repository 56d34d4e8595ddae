"""Shared error codes and exceptions for indexing and retrieval."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    IO_ERROR = "IO_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    LINE_NOT_FOUND = "LINE_NOT_FOUND"
    RANGE_ERROR = "RANGE_ERROR"
    STALE_INDEX = "STALE_INDEX"


class BackendError(RuntimeError):
    """Exception carrying a structured error code for the CLI."""

    def __init__(self, code: ErrorCode, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:  # pragma: no cover - formatting sugar
        base = super().__str__()
        return f"[{self.code.value}] {base}" if base else self.code.value


class NotFoundError(BackendError):
    """Raised when a dataset or index file is missing."""

    def __init__(self, path: Any, *, what: str = "file") -> None:
        super().__init__(
            ErrorCode.NOT_FOUND,
            f"The requested {what} '{path}' was not found",
            context={"path": str(path)},
        )


class InvalidArgumentError(BackendError):
    """Raised for line numbers that are not positive integers."""

    def __init__(self, message: str, *, value: Any = None) -> None:
        super().__init__(ErrorCode.INVALID_ARGUMENT, message, context={"value": repr(value)})


class LineNotFoundError(BackendError):
    def __init__(self, line_number: int, line_count: int) -> None:
        super().__init__(
            ErrorCode.LINE_NOT_FOUND,
            f"Line number {line_number} not found in index ({line_count} line(s) indexed)",
            context={"line_number": line_number, "line_count": line_count},
        )
        self.line_number = line_number
        self.line_count = line_count


class OffsetRangeError(BackendError):
    """Raised when a byte offset falls outside the supported or actual range."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.RANGE_ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(code, message, context=context)


class StaleIndexError(OffsetRangeError):
    """The index no longer matches the dataset it was built from."""

    hint = "The index file looks out of date compared to the dataset; rebuild it with 'linefetch index'."

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=ErrorCode.STALE_INDEX, context=context)
