"""Exact byte-range reads from a dataset file."""
from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from common.config import error_mode_from_policy
from common.errors import BackendError, ErrorCode, InvalidArgumentError, NotFoundError, StaleIndexError
from common.models import RuntimeConfig

NEWLINE = b"\n"


class LineReader:
    """Reads ``[start_offset, end_offset]`` (or to EOF) and decodes it."""

    def __init__(self, runtime: Optional[RuntimeConfig] = None) -> None:
        runtime = runtime or RuntimeConfig()
        self.encoding = runtime.global_settings.encoding
        self.errors = error_mode_from_policy(runtime.global_settings.error_policy)
        self.chunk_size = runtime.profile.chunk_size

    def read_range(self, dataset_path: Path, start_offset: int, end_offset: Optional[int] = None) -> str:
        raw = self.read_bytes(dataset_path, start_offset, end_offset)
        return self._decode(raw, dataset_path, start_offset, end_offset)

    def read_line(self, dataset_path: Path, start_offset: int) -> Tuple[str, bool]:
        """Decode the line at ``start_offset`` up to its terminator or EOF.

        The second item is True when bytes follow the terminator.
        """

        raw, trailing = self.read_line_bytes(dataset_path, start_offset)
        return self._decode(raw, dataset_path, start_offset, start_offset + len(raw) - 1), trailing

    def read_line_bytes(self, dataset_path: Path, start_offset: int) -> Tuple[bytes, bool]:
        """Read chunk by chunk until the first newline; never reads the rest of the file."""

        dataset_path = Path(dataset_path)
        if start_offset < 0:
            raise InvalidArgumentError(f"Start offset must be non-negative, got {start_offset}", value=start_offset)
        with self._open(dataset_path) as handle:
            try:
                size = _file_size(handle)
                self._check_extent(dataset_path, size, start_offset, None)
                handle.seek(start_offset)
                chunks = []
                while True:
                    chunk = handle.read(self.chunk_size)
                    if not chunk:
                        return b"".join(chunks), False
                    pos = chunk.find(NEWLINE)
                    if pos == -1:
                        chunks.append(chunk)
                        continue
                    chunks.append(chunk[:pos])
                    trailing = pos + 1 < len(chunk) or handle.read(1) != b""
                    return b"".join(chunks), trailing
            except OSError as exc:
                raise BackendError(
                    ErrorCode.IO_ERROR,
                    f"Failed reading '{dataset_path}' at offset {start_offset}: {exc}",
                    context={"dataset": str(dataset_path), "start_offset": start_offset},
                ) from exc

    def read_bytes(self, dataset_path: Path, start_offset: int, end_offset: Optional[int] = None) -> bytes:
        dataset_path = Path(dataset_path)
        if start_offset < 0:
            raise InvalidArgumentError(f"Start offset must be non-negative, got {start_offset}", value=start_offset)
        if end_offset is not None and end_offset < start_offset - 1:
            raise InvalidArgumentError(
                f"End offset {end_offset} precedes start offset {start_offset}",
                value=end_offset,
            )
        with self._open(dataset_path) as handle:
            try:
                size = _file_size(handle)
                self._check_extent(dataset_path, size, start_offset, end_offset)
                handle.seek(start_offset)
                if end_offset is None:
                    return handle.read()
                return _read_exact(handle, end_offset - start_offset + 1)
            except OSError as exc:
                raise BackendError(
                    ErrorCode.IO_ERROR,
                    f"Failed reading '{dataset_path}' at offset {start_offset}: {exc}",
                    context={"dataset": str(dataset_path), "start_offset": start_offset},
                ) from exc

    def _check_extent(self, dataset_path: Path, size: int, start: int, end: Optional[int]) -> None:
        beyond = start >= size if end is None else end >= size
        if beyond:
            shown_end = "EOF" if end is None else end
            raise StaleIndexError(
                f"Byte range {start}..{shown_end} lies outside '{dataset_path}' ({size} bytes)",
                context={"dataset": str(dataset_path), "start_offset": start, "end_offset": end, "size": size},
            )

    def _open(self, dataset_path: Path) -> BinaryIO:
        try:
            return dataset_path.open("rb")
        except FileNotFoundError as exc:
            raise NotFoundError(dataset_path, what="dataset") from exc
        except OSError as exc:
            raise BackendError(
                ErrorCode.IO_ERROR,
                f"Cannot open dataset '{dataset_path}': {exc}",
                context={"dataset": str(dataset_path)},
            ) from exc

    def _decode(self, raw: bytes, dataset_path: Path, start: int, end: Optional[int]) -> str:
        try:
            return raw.decode(self.encoding, errors=self.errors)
        except UnicodeDecodeError as exc:
            raise BackendError(
                ErrorCode.IO_ERROR,
                f"Bytes {start}..{end if end is not None else 'EOF'} of "
                f"'{dataset_path}' are not valid {self.encoding}: {exc.reason}",
                context={"dataset": str(dataset_path), "start_offset": start},
            ) from exc


def _file_size(handle: BinaryIO) -> int:
    handle.seek(0, 2)
    return handle.tell()


def _read_exact(handle: BinaryIO, length: int) -> bytes:
    chunks = []
    remaining = length
    while remaining > 0:
        chunk = handle.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
