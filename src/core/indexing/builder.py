"""Streaming construction of fixed-width line offset indexes."""
from __future__ import annotations

import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from common.errors import BackendError, ErrorCode, NotFoundError
from common.models import IndexBuildResult, IndexProgress, RuntimeConfig
from common.progress import ProgressLogger

from . import encoding

ProgressCallback = Optional[Callable[[IndexProgress], None]]

MIN_CHUNK_SIZE = 1024
NEWLINE = b"\n"


def index_path_for(dataset_path: Path, suffix: str = ".idx") -> Path:
    """Return the co-located index path, e.g. ``data.txt`` -> ``data.txt.idx``."""

    dataset_path = Path(dataset_path)
    return dataset_path.with_name(dataset_path.name + suffix)


class IndexBuilder:
    """Writes the start offset of every dataset line in one bounded-memory pass."""

    def __init__(
        self,
        runtime: Optional[RuntimeConfig] = None,
        *,
        chunk_size: Optional[int] = None,
        progress_log: Optional[Path] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.runtime = runtime or RuntimeConfig()
        profile = self.runtime.profile
        self.chunk_size = max(MIN_CHUNK_SIZE, chunk_size or profile.chunk_size)
        self.write_batch_entries = max(1, profile.write_batch_entries)
        self.progress_interval_bytes = max(1, profile.progress_interval_bytes)
        self.index_suffix = self.runtime.global_settings.index_suffix
        self.progress_logger = ProgressLogger(progress_log)
        self.progress_callback = progress_callback
        self.file_mode = _published_mode()

    def index_path(self, dataset_path: Path) -> Path:
        return index_path_for(dataset_path, self.index_suffix)

    def iter_line_offsets(self, dataset_path: Path) -> Iterator[int]:
        """Yield the start offset of each line without writing anything."""

        dataset_path = self._require_dataset(dataset_path)
        with _open_dataset(dataset_path) as handle:
            for offsets, _ in self._scan(handle):
                yield from offsets

    def build(self, dataset_path: Path) -> IndexBuildResult:
        """Build ``<dataset><suffix>`` and publish it atomically."""

        dataset_path = self._require_dataset(dataset_path)
        index_path = self.index_path(dataset_path)
        total_bytes = dataset_path.stat().st_size
        started = time.perf_counter()
        self._report(dataset_path, 0, total_bytes, 0, "start", started)

        fd, tmp_name = _make_temp(index_path)
        tmp_path = Path(tmp_name)
        line_count = 0
        processed = 0
        try:
            with os.fdopen(fd, "wb") as out, _open_dataset(dataset_path) as handle:
                batch: List[bytes] = []
                last_reported = 0
                for offsets, processed in self._scan(handle):
                    for offset in offsets:
                        batch.append(encoding.encode(offset))
                    line_count += len(offsets)
                    if len(batch) >= self.write_batch_entries:
                        out.write(b"".join(batch))
                        batch.clear()
                    if processed - last_reported >= self.progress_interval_bytes:
                        last_reported = processed
                        self._report(dataset_path, processed, total_bytes, line_count, "index", started)
                if batch:
                    out.write(b"".join(batch))
                out.flush()
                os.fsync(out.fileno())
            os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, index_path)
        except BaseException as exc:
            _discard(tmp_path)
            if isinstance(exc, OSError):
                raise BackendError(
                    ErrorCode.IO_ERROR,
                    f"Failed to build index '{index_path}': {exc}",
                    context={"dataset": str(dataset_path), "index": str(index_path)},
                ) from exc
            raise

        elapsed = time.perf_counter() - started
        self._report(dataset_path, processed, total_bytes, line_count, "complete", started)
        return IndexBuildResult(
            dataset_path=dataset_path,
            index_path=index_path,
            line_count=line_count,
            dataset_bytes=processed,
            elapsed_seconds=elapsed,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _scan(self, handle) -> Iterator[Tuple[List[int], int]]:
        """Yield ``(line_starts, bytes_processed)`` per chunk.

        Only the start offset of the fragment spanning a chunk edge is carried
        over, so memory stays proportional to the chunk size.
        """

        chunk_start = 0
        line_start = 0
        while True:
            chunk = handle.read(self.chunk_size)
            if not chunk:
                break
            offsets: List[int] = []
            pos = chunk.find(NEWLINE)
            while pos != -1:
                offsets.append(line_start)
                line_start = chunk_start + pos + 1
                pos = chunk.find(NEWLINE, pos + 1)
            chunk_start += len(chunk)
            yield offsets, chunk_start
        if chunk_start > line_start:
            # final line without a terminator
            yield [line_start], chunk_start

    def _require_dataset(self, dataset_path: Path) -> Path:
        dataset_path = Path(dataset_path)
        if not dataset_path.is_file():
            raise NotFoundError(dataset_path, what="dataset")
        return dataset_path

    def _report(
        self,
        dataset_path: Path,
        processed: int,
        total: int,
        lines: int,
        phase: str,
        started: float,
    ) -> None:
        if self.progress_callback is None and self.progress_logger.path is None:
            return
        elapsed = time.perf_counter() - started
        rate = processed / elapsed if elapsed > 0 and processed else None
        eta = (max(0, total - processed) / rate) if rate else None
        progress = IndexProgress(
            dataset_path=dataset_path,
            index_path=self.index_path(dataset_path),
            processed_bytes=processed,
            total_bytes=total,
            lines_indexed=lines,
            current_phase=phase,
            eta_seconds=eta,
            bytes_per_second=rate,
        )
        self.progress_logger.emit(progress)
        if self.progress_callback:
            self.progress_callback(progress)


def _open_dataset(dataset_path: Path):
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


def _make_temp(index_path: Path) -> Tuple[int, str]:
    try:
        return tempfile.mkstemp(
            prefix=f".{index_path.name}.",
            suffix=".tmp",
            dir=index_path.parent,
        )
    except OSError as exc:
        raise BackendError(
            ErrorCode.IO_ERROR,
            f"Cannot create temporary index next to '{index_path}': {exc}",
            context={"index": str(index_path)},
        ) from exc


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _published_mode() -> int:
    """Mode a plain ``open(path, "wb")`` would create under the current umask."""

    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask
