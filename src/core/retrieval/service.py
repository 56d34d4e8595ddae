"""Single entry point: ensure the index, resolve offsets, read the line."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from common.errors import NotFoundError, StaleIndexError
from common.models import IndexBuildResult, IndexProgress, RuntimeConfig
from core.indexing import IndexBuilder

from .lookup import OffsetLookup, parse_line_number
from .reader import LineReader

StatusCallback = Optional[Callable[[str], None]]
ProgressCallback = Optional[Callable[[IndexProgress], None]]

TERMINATOR = "\n"


class RetrievalService:
    """Returns dataset lines by number, building the offset index on first use.

    Status and progress callbacks only fire when ``runtime.verbose`` is set.
    """

    def __init__(
        self,
        runtime: Optional[RuntimeConfig] = None,
        *,
        status_callback: StatusCallback = None,
        progress_callback: ProgressCallback = None,
        progress_log: Optional[Path] = None,
    ) -> None:
        self.runtime = runtime or RuntimeConfig()
        verbose = self.runtime.verbose
        self._status = status_callback if verbose else None
        self.builder = IndexBuilder(
            self.runtime,
            progress_log=progress_log,
            progress_callback=progress_callback if verbose else None,
        )
        self.lookup = OffsetLookup()
        self.reader = LineReader(self.runtime)

    def index_path(self, dataset_path: Path) -> Path:
        return self.builder.index_path(Path(dataset_path))

    def ensure_index(self, dataset_path: Path) -> Optional[IndexBuildResult]:
        """Build the index when it is missing; returns None when one already exists."""

        dataset_path = Path(dataset_path)
        index_path = self.index_path(dataset_path)
        if index_path.exists():
            return None
        if not dataset_path.is_file():
            raise NotFoundError(dataset_path, what="dataset")
        self._emit(f"[index] {index_path} does not exist. Creating it, this could take some time...")
        return self.rebuild_index(dataset_path)

    def rebuild_index(self, dataset_path: Path) -> IndexBuildResult:
        result = self.builder.build(Path(dataset_path))
        self._emit(
            f"[index] wrote {result.line_count} entries to {result.index_path} "
            f"in {result.elapsed_seconds:.2f}s"
        )
        return result

    def line_count(self, dataset_path: Path) -> int:
        self.ensure_index(dataset_path)
        return self.lookup.line_count(self.index_path(dataset_path))

    def get_line(self, dataset_path: Path, line_number: Any) -> str:
        number = parse_line_number(line_number)
        dataset_path = Path(dataset_path)
        self.ensure_index(dataset_path)
        return self._fetch(dataset_path, self.index_path(dataset_path), number)

    def get_lines(self, dataset_path: Path, line_numbers: Iterable[Any]) -> List[str]:
        numbers = [parse_line_number(value) for value in line_numbers]
        dataset_path = Path(dataset_path)
        self.ensure_index(dataset_path)
        index_path = self.index_path(dataset_path)
        return [self._fetch(dataset_path, index_path, number) for number in numbers]

    def _fetch(self, dataset_path: Path, index_path: Path, number: int) -> str:
        line_range = self.lookup.resolve(index_path, number)
        if line_range.end_offset is None:
            text, trailing = self.reader.read_line(dataset_path, line_range.start_offset)
            if trailing:
                raise StaleIndexError(
                    f"Last indexed line {number} of '{dataset_path}' now spans several lines",
                    context={"dataset": str(dataset_path), "line_number": number},
                )
            return text

        # include the terminator byte so a shifted dataset is caught
        text = self.reader.read_range(dataset_path, line_range.start_offset, line_range.end_offset + 1)
        if not text.endswith(TERMINATOR):
            raise StaleIndexError(
                f"Line {number} of '{dataset_path}' does not end where the index says it does",
                context={"dataset": str(dataset_path), "line_number": number},
            )
        return text[: -len(TERMINATOR)]

    def _emit(self, message: str) -> None:
        if self._status:
            self._status(message)


def get_line(
    dataset_path: Path,
    line_number: Any,
    *,
    runtime: Optional[RuntimeConfig] = None,
    status_callback: StatusCallback = None,
) -> str:
    return RetrievalService(runtime, status_callback=status_callback).get_line(dataset_path, line_number)
