"""Synthetic newline-delimited datasets for exercising the index."""
from __future__ import annotations

import random
import string
from pathlib import Path
from typing import Callable, Optional

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

ProgressCallback = Optional[Callable[[int, int], None]]


class DatasetGenerator:
    """Writes lines of 1..max_line_length random alphanumeric characters."""

    def __init__(
        self,
        *,
        max_line_length: int = 1000,
        seed: Optional[int] = None,
        batch_lines: int = 1000,
    ) -> None:
        if max_line_length < 1:
            raise ValueError("max_line_length must be at least 1")
        self.max_line_length = max_line_length
        self.batch_lines = max(1, batch_lines)
        self._random = random.Random(seed)

    def random_line(self) -> str:
        length = self._random.randint(1, self.max_line_length)
        return "".join(self._random.choices(ALPHABET, k=length))

    def generate(self, path: Path, line_count: int, *, progress_callback: ProgressCallback = None) -> int:
        """Write ``line_count`` terminated lines to ``path``; returns bytes written."""

        if line_count < 0:
            raise ValueError("line_count must be non-negative")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        update_every = max(1, line_count // 100)
        written = 0
        batch = []
        with path.open("w", encoding="ascii", newline="\n") as handle:
            for index in range(line_count):
                batch.append(self.random_line())
                batch.append("\n")
                if len(batch) >= 2 * self.batch_lines:
                    written += handle.write("".join(batch))
                    batch.clear()
                if progress_callback and ((index + 1) % update_every == 0 or index + 1 == line_count):
                    progress_callback(index + 1, line_count)
            if batch:
                written += handle.write("".join(batch))
        return written
