"""Offset index construction and the on-disk entry layout."""

from . import encoding
from .builder import IndexBuilder, index_path_for
from .encoding import ENTRY_WIDTH, MAX_OFFSET

__all__ = ["ENTRY_WIDTH", "IndexBuilder", "MAX_OFFSET", "encoding", "index_path_for"]
