"""Line retrieval through the offset index."""

from .lookup import OffsetLookup, parse_line_number
from .reader import LineReader
from .service import RetrievalService, get_line

__all__ = ["LineReader", "OffsetLookup", "RetrievalService", "get_line", "parse_line_number"]
