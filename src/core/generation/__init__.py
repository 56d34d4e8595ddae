"""Synthetic dataset generation."""

from .generator import ALPHABET, DatasetGenerator

__all__ = ["ALPHABET", "DatasetGenerator"]
