"""Shared configuration, models, errors and progress helpers."""
