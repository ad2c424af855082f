"""Utility functions for image layer analysis."""

from .digest import calculate_stream_digest, validate_digest

__all__ = ["calculate_stream_digest", "validate_digest"]
