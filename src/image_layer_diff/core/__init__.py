"""Layer range comparison engine."""

from .comparer import Comparer
from .types import AnalysisConfig, TreeIndexKey

__all__ = ["AnalysisConfig", "Comparer", "TreeIndexKey"]
