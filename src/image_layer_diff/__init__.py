"""Image Layer Diff - squash, diff and efficiency analysis of image layers."""

__version__ = "0.1.0"

from .core.comparer import Comparer
from .core.types import AnalysisConfig, TreeIndexKey
from .exceptions import (
    InvalidRangeError,
    LayerDiffError,
    MalformedPathError,
    TarReadError,
    TraversalError,
    ValidationError,
)
from .export import build_export, write_export
from .filetree import (
    DiffType,
    EfficiencyReport,
    FileInfo,
    FileKind,
    FileNode,
    FileTree,
    InefficiencyRecord,
    analyze_efficiency,
    diff_trees,
    merge_trees,
    squash_trees,
    stack_trees,
)
from .tar.models import ImageAnalysis, LayerRecord
from .tar.reader import TarImageReader, analyze_image_tar

__all__ = [
    "AnalysisConfig",
    "Comparer",
    "DiffType",
    "EfficiencyReport",
    "FileInfo",
    "FileKind",
    "FileNode",
    "FileTree",
    "ImageAnalysis",
    "InefficiencyRecord",
    "InvalidRangeError",
    "LayerDiffError",
    "LayerRecord",
    "MalformedPathError",
    "TarImageReader",
    "TarReadError",
    "TraversalError",
    "TreeIndexKey",
    "ValidationError",
    "analyze_efficiency",
    "analyze_image_tar",
    "build_export",
    "diff_trees",
    "merge_trees",
    "squash_trees",
    "stack_trees",
    "write_export",
]
