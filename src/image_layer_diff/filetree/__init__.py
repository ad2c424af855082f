"""Layer file trees: structure, merging, diffing and efficiency analysis."""

from .diff import diff_trees
from .efficiency import EfficiencyReport, InefficiencyRecord, analyze_efficiency
from .merge import merge_trees, overlay_tree, squash_trees, stack_trees
from .models import DiffType, FileInfo, FileKind, FileNode
from .tree import FileTree

__all__ = [
    "DiffType",
    "EfficiencyReport",
    "FileInfo",
    "FileKind",
    "FileNode",
    "FileTree",
    "InefficiencyRecord",
    "analyze_efficiency",
    "diff_trees",
    "merge_trees",
    "overlay_tree",
    "squash_trees",
    "stack_trees",
]
