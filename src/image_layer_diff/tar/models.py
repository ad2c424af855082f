"""Data models for image tar analysis."""

from dataclasses import dataclass
from typing import List

from ..core.comparer import Comparer
from ..filetree.efficiency import InefficiencyRecord
from ..filetree.tree import FileTree


@dataclass(frozen=True)
class LayerRecord:
    """One image layer and the file tree it contributes."""

    index: int
    id: str  # Path of the layer blob within the tar file
    digest: str
    size: int
    command: str
    tree: FileTree


@dataclass
class ImageAnalysis:
    """Result of analyzing an image tar file."""

    image: str
    layers: List[LayerRecord]
    ref_trees: List[FileTree]
    efficiency: float
    size_bytes: int
    wasted_bytes: int
    inefficiencies: List[InefficiencyRecord]
    comparer: Comparer
