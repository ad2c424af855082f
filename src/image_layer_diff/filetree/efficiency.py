"""Wasted-space analysis across the layers of an image."""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .merge import overlay_tree
from .models import FileKind, FileNode
from .tree import FileTree


@dataclass
class InefficiencyRecord:
    """A path whose content is paid for in more than one layer."""

    path: str
    nodes: List[FileNode] = field(default_factory=list)
    layer_indexes: List[int] = field(default_factory=list)
    cumulative_size: int = 0

    @property
    def references(self) -> int:
        return len(self.nodes)


@dataclass
class EfficiencyReport:
    """Summary of duplicated storage across an image."""

    score: float
    wasted_bytes: int
    total_bytes: int
    inefficiencies: List[InefficiencyRecord]


def analyze_efficiency(trees: Sequence[FileTree]) -> EfficiencyReport:
    """Aggregate path occurrences over raw per-layer trees.

    Every leaf node counts against its path. A whiteout counts with the size
    of whatever it deletes, looked up in the squash of the earlier layers.
    The score weighs the wasted bytes against the total size of all layers.

    Args:
        trees: Per-layer trees in layer order

    Returns:
        EfficiencyReport with inefficiencies sorted by descending cumulative
        size, ties broken by path
    """
    records: Dict[str, InefficiencyRecord] = {}
    stacked = FileTree()

    for index, tree in enumerate(trees):
        for path, node in tree.iter_nodes():
            if not node.is_leaf:
                continue
            if node.is_whiteout:
                size = _deleted_size(stacked, path)
            else:
                size = node.size

            record = records.get(path)
            if record is None:
                record = records[path] = InefficiencyRecord(path=path)
            record.nodes.append(node)
            record.layer_indexes.append(index)
            record.cumulative_size += size

        overlay_tree(stacked, tree)

    inefficiencies = sorted(
        (record for record in records.values() if record.references > 1),
        key=lambda record: (-record.cumulative_size, record.path),
    )
    wasted_bytes = sum(record.cumulative_size for record in inefficiencies)
    total_bytes = sum(tree.file_size for tree in trees)

    if total_bytes == 0:
        score = 1.0
    else:
        score = min(1.0, max(0.0, 1.0 - wasted_bytes / total_bytes))

    return EfficiencyReport(
        score=score,
        wasted_bytes=wasted_bytes,
        total_bytes=total_bytes,
        inefficiencies=inefficiencies,
    )


def _deleted_size(stacked: FileTree, path: str) -> int:
    previous = stacked.get_node(path)
    if previous is None:
        return 0
    if not previous.is_dir:
        return previous.size
    return sum(
        node.size
        for _, node in FileTree(previous).iter_nodes()
        if node.kind is FileKind.REGULAR
    )
