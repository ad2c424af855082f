"""Export of an image analysis to a JSON-ready structure."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles

from .exceptions import TraversalError
from .filetree.models import DiffType, FileNode
from .tar.models import ImageAnalysis

logger = logging.getLogger(__name__)


def convert_node(node: Optional[FileNode]) -> Optional[Dict[str, Any]]:
    """Convert a diff-marked node to a dict, keeping only changed children."""
    if node is None:
        return None

    return {
        "size": node.size,
        "name": node.name,
        "data": {
            "diffType": node.diff_type.value,
            "fileInfo": node.info.to_dict(),
        },
        "path": node.path,
        "children": {
            name: convert_node(child)
            for name, child in sorted(node.children.items())
            if child.diff_type is not DiffType.UNMODIFIED
        },
    }


def build_export(analysis: ImageAnalysis) -> Dict[str, Any]:
    """Build the export structure for an analyzed image.

    Each layer carries its tree compared against all layers below it and the
    flat list of files it contributes.

    Args:
        analysis: Result of analyze_image_tar

    Returns:
        Dictionary ready for JSON serialization

    Raises:
        InvalidRangeError: If the comparer does not match the layers
    """
    comparer = analysis.comparer
    layers = []

    for layer, key in zip(analysis.layers, comparer.natural_indexes()):
        tree = comparer.get_tree(key)

        file_list: List[Dict[str, Any]] = []
        try:
            layer.tree.visit_depth_child_first(
                lambda node: file_list.append(node.info.to_dict())
            )
        except TraversalError as e:
            logger.debug("Unable to list files of layer %s: %s", layer.id, e)
            file_list = []

        layers.append(
            {
                "index": layer.index,
                "id": layer.id,
                "digestId": layer.digest,
                "sizeBytes": layer.size,
                "command": layer.command,
                "fileList": file_list,
                "fileTree": convert_node(tree.root),
            }
        )

    return {
        "layer": layers,
        "image": {
            "sizeBytes": analysis.size_bytes,
            "inefficientBytes": analysis.wasted_bytes,
            "efficiencyScore": analysis.efficiency,
            "fileReference": [
                {
                    "count": record.references,
                    "sizeBytes": record.cumulative_size,
                    "file": record.path,
                }
                for record in analysis.inefficiencies
            ],
        },
    }


async def write_export(analysis: ImageAnalysis, output_path: Union[str, Path]) -> Path:
    """Write the export of an analysis as indented JSON.

    Args:
        analysis: Result of analyze_image_tar
        output_path: Destination file

    Returns:
        Path of the written file
    """
    path = Path(output_path)
    content = json.dumps(build_export(analysis), indent=2)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)
    logger.info("Wrote analysis of %s to %s", analysis.image, path)
    return path
