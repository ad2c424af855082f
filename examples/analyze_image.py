"""Example: analyze a docker save tar and export the layer report."""

import asyncio
import logging
import sys

# Add parent directory to path
sys.path.insert(0, "src")

from image_layer_diff import (
    AnalysisConfig,
    LayerDiffError,
    TreeIndexKey,
    analyze_image_tar,
    write_export,
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(tar_path: str, output_path: str) -> int:
    """Analyze an image and write its export next to it."""
    try:
        analysis = await analyze_image_tar(tar_path, AnalysisConfig.from_env())
    except LayerDiffError as e:
        logger.error(f"Cannot analyze {tar_path}: {e}")
        return 1

    logger.info(f"Image: {analysis.image}")
    logger.info(f"Efficiency: {analysis.efficiency:.2%}")
    logger.info(f"Wasted bytes: {analysis.wasted_bytes}")

    for record in analysis.inefficiencies[:10]:
        logger.info(
            f"  {record.references:>3}x {record.cumulative_size:>10}  {record.path}"
        )

    # Everything added since the first layer
    last = len(analysis.layers) - 1
    if last > 0:
        tree = analysis.comparer.get_tree(TreeIndexKey(0, 0, 1, last))
        changed = [
            f"{node.diff_type.value}: {path}"
            for path, node in tree.iter_nodes()
            if node.diff_type.value != "Unmodified" and not node.is_dir
        ]
        logger.info(f"{len(changed)} files changed after the base layer")

    await write_export(analysis, output_path)
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: analyze_image.py IMAGE.tar OUTPUT.json")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1], sys.argv[2])))
