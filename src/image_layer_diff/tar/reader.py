"""Docker save tar reader producing per-layer file trees."""

import asyncio
import functools
import json
import logging
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

from ..core.comparer import Comparer
from ..core.types import AnalysisConfig
from ..exceptions import MalformedPathError, TarReadError, ValidationError
from ..filetree.efficiency import analyze_efficiency
from ..filetree.models import FileInfo, FileKind
from ..filetree.tree import FileTree
from ..utils.digest import calculate_stream_digest, validate_digest
from .models import ImageAnalysis, LayerRecord

logger = logging.getLogger(__name__)

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"


class TarImageReader:
    """Async reader for Docker save tar files."""

    def __init__(self, tar_path: str, hash_contents: bool = True) -> None:
        """Initialize tar reader.

        Args:
            tar_path: Path to the tar file
            hash_contents: Record a content digest for every regular file
        """
        self.tar_path = Path(tar_path)
        if not self.tar_path.exists():
            raise TarReadError(f"Tar file not found: {tar_path}")
        self.hash_contents = hash_contents
        self._tar_file: Optional[tarfile.TarFile] = None

    async def __aenter__(self) -> "TarImageReader":
        """Enter async context manager."""
        loop = asyncio.get_event_loop()
        try:
            self._tar_file = await loop.run_in_executor(
                None, tarfile.open, str(self.tar_path), "r"
            )
        except tarfile.TarError as e:
            raise TarReadError(f"Cannot open tar file {self.tar_path}: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the tar file."""
        if self._tar_file:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._tar_file.close)
            self._tar_file = None

    async def get_manifest(self) -> Dict:
        """Get the first image entry of manifest.json.

        Returns:
            Manifest entry dictionary

        Raises:
            TarReadError: If manifest cannot be read
            ValidationError: If manifest has no usable entry
        """
        loop = asyncio.get_event_loop()
        content = await loop.run_in_executor(
            None, self._extract_file_content, "manifest.json"
        )
        try:
            manifest_list = json.loads(content)
        except json.JSONDecodeError as e:
            raise TarReadError(f"Invalid JSON in manifest.json: {e}") from e

        if not isinstance(manifest_list, list) or not manifest_list:
            raise ValidationError("manifest.json must be a non-empty array")

        manifest = manifest_list[0]
        if not isinstance(manifest, dict) or "Config" not in manifest:
            raise ValidationError("Manifest entry has no Config")
        if not isinstance(manifest.get("Layers"), list):
            raise ValidationError("Manifest entry Layers must be a list")
        return manifest

    async def get_config(self, config_path: str) -> Dict:
        """Get the image configuration JSON.

        Args:
            config_path: Path of the config blob within the tar file

        Raises:
            TarReadError: If config cannot be read
        """
        loop = asyncio.get_event_loop()
        content = await loop.run_in_executor(
            None, self._extract_file_content, config_path
        )
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise TarReadError(f"Invalid JSON in config {config_path}: {e}") from e

    async def read_layers(self) -> List[LayerRecord]:
        """Read every layer of the image into a LayerRecord.

        Returns:
            Layer records in layer order

        Raises:
            TarReadError: If a layer cannot be read
        """
        manifest = await self.get_manifest()
        config = await self.get_config(manifest["Config"])

        diff_ids = config.get("rootfs", {}).get("diff_ids", [])
        commands = [
            entry.get("created_by", "")
            for entry in config.get("history", [])
            if not entry.get("empty_layer", False)
        ]

        layers = []
        loop = asyncio.get_event_loop()
        for index, layer_path in enumerate(manifest["Layers"]):
            logger.info(
                "Reading layer %d/%d: %s",
                index + 1,
                len(manifest["Layers"]),
                layer_path,
            )
            tree, blob_digest = await loop.run_in_executor(
                None, self._read_layer_tree, layer_path
            )

            digest = blob_digest
            if index < len(diff_ids) and validate_digest(diff_ids[index]):
                digest = diff_ids[index]

            layers.append(
                LayerRecord(
                    index=index,
                    id=layer_path,
                    digest=digest,
                    size=tree.file_size,
                    command=commands[index] if index < len(commands) else "",
                    tree=tree,
                )
            )
        return layers

    def _read_layer_tree(self, layer_path: str) -> tuple:
        """Build the file tree of one layer blob (sync helper).

        Returns:
            Tuple of the layer tree and the blob digest
        """
        if not self._tar_file:
            raise TarReadError("Tar file not opened")

        try:
            blob = self._tar_file.extractfile(layer_path)
            if blob is None:
                raise TarReadError(f"Could not extract layer {layer_path}")
            with blob:
                blob_digest = calculate_stream_digest(blob)
                blob.seek(0)
                with tarfile.open(fileobj=blob, mode="r:*") as layer_tar:
                    tree = build_layer_tree(layer_tar, self.hash_contents)
        except KeyError as e:
            raise TarReadError(f"Layer {layer_path} not found in tar") from e
        except (tarfile.TarError, MalformedPathError) as e:
            raise TarReadError(f"Failed to read layer {layer_path}: {e}") from e
        return tree, blob_digest

    def _extract_file_content(self, filename: str) -> bytes:
        """Extract file content from tar (sync helper).

        Args:
            filename: Name of file to extract

        Returns:
            File content as bytes

        Raises:
            TarReadError: If file cannot be extracted
        """
        if not self._tar_file:
            raise TarReadError("Tar file not opened")

        try:
            file_obj = self._tar_file.extractfile(filename)
            if file_obj is None:
                raise TarReadError(f"Could not extract {filename}")
            with file_obj:
                return file_obj.read()
        except KeyError as e:
            raise TarReadError(f"File {filename} not found in tar") from e


def normalize_member_name(name: str) -> Optional[str]:
    """Turn a tar member name into a tree path, None for the layer root."""
    while name.startswith("./"):
        name = name[2:]
    name = name.strip("/")
    if name in ("", "."):
        return None
    return "/" + name


def build_layer_tree(
    layer_tar: tarfile.TarFile, hash_contents: bool = True
) -> FileTree:
    """Build the file tree contributed by a single layer archive.

    Whiteout entries become whiteout nodes at the path they delete; an opaque
    marker flags its directory as opaque.

    Raises:
        MalformedPathError: If a member name cannot be a tree path
    """
    tree = FileTree()
    for member in layer_tar:
        path = normalize_member_name(member.name)
        if path is None:
            continue

        parent, _, name = path.rpartition("/")
        if name == OPAQUE_WHITEOUT:
            if not parent:
                logger.debug("Ignoring opaque marker at layer root")
                continue
            node = tree.get_node(parent)
            if node is None or not node.is_dir:
                node = tree.insert(
                    parent, FileInfo(path=parent, kind=FileKind.DIRECTORY)
                )
            node.opaque = True
            continue

        if name.startswith(WHITEOUT_PREFIX):
            target = f"{parent}/{name[len(WHITEOUT_PREFIX):]}"
            tree.insert(target, FileInfo(path=target, kind=FileKind.WHITEOUT))
            continue

        info = _member_info(layer_tar, member, path, hash_contents)
        if info is None:
            logger.debug("Skipping unsupported member %s", member.name)
            continue
        tree.insert(path, info)
    return tree


def _member_info(
    layer_tar: tarfile.TarFile,
    member: tarfile.TarInfo,
    path: str,
    hash_contents: bool,
) -> Optional[FileInfo]:
    if member.isdir():
        kind = FileKind.DIRECTORY
    elif member.issym():
        kind = FileKind.SYMLINK
    elif member.isfile() or member.islnk():
        kind = FileKind.REGULAR
    else:
        return None

    digest = None
    if hash_contents and member.isfile():
        contents = layer_tar.extractfile(member)
        if contents is not None:
            with contents:
                digest = calculate_stream_digest(contents)

    return FileInfo(
        path=path,
        kind=kind,
        size=member.size if kind is FileKind.REGULAR else 0,
        mode=member.mode,
        uid=member.uid,
        gid=member.gid,
        linkname=member.linkname,
        digest=digest,
    )


async def analyze_image_tar(
    tar_path: str, config: Optional[AnalysisConfig] = None
) -> ImageAnalysis:
    """Read an image tar file and analyze its layers.

    Args:
        tar_path: Path to the tar file created by docker save
        config: Analysis settings (default: AnalysisConfig())

    Returns:
        ImageAnalysis with layers, efficiency report and a comparer

    Raises:
        TarReadError: If the tar file cannot be read
        ValidationError: If the image metadata is invalid
    """
    config = config or AnalysisConfig()

    async with TarImageReader(tar_path, hash_contents=config.hash_contents) as reader:
        manifest = await reader.get_manifest()
        layers = await reader.read_layers()

    trees = [layer.tree for layer in layers]
    comparer = Comparer(trees)

    loop = asyncio.get_event_loop()
    tasks = [loop.run_in_executor(None, analyze_efficiency, trees)]
    if config.build_cache:
        tasks.append(
            loop.run_in_executor(
                None,
                functools.partial(
                    comparer.build_cache, aggregated=config.aggregated_cache
                ),
            )
        )
    results = await asyncio.gather(*tasks)
    report = results[0]

    repo_tags = manifest.get("RepoTags") or []
    return ImageAnalysis(
        image=repo_tags[0] if repo_tags else "unknown",
        layers=layers,
        ref_trees=trees,
        efficiency=report.score,
        size_bytes=sum(layer.size for layer in layers),
        wasted_bytes=report.wasted_bytes,
        inefficiencies=report.inefficiencies,
        comparer=comparer,
    )
