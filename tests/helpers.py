"""Test helper functions for building layer trees and image tars."""

import io
import json
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Union

from image_layer_diff.filetree.models import DiffType, FileInfo, FileKind
from image_layer_diff.filetree.tree import FileTree

WHITEOUT = "whiteout"
DIRECTORY = "dir"


def make_tree(entries: Dict[str, Union[int, str, FileInfo]]) -> FileTree:
    """Build a tree from {path: size | "whiteout" | "dir" | FileInfo}."""
    tree = FileTree()
    for path, value in entries.items():
        if isinstance(value, FileInfo):
            info = value
        elif value == WHITEOUT:
            info = FileInfo(path=path, kind=FileKind.WHITEOUT)
        elif value == DIRECTORY:
            info = FileInfo(path=path, kind=FileKind.DIRECTORY)
        else:
            info = FileInfo(path=path, size=value)
        tree.insert(path, info)
    return tree


def diff_map(tree: FileTree) -> Dict[str, DiffType]:
    """Map every path of a tree to its diff type."""
    return {path: node.diff_type for path, node in tree.iter_nodes()}


def size_map(tree: FileTree) -> Dict[str, int]:
    """Map every non-directory path of a tree to its size."""
    return {path: node.size for path, node in tree.iter_nodes() if not node.is_dir}


def add_bytes(tar: tarfile.TarFile, name: str, content: bytes) -> None:
    """Add an in-memory file to an open tar."""
    info = tarfile.TarInfo(name)
    info.size = len(content)
    tar.addfile(info, fileobj=io.BytesIO(content))


def build_layer_blob(
    files: Dict[str, Optional[bytes]], directories: Optional[List[str]] = None
) -> bytes:
    """Build a layer tar; a None content adds an empty whiteout marker."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for directory in directories or []:
            info = tarfile.TarInfo(directory)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, content in files.items():
            add_bytes(tar, name, content if content is not None else b"")
    return buffer.getvalue()


def create_image_tar(
    tar_path: Path,
    layers: List[bytes],
    commands: Optional[List[str]] = None,
    repo_tags: Optional[List[str]] = None,
) -> Path:
    """Write a synthetic docker save tar with the given layer blobs."""
    layer_paths = [f"layer{index}/layer.tar" for index in range(len(layers))]
    history = [{"created_by": command} for command in (commands or [])]
    # Metadata-only steps do not produce layers
    history.insert(0, {"created_by": "LABEL maintainer=test", "empty_layer": True})

    config = {
        "architecture": "amd64",
        "os": "linux",
        "history": history,
        "rootfs": {"type": "layers", "diff_ids": []},
    }
    manifest = [
        {
            "Config": "config.json",
            "RepoTags": repo_tags if repo_tags is not None else ["test/app:latest"],
            "Layers": layer_paths,
        }
    ]

    with tarfile.open(tar_path, "w") as tar:
        add_bytes(tar, "manifest.json", json.dumps(manifest).encode("utf-8"))
        add_bytes(tar, "config.json", json.dumps(config).encode("utf-8"))
        for layer_path, blob in zip(layer_paths, layers):
            add_bytes(tar, layer_path, blob)
    return tar_path
