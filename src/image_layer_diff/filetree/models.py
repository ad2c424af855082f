"""Data models for layer file trees."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional


class FileKind(str, Enum):
    """Kind of filesystem entry held by a node."""

    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    # Deletion marker: the node sits at the path it deletes
    WHITEOUT = "whiteout"


class DiffType(str, Enum):
    """Diff classification of a node relative to a reference tree."""

    UNMODIFIED = "Unmodified"
    ADDED = "Added"
    REMOVED = "Removed"
    MODIFIED = "Modified"


@dataclass
class FileInfo:
    """Metadata of a single file as recorded in a layer."""

    path: str
    kind: FileKind = FileKind.REGULAR
    size: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    linkname: str = ""
    digest: Optional[str] = None  # Content marker, "sha256:<hex>"

    @property
    def is_dir(self) -> bool:
        return self.kind is FileKind.DIRECTORY

    def matches(self, other: "FileInfo") -> bool:
        """Check whether two infos describe the same content.

        The path is not part of the comparison; infos are only ever compared
        at the same tree position.
        """
        return (
            self.kind is other.kind
            and self.size == other.size
            and self.mode == other.mode
            and self.uid == other.uid
            and self.gid == other.gid
            and self.linkname == other.linkname
            and self.digest == other.digest
        )

    def to_dict(self) -> Dict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "size": self.size,
            "mode": self.mode,
            "uid": self.uid,
            "gid": self.gid,
            "linkname": self.linkname,
            "digest": self.digest,
        }


@dataclass
class FileNode:
    """A single entry in a file tree.

    The node owns its children. Its absolute path is stored as a plain
    string so no node ever points back at its parent.
    """

    name: str
    path: str
    info: FileInfo
    diff_type: DiffType = DiffType.UNMODIFIED
    opaque: bool = False
    children: Dict[str, "FileNode"] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return self.info.size

    @property
    def kind(self) -> FileKind:
        return self.info.kind

    @property
    def is_dir(self) -> bool:
        return self.info.is_dir

    @property
    def is_whiteout(self) -> bool:
        return self.info.kind is FileKind.WHITEOUT

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def child_path(self, name: str) -> str:
        if self.path == "/":
            return f"/{name}"
        return f"{self.path}/{name}"

    def sorted_children(self) -> List["FileNode"]:
        return [self.children[name] for name in sorted(self.children)]

    def clone(self) -> "FileNode":
        """Deep copy of this node and its subtree."""
        return FileNode(
            name=self.name,
            path=self.path,
            info=replace(self.info),
            diff_type=self.diff_type,
            opaque=self.opaque,
            children={name: child.clone() for name, child in self.children.items()},
        )

    def set_diff_type(self, diff_type: DiffType) -> None:
        """Tag this node and its whole subtree."""
        self.diff_type = diff_type
        for child in self.children.values():
            child.set_diff_type(diff_type)


def directory_info(path: str) -> FileInfo:
    """Info used for directories created implicitly by an insert."""
    return FileInfo(path=path, kind=FileKind.DIRECTORY, mode=0o755)
