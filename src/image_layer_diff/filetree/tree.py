"""Path-addressed file tree used as the merge and diff substrate."""

from dataclasses import replace
from typing import Callable, Iterator, List, Optional, Tuple

from ..exceptions import MalformedPathError, TraversalError
from .models import FileInfo, FileKind, FileNode, directory_info

Visitor = Callable[[FileNode], None]
Evaluator = Callable[[FileNode], bool]


def split_path(path: str) -> List[str]:
    """Split a tree path into segments.

    Args:
        path: Path with or without a leading slash (e.g., "/etc/passwd")

    Returns:
        List of path segments

    Raises:
        MalformedPathError: If the path is empty or has an empty, "." or ".."
            segment
    """
    if not isinstance(path, str):
        raise MalformedPathError(f"Path must be a string: {path!r}")

    relative = path[1:] if path.startswith("/") else path
    if not relative:
        raise MalformedPathError(f"Empty path: {path!r}")

    segments = relative.split("/")
    for segment in segments:
        if segment in ("", ".", ".."):
            raise MalformedPathError(f"Invalid segment {segment!r} in path {path!r}")
    return segments


def _new_root() -> FileNode:
    return FileNode(name="", path="/", info=directory_info("/"))


class FileTree:
    """Tree of file nodes keyed by path segment."""

    def __init__(self, root: Optional[FileNode] = None) -> None:
        self.root = root if root is not None else _new_root()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileTree):
            return NotImplemented
        return self.root == other.root

    def __repr__(self) -> str:
        return f"FileTree(nodes={self.node_count})"

    def insert(self, path: str, info: FileInfo) -> FileNode:
        """Create or overwrite the node at a path.

        Missing intermediate directories are created. Overwriting a directory
        with a non-directory drops its subtree.

        Args:
            path: Absolute or root-relative path of the node
            info: File metadata for the node

        Returns:
            The inserted node

        Raises:
            MalformedPathError: If the path is malformed
        """
        segments = split_path(path)
        current = self.root
        for segment in segments[:-1]:
            child = current.children.get(segment)
            if child is None or not child.is_dir:
                child_path = current.child_path(segment)
                child = FileNode(
                    name=segment, path=child_path, info=directory_info(child_path)
                )
                current.children[segment] = child
            current = child

        name = segments[-1]
        node_path = current.child_path(name)
        info = replace(info, path=node_path)
        existing = current.children.get(name)
        if existing is not None and existing.is_dir and info.is_dir:
            existing.info = info
            return existing

        node = FileNode(name=name, path=node_path, info=info)
        current.children[name] = node
        return node

    def get_node(self, path: str) -> Optional[FileNode]:
        """Look up a node by path, returning None when absent."""
        if path == "/":
            return self.root
        current = self.root
        for segment in split_path(path):
            current = current.children.get(segment)
            if current is None:
                return None
        return current

    def visit_depth_child_first(
        self, visitor: Visitor, evaluator: Optional[Evaluator] = None
    ) -> None:
        """Visit every node after its children.

        Siblings are visited in name order and the root is never handed to
        the visitor.

        Raises:
            TraversalError: If the visitor raises
        """
        for node in self.root.sorted_children():
            self._visit_child_first(node, visitor, evaluator)

    def visit_depth_parent_first(
        self, visitor: Visitor, evaluator: Optional[Evaluator] = None
    ) -> None:
        """Visit every node before its children.

        A node rejected by the evaluator is skipped with its subtree.

        Raises:
            TraversalError: If the visitor raises
        """
        for node in self.root.sorted_children():
            self._visit_parent_first(node, visitor, evaluator)

    def _visit_child_first(
        self, node: FileNode, visitor: Visitor, evaluator: Optional[Evaluator]
    ) -> None:
        for child in node.sorted_children():
            self._visit_child_first(child, visitor, evaluator)
        if evaluator is None or evaluator(node):
            _call_visitor(visitor, node)

    def _visit_parent_first(
        self, node: FileNode, visitor: Visitor, evaluator: Optional[Evaluator]
    ) -> None:
        if evaluator is not None and not evaluator(node):
            return
        _call_visitor(visitor, node)
        for child in node.sorted_children():
            self._visit_parent_first(child, visitor, evaluator)

    def iter_nodes(self) -> Iterator[Tuple[str, FileNode]]:
        """Iterate (path, node) pairs parent-first in name order."""
        stack = list(reversed(self.root.sorted_children()))
        while stack:
            node = stack.pop()
            yield node.path, node
            stack.extend(reversed(node.sorted_children()))

    def clone(self) -> "FileTree":
        return FileTree(self.root.clone())

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def file_size(self) -> int:
        """Total size of the regular files in the tree."""
        return sum(
            node.size
            for _, node in self.iter_nodes()
            if node.kind is FileKind.REGULAR
        )


def _call_visitor(visitor: Visitor, node: FileNode) -> None:
    try:
        visitor(node)
    except TraversalError:
        raise
    except Exception as e:
        raise TraversalError(f"Visitor failed at {node.path}: {e}") from e
