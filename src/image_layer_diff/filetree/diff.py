"""Node-by-node comparison of two file trees."""

from typing import Optional

from .merge import resolve_whiteouts
from .models import DiffType, FileNode
from .tree import FileTree


def diff_trees(base: FileTree, compare: FileTree) -> FileTree:
    """Mark every node of a tree relative to a base tree.

    The result is a copy of ``compare`` where each node carries a diff type:

    - paths missing from ``base`` are Added
    - paths in both with matching info are Unmodified, otherwise Modified
    - whiteout nodes in ``compare`` become a Removed copy of the base subtree
      they hide (or vanish if there is nothing to hide)
    - paths in ``base`` missing from ``compare`` are inserted as Removed

    Directories are classified after their children: a directory present in
    both trees is Modified when its own info or any child differs. A path
    that switches between file and directory is Modified; new entries below
    it are Added and old ones are kept below it as Removed.

    The result carries no whiteout markers or opaque flags.

    Args:
        base: Reference tree
        compare: Tree to classify

    Returns:
        New tree with diff types set on every node
    """
    result = compare.clone()
    _mark(result.root, base.root)
    result.root.diff_type = _directory_diff(result.root, base.root)
    resolve_whiteouts(result)
    return result


def _mark(node: FileNode, base: Optional[FileNode]) -> None:
    """Classify the children of node against base, children first."""
    for name in sorted(node.children):
        child = node.children[name]
        base_child = base.children.get(name) if base is not None else None
        if base_child is not None and base_child.is_whiteout:
            base_child = None

        if child.is_whiteout:
            if base_child is None:
                del node.children[name]
            else:
                removed = base_child.clone()
                removed.set_diff_type(DiffType.REMOVED)
                node.children[name] = removed
        elif base_child is None:
            _mark(child, None)
            child.diff_type = DiffType.ADDED
        elif child.is_dir and base_child.is_dir:
            _mark(child, base_child)
            child.diff_type = _directory_diff(child, base_child)
        elif child.is_dir:
            # File replaced by a directory: nothing below existed before
            _mark(child, None)
            child.diff_type = DiffType.MODIFIED
        elif base_child.is_dir:
            # Directory replaced by a file: the old contents hang below it
            _attach_removed(child, base_child)
            child.diff_type = DiffType.MODIFIED
        elif child.info.matches(base_child.info):
            child.diff_type = DiffType.UNMODIFIED
        else:
            child.diff_type = DiffType.MODIFIED

    if base is None:
        return
    _attach_removed(node, base)


def _attach_removed(node: FileNode, base: FileNode) -> None:
    """Add the base children missing from node as Removed subtrees."""
    for name in sorted(base.children):
        base_child = base.children[name]
        if name in node.children or base_child.is_whiteout:
            continue
        removed = base_child.clone()
        removed.set_diff_type(DiffType.REMOVED)
        node.children[name] = removed


def _directory_diff(node: FileNode, base: FileNode) -> DiffType:
    if not node.info.matches(base.info):
        return DiffType.MODIFIED
    for child in node.children.values():
        if child.diff_type is not DiffType.UNMODIFIED:
            return DiffType.MODIFIED
    return DiffType.UNMODIFIED
