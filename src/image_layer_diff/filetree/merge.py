"""Layer merging: stacking later layers on top of earlier ones."""

from dataclasses import replace
from typing import Iterable

from .models import FileNode
from .tree import FileTree


def merge_trees(lower: FileTree, upper: FileTree) -> FileTree:
    """Apply an upper layer tree on top of a lower one.

    Neither input is modified. Whiteout markers from the upper tree delete
    the lower subtree at their path and are kept in the result, so merging
    is associative: a stacked range can later be applied to an older base
    and still delete what it deleted.

    Args:
        lower: Earlier layer (or stacked range of layers)
        upper: Later layer (or stacked range of layers)

    Returns:
        New tree holding the combined layers
    """
    result = lower.clone()
    overlay_tree(result, upper)
    return result


def overlay_tree(target: FileTree, upper: FileTree) -> None:
    """Merge upper into target in place; upper is copied, never shared."""
    _merge_children(target.root, upper.root)


def _merge_children(target: FileNode, source: FileNode) -> None:
    for name, incoming in source.children.items():
        existing = target.children.get(name)

        if incoming.is_dir and existing is not None and existing.is_whiteout:
            # Recreated after a deletion: nothing below may show through
            replacement = incoming.clone()
            replacement.opaque = True
            target.children[name] = replacement
        elif (
            incoming.is_dir
            and not incoming.opaque
            and existing is not None
            and existing.is_dir
        ):
            existing.info = replace(incoming.info)
            existing.opaque = existing.opaque or incoming.opaque
            _merge_children(existing, incoming)
        else:
            target.children[name] = incoming.clone()


def stack_trees(trees: Iterable[FileTree]) -> FileTree:
    """Fold merge_trees over trees in order, keeping whiteout markers."""
    result = FileTree()
    for tree in trees:
        overlay_tree(result, tree)
    return result


def squash_trees(trees: Iterable[FileTree]) -> FileTree:
    """Fold trees into the net filesystem they produce.

    Same as stack_trees with the deletion markers resolved: whiteout nodes
    are dropped and opaque flags cleared.
    """
    result = stack_trees(trees)
    resolve_whiteouts(result)
    return result


def resolve_whiteouts(tree: FileTree) -> None:
    """Drop whiteout markers and opaque flags from a tree in place."""
    pending = [tree.root]
    while pending:
        node = pending.pop()
        node.opaque = False
        for name in [n for n, child in node.children.items() if child.is_whiteout]:
            del node.children[name]
        pending.extend(node.children.values())
