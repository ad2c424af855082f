"""Range-keyed cache of squashed and diffed layer trees."""

import logging
import threading
from concurrent.futures import Future
from typing import Dict, Iterator, List, Sequence

from ..exceptions import InvalidRangeError
from ..filetree.diff import diff_trees
from ..filetree.merge import merge_trees, squash_trees, stack_trees
from ..filetree.tree import FileTree
from .types import TreeIndexKey

logger = logging.getLogger(__name__)


class Comparer:
    """Builds and memoizes trees for layer ranges of one image.

    Safe to share between threads. Each key is computed at most once: a
    caller asking for a key that another caller is already computing waits
    for that result. Returned trees are shared and must not be modified.
    """

    def __init__(self, ref_trees: Sequence[FileTree]) -> None:
        """Initialize the comparer.

        Args:
            ref_trees: Per-layer trees in layer order, treated as read-only
        """
        self._trees: List[FileTree] = list(ref_trees)
        self._cache: Dict[TreeIndexKey, FileTree] = {}
        self._pending: Dict[TreeIndexKey, Future] = {}
        self._lock = threading.Lock()
        self.computations = 0

    @property
    def layer_count(self) -> int:
        return len(self._trees)

    def get_tree(self, key: TreeIndexKey) -> FileTree:
        """Get the base range with the top range applied and diff-marked.

        Args:
            key: Layer ranges to compare

        Returns:
            Tree of the base with the top layers applied, each node marked
            relative to the base

        Raises:
            InvalidRangeError: If a range lies outside the image's layers
        """
        tree = self._cache.get(key)
        if tree is not None:
            return tree

        self._validate(key)

        with self._lock:
            tree = self._cache.get(key)
            if tree is not None:
                return tree
            pending = self._pending.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._pending[key] = pending

        if not owner:
            return pending.result()

        try:
            tree = self._compute(key)
        except BaseException as e:
            with self._lock:
                del self._pending[key]
            pending.set_exception(e)
            raise

        with self._lock:
            self._cache[key] = tree
            del self._pending[key]
            self.computations += 1
        pending.set_result(tree)
        return tree

    def build_cache(self, aggregated: bool = False) -> None:
        """Compute the per-layer views ahead of time.

        Args:
            aggregated: Also compute the "all changes since the first layer"
                views
        """
        for key in self.natural_indexes():
            self.get_tree(key)
        if aggregated:
            for key in self.aggregated_indexes():
                self.get_tree(key)

    def natural_indexes(self) -> Iterator[TreeIndexKey]:
        """Keys comparing each layer against all layers below it."""
        for index in range(self.layer_count):
            bottom_stop = index - 1 if index > 0 else 0
            yield TreeIndexKey(0, bottom_stop, index, index)

    def aggregated_indexes(self) -> Iterator[TreeIndexKey]:
        """Keys comparing all layers up to each layer against the first."""
        for index in range(self.layer_count):
            top_start = 1 if index > 0 else 0
            yield TreeIndexKey(0, 0, top_start, index)

    def cached_keys(self) -> List[TreeIndexKey]:
        with self._lock:
            return list(self._cache)

    def _validate(self, key: TreeIndexKey) -> None:
        self._validate_range("bottom", key.bottom_start, key.bottom_stop, key)
        self._validate_range("top", key.top_start, key.top_stop, key)

    def _validate_range(
        self, label: str, start: int, stop: int, key: TreeIndexKey
    ) -> None:
        count = self.layer_count
        if stop == start - 1:
            if 0 <= start <= count:
                return
        elif 0 <= start <= stop < count:
            return
        raise InvalidRangeError(
            f"Invalid {label} range [{start}:{stop}] in {key} "
            f"for image with {count} layers"
        )

    def _compute(self, key: TreeIndexKey) -> FileTree:
        logger.debug("Computing tree for %s", key)
        base = squash_trees(self._trees[key.bottom_start : key.bottom_stop + 1])
        overlay = stack_trees(self._trees[key.top_start : key.top_stop + 1])
        return diff_trees(base, merge_trees(base, overlay))
