"""Chunk-boundary policies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Hashable

from ..core.graph import NodeRole

if TYPE_CHECKING:
    from ..core.protocols import FlowGraph

__all__ = ["BlockChunkFinder", "LabelledChunkFinder"]


class BlockChunkFinder:
    """Treats every block as a chunk: block starts open one, block ends close one."""

    start_inside_chunk = False

    def __init__(self, graph: FlowGraph):
        self._graph = graph

    def is_chunk_start(self, current: Hashable, previous: Hashable | None) -> bool:
        return self._graph.role(current) is NodeRole.BLOCK_START

    def is_chunk_end(self, current: Hashable, previous: Hashable | None) -> bool:
        return self._graph.role(current) is NodeRole.BLOCK_END


class LabelledChunkFinder:
    """Splits a run into chunks at labelled nodes, such as stage markers.

    A labelled node starts a chunk that lasts until the next labelled node
    in the run, so walking backward a chunk ends right after a labelled node
    or at the end of a block whose start is labelled.

    Args:
        graph: Graph the scanned nodes come from.
        is_labelled: Predicate for chunk markers. Defaults to nodes with a
            label, for graphs exposing ``label(node)``.
    """

    start_inside_chunk = True

    def __init__(
        self,
        graph: FlowGraph,
        is_labelled: Callable[[Hashable], bool] | None = None,
    ):
        if is_labelled is None:
            label = getattr(graph, "label", None)
            if label is None:
                raise ValueError("Graph has no labels; pass an is_labelled predicate")
            is_labelled = lambda node: label(node) is not None  # noqa: E731
        self._graph = graph
        self._is_labelled = is_labelled

    def is_chunk_start(self, current: Hashable, previous: Hashable | None) -> bool:
        return self._is_labelled(current)

    def is_chunk_end(self, current: Hashable, previous: Hashable | None) -> bool:
        if previous is None:
            return False
        if self._graph.role(current) is NodeRole.BLOCK_END:
            start = self._graph.matching_start(current)
            if start is not None and self._is_labelled(start):
                return True
        return self._is_labelled(previous)
