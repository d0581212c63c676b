"""Visitors that assemble chunk boundaries into chunk records."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Hashable

__all__ = ["FlowChunk", "StandardChunkVisitor", "ChunkCollector"]


@dataclass
class FlowChunk:
    """A run of consecutive nodes between two chunk boundaries.

    Attributes:
        first_node: Oldest node of the chunk.
        last_node: Newest node of the chunk.
        node_before: Node preceding the chunk in the run, if any.
        node_after: Node following the chunk in the run, if any.
    """

    first_node: Hashable | None = None
    last_node: Hashable | None = None
    node_before: Hashable | None = None
    node_after: Hashable | None = None


class StandardChunkVisitor:
    """Builds one FlowChunk per chunk and ignores parallel structure.

    Since the scan walks backward, a chunk's end is seen before its start.
    Subclasses override ``handle_chunk_done``; the chunk passed to it is
    reused afterwards, so copy it to keep it.
    """

    def __init__(self) -> None:
        self.chunk = FlowChunk()

    def handle_chunk_done(self, chunk: FlowChunk) -> None:
        pass

    def reset_chunk(self, chunk: FlowChunk) -> None:
        chunk.first_node = None
        chunk.last_node = None
        chunk.node_before = None
        chunk.node_after = None

    def chunk_start(self, start_node: Hashable, before_chunk: Hashable | None) -> None:
        self.chunk.node_before = before_chunk
        self.chunk.first_node = start_node
        self.handle_chunk_done(self.chunk)
        self.reset_chunk(self.chunk)

    def chunk_end(self, end_node: Hashable, after_chunk: Hashable | None) -> None:
        self.chunk.last_node = end_node
        self.chunk.node_after = after_chunk

    def parallel_start(self, fork_node: Hashable, branch_node: Hashable | None) -> None:
        pass

    def parallel_end(self, fork_node: Hashable, join_node: Hashable) -> None:
        pass

    def parallel_branch_start(self, fork_node: Hashable, branch_start: Hashable) -> None:
        pass

    def parallel_branch_end(self, fork_node: Hashable, branch_end: Hashable) -> None:
        pass

    def atom_node(
        self,
        before: Hashable | None,
        at_node: Hashable,
        after: Hashable | None,
    ) -> None:
        pass


class ChunkCollector(StandardChunkVisitor):
    """Keeps a copy of every completed chunk, newest first."""

    def __init__(self) -> None:
        super().__init__()
        self.chunks: list[FlowChunk] = []

    def handle_chunk_done(self, chunk: FlowChunk) -> None:
        self.chunks.append(replace(chunk))
