"""Protocol definitions for visitors driven by a scan."""

from __future__ import annotations

from typing import Hashable, Protocol


class ChunkFinder(Protocol):
    """Policy deciding where logical chunks (such as stages) begin and end.

    Both predicates receive the node being visited and the node walked
    immediately before it, which is its successor in the run (None for the
    first node of a scan).
    """

    @property
    def start_inside_chunk(self) -> bool:
        """True if the first node scanned is assumed to be inside a chunk."""
        ...

    def is_chunk_start(self, current: Hashable, previous: Hashable | None) -> bool: ...

    def is_chunk_end(self, current: Hashable, previous: Hashable | None) -> bool: ...


class SimpleChunkVisitor(Protocol):
    """Receives one callback per event of a scan, in walk order.

    Since scans run backward, "before" always names the older neighbour
    (walked next) and "after" the newer neighbour (walked previously).
    """

    def chunk_start(self, start_node: Hashable, before_chunk: Hashable | None) -> None:
        """Called when ``start_node`` opens a chunk."""
        ...

    def chunk_end(self, end_node: Hashable, after_chunk: Hashable | None) -> None:
        """Called when ``end_node`` closes a chunk."""
        ...

    def parallel_start(self, fork_node: Hashable, branch_node: Hashable | None) -> None:
        """Called at the fork start, with the last branch start walked, if any."""
        ...

    def parallel_end(self, fork_node: Hashable, join_node: Hashable) -> None:
        """Called at the join closing ``fork_node``."""
        ...

    def parallel_branch_start(self, fork_node: Hashable, branch_start: Hashable) -> None: ...

    def parallel_branch_end(self, fork_node: Hashable, branch_end: Hashable) -> None: ...

    def atom_node(
        self,
        before: Hashable | None,
        at_node: Hashable,
        after: Hashable | None,
    ) -> None:
        """Called for a node that neither starts nor ends a chunk."""
        ...
