"""Bookkeeping pieces used to reconcile several backward walks."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Hashable, MutableMapping

from .errors import StructuralInconsistency

__all__ = ["ParallelBlockStart", "FlowPiece", "Segment", "Fork"]


@dataclass(eq=False)
class ParallelBlockStart:
    """A fork the scanner is currently inside of.

    Attributes:
        fork_start: Start node of the fork, or None for a degraded walk
            over heads that share no recognizable fork.
        unvisited: Branch heads still to be walked, in walk order.
        nested: Inner fork chains (innermost first) to re-enter when the
            matching entry of ``unvisited`` is resumed.
    """

    fork_start: Hashable | None
    unvisited: deque[Hashable] = field(default_factory=deque)
    nested: dict[Hashable, deque[ParallelBlockStart]] = field(
        default_factory=dict, repr=False
    )


class FlowPiece:
    """Ownership record for nodes claimed during ancestor resolution."""

    __slots__ = ()


@dataclass(eq=False)
class Segment(FlowPiece):
    """An undiverged run of nodes, most recent first.

    Attributes:
        visited: Node identities claimed by this segment.
        after: Piece reached once the segment is exhausted, walking toward
            the heads.
        leaf: True when the segment starts at one of the resolved heads.
    """

    visited: list[Hashable] = field(default_factory=list)
    after: FlowPiece | None = None
    leaf: bool = True

    @property
    def is_leaf(self) -> bool:
        return self.leaf

    @property
    def head(self) -> Hashable | None:
        return self.visited[0] if self.visited else None

    def add(self, node: Hashable) -> None:
        self.visited.append(node)

    def split(
        self,
        ownership: MutableMapping[Hashable, FlowPiece],
        fork_node: Hashable,
        joining: FlowPiece,
    ) -> Fork:
        """Split this segment at ``fork_node``, where ``joining`` reconverges.

        Nodes newer than the fork move into a new leaf-side segment, nodes
        older than it stay here, and the fork node itself becomes owned by
        the returned Fork. When the fork node is the oldest node of this
        segment no new segment is created and this segment is followed
        directly.

        Args:
            ownership: Node identity to owning piece map, updated in place.
            fork_node: Node where the two walks meet.
            joining: Piece of the walk that reached an already owned node.

        Returns:
            The Fork joining this branch with ``joining``.

        Raises:
            StructuralInconsistency: If ``fork_node`` is not in this segment
                or is its newest node while older nodes follow.
        """
        try:
            index = len(self.visited) - 1 - self.visited[::-1].index(fork_node)
        except ValueError:
            raise StructuralInconsistency(
                "Fork node is not part of the segment being split", [fork_node]
            ) from None

        fork = Fork(fork_node)
        if index == len(self.visited) - 1:
            self.visited.pop()
            fork.following = [self, joining]
        elif index == 0:
            raise StructuralInconsistency(
                "Cyclic graph or heads that are not separate branches", [fork_node]
            )
        else:
            branch = Segment(self.visited[:index], self.after, self.leaf)
            self.visited = self.visited[index + 1 :]
            self.after = fork
            self.leaf = False
            for node in branch.visited:
                ownership[node] = branch
            fork.following = [branch, joining]

        ownership[fork_node] = fork
        return fork


@dataclass(eq=False)
class Fork(FlowPiece):
    """Point where two or more resolved walks reconverge.

    Attributes:
        fork_start: Block start node shared by the converging walks.
        following: One piece per converging walk.
    """

    fork_start: Hashable
    following: list[FlowPiece] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return False
