"""Protocol definitions for the read-only run graph surface."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Hashable, Protocol, Sequence

if TYPE_CHECKING:
    from .graph import NodeRole

NodeId = Hashable
ForkPredicate = Callable[[Hashable], bool]


class FlowGraph(Protocol):
    """Minimal read-only view of a run graph needed by the scanner.

    Implementations are expected to answer every query in O(1) for nodes
    they contain. The scanner never mutates the graph and only observes
    the nodes reachable backward from the heads it is given.
    """

    def predecessors(self, node: NodeId) -> Sequence[NodeId]:
        """Return the ordered predecessor identities of ``node``.

        The root has none, a join has two or more, everything else one.
        """
        ...

    def role(self, node: NodeId) -> NodeRole:
        """Return the structural role of ``node``."""
        ...

    def matching_start(self, node: NodeId) -> NodeId | None:
        """Return the BLOCK_START closed by ``node``, or None if not a block end."""
        ...

    def __contains__(self, node: object) -> bool: ...
