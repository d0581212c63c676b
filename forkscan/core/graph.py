"""In-memory run graph and block-aware traversal helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, AbstractSet, Hashable, Iterable, Iterator

from .errors import UnknownNodeError

if TYPE_CHECKING:
    from .protocols import FlowGraph

__all__ = ["NodeRole", "FlowNode", "RunGraph", "iter_enclosing_blocks"]


class NodeRole(Enum):
    """Structural role of a node in the run graph."""

    NORMAL = "normal"
    BLOCK_START = "block_start"
    BLOCK_END = "block_end"


@dataclass(frozen=True)
class FlowNode:
    """Immutable record for a single node of a run.

    Attributes:
        node_id: Stable identity of the node.
        parents: Ordered predecessor identities.
        role: Structural role.
        start_id: Matching block start for BLOCK_END nodes.
        label: Optional non-structural tag (for example a stage name).
    """

    node_id: Hashable
    parents: tuple[Hashable, ...] = ()
    role: NodeRole = NodeRole.NORMAL
    start_id: Hashable | None = None
    label: str | None = None


class RunGraph:
    """Arena of flow nodes keyed by identity.

    Nodes are appended in execution order and may only reference nodes that
    already exist, so the arena is acyclic by construction.

    Example:
        graph = RunGraph()
        graph.add(2, role=NodeRole.BLOCK_START)
        graph.add(3, 2)
        graph.add(4, 3, role=NodeRole.BLOCK_END, start=2)
        graph.heads()  # [4]
    """

    __slots__ = ("_nodes", "_successors", "_join_starts")

    def __init__(self, nodes: Iterable[FlowNode] = ()):
        self._nodes: dict[Hashable, FlowNode] = {}
        self._successors: dict[Hashable, list[Hashable]] = {}
        self._join_starts: set[Hashable] = set()
        for node in nodes:
            self._insert(node)

    def add(
        self,
        node_id: Hashable,
        *parents: Hashable,
        role: NodeRole = NodeRole.NORMAL,
        start: Hashable | None = None,
        label: str | None = None,
    ) -> FlowNode:
        """Append a node whose parents are already present.

        Args:
            node_id: Identity of the new node.
            *parents: Predecessor identities, in declared order.
            role: Structural role of the node.
            start: Matching block start, required for BLOCK_END nodes.
            label: Optional non-structural tag.

        Returns:
            The stored FlowNode.

        Raises:
            UnknownNodeError: If a parent or the start is not in the graph.
            ValueError: If the id is taken or the block pairing is invalid.
        """
        node = FlowNode(node_id, tuple(parents), role, start, label)
        self._insert(node)
        return node

    def _insert(self, node: FlowNode) -> None:
        if node.node_id in self._nodes:
            raise ValueError(f"Node '{node.node_id}' already exists")
        for parent in node.parents:
            if parent not in self._nodes:
                raise UnknownNodeError(parent)
        if node.role is NodeRole.BLOCK_END:
            if node.start_id is None:
                raise ValueError(f"Block end '{node.node_id}' needs a matching start")
            start = self.get(node.start_id)
            if start.role is not NodeRole.BLOCK_START:
                raise ValueError(
                    f"Node '{node.start_id}' closed by '{node.node_id}' is not a block start"
                )
            if len(node.parents) > 1:
                self._join_starts.add(node.start_id)
        elif node.start_id is not None:
            raise ValueError(f"Only block ends may reference a start: '{node.node_id}'")

        self._nodes[node.node_id] = node
        self._successors[node.node_id] = []
        for parent in node.parents:
            self._successors[parent].append(node.node_id)

    def get(self, node_id: Hashable) -> FlowNode:
        try:
            return self._nodes[node_id]
        except (KeyError, TypeError):
            raise UnknownNodeError(node_id) from None

    # ------------------------------------------------------------------
    # FlowGraph protocol
    # ------------------------------------------------------------------

    def predecessors(self, node: Hashable) -> tuple[Hashable, ...]:
        return self.get(node).parents

    def role(self, node: Hashable) -> NodeRole:
        return self.get(node).role

    def matching_start(self, node: Hashable) -> Hashable | None:
        return self.get(node).start_id

    def __contains__(self, node: object) -> bool:
        try:
            return node in self._nodes
        except TypeError:
            return False

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def successors(self, node: Hashable) -> tuple[Hashable, ...]:
        self.get(node)
        return tuple(self._successors[node])

    def label(self, node: Hashable) -> str | None:
        return self.get(node).label

    def heads(self) -> list[Hashable]:
        """Nodes with no successors, in insertion order."""
        return [node_id for node_id, succ in self._successors.items() if not succ]

    def is_fork_start(self, node: Hashable) -> bool:
        """Structural fork test: a block start that fans out or is closed by a join."""
        if self.role(node) is not NodeRole.BLOCK_START:
            return False
        return len(self._successors[node]) > 1 or node in self._join_starts

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._nodes)

    def __repr__(self) -> str:
        return f"RunGraph(nodes={len(self._nodes)}, heads={self.heads()!r})"


def _hop_blocks(
    graph: FlowGraph,
    node: Hashable,
    excluded: AbstractSet[Hashable],
    seen: set[Hashable],
) -> Hashable | None:
    """Jump over closed blocks so the walk lands on the node before their start."""
    candidate = node
    while graph.role(candidate) is NodeRole.BLOCK_END:
        start = graph.matching_start(candidate)
        if start is None or start not in graph:
            break
        if start in excluded or start in seen:
            return None
        seen.add(start)
        parents = [p for p in graph.predecessors(start) if p not in excluded]
        if not parents:
            return None
        candidate = parents[0]
    if candidate in seen:
        return None
    seen.add(candidate)
    return candidate


def iter_enclosing_blocks(
    graph: FlowGraph,
    node: Hashable,
    excluded: AbstractSet[Hashable] = frozenset(),
) -> Iterator[Hashable]:
    """Yield the block starts enclosing ``node``, innermost first.

    The walk follows first predecessors and skips completed blocks by
    jumping from each block end to the predecessor of its start, so only
    blocks that are still open at ``node`` are reported. A block start
    passed in as ``node`` is reported itself.

    Args:
        graph: Graph to walk.
        node: Starting node.
        excluded: Nodes the walk may not pass through.

    Yields:
        BLOCK_START identities, innermost first.
    """
    seen: set[Hashable] = set()
    current = _hop_blocks(graph, node, excluded, seen)
    while current is not None:
        if graph.role(current) is NodeRole.BLOCK_START:
            yield current
        parents = [p for p in graph.predecessors(current) if p not in excluded]
        current = _hop_blocks(graph, parents[0], excluded, seen) if parents else None
