"""Fork/join-aware backward scanner over a run graph."""

from __future__ import annotations

import logging
from collections import abc, deque
from enum import Enum
from typing import TYPE_CHECKING, Callable, Hashable, Iterable, Iterator, NamedTuple

from .ancestry import least_common_ancestor
from .errors import StructuralInconsistency, UnknownNodeError
from .graph import NodeRole, iter_enclosing_blocks
from .pieces import ParallelBlockStart

if TYPE_CHECKING:
    from ..visitors.protocols import ChunkFinder, SimpleChunkVisitor
    from .protocols import FlowGraph, ForkPredicate

__all__ = [
    "NodeType",
    "ForkScanner",
    "set_parallel_start_predicate",
    "get_parallel_start_predicate",
    "clear_parallel_start_predicate",
]

logger = logging.getLogger(__name__)

_default_fork_predicate: ForkPredicate | None = None


def set_parallel_start_predicate(predicate: ForkPredicate | None) -> None:
    """Set the process-wide predicate deciding which block starts are forks.

    Scanners created without an explicit predicate consult this one on
    every classification, so changing it affects existing scanners too.

    Example:
        set_parallel_start_predicate(lambda node: graph.label(node) == "parallel")
    """
    global _default_fork_predicate
    _default_fork_predicate = predicate


def get_parallel_start_predicate() -> ForkPredicate | None:
    """Return the process-wide fork predicate, if any."""
    return _default_fork_predicate


def clear_parallel_start_predicate() -> None:
    """Remove the process-wide fork predicate."""
    set_parallel_start_predicate(None)


class NodeType(Enum):
    """Classification of a node within the fork/join structure."""

    NORMAL = "normal"
    PARALLEL_END = "parallel_end"
    PARALLEL_BRANCH_END = "parallel_branch_end"
    PARALLEL_BRANCH_START = "parallel_branch_start"
    PARALLEL_START = "parallel_start"


class _Step(NamedTuple):
    """Lookahead produced by one walk step."""

    node: Hashable | None = None
    node_type: NodeType | None = None
    fork_start: Hashable | None = None


_END = _Step()


class ForkScanner:
    """Walks a run graph backward from its heads, one node at a time.

    Parallel branches are walked one after another: on reaching a join the
    scanner enters the branch declared last, and when a branch reaches its
    fork start it resumes the next unvisited sibling. The fork start itself
    is returned once all branches are done. Scans may begin from several
    in-progress heads, in which case their least common ancestors are
    resolved first.

    Every node reachable backward from the heads is returned exactly once,
    always before its predecessors. The instance is reusable through
    ``setup``/``reset`` but is not safe for concurrent use.

    Example:
        scanner = ForkScanner(graph)
        scanner.setup(graph.heads())
        for node in scanner:
            print(node, scanner.current_type)
    """

    def __init__(self, graph: FlowGraph, is_fork_start: ForkPredicate | None = None):
        self._graph = graph
        self._fork_predicate = is_fork_start
        self._stack: deque[ParallelBlockStart] = deque()
        self._processed: set[Hashable] = set()
        self._join_starts: dict[Hashable, Hashable | None] = {}
        self._reached_forks: set[Hashable] = set()
        self._excluded: frozenset[Hashable] = frozenset()
        self._heads: tuple[Hashable, ...] = ()
        self._walking_from_finish = False
        self._current = _END
        self._next = _END

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard all scan state."""
        self._stack.clear()
        self._processed.clear()
        self._join_starts.clear()
        self._reached_forks.clear()
        self._excluded = frozenset()
        self._heads = ()
        self._walking_from_finish = False
        self._current = _END
        self._next = _END

    def setup(
        self,
        heads: Hashable | Iterable[Hashable],
        excluded: Iterable[Hashable] | None = None,
    ) -> bool:
        """Start a fresh scan.

        Args:
            heads: A single node or an iterable of nodes to walk back from.
                A single node may be internal to a branch still in progress.
            excluded: Nodes never to return or walk through.

        Returns:
            True if there is anything to scan.

        Raises:
            UnknownNodeError: If a head is not in the graph.
        """
        self.reset()
        candidates = self._as_heads(heads)
        for head in candidates:
            if head not in self._graph:
                raise UnknownNodeError(head)

        self._excluded = frozenset(excluded or ())
        ordered = [h for h in dict.fromkeys(candidates) if h not in self._excluded]
        if not ordered:
            return False
        if len(ordered) > 1:
            ordered = self._drop_covered_heads(ordered)

        self._heads = tuple(ordered)
        if len(ordered) == 1:
            self._setup_single(ordered[0])
        else:
            self._setup_multiple(ordered)
        return self._next.node is not None

    def _as_heads(self, heads: Hashable | Iterable[Hashable]) -> list[Hashable]:
        if isinstance(heads, (str, bytes)):
            return [heads]
        try:
            if heads in self._graph:
                return [heads]
        except TypeError:
            pass
        if not isinstance(heads, abc.Iterable):
            return [heads]
        return list(heads)

    def _drop_covered_heads(self, heads: list[Hashable]) -> list[Hashable]:
        """Drop heads that another head's walk reaches anyway."""
        covered: set[Hashable] = set()
        pending = [p for head in heads for p in self._graph.predecessors(head)]
        while pending:
            node = pending.pop()
            if node in covered or node in self._excluded:
                continue
            covered.add(node)
            pending.extend(self._graph.predecessors(node))

        kept = [head for head in heads if head not in covered]
        # Heads on a cycle cover each other
        if not kept:
            return heads
        if len(kept) < len(heads):
            logger.debug(f"Heads {[h for h in heads if h in covered]!r} precede other heads")
        return kept

    def _setup_single(self, head: Hashable) -> None:
        self._walking_from_finish = self._is_flow_end(head)
        self._push_context(head)
        node_type, fork_start = self._classify(head)
        if node_type is NodeType.NORMAL and self._stack:
            node_type = NodeType.PARALLEL_BRANCH_END
            fork_start = self._stack[0].fork_start
        self._next = _Step(head, node_type, fork_start)

    def _setup_multiple(self, heads: list[Hashable]) -> None:
        try:
            chain = self.least_common_ancestor(heads)
        except StructuralInconsistency as exc:
            logger.warning(f"Walking heads {heads!r} one after another: {exc}")
            self._stack.appendleft(ParallelBlockStart(None, deque(heads)))
        else:
            self._push_chain(chain)
        self._next = self._resume_branch()

    def _is_flow_end(self, node: Hashable) -> bool:
        if self._graph.role(node) is not NodeRole.BLOCK_END:
            return False
        start = self._graph.matching_start(node)
        return (
            start is not None
            and start in self._graph
            and not self._graph.predecessors(start)
        )

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def has_next(self) -> bool:
        return self._next.node is not None

    def next(self) -> Hashable:
        """Advance one node and return it.

        Raises:
            StopIteration: If the scan is exhausted.
        """
        if self._next.node is None:
            raise StopIteration
        self._current = self._next
        self._processed.add(self._current.node)
        self._next = self._step(self._current.node)
        return self._current.node

    __next__ = next

    def __iter__(self) -> Iterator[Hashable]:
        return self

    def peek(self) -> Hashable | None:
        """Node the next call to ``next`` will return."""
        return self._next.node

    @property
    def current(self) -> Hashable | None:
        return self._current.node

    @property
    def current_type(self) -> NodeType | None:
        return self._current.node_type

    @property
    def next_type(self) -> NodeType | None:
        return self._next.node_type

    @property
    def current_fork_start(self) -> Hashable | None:
        """Fork start the current structural node belongs to."""
        return self._current.fork_start

    @property
    def parallel_block_starts(self) -> tuple[ParallelBlockStart, ...]:
        """Open forks, innermost first."""
        return tuple(self._stack)

    @property
    def current_parallel_start(self) -> ParallelBlockStart | None:
        return self._stack[0] if self._stack else None

    @property
    def current_parallel_start_node(self) -> Hashable | None:
        return self._stack[0].fork_start if self._stack else None

    @property
    def is_walking_from_finish(self) -> bool:
        """True when the scan began at the end node of a completed run."""
        return self._walking_from_finish

    @property
    def heads(self) -> tuple[Hashable, ...]:
        return self._heads

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _is_fork_start(self, node: Hashable) -> bool:
        if self._graph.role(node) is not NodeRole.BLOCK_START:
            return False
        predicate = self._resolve_predicate()
        return predicate is not None and bool(predicate(node))

    def _resolve_predicate(self) -> Callable[[Hashable], bool] | None:
        if self._fork_predicate is not None:
            return self._fork_predicate
        if _default_fork_predicate is not None:
            return _default_fork_predicate
        return getattr(self._graph, "is_fork_start", None)

    def _is_branch_start(self, node: Hashable) -> bool:
        if self._graph.role(node) is not NodeRole.BLOCK_START:
            return False
        parents = self._graph.predecessors(node)
        return len(parents) == 1 and self._is_fork_start(parents[0])

    def _is_join(self, node: Hashable) -> bool:
        if len(self._graph.predecessors(node)) > 1:
            return True
        if self._graph.role(node) is NodeRole.BLOCK_END:
            start = self._graph.matching_start(node)
            return start is not None and start in self._graph and self._is_fork_start(start)
        return False

    def fork_start_of(self, join: Hashable) -> Hashable | None:
        """Return the fork start closed by ``join``, or None if unresolvable."""
        if join in self._join_starts:
            return self._join_starts[join]

        start = None
        if self._graph.role(join) is NodeRole.BLOCK_END:
            candidate = self._graph.matching_start(join)
            if candidate is not None and candidate in self._graph:
                start = candidate
        if start is None:
            try:
                chain = self.least_common_ancestor(self._graph.predecessors(join))
            except StructuralInconsistency as exc:
                logger.warning(f"Treating join {join!r} as a plain node: {exc}")
            else:
                if chain:
                    start = chain[-1].fork_start
        self._join_starts[join] = start
        return start

    def least_common_ancestor(self, heads: Iterable[Hashable]) -> deque[ParallelBlockStart]:
        """Resolve the forks dominating ``heads`` using this scanner's settings."""
        return least_common_ancestor(
            self._graph,
            heads,
            excluded=self._excluded,
            is_fork_start=self._is_fork_start if self._resolve_predicate() else None,
        )

    def _classify(self, node: Hashable) -> tuple[NodeType, Hashable | None]:
        if self._is_join(node):
            start = self.fork_start_of(node)
            if start is None:
                return NodeType.NORMAL, None
            return NodeType.PARALLEL_END, start
        if self._is_branch_start(node):
            return NodeType.PARALLEL_BRANCH_START, self._graph.predecessors(node)[0]
        if self._is_fork_start(node):
            return NodeType.PARALLEL_START, node
        return NodeType.NORMAL, None

    def _is_walkable(self, node: Hashable) -> bool:
        return node not in self._excluded and node not in self._processed

    # ------------------------------------------------------------------
    # Fork context
    # ------------------------------------------------------------------

    def _enclosing_forks(self, node: Hashable) -> Iterator[Hashable]:
        start = node
        if self._graph.role(node) is NodeRole.BLOCK_END:
            matching = self._graph.matching_start(node)
            if matching is not None and matching in self._graph:
                start = matching
        for block in iter_enclosing_blocks(self._graph, start, self._excluded):
            if self._is_branch_start(block):
                yield self._graph.predecessors(block)[0]

    def _push_context(self, node: Hashable) -> None:
        """Open every fork enclosing ``node`` that is not open yet."""
        open_forks = {block.fork_start for block in self._stack}
        forks = []
        for fork in self._enclosing_forks(node):
            if fork in open_forks:
                break
            forks.append(fork)
        for fork in reversed(forks):
            self._stack.appendleft(ParallelBlockStart(fork))

    def _push_chain(self, chain: deque[ParallelBlockStart]) -> None:
        for block in reversed(chain):
            self._push_context(block.fork_start)
            self._stack.appendleft(block)

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _step(self, node: Hashable) -> _Step:
        """Compute the node walked after ``node``, updating the fork stack."""
        parents = self._graph.predecessors(node)
        if self._is_join(node):
            entered = self._enter_fork(node, parents)
            if entered is not None:
                return entered
        elif parents:
            parent = parents[0]
            top = self._stack[0] if self._stack else None
            if top is not None and top.fork_start is not None and parent == top.fork_start:
                if not top.unvisited:
                    self._stack.popleft()
                    logger.debug(f"Leaving fork {parent!r}")
                    if self._is_walkable(parent):
                        return _Step(parent, NodeType.PARALLEL_START, parent)
                else:
                    self._reached_forks.add(parent)
            elif self._is_walkable(parent):
                node_type, fork_start = self._classify(parent)
                return _Step(parent, node_type, fork_start)
        return self._resume_branch()

    def _enter_fork(self, join: Hashable, parents: Iterable[Hashable]) -> _Step | None:
        start = self.fork_start_of(join)
        branches = [p for p in reversed(list(parents)) if self._is_walkable(p)]
        if not branches:
            return None

        logger.debug(f"Entering fork {start!r} at join {join!r}")
        self._stack.appendleft(ParallelBlockStart(start, deque(branches[1:])))
        if start is None:
            return _Step(branches[0], NodeType.NORMAL)
        self._push_context(branches[0])
        return _Step(branches[0], NodeType.PARALLEL_BRANCH_END, start)

    def _resume_branch(self) -> _Step:
        """Pop the next unvisited branch head, closing or dropping exhausted forks."""
        while self._stack:
            top = self._stack[0]
            while top.unvisited:
                head = top.unvisited.popleft()
                nested = top.nested.pop(head, None)
                if not self._is_walkable(head):
                    continue
                if nested:
                    self._push_chain(nested)
                    self._stack[0].unvisited.popleft()
                fork_start = self._stack[0].fork_start
                if fork_start is None:
                    return _Step(head, NodeType.NORMAL)
                self._push_context(head)
                return _Step(head, NodeType.PARALLEL_BRANCH_END, fork_start)
            self._stack.popleft()
            if top.fork_start is None:
                continue
            # An earlier branch reached the fork before the last one dead-ended
            if top.fork_start in self._reached_forks and self._is_walkable(top.fork_start):
                logger.debug(f"Leaving fork {top.fork_start!r} after a dead-ended branch")
                return _Step(top.fork_start, NodeType.PARALLEL_START, top.fork_start)
            logger.debug(f"Fork {top.fork_start!r} is not reachable, dropping it")
        return _END

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def filtered_nodes(
        self,
        heads: Hashable | Iterable[Hashable],
        predicate: Callable[[Hashable], bool],
        excluded: Iterable[Hashable] | None = None,
    ) -> list[Hashable]:
        """Scan from ``heads`` and return every node matching ``predicate``."""
        if not self.setup(heads, excluded):
            return []
        return [node for node in self if predicate(node)]

    def find_first_match(
        self,
        heads: Hashable | Iterable[Hashable],
        predicate: Callable[[Hashable], bool],
        excluded: Iterable[Hashable] | None = None,
    ) -> Hashable | None:
        """Scan from ``heads`` and return the first node matching ``predicate``."""
        if not self.setup(heads, excluded):
            return None
        for node in self:
            if predicate(node):
                return node
        return None

    def visit_simple_chunks(self, visitor: SimpleChunkVisitor, finder: ChunkFinder) -> None:
        """Drive the already set up scan to completion, pushing events to ``visitor``."""
        # Delay import to avoid circular dependency
        from ..visitors.dispatch import visit_simple_chunks

        visit_simple_chunks(self, visitor, finder)

    def __repr__(self) -> str:
        return (
            f"ForkScanner(heads={self._heads!r}, current={self.current!r}, "
            f"open_forks={len(self._stack)})"
        )

