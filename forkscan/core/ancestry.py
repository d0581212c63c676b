"""Least-common-ancestor resolution over several in-progress branch heads."""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, AbstractSet, Hashable, Iterable, Iterator

from .errors import StructuralInconsistency
from .graph import iter_enclosing_blocks
from .pieces import FlowPiece, Fork, ParallelBlockStart, Segment

if TYPE_CHECKING:
    from .protocols import FlowGraph, ForkPredicate

__all__ = ["least_common_ancestor"]

logger = logging.getLogger(__name__)


class _Walk:
    """One backward walk over enclosing blocks and the piece it extends."""

    __slots__ = ("blocks", "piece")

    def __init__(self, blocks: Iterator[Hashable], piece: Segment):
        self.blocks = blocks
        self.piece = piece


def least_common_ancestor(
    graph: FlowGraph,
    heads: Iterable[Hashable],
    *,
    excluded: AbstractSet[Hashable] = frozenset(),
    is_fork_start: ForkPredicate | None = None,
) -> deque[ParallelBlockStart]:
    """Find the forks that dominate a set of concurrently active heads.

    Every head starts a walk over its enclosing block starts. Walks advance
    one block per round; when a walk reaches a node another walk already
    claimed, the two lineages merge at that node and a Fork is recorded.
    The forks are then arranged by nesting.

    Args:
        graph: Graph to read.
        heads: Branch heads, in caller order. Duplicates are ignored.
        excluded: Nodes the walks may not pass through.
        is_fork_start: Optional predicate every merge point must satisfy.

    Returns:
        Stack of ParallelBlockStart, innermost fork first. The innermost
        entry lists every head of its branches; outer entries list the
        remaining heads (or representatives of other nested forks) that
        are walked after the descended branch. Empty for fewer than two
        heads.

    Raises:
        StructuralInconsistency: If the heads do not converge on a single
            fork tree.
    """
    ordered = list(dict.fromkeys(heads))
    if len(ordered) < 2:
        return deque()

    head_set = frozenset(ordered)
    order = {head: index for index, head in enumerate(ordered)}
    ownership: dict[Hashable, FlowPiece] = {}
    forks: list[Fork] = []
    live: list[_Walk] = []

    for head in ordered:
        segment = Segment([head])
        ownership[head] = segment
        blocks = (
            block
            for block in iter_enclosing_blocks(graph, head, excluded)
            if block not in head_set
        )
        live.append(_Walk(blocks, segment))

    lineages = len(ordered)
    while live and lineages > 1:
        for walk in list(live):
            node = next(walk.blocks, None)
            if node is None:
                live.remove(walk)
                continue

            owner = ownership.get(node)
            if owner is None:
                walk.piece.add(node)
                ownership[node] = walk.piece
                continue
            if owner is walk.piece:
                raise StructuralInconsistency("Walk revisited its own node", [node])

            if is_fork_start is not None and not is_fork_start(node):
                raise StructuralInconsistency(
                    "Branches converge on a node that is not a fork start", [node]
                )

            if isinstance(owner, Fork):
                owner.following.append(walk.piece)
            else:
                fork = owner.split(ownership, node, walk.piece)
                forks.append(fork)
                if fork.following[0] is owner:
                    # The owner's walk continues past the fork on a new root-side piece
                    for other in live:
                        if other.piece is owner:
                            other.piece = Segment(after=fork, leaf=False)
            logger.debug(f"Merged walk into fork at {node!r}")
            live.remove(walk)
            lineages -= 1

    if lineages > 1:
        raise StructuralInconsistency("Heads do not converge on a common fork", ordered)

    return _arrange(forks, order)


def _inner_fork(piece: FlowPiece) -> Fork | None:
    if isinstance(piece, Segment) and not piece.is_leaf:
        if isinstance(piece.after, Fork):
            return piece.after
    return None


def _heads_of(fork: Fork) -> list[Hashable]:
    found: list[Hashable] = []
    for piece in fork.following:
        inner = _inner_fork(piece)
        if inner is not None:
            found.extend(_heads_of(inner))
        elif isinstance(piece, Segment) and piece.head is not None:
            found.append(piece.head)
    return found


def _arrange(forks: list[Fork], order: dict[Hashable, int]) -> deque[ParallelBlockStart]:
    children = {
        id(inner)
        for fork in forks
        for inner in map(_inner_fork, fork.following)
        if inner is not None
    }
    roots = [fork for fork in forks if id(fork) not in children]
    if len(roots) != 1:
        raise StructuralInconsistency(
            "Heads overlap more than one unresolved fork",
            [fork.fork_start for fork in roots],
        )
    return _chain(roots[0], order)


def _chain(fork: Fork | None, order: dict[Hashable, int]) -> deque[ParallelBlockStart]:
    """Build the stack descending from ``fork`` into its first nested fork."""
    stack: deque[ParallelBlockStart] = deque()
    while fork is not None:
        leaves: list[Hashable] = []
        subtrees: list[Fork] = []
        for piece in fork.following:
            inner = _inner_fork(piece)
            if inner is not None:
                subtrees.append(inner)
            elif isinstance(piece, Segment) and piece.head is not None:
                leaves.append(piece.head)

        subtrees.sort(
            key=lambda f: min((order[h] for h in _heads_of(f)), default=len(order))
        )
        leaves.sort(key=order.__getitem__)

        block = ParallelBlockStart(fork.fork_start)
        for inner in subtrees[1:]:
            nested = _chain(inner, order)
            representative = nested[0].unvisited[0]
            block.unvisited.append(representative)
            block.nested[representative] = nested
        block.unvisited.extend(leaves)
        stack.appendleft(block)
        fork = subtrees[0] if subtrees else None
    return stack
