"""Push-style dispatch of a scan into visitor callbacks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Hashable, Iterable

from ..core.scanner import ForkScanner, NodeType

if TYPE_CHECKING:
    from ..core.protocols import FlowGraph, ForkPredicate
    from .protocols import ChunkFinder, SimpleChunkVisitor

__all__ = ["visit_simple_chunks", "visit_run"]


def visit_simple_chunks(
    scanner: ForkScanner,
    visitor: SimpleChunkVisitor,
    finder: ChunkFinder,
) -> None:
    """Drive ``scanner`` to exhaustion, emitting callbacks to ``visitor``.

    The scanner must already be set up. Each node yields chunk callbacks
    from ``finder`` (or an atom callback when it is not a boundary),
    followed by at most one parallel-structure callback.

    Args:
        scanner: A scanner prepared with ``setup``.
        visitor: Receiver of the callbacks.
        finder: Chunk-boundary policy.
    """
    if finder.start_inside_chunk and scanner.has_next():
        visitor.chunk_end(scanner.peek(), None)

    # Most recent branch start walked, per fork
    branch_starts: dict[Hashable, Hashable] = {}
    while scanner.has_next():
        after = scanner.current
        node = scanner.next()
        before = scanner.peek()

        boundary = False
        if finder.is_chunk_start(node, after):
            visitor.chunk_start(node, before)
            boundary = True
        if finder.is_chunk_end(node, after):
            visitor.chunk_end(node, after)
            boundary = True
        if not boundary:
            visitor.atom_node(before, node, after)

        _emit_parallel(scanner, visitor, node, branch_starts)


def _emit_parallel(
    scanner: ForkScanner,
    visitor: SimpleChunkVisitor,
    node: Hashable,
    branch_starts: dict[Hashable, Hashable],
) -> None:
    node_type = scanner.current_type
    fork = scanner.current_fork_start
    if node_type is NodeType.PARALLEL_END:
        visitor.parallel_end(fork, node)
    elif node_type is NodeType.PARALLEL_BRANCH_END:
        visitor.parallel_branch_end(fork, node)
    elif node_type is NodeType.PARALLEL_BRANCH_START:
        branch_starts[fork] = node
        visitor.parallel_branch_start(fork, node)
    elif node_type is NodeType.PARALLEL_START:
        visitor.parallel_start(node, branch_starts.pop(node, None))


def visit_run(
    graph: FlowGraph,
    heads: Hashable | Iterable[Hashable],
    visitor: SimpleChunkVisitor,
    finder: ChunkFinder,
    *,
    excluded: Iterable[Hashable] | None = None,
    is_fork_start: ForkPredicate | None = None,
) -> bool:
    """Scan ``graph`` from ``heads`` with a fresh scanner and visit every node.

    Returns:
        False if there was nothing to scan, in which case no callbacks fire.
    """
    scanner = ForkScanner(graph, is_fork_start=is_fork_start)
    if not scanner.setup(heads, excluded):
        return False
    visit_simple_chunks(scanner, visitor, finder)
    return True
