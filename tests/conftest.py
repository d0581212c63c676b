"""Shared test fixtures and reference run graphs.

Node ids follow execution order, so for any edge the child id is greater
than the predecessor id.
"""

from dataclasses import dataclass

import pytest

from forkscan import NodeRole, RunGraph, clear_parallel_start_predicate

START = NodeRole.BLOCK_START
END = NodeRole.BLOCK_END


# =============================================================================
# Reference graphs
# =============================================================================


def simple_parallel_graph() -> RunGraph:
    """echo, parallel(branch1: 1 echo, branch2: 2 echos), echo."""
    g = RunGraph()
    g.add(2, role=START)
    g.add(3, 2)
    g.add(4, 3, role=START)
    g.add(6, 4, role=START)
    g.add(7, 4, role=START)
    g.add(8, 6)
    g.add(9, 8, role=END, start=6)
    g.add(10, 7)
    g.add(11, 10)
    g.add(12, 11, role=END, start=7)
    g.add(13, 9, 12, role=END, start=4)
    g.add(14, 13)
    g.add(15, 14, role=END, start=2)
    return g


def nested_parallel_graph() -> RunGraph:
    """Like the simple graph, but branch 2 ends with a nested two-branch parallel."""
    g = RunGraph()
    g.add(2, role=START)
    g.add(3, 2)
    g.add(4, 3, role=START)
    g.add(6, 4, role=START)
    g.add(7, 4, role=START)
    g.add(8, 6)
    g.add(9, 8, role=END, start=6)
    g.add(10, 7)
    g.add(11, 10)
    g.add(12, 11, role=START)
    g.add(14, 12, role=START)
    g.add(15, 12, role=START)
    g.add(16, 14)
    g.add(17, 16, role=END, start=14)
    g.add(18, 15)
    g.add(19, 18)
    g.add(20, 19, role=END, start=15)
    g.add(21, 17, 20, role=END, start=12)
    g.add(22, 21, role=END, start=7)
    g.add(23, 9, 22, role=END, start=4)
    g.add(24, 23)
    g.add(25, 24, role=END, start=2)
    return g


def triple_parallel_graph() -> RunGraph:
    """A stage containing a three-branch parallel with one echo per branch."""
    g = RunGraph()
    g.add(2, role=START)
    g.add(3, 2, label="test")
    g.add(4, 3, role=START)
    g.add(7, 4, role=START)
    g.add(8, 4, role=START)
    g.add(9, 4, role=START)
    g.add(10, 7)
    g.add(11, 10, role=END, start=7)
    g.add(12, 8)
    g.add(13, 12, role=END, start=8)
    g.add(14, 9)
    g.add(15, 14, role=END, start=9)
    g.add(16, 11, 13, 15, role=END, start=4)
    g.add(17, 16, role=END, start=2)
    return g


def empty_branches_graph() -> RunGraph:
    """A parallel whose two branches contain no steps, followed by an echo."""
    g = RunGraph()
    g.add(2, role=START)
    g.add(3, 2, role=START)
    g.add(5, 3, role=START)
    g.add(6, 3, role=START)
    g.add(7, 5, role=END, start=5)
    g.add(8, 6, role=END, start=6)
    g.add(9, 7, 8, role=END, start=3)
    g.add(10, 9)
    g.add(11, 10, role=END, start=2)
    return g


def retry_combos_graph() -> RunGraph:
    """Two branches wrapping their steps in nested blocks of different depth.

    Branch A (start 6) is still open at 20..23, branch B (start 7) at 15..19.
    """
    g = RunGraph()
    g.add(2, role=START)
    g.add(3, 2, label="test")
    g.add(4, 3, role=START)
    g.add(6, 4, role=START)
    g.add(7, 4, role=START)
    g.add(8, 6, role=START)
    g.add(9, 8, role=START)
    g.add(10, 7, role=START)
    g.add(11, 10, role=START)
    g.add(12, 9)
    g.add(13, 11)
    g.add(14, 12)
    g.add(15, 13)
    g.add(16, 15)
    g.add(17, 16, role=END, start=11)
    g.add(18, 17, role=END, start=10)
    g.add(19, 18, role=END, start=7)
    g.add(20, 14)
    g.add(21, 20, role=END, start=9)
    g.add(22, 21, role=END, start=8)
    g.add(23, 22, role=END, start=6)
    g.add(24, 23, 19, role=END, start=4)
    g.add(25, 24, role=END, start=2)
    return g


def twin_nested_graph() -> RunGraph:
    """An outer two-branch fork where each branch holds its own inner fork, all in progress."""
    g = RunGraph()
    g.add(1, role=START)
    g.add(2, 1, role=START)
    g.add(3, 2, role=START)
    g.add(4, 2, role=START)
    g.add(5, 3, role=START)
    g.add(6, 5, role=START)
    g.add(7, 5, role=START)
    g.add(8, 6)
    g.add(9, 7)
    g.add(10, 4, role=START)
    g.add(11, 10, role=START)
    g.add(12, 10, role=START)
    g.add(13, 11)
    g.add(14, 12)
    return g


# =============================================================================
# Helpers
# =============================================================================


def reachable(graph, heads) -> set:
    """Every node reachable backward from ``heads``, heads included."""
    seen = set()
    pending = list(heads)
    while pending:
        node = pending.pop()
        if node in seen:
            continue
        seen.add(node)
        pending.extend(graph.predecessors(node))
    return seen


def scan_all(scanner, heads, excluded=None) -> list:
    """Set up ``scanner`` and return (node, type) pairs in walk order."""
    scanner.setup(heads, excluded)
    steps = []
    while scanner.has_next():
        node = scanner.next()
        steps.append((node, scanner.current_type))
    return steps


@dataclass(frozen=True)
class Call:
    """One recorded visitor callback."""

    kind: str
    nodes: tuple


class CallRecorder:
    """Visitor that records every callback it receives."""

    def __init__(self):
        self.calls: list[Call] = []

    def _record(self, kind: str, *nodes) -> None:
        self.calls.append(Call(kind, nodes))

    def chunk_start(self, start_node, before_chunk):
        self._record("chunk_start", start_node, before_chunk)

    def chunk_end(self, end_node, after_chunk):
        self._record("chunk_end", end_node, after_chunk)

    def parallel_start(self, fork_node, branch_node):
        self._record("parallel_start", fork_node, branch_node)

    def parallel_end(self, fork_node, join_node):
        self._record("parallel_end", fork_node, join_node)

    def parallel_branch_start(self, fork_node, branch_start):
        self._record("parallel_branch_start", fork_node, branch_start)

    def parallel_branch_end(self, fork_node, branch_end):
        self._record("parallel_branch_end", fork_node, branch_end)

    def atom_node(self, before, at_node, after):
        self._record("atom_node", before, at_node, after)

    def of_kind(self, *kinds: str) -> list[Call]:
        return [call for call in self.calls if call.kind in kinds]

    def parallel_calls(self) -> list[Call]:
        return [call for call in self.calls if call.kind.startswith("parallel")]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def simple_graph():
    return simple_parallel_graph()


@pytest.fixture
def nested_graph():
    return nested_parallel_graph()


@pytest.fixture
def triple_graph():
    return triple_parallel_graph()


@pytest.fixture
def recorder():
    return CallRecorder()


@pytest.fixture(autouse=True)
def clean_predicate():
    """Ensure no test leaks a process-wide fork predicate."""
    clear_parallel_start_predicate()
    yield
    clear_parallel_start_predicate()
