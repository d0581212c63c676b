"""
Minimal forkscan Demo
=====================

Demonstrates the core primitives:
1. Walking a finished run backward with node classification
2. Resuming from branches that are still running
3. Collecting stage chunks with a visitor

Run with: ``python examples/minimal_demo.py``
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from forkscan import (
    BlockChunkFinder,
    ChunkCollector,
    ForkScanner,
    LabelledChunkFinder,
    NodeRole,
    RunGraph,
)

START = NodeRole.BLOCK_START
END = NodeRole.BLOCK_END


# -----------------------------------------------------------------------------
# Run graph
# -----------------------------------------------------------------------------


def build_run(finished: bool = True) -> RunGraph:
    """A build stage followed by a test stage running two suites in parallel."""
    graph = RunGraph()
    graph.add("run", role=START)
    graph.add("checkout", "run", label="build")
    graph.add("compile", "checkout")
    graph.add("parallel", "compile", role=START, label="test")
    graph.add("unit", "parallel", role=START)
    graph.add("integration", "parallel", role=START)
    graph.add("unit-tests", "unit")
    graph.add("integration-db", "integration")
    graph.add("integration-api", "integration-db")
    if finished:
        graph.add("unit-end", "unit-tests", role=END, start="unit")
        graph.add("integration-end", "integration-api", role=END, start="integration")
        graph.add("join", "unit-end", "integration-end", role=END, start="parallel")
        graph.add("publish", "join", label="publish")
        graph.add("run-end", "publish", role=END, start="run")
    return graph


# -----------------------------------------------------------------------------
# Demo 1: Finished run
# -----------------------------------------------------------------------------


def finished_run_demo() -> None:
    print("\n" + "=" * 72)
    print("1) Walking a finished run")
    print("=" * 72)

    graph = build_run()
    scanner = ForkScanner(graph)
    scanner.setup(graph.heads())
    for node in scanner:
        print(f"  {node:18s} {scanner.current_type.value}")


# -----------------------------------------------------------------------------
# Demo 2: In-progress branches
# -----------------------------------------------------------------------------


def in_progress_demo() -> None:
    print("\n" + "=" * 72)
    print("2) Resuming from running branches")
    print("=" * 72)

    graph = build_run(finished=False)
    scanner = ForkScanner(graph)
    scanner.setup(graph.heads())

    open_forks = [block.fork_start for block in scanner.parallel_block_starts]
    print(f"Heads: {list(scanner.heads)}, open forks: {open_forks}")
    print(f"Walk: {' <- '.join(str(node) for node in scanner)}")


# -----------------------------------------------------------------------------
# Demo 3: Stage chunks
# -----------------------------------------------------------------------------


def stage_chunks_demo() -> None:
    print("\n" + "=" * 72)
    print("3) Collecting stage chunks")
    print("=" * 72)

    graph = build_run()
    collector = ChunkCollector()
    scanner = ForkScanner(graph)
    scanner.setup(graph.heads())
    scanner.visit_simple_chunks(collector, LabelledChunkFinder(graph))

    for chunk in reversed(collector.chunks):
        print(
            f"  {graph.label(chunk.first_node):8s} "
            f"{chunk.first_node} .. {chunk.last_node}"
        )

    blocks = ChunkCollector()
    scanner.setup(graph.heads())
    scanner.visit_simple_chunks(blocks, BlockChunkFinder(graph))
    print(f"Block chunks: {len(blocks.chunks)}")


# -----------------------------------------------------------------------------
# Entrypoint
# -----------------------------------------------------------------------------


if __name__ == "__main__":
    finished_run_demo()
    in_progress_demo()
    stage_chunks_demo()
