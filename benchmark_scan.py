"""Benchmark to measure scan throughput on large run graphs.

This exercises:
1. Full backward walks over wide, nested parallels
2. Multi-head resolution for runs with many branches in progress
3. Visitor dispatch overhead on top of the bare walk
"""

import time

import forkscan as fs


def build_run(branches: int, depth: int, steps: int, finished: bool = True) -> fs.RunGraph:
    """Nest ``depth`` parallels, each with ``branches`` branches of ``steps`` nodes."""
    graph = fs.RunGraph()
    counter = iter(range(1, 10_000_000))
    root = next(counter)
    graph.add(root, role=fs.NodeRole.BLOCK_START)

    def add_parallel(parent: int, level: int) -> list[int]:
        fork = next(counter)
        graph.add(fork, parent, role=fs.NodeRole.BLOCK_START)
        tails = []
        for _ in range(branches):
            branch = next(counter)
            graph.add(branch, fork, role=fs.NodeRole.BLOCK_START)
            last = branch
            for _ in range(steps):
                node = next(counter)
                graph.add(node, last)
                last = node
            if level < depth:
                inner = add_parallel(last, level + 1)
                if len(inner) != 1:
                    tails.extend(inner)
                    continue
                last = inner[0]
            if finished:
                end = next(counter)
                graph.add(end, last, role=fs.NodeRole.BLOCK_END, start=branch)
                last = end
            tails.append(last)
        if not finished:
            return tails
        join = next(counter)
        graph.add(join, *tails, role=fs.NodeRole.BLOCK_END, start=fork)
        return [join]

    tails = add_parallel(root, 1)
    if finished:
        graph.add(next(counter), tails[0], role=fs.NodeRole.BLOCK_END, start=root)
    return graph


class _CountingVisitor(fs.StandardChunkVisitor):
    def __init__(self) -> None:
        super().__init__()
        self.count = 0

    def atom_node(self, before, at_node, after) -> None:
        self.count += 1


def _time(label: str, fn, iterations: int) -> float:
    start = time.perf_counter()
    for _ in range(iterations):
        fn()
    duration = time.perf_counter() - start
    print(f"✓ {iterations:,} iterations: {label}")
    print(f"  Total time: {duration:.4f}s")
    print(f"  Avg per iteration: {duration / iterations * 1000:.4f}ms")
    print()
    return duration


def benchmark_scan() -> None:
    """Benchmark scanner and dispatcher throughput."""
    print("=" * 60)
    print("SCAN THROUGHPUT BENCHMARK")
    print("=" * 60)
    print()

    finished = build_run(branches=8, depth=3, steps=10)
    running = build_run(branches=8, depth=3, steps=10, finished=False)
    scanner = fs.ForkScanner(finished)
    running_scanner = fs.ForkScanner(running)
    print(f"Finished run: {len(finished):,} nodes")
    print(f"Running run: {len(running):,} nodes, {len(running.heads())} heads")
    print()

    iterations = 50
    walk = _time(
        "full walk of finished run",
        lambda: scanner.filtered_nodes(finished.heads(), lambda node: True),
        iterations,
    )
    _time(
        "walk from in-progress heads",
        lambda: running_scanner.filtered_nodes(running.heads(), lambda node: True),
        iterations,
    )

    finder = fs.BlockChunkFinder(finished)

    def visit() -> None:
        scanner.setup(finished.heads())
        scanner.visit_simple_chunks(_CountingVisitor(), finder)

    dispatch = _time("visitor dispatch", visit, iterations)

    print("SUMMARY")
    print("-" * 60)
    print(f"Per-node walk cost: {walk / iterations / len(finished) * 1e6:.2f}us")
    print(f"Dispatch overhead: {(dispatch - walk) / walk * 100:.1f}%")


if __name__ == "__main__":
    benchmark_scan()
