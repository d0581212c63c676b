"""forkscan - Fork/join-aware backward traversal of pipeline run graphs."""

from .core.ancestry import least_common_ancestor
from .core.errors import ForkScanError, StructuralInconsistency, UnknownNodeError
from .core.graph import FlowNode, NodeRole, RunGraph, iter_enclosing_blocks
from .core.pieces import ParallelBlockStart
from .core.protocols import FlowGraph
from .core.scanner import (
    ForkScanner,
    NodeType,
    clear_parallel_start_predicate,
    get_parallel_start_predicate,
    set_parallel_start_predicate,
)
from .visitors import (
    BlockChunkFinder,
    ChunkCollector,
    ChunkFinder,
    FlowChunk,
    LabelledChunkFinder,
    SimpleChunkVisitor,
    StandardChunkVisitor,
    visit_run,
    visit_simple_chunks,
)

__version__ = "0.1.0"

__all__ = [
    # Graph
    "FlowGraph",
    "FlowNode",
    "NodeRole",
    "RunGraph",
    "iter_enclosing_blocks",
    # Scanning
    "ForkScanner",
    "NodeType",
    "ParallelBlockStart",
    "least_common_ancestor",
    "clear_parallel_start_predicate",
    "get_parallel_start_predicate",
    "set_parallel_start_predicate",
    # Visitors
    "BlockChunkFinder",
    "ChunkCollector",
    "ChunkFinder",
    "FlowChunk",
    "LabelledChunkFinder",
    "SimpleChunkVisitor",
    "StandardChunkVisitor",
    "visit_run",
    "visit_simple_chunks",
    # Errors
    "ForkScanError",
    "StructuralInconsistency",
    "UnknownNodeError",
]
