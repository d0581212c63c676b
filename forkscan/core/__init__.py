"""Core components."""

from .ancestry import least_common_ancestor
from .errors import ForkScanError, StructuralInconsistency, UnknownNodeError
from .graph import FlowNode, NodeRole, RunGraph, iter_enclosing_blocks
from .pieces import FlowPiece, Fork, ParallelBlockStart, Segment
from .protocols import FlowGraph, ForkPredicate
from .scanner import (
    ForkScanner,
    NodeType,
    clear_parallel_start_predicate,
    get_parallel_start_predicate,
    set_parallel_start_predicate,
)

__all__ = [
    "FlowGraph",
    "FlowNode",
    "FlowPiece",
    "Fork",
    "ForkPredicate",
    "ForkScanError",
    "ForkScanner",
    "NodeRole",
    "NodeType",
    "ParallelBlockStart",
    "RunGraph",
    "Segment",
    "StructuralInconsistency",
    "UnknownNodeError",
    "clear_parallel_start_predicate",
    "get_parallel_start_predicate",
    "iter_enclosing_blocks",
    "least_common_ancestor",
    "set_parallel_start_predicate",
]
