"""Visitor protocol, chunk policies and dispatch."""

from .dispatch import visit_run, visit_simple_chunks
from .finders import BlockChunkFinder, LabelledChunkFinder
from .protocols import ChunkFinder, SimpleChunkVisitor
from .standard import ChunkCollector, FlowChunk, StandardChunkVisitor

__all__ = [
    "BlockChunkFinder",
    "ChunkCollector",
    "ChunkFinder",
    "FlowChunk",
    "LabelledChunkFinder",
    "SimpleChunkVisitor",
    "StandardChunkVisitor",
    "visit_run",
    "visit_simple_chunks",
]
