"""Core error types for forkscan."""

from __future__ import annotations

from typing import Hashable, Iterable


class ForkScanError(Exception):
    """Base exception for all forkscan errors."""

    pass


class UnknownNodeError(ForkScanError, LookupError):
    """Raised when a caller references a node identity absent from the graph.

    Attributes:
        node_id: The identity that could not be found.
    """

    def __init__(self, node_id: Hashable):
        self.node_id = node_id
        super().__init__(f"Unknown flow node '{node_id}'")


class StructuralInconsistency(ForkScanError):
    """Raised when branches do not converge on a single recognizable fork start.

    The scanner recovers from this locally by treating the affected nodes
    as plain nodes, so it only escapes from the lower-level building blocks
    (``Segment.split`` and ``least_common_ancestor``).

    Attributes:
        node_ids: Identities involved in the inconsistency.
        reason: Human readable description.
    """

    def __init__(self, reason: str, node_ids: Iterable[Hashable] = ()):
        self.reason = reason
        self.node_ids: tuple[Hashable, ...] = tuple(node_ids)
        involved = ", ".join(repr(n) for n in self.node_ids)
        message = f"{reason} (nodes: {involved})" if involved else reason
        super().__init__(message)
