"""Editor data model package."""

from .document import (
    MarkType,
    Mark,
    Node,
    NodeType,
    copy_document,
    empty_document,
    find_node,
    walk,
)
from .selection import Position, ResolvedPosition, ResolvedRange, SelectionRange

__all__ = [
    "Mark",
    "MarkType",
    "Node",
    "NodeType",
    "copy_document",
    "empty_document",
    "find_node",
    "walk",
    "Position",
    "ResolvedPosition",
    "ResolvedRange",
    "SelectionRange",
]
