"""Selection value types.

A selection is a pair of positions that reference document nodes by id, so
whether a saved selection still resolves is an explicit lookup.
"""

from dataclasses import dataclass
from typing import Optional

from .document import Node


@dataclass(frozen=True)
class Position:
    """
    A caret position.

    Attributes:
        node_id: Id of a text node, a textblock or an atom block
        offset: Characters into a text node or textblock; 0 (before) or
            1 (after) for an atom block
    """

    node_id: str
    offset: int = 0


@dataclass(frozen=True)
class SelectionRange:
    """A selection between an anchor and a focus position."""

    anchor: Position
    focus: Position

    @property
    def collapsed(self) -> bool:
        return self.anchor == self.focus

    @classmethod
    def caret(cls, node_id: str, offset: int = 0) -> "SelectionRange":
        position = Position(node_id, offset)
        return cls(anchor=position, focus=position)


@dataclass
class ResolvedPosition:
    """
    A position resolved against a specific document.

    Attributes:
        path: Child-index path of the block holding the caret
        block: The textblock or atom block holding the caret
        offset: Character offset in a textblock, 0/1 for an atom block
    """

    path: tuple[int, ...]
    block: Node
    offset: int

    @property
    def top_index(self) -> int:
        """Index of the enclosing top-level block."""
        return self.path[0]


@dataclass
class ResolvedRange:
    """A selection resolved against a document, ordered start to end."""

    start: ResolvedPosition
    end: ResolvedPosition
    source: Optional[SelectionRange] = None

    @property
    def collapsed(self) -> bool:
        return self.start.path == self.end.path and self.start.offset == self.end.offset
