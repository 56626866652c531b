"""Editable document tree for the article body editor.

The document is an owned tree of typed nodes using the ProseMirror/TipTap
vocabulary (doc, paragraph, heading, bulletList, text, hardBreak, ...).
Every node carries a unique id so that saved selections can reference it and
detect when it no longer exists.

Textblocks (paragraph, heading, blockquote, listItem, tableHeader, tableCell)
hold inline content only: text nodes with marks and hard breaks. Lists are
flat. Rich blocks (image, table, embeds, prompt boxes) keep their parameters
in attrs.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import uuid4


class NodeType(str, Enum):
    """Node types of the editable document."""

    DOC = "doc"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    BULLET_LIST = "bulletList"
    ORDERED_LIST = "orderedList"
    LIST_ITEM = "listItem"
    HORIZONTAL_RULE = "horizontalRule"
    IMAGE = "image"
    TABLE = "table"
    TABLE_ROW = "tableRow"
    TABLE_HEADER = "tableHeader"
    TABLE_CELL = "tableCell"
    VIDEO_EMBED = "videoEmbed"
    PROMPT_BOX = "promptBox"
    SOCIAL_EMBED = "socialEmbed"
    HTML_BLOCK = "htmlBlock"
    TEXT = "text"
    HARD_BREAK = "hardBreak"


class MarkType(str, Enum):
    """Inline formatting marks."""

    BOLD = "bold"
    ITALIC = "italic"
    LINK = "link"


TEXTBLOCK_TYPES = frozenset({
    NodeType.PARAGRAPH,
    NodeType.HEADING,
    NodeType.BLOCKQUOTE,
    NodeType.LIST_ITEM,
    NodeType.TABLE_HEADER,
    NodeType.TABLE_CELL,
})

LIST_TYPES = frozenset({NodeType.BULLET_LIST, NodeType.ORDERED_LIST})

# Blocks without editable inline content; a caret sits before or after them
ATOM_TYPES = frozenset({
    NodeType.HORIZONTAL_RULE,
    NodeType.IMAGE,
    NodeType.TABLE,
    NodeType.VIDEO_EMBED,
    NodeType.PROMPT_BOX,
    NodeType.SOCIAL_EMBED,
    NodeType.HTML_BLOCK,
})

INLINE_TYPES = frozenset({NodeType.TEXT, NodeType.HARD_BREAK})


def new_node_id() -> str:
    """Generate a fresh node id."""
    return uuid4().hex


@dataclass
class Mark:
    """A formatting mark on a text node."""

    type: MarkType
    attrs: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Mark":
        return cls(type=MarkType(data["type"]), attrs=dict(data.get("attrs") or {}))


@dataclass
class Node:
    """A node of the editable document."""

    type: NodeType
    attrs: dict[str, Any] = field(default_factory=dict)
    content: list["Node"] = field(default_factory=list)
    text: str = ""
    marks: list[Mark] = field(default_factory=list)
    id: str = field(default_factory=new_node_id)

    @property
    def is_textblock(self) -> bool:
        return self.type in TEXTBLOCK_TYPES

    @property
    def is_atom(self) -> bool:
        return self.type in ATOM_TYPES

    @property
    def is_inline(self) -> bool:
        return self.type in INLINE_TYPES

    def mark(self, mark_type: MarkType) -> Optional[Mark]:
        """Return the mark of the given type on this node, if any."""
        for mark in self.marks:
            if mark.type == mark_type:
                return mark
        return None

    def to_json(self, include_ids: bool = True) -> dict[str, Any]:
        """
        Serialize to ProseMirror-style JSON.

        Args:
            include_ids: Whether to include node ids. Ids are omitted when
                comparing documents structurally.

        Returns:
            JSON-compatible dict
        """
        data: dict[str, Any] = {"type": self.type.value}
        if include_ids:
            data["id"] = self.id
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        if self.type == NodeType.TEXT:
            data["text"] = self.text
            if self.marks:
                data["marks"] = [m.to_json() for m in self.marks]
        elif self.content:
            data["content"] = [child.to_json(include_ids) for child in self.content]
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Node":
        """
        Build a node tree from ProseMirror-style JSON.

        Unknown node types raise ValueError. Missing ids are generated.
        Block children of a textblock (TipTap's listItem > paragraph or
        blockquote > paragraph) are flattened into its inline content.
        """
        node_type = NodeType(data.get("type", ""))
        content = [cls.from_json(child) for child in data.get("content") or []]
        if node_type in TEXTBLOCK_TYPES:
            content = flatten_inline(content)
        return cls(
            type=node_type,
            attrs=dict(data.get("attrs") or {}),
            content=content,
            text=data.get("text", "") if node_type == NodeType.TEXT else "",
            marks=[Mark.from_json(m) for m in data.get("marks") or []],
            id=data.get("id") or new_node_id(),
        )


# -- Constructors ---------------------------------------------------------------


def doc(*content: Node) -> Node:
    return Node(NodeType.DOC, content=list(content))


def text(value: str, marks: Optional[list[Mark]] = None) -> Node:
    return Node(NodeType.TEXT, text=value, marks=list(marks or []))


def hard_break() -> Node:
    return Node(NodeType.HARD_BREAK)


def paragraph(*content: Node) -> Node:
    return Node(NodeType.PARAGRAPH, content=list(content))


def heading(level: int, *content: Node) -> Node:
    return Node(NodeType.HEADING, attrs={"level": level}, content=list(content))


def empty_document() -> Node:
    """A document holding a single empty paragraph."""
    return doc(paragraph())


def copy_document(document: Node) -> Node:
    """Deep copy a document, keeping node ids."""
    return copy.deepcopy(document)


# -- Traversal ------------------------------------------------------------------


def walk(node: Node, path: tuple[int, ...] = ()) -> Iterator[tuple[Node, tuple[int, ...]]]:
    """Yield (node, path) pairs in document order, root first."""
    yield node, path
    for index, child in enumerate(node.content):
        yield from walk(child, path + (index,))


def find_node(document: Node, node_id: str) -> Optional[tuple[Node, tuple[int, ...]]]:
    """Find a node by id. Returns (node, path) or None."""
    for node, path in walk(document):
        if node.id == node_id:
            return node, path
    return None


def node_at(document: Node, path: tuple[int, ...]) -> Node:
    """Return the node at a child-index path."""
    node = document
    for index in path:
        node = node.content[index]
    return node


def textblocks(document: Node) -> list[tuple[Node, tuple[int, ...]]]:
    """All textblocks in document order with their paths."""
    return [(node, path) for node, path in walk(document) if node.is_textblock]


def inline_length(node: Node) -> int:
    """Length of an inline node in caret positions."""
    if node.type == NodeType.TEXT:
        return len(node.text)
    if node.type == NodeType.HARD_BREAK:
        return 1
    return 0


def block_length(block: Node) -> int:
    """Number of caret positions across a textblock's inline content."""
    return sum(inline_length(child) for child in block.content)


def inline_text(block: Node, hard_break: str = "\n") -> str:
    """Visible text of a textblock."""
    parts: list[str] = []
    for child in block.content:
        if child.type == NodeType.TEXT:
            parts.append(child.text)
        elif child.type == NodeType.HARD_BREAK:
            parts.append(hard_break)
    return "".join(parts)


def is_empty_block(block: Node) -> bool:
    """True for a textblock with no visible text."""
    return block.is_textblock and not inline_text(block).strip()


def marks_equal(a: list[Mark], b: list[Mark]) -> bool:
    key_a = sorted((m.type.value, sorted(m.attrs.items())) for m in a)
    key_b = sorted((m.type.value, sorted(m.attrs.items())) for m in b)
    return key_a == key_b


def normalize_inline(content: list[Node]) -> list[Node]:
    """Merge adjacent text nodes with equal marks and drop empty text nodes."""
    result: list[Node] = []
    for node in content:
        if node.type == NodeType.TEXT:
            if not node.text:
                continue
            previous = result[-1] if result else None
            if (
                previous is not None
                and previous.type == NodeType.TEXT
                and marks_equal(previous.marks, node.marks)
            ):
                previous.text += node.text
                continue
        result.append(node)
    return result


def flatten_inline(content: list[Node]) -> list[Node]:
    """
    Reduce mixed inline and block children to inline content.

    Each nested block contributes its own flattened inline content; the pieces
    are joined with hard breaks. Blocks without text, such as images, are dropped.
    """
    pieces: list[list[Node]] = []
    run: list[Node] = []
    for node in content:
        if node.is_inline:
            run.append(node)
            continue
        if run:
            pieces.append(run)
            run = []
        inner = flatten_inline(node.content)
        if inner:
            pieces.append(inner)
    if run:
        pieces.append(run)

    result: list[Node] = []
    for index, piece in enumerate(pieces):
        if index:
            result.append(Node(NodeType.HARD_BREAK))
        result.extend(piece)
    return result
