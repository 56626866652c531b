"""Tree operations on the editable document.

Every operation works on a copy of the document and returns the new document
together with the caret (or selection) that follows the edit. The input
document is never mutated, so a failed operation leaves nothing half-applied.

Positions are resolved by node id. A position whose node is gone raises
SelectionLost; offsets beyond the current text are clamped.
"""

import copy
from dataclasses import dataclass
from typing import Any, Optional

from ..models.document import (
    LIST_TYPES,
    Mark,
    MarkType,
    Node,
    NodeType,
    block_length,
    copy_document,
    find_node,
    hard_break,
    inline_length,
    is_empty_block,
    node_at,
    normalize_inline,
    paragraph,
    text,
    textblocks,
)
from ..models.selection import Position, ResolvedPosition, ResolvedRange, SelectionRange
from ..schemas.editor import FormatCommand
from .content_converter import NEW_TAB_REL
from .editor_errors import SelectionLost
from .html_renderer import link_key


# Top-level textblocks that a block fragment can split
SPLITTABLE_TYPES = frozenset({NodeType.PARAGRAPH, NodeType.HEADING, NodeType.BLOCKQUOTE})


@dataclass(frozen=True)
class LinkInfo:
    """An existing link run, as reported to the link dialog."""

    node_id: str
    href: str
    text: str
    open_in_new_tab: bool


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


# -- Positions ------------------------------------------------------------------


def _end_offset(block: Node) -> int:
    return 1 if block.is_atom else block_length(block)


def _is_leaf_block(node: Node) -> bool:
    return node.is_textblock or node.is_atom


def _first_leaf(node: Node, path: tuple[int, ...]) -> tuple[Node, tuple[int, ...]]:
    while not _is_leaf_block(node) and node.content:
        node = node.content[0]
        path = path + (0,)
    return node, path


def _last_leaf(node: Node, path: tuple[int, ...]) -> tuple[Node, tuple[int, ...]]:
    while not _is_leaf_block(node) and node.content:
        path = path + (len(node.content) - 1,)
        node = node.content[-1]
    return node, path


def resolve_position(document: Node, position: Position) -> ResolvedPosition:
    """
    Resolve a position against a document.

    Args:
        document: Document to resolve against
        position: Position referencing a node by id

    Returns:
        ResolvedPosition on a textblock or atom block

    Raises:
        SelectionLost: If the referenced node is not in the document
    """
    found = find_node(document, position.node_id)
    if found is None:
        raise SelectionLost(f"Node {position.node_id} is no longer in the document")
    node, path = found

    if node.is_inline:
        block_path = path[:-1]
        block = node_at(document, block_path)
        before = sum(inline_length(child) for child in block.content[: path[-1]])
        offset = before + _clamp(position.offset, 0, inline_length(node))
        return ResolvedPosition(block_path, block, offset)

    if node.is_textblock:
        return ResolvedPosition(path, node, _clamp(position.offset, 0, block_length(node)))

    if node.is_atom:
        return ResolvedPosition(path, node, _clamp(position.offset, 0, 1))

    # Containers resolve to the start of their first or the end of their last block
    if position.offset <= 0:
        leaf, leaf_path = _first_leaf(node, path)
        return ResolvedPosition(leaf_path, leaf, 0)
    leaf, leaf_path = _last_leaf(node, path)
    return ResolvedPosition(leaf_path, leaf, _end_offset(leaf))


def resolve_range(document: Node, selection: SelectionRange) -> ResolvedRange:
    """Resolve a selection, ordering its ends in document order."""
    start = resolve_position(document, selection.anchor)
    end = resolve_position(document, selection.focus)
    if (end.path, end.offset) < (start.path, start.offset):
        start, end = end, start
    return ResolvedRange(start=start, end=end, source=selection)


def end_position(document: Node) -> Position:
    """Caret position at the very end of the document."""
    leaf, _ = _last_leaf(document, ())
    return Position(leaf.id, _end_offset(leaf))


def end_selection(document: Node) -> SelectionRange:
    position = end_position(document)
    return SelectionRange(position, position)


def to_position(resolved: ResolvedPosition) -> Position:
    return Position(resolved.block.id, resolved.offset)


# -- Inline helpers ---------------------------------------------------------------


def split_inline(content: list[Node], offset: int) -> tuple[list[Node], list[Node]]:
    """
    Split inline content at a character offset.

    A text node straddling the offset is cut in two; the left half keeps the
    node id. The input list and its nodes are not modified.
    """
    left: list[Node] = []
    right: list[Node] = []
    pos = 0
    for node in content:
        length = inline_length(node)
        if pos + length <= offset:
            left.append(node)
        elif pos >= offset:
            right.append(node)
        else:
            cut = offset - pos
            left.append(
                Node(NodeType.TEXT, text=node.text[:cut], marks=copy.deepcopy(node.marks), id=node.id)
            )
            right.append(text(node.text[cut:], copy.deepcopy(node.marks)))
        pos += length
    return left, right


def _insert_into_block(block: Node, offset: int, nodes: list[Node]) -> int:
    left, right = split_inline(block.content, offset)
    block.content = normalize_inline(left + nodes + right)
    return offset + sum(inline_length(node) for node in nodes)


def _delete_in_block(block: Node, start: int, end: int) -> None:
    left, rest = split_inline(block.content, start)
    _, right = split_inline(rest, end - start)
    block.content = normalize_inline(left + right)


def _text_nodes(value: str, marks: list[Mark]) -> list[Node]:
    """Text nodes for a string, newlines becoming hard breaks."""
    nodes: list[Node] = []
    lines = value.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    for i, line in enumerate(lines):
        if i:
            nodes.append(hard_break())
        if line:
            nodes.append(text(line, copy.deepcopy(marks)))
    return nodes


def _marks_before(block: Node, offset: int) -> list[Mark]:
    """Marks carried by the character before the caret, links excluded."""
    pos = 0
    for child in block.content:
        length = inline_length(child)
        if pos < offset <= pos + length:
            if child.type != NodeType.TEXT:
                return []
            return [copy.deepcopy(m) for m in child.marks if m.type != MarkType.LINK]
        pos += length
    return []


def _segments(document: Node, rng: ResolvedRange) -> list[tuple[Node, int, int]]:
    """Textblocks touched by a range with the covered offsets in each."""
    segments: list[tuple[Node, int, int]] = []
    for block, path in textblocks(document):
        if path < rng.start.path or path > rng.end.path:
            continue
        start = rng.start.offset if path == rng.start.path else 0
        end = rng.end.offset if path == rng.end.path else block_length(block)
        segments.append((block, start, end))
    return segments


def _delete_range(document: Node, rng: ResolvedRange) -> ResolvedPosition:
    """Delete the selected content in place. Returns the collapsed caret."""
    start, end = rng.start, rng.end
    if rng.collapsed:
        return start

    if start.path == end.path:
        if start.block.is_textblock:
            _delete_in_block(start.block, start.offset, end.offset)
        return start

    if start.block.is_textblock:
        _delete_in_block(start.block, start.offset, block_length(start.block))
    if end.block.is_textblock:
        _delete_in_block(end.block, 0, end.offset)

    if start.path[:-1] == end.path[:-1]:
        container = node_at(document, start.path[:-1])
        first, last = start.path[-1], end.path[-1]
        if start.block.is_textblock and end.block.is_textblock:
            start.block.content = normalize_inline(start.block.content + end.block.content)
            del container.content[first + 1 : last + 1]
        else:
            del container.content[first + 1 : last]
    elif start.top_index < end.top_index:
        del document.content[start.top_index + 1 : end.top_index]
    return start


def _editable_block(document: Node, at: ResolvedPosition) -> tuple[Node, int]:
    """Textblock to type into; a caret on an atom gets a fresh paragraph beside it."""
    if at.block.is_textblock:
        return at.block, at.offset
    holder = paragraph()
    index = at.top_index if at.offset == 0 else at.top_index + 1
    document.content.insert(index, holder)
    return holder, 0


# -- Insertion --------------------------------------------------------------------


def insert_blocks(
    document: Node,
    selection: Optional[SelectionRange],
    fragment: list[Node],
) -> tuple[Node, Position]:
    """
    Insert block nodes at a selection.

    A caret inside a top-level paragraph, heading or blockquote splits it (an
    empty paragraph is replaced, offset 0 inserts before, the end inserts
    after). Anywhere else the fragment goes after the enclosing top-level
    block, or before an atom when the caret sits in front of it. When the
    fragment ends the document an empty paragraph is appended so the caret
    has somewhere to go.

    Args:
        document: Current document (not modified)
        selection: Where to insert; None inserts at the end
        fragment: Block nodes to insert

    Returns:
        (new document, caret after the fragment)

    Raises:
        SelectionLost: If the selection no longer resolves
    """
    result = copy_document(document)
    if selection is None:
        selection = end_selection(result)
    at = _delete_range(result, resolve_range(result, selection))
    index = at.top_index
    top = result.content[index]

    if len(at.path) == 1 and top.type in SPLITTABLE_TYPES:
        if top.type == NodeType.PARAGRAPH and is_empty_block(top):
            result.content[index : index + 1] = fragment
            insert_at = index
        elif at.offset == 0:
            result.content[index:index] = fragment
            insert_at = index
        elif at.offset >= block_length(top):
            result.content[index + 1 : index + 1] = fragment
            insert_at = index + 1
        else:
            left, right = split_inline(top.content, at.offset)
            top.content = left
            tail = Node(top.type, attrs=dict(top.attrs), content=right)
            result.content[index + 1 : index + 1] = fragment + [tail]
            insert_at = index + 1
    elif len(at.path) == 1 and top.is_atom and at.offset == 0:
        result.content[index:index] = fragment
        insert_at = index
    else:
        result.content[index + 1 : index + 1] = fragment
        insert_at = index + 1

    after = insert_at + len(fragment)
    if after == len(result.content):
        result.content.append(paragraph())

    following = result.content[after]
    if following.is_textblock:
        return result, Position(following.id, 0)
    return result, Position(fragment[-1].id, 1)


def insert_inline(
    document: Node,
    selection: Optional[SelectionRange],
    nodes: list[Node],
) -> tuple[Node, Position]:
    """Insert inline nodes at a selection, replacing selected content."""
    result = copy_document(document)
    if selection is None:
        selection = end_selection(result)
    at = _delete_range(result, resolve_range(result, selection))
    block, offset = _editable_block(result, at)
    end = _insert_into_block(block, offset, nodes)
    return result, Position(block.id, end)


# -- Links ------------------------------------------------------------------------


def link_attrs(url: str, open_in_new_tab: bool) -> dict[str, Any]:
    attrs: dict[str, Any] = {"href": url}
    if open_in_new_tab:
        attrs["target"] = "_blank"
        attrs["rel"] = NEW_TAB_REL
    return attrs


def _set_link(node: Node, attrs: Optional[dict[str, Any]]) -> None:
    node.marks = [m for m in node.marks if m.type != MarkType.LINK]
    if attrs is not None:
        node.marks.append(Mark(MarkType.LINK, dict(attrs)))


def _link_run(block: Node, index: int) -> tuple[int, int]:
    """Slice bounds of the link run containing the inline node at index."""
    key = link_key(block.content[index])
    start = index
    while start > 0 and link_key(block.content[start - 1]) == key:
        start -= 1
    end = index + 1
    while end < len(block.content) and link_key(block.content[end]) == key:
        end += 1
    return start, end


def _node_index_at(block: Node, offset: int) -> Optional[int]:
    """Index of the inline node holding the character before the offset."""
    pos = 0
    for index, child in enumerate(block.content):
        length = inline_length(child)
        if offset <= pos + length and (offset > pos or pos == 0):
            return index
        pos += length
    return None


def _find_link_node(document: Node, node_id: str) -> tuple[Node, int]:
    found = find_node(document, node_id)
    if found is None or link_key(found[0]) is None:
        raise SelectionLost(f"Link node {node_id} is no longer in the document")
    _, path = found
    return node_at(document, path[:-1]), path[-1]


def find_link_at(document: Node, selection: SelectionRange) -> Optional[LinkInfo]:
    """
    Find the link under a selection.

    Returns:
        LinkInfo for the link run at the selection start, or None
    """
    rng = resolve_range(document, selection)
    block = rng.start.block
    if not block.is_textblock:
        return None
    offset = rng.start.offset + (0 if rng.collapsed else 1)
    index = _node_index_at(block, offset)
    if index is None:
        return None
    key = link_key(block.content[index])
    if key is None:
        return None
    start, end = _link_run(block, index)
    run = block.content[start:end]
    return LinkInfo(
        node_id=run[0].id,
        href=key[0],
        text="".join(node.text for node in run),
        open_in_new_tab=key[1] == "_blank",
    )


def apply_link(
    document: Node,
    selection: Optional[SelectionRange],
    url: str,
    link_text: str = "",
    open_in_new_tab: bool = False,
) -> tuple[Node, Position]:
    """
    Create a link at a selection.

    A non-collapsed range inside one textblock is wrapped in the link mark.
    Otherwise the link text (or the URL when no text is given) is inserted
    as linked text at the caret.
    """
    attrs = link_attrs(url, open_in_new_tab)
    if selection is not None:
        result = copy_document(document)
        rng = resolve_range(result, selection)
        if not rng.collapsed and rng.start.path == rng.end.path and rng.start.block.is_textblock:
            block = rng.start.block
            left, rest = split_inline(block.content, rng.start.offset)
            middle, right = split_inline(rest, rng.end.offset - rng.start.offset)
            for node in middle:
                if node.type == NodeType.TEXT:
                    _set_link(node, attrs)
            block.content = normalize_inline(left + middle + right)
            return result, Position(block.id, rng.end.offset)
        if not rng.collapsed:
            caret = to_position(rng.end)
            selection = SelectionRange(caret, caret)

    return insert_inline(document, selection, [text(link_text or url, [Mark(MarkType.LINK, attrs)])])


def edit_link(
    document: Node,
    node_id: str,
    url: str,
    link_text: str = "",
    open_in_new_tab: bool = False,
) -> tuple[Node, Position]:
    """
    Rewrite an existing link run in place.

    Args:
        node_id: Id of any text node in the link run

    Raises:
        SelectionLost: If the link is no longer in the document
    """
    result = copy_document(document)
    block, index = _find_link_node(result, node_id)
    start, end = _link_run(block, index)
    run = block.content[start:end]
    attrs = link_attrs(url, open_in_new_tab)
    for node in run:
        _set_link(node, attrs)

    if link_text and link_text != "".join(node.text for node in run):
        first = run[0]
        run = [Node(NodeType.TEXT, text=link_text, marks=copy.deepcopy(first.marks), id=first.id)]

    before = sum(inline_length(node) for node in block.content[:start])
    offset = before + sum(inline_length(node) for node in run)
    block.content = normalize_inline(block.content[:start] + run + block.content[end:])
    return result, Position(block.id, offset)


def remove_link(document: Node, node_id: str) -> tuple[Node, Position]:
    """Turn a link run back into plain text."""
    result = copy_document(document)
    block, index = _find_link_node(result, node_id)
    start, end = _link_run(block, index)
    for node in block.content[start:end]:
        _set_link(node, None)
    offset = sum(inline_length(node) for node in block.content[:end])
    block.content = normalize_inline(block.content)
    return result, Position(block.id, offset)


# -- Formatting -------------------------------------------------------------------


def apply_format(
    document: Node,
    selection: Optional[SelectionRange],
    command: FormatCommand,
    level: Optional[int] = None,
) -> tuple[Node, Optional[SelectionRange]]:
    """
    Apply a toolbar formatting command.

    Args:
        document: Current document (not modified)
        selection: Selection to format
        command: Formatting command
        level: Heading level for FormatCommand.HEADING (default 2)

    Returns:
        (new document, selection after the command)
    """
    if command == FormatCommand.RULE:
        result, caret = insert_blocks(document, selection, [Node(NodeType.HORIZONTAL_RULE)])
        return result, SelectionRange(caret, caret)

    if selection is None:
        return document, None

    result = copy_document(document)
    rng = resolve_range(result, selection)

    if command in (FormatCommand.BOLD, FormatCommand.ITALIC):
        mark_type = MarkType.BOLD if command == FormatCommand.BOLD else MarkType.ITALIC
        _toggle_mark(result, rng, mark_type)
        return result, SelectionRange(to_position(rng.start), to_position(rng.end))

    if command == FormatCommand.HEADING:
        _set_block_type(result, rng, NodeType.HEADING, {"level": _clamp(level or 2, 1, 6)})
    elif command == FormatCommand.PARAGRAPH:
        _set_block_type(result, rng, NodeType.PARAGRAPH, {})
    elif command == FormatCommand.QUOTE:
        _set_block_type(result, rng, NodeType.BLOCKQUOTE, {})
    elif command == FormatCommand.UNORDERED_LIST:
        _toggle_list(result, rng, NodeType.BULLET_LIST)
    elif command == FormatCommand.ORDERED_LIST:
        _toggle_list(result, rng, NodeType.ORDERED_LIST)
    else:
        raise ValueError(f"Unknown format command: {command}")
    return result, selection


def _toggle_mark(document: Node, rng: ResolvedRange, mark_type: MarkType) -> None:
    """Add the mark over the range if any part lacks it, otherwise remove it."""
    parts = []
    for block, start, end in _segments(document, rng):
        left, rest = split_inline(block.content, start)
        middle, right = split_inline(rest, end - start)
        parts.append((block, left, middle, right))

    texts = [node for _, _, middle, _ in parts for node in middle if node.type == NodeType.TEXT]
    if not texts:
        return
    add = any(node.mark(mark_type) is None for node in texts)

    for block, left, middle, right in parts:
        for node in middle:
            if node.type != NodeType.TEXT:
                continue
            node.marks = [m for m in node.marks if m.type != mark_type]
            if add:
                node.marks.append(Mark(mark_type))
        block.content = normalize_inline(left + middle + right)


def _touched(document: Node, rng: ResolvedRange) -> dict[int, Optional[tuple[int, int]]]:
    """
    Top-level blocks touched by a range.

    Maps a top-level index to the touched (first, last) item indices for
    lists, or None for splittable textblocks. Atoms and tables are skipped.
    """
    touched: dict[int, Optional[tuple[int, int]]] = {}
    for index in range(rng.start.top_index, rng.end.top_index + 1):
        block = document.content[index]
        if block.type in LIST_TYPES and block.content:
            first = 0
            last = len(block.content) - 1
            if index == rng.start.top_index and len(rng.start.path) > 1:
                first = rng.start.path[1]
            if index == rng.end.top_index and len(rng.end.path) > 1:
                last = rng.end.path[1]
            touched[index] = (first, last)
        elif block.type in SPLITTABLE_TYPES:
            touched[index] = None
    return touched


def _retyped(block: Node, node_type: NodeType, attrs: dict[str, Any]) -> Node:
    return Node(node_type, attrs=dict(attrs), content=block.content, id=block.id)


def _set_block_type(
    document: Node,
    rng: ResolvedRange,
    node_type: NodeType,
    attrs: dict[str, Any],
) -> None:
    """Retype touched blocks, lifting touched list items out of their list."""
    touched = _touched(document, rng)
    if not touched:
        return

    targets: list[Node] = []
    for index, span in touched.items():
        block = document.content[index]
        targets.extend([block] if span is None else block.content[span[0] : span[1] + 1])

    def already(block: Node) -> bool:
        if block.type != node_type:
            return False
        return node_type != NodeType.HEADING or block.attrs.get("level") == attrs.get("level")

    # Applying a heading level or quote a second time toggles back to paragraphs
    if node_type != NodeType.PARAGRAPH and all(already(block) for block in targets):
        node_type, attrs = NodeType.PARAGRAPH, {}

    new_content: list[Node] = []
    for index, block in enumerate(document.content):
        if index not in touched:
            new_content.append(block)
        elif touched[index] is None:
            new_content.append(_retyped(block, node_type, attrs))
        else:
            first, last = touched[index]
            before = block.content[:first]
            lifted = block.content[first : last + 1]
            after = block.content[last + 1 :]
            if before:
                block.content = before
                new_content.append(block)
            new_content.extend(_retyped(item, node_type, attrs) for item in lifted)
            if after:
                rest_attrs = dict(block.attrs)
                if block.type == NodeType.ORDERED_LIST:
                    rest_attrs["start"] = int(block.attrs.get("start", 1)) + last + 1
                new_content.append(Node(block.type, attrs=rest_attrs, content=after))
    document.content = new_content


def _toggle_list(document: Node, rng: ResolvedRange, list_type: NodeType) -> None:
    """Wrap touched blocks in a list, switch list type, or unwrap."""
    touched = _touched(document, rng)
    if not touched:
        return

    lists = [index for index, span in touched.items() if span is not None]
    if lists and len(lists) == len(touched):
        if all(document.content[index].type == list_type for index in lists):
            _set_block_type(document, rng, NodeType.PARAGRAPH, {})
            return
        for index in lists:
            block = document.content[index]
            block.type = list_type
            if list_type == NodeType.BULLET_LIST:
                block.attrs.pop("start", None)
        return

    new_content: list[Node] = []
    run: Optional[Node] = None
    for index, block in enumerate(document.content):
        if index not in touched:
            run = None
            new_content.append(block)
            continue
        if run is None:
            run = Node(list_type)
            new_content.append(run)
        if touched[index] is None:
            run.content.append(Node(NodeType.LIST_ITEM, content=block.content, id=block.id))
        else:
            run.content.extend(block.content)
    document.content = new_content


# -- Text editing -----------------------------------------------------------------


def type_text(
    document: Node,
    selection: Optional[SelectionRange],
    value: str,
) -> tuple[Node, Position]:
    """Type text at the caret, replacing the selection and continuing its marks."""
    result = copy_document(document)
    if selection is None:
        selection = end_selection(result)
    at = _delete_range(result, resolve_range(result, selection))
    block, offset = _editable_block(result, at)
    end = _insert_into_block(block, offset, _text_nodes(value, _marks_before(block, offset)))
    return result, Position(block.id, end)


def paste_text(
    document: Node,
    selection: Optional[SelectionRange],
    value: str,
) -> tuple[Node, Position]:
    """Paste plain text; newlines become hard breaks."""
    return insert_inline(document, selection, _text_nodes(value, []))


def press_enter(document: Node, selection: Optional[SelectionRange]) -> tuple[Node, Position]:
    """
    Split the block at the caret.

    Enter on an atom block (image, embed) adds an empty paragraph after it.
    Enter in an empty list item leaves the list. Table cells get a line break.
    """
    result = copy_document(document)
    if selection is None:
        selection = end_selection(result)
    at = _delete_range(result, resolve_range(result, selection))
    block = at.block

    if block.is_atom:
        holder = paragraph()
        result.content.insert(at.top_index + 1, holder)
        return result, Position(holder.id, 0)

    if block.type in (NodeType.TABLE_CELL, NodeType.TABLE_HEADER):
        end = _insert_into_block(block, at.offset, [hard_break()])
        return result, Position(block.id, end)

    container = node_at(result, at.path[:-1])
    index = at.path[-1]

    if block.type == NodeType.LIST_ITEM and is_empty_block(block):
        top = at.top_index
        rest = container.content[index + 1 :]
        del container.content[index:]
        holder = paragraph()
        lifted = [holder]
        if rest:
            lifted.append(Node(container.type, attrs=dict(container.attrs), content=rest))
        result.content[top + 1 : top + 1] = lifted
        if not container.content:
            del result.content[top]
        return result, Position(holder.id, 0)

    left, right = split_inline(block.content, at.offset)
    block.content = left
    if block.type == NodeType.HEADING and not right:
        tail = paragraph()
    else:
        tail = Node(block.type, attrs=dict(block.attrs), content=right)
    container.content.insert(index + 1, tail)
    return result, Position(tail.id, 0)


def selected_text(document: Node, selection: Optional[SelectionRange]) -> str:
    """Visible text of a selection; blocks and hard breaks become newlines."""
    if selection is None:
        return ""
    rng = resolve_range(document, selection)
    if rng.collapsed:
        return ""
    parts: list[str] = []
    for block, start, end in _segments(document, rng):
        _, rest = split_inline(block.content, start)
        middle, _ = split_inline(rest, end - start)
        parts.append("".join(node.text if node.type == NodeType.TEXT else "\n" for node in middle))
    return "\n".join(parts)
