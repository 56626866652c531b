"""Unit tests for toolbar formatting and text editing on the document tree."""

from newsdesk.models.document import (
    Mark,
    MarkType,
    Node,
    NodeType,
    doc,
    heading,
    paragraph,
    text,
)
from newsdesk.models.selection import Position, SelectionRange
from newsdesk.schemas.editor import FormatCommand
from newsdesk.services.content_converter import to_persisted
from newsdesk.services.document_editor import (
    apply_format,
    paste_text,
    press_enter,
    remove_link,
    type_text,
)


def caret(node: Node, offset: int = 0) -> SelectionRange:
    return SelectionRange.caret(node.id, offset)


def span(start: Node, start_offset: int, end: Node, end_offset: int) -> SelectionRange:
    return SelectionRange(Position(start.id, start_offset), Position(end.id, end_offset))


def items(*values: str) -> list[Node]:
    return [Node(NodeType.LIST_ITEM, content=[text(v)]) for v in values]


class TestInlineMarks:
    """Tests for bold and italic toggling."""

    def test_bold_toggles_on_and_off(self):
        block = paragraph(text("hello world"))
        selection = span(block, 0, block, 5)

        bolded, selection = apply_format(doc(block), selection, FormatCommand.BOLD)
        assert to_persisted(bolded) == "**hello** world"

        plain, _ = apply_format(bolded, selection, FormatCommand.BOLD)
        assert to_persisted(plain) == "hello world"

    def test_partially_bold_range_becomes_fully_bold(self):
        block = paragraph(text("he", [Mark(MarkType.BOLD)]), text("llo"))
        result, _ = apply_format(doc(block), span(block, 0, block, 5), FormatCommand.BOLD)
        assert to_persisted(result) == "**hello**"

    def test_italic_across_blocks(self):
        a = paragraph(text("first"))
        b = paragraph(text("second"))
        result, _ = apply_format(doc(a, b), span(a, 3, b, 3), FormatCommand.ITALIC)
        assert to_persisted(result) == "fir*st*\n\n*sec*ond"

    def test_no_selection_is_a_no_op(self):
        document = doc(paragraph(text("x")))
        result, selection = apply_format(document, None, FormatCommand.BOLD)
        assert result is document
        assert selection is None


class TestBlockFormats:
    """Tests for headings, quotes and paragraphs."""

    def test_heading_defaults_to_level_two_and_toggles_back(self):
        block = paragraph(text("Title"))
        result, selection = apply_format(doc(block), caret(block, 2), FormatCommand.HEADING)
        assert to_persisted(result) == "## Title"
        assert result.content[0].id == block.id

        result, _ = apply_format(result, selection, FormatCommand.HEADING)
        assert to_persisted(result) == "Title"

    def test_heading_level_change(self):
        block = heading(2, text("Title"))
        result, _ = apply_format(doc(block), caret(block), FormatCommand.HEADING, level=4)
        assert to_persisted(result) == "#### Title"

    def test_quote(self):
        block = paragraph(text("Said"))
        result, _ = apply_format(doc(block), caret(block), FormatCommand.QUOTE)
        assert to_persisted(result) == "> Said"

    def test_paragraph_lifts_list_item_and_splits_ordered_list(self):
        a, b, c = items("a", "b", "c")
        ordered = Node(NodeType.ORDERED_LIST, content=[a, b, c])
        result, _ = apply_format(doc(ordered), caret(b, 1), FormatCommand.PARAGRAPH)

        assert [block.type for block in result.content] == [
            NodeType.ORDERED_LIST,
            NodeType.PARAGRAPH,
            NodeType.ORDERED_LIST,
        ]
        assert to_persisted(result) == "1. a\n\nb\n\n3. c"

    def test_rule(self):
        block = paragraph(text("above"))
        result, selection = apply_format(doc(block), caret(block, 5), FormatCommand.RULE)
        assert to_persisted(result) == "above\n\n---"
        assert selection.collapsed


class TestLists:
    """Tests for wrapping, switching and unwrapping lists."""

    def test_wrap_paragraphs_in_bullet_list(self):
        a = paragraph(text("one"))
        b = paragraph(text("two"))
        result, selection = apply_format(doc(a, b), span(a, 0, b, 3), FormatCommand.UNORDERED_LIST)

        assert len(result.content) == 1
        assert result.content[0].type == NodeType.BULLET_LIST
        assert to_persisted(result) == "- one\n- two"

        unwrapped, _ = apply_format(result, selection, FormatCommand.UNORDERED_LIST)
        assert [block.type for block in unwrapped.content] == [NodeType.PARAGRAPH] * 2
        assert [block.id for block in unwrapped.content] == [a.id, b.id]

    def test_switch_list_type(self):
        a, b = items("x", "y")
        bullet = Node(NodeType.BULLET_LIST, content=[a, b])
        result, _ = apply_format(doc(bullet), caret(a), FormatCommand.ORDERED_LIST)
        assert to_persisted(result) == "1. x\n2. y"

    def test_input_document_is_untouched(self):
        block = paragraph(text("one"))
        document = doc(block)
        before = document.to_json()
        apply_format(document, caret(block), FormatCommand.ORDERED_LIST)
        assert document.to_json() == before


class TestTyping:
    """Tests for typing, pasting and Enter."""

    def test_typing_continues_marks(self):
        block = paragraph(text("bold", [Mark(MarkType.BOLD)]))
        result, position = type_text(doc(block), caret(block, 4), "er")
        assert to_persisted(result) == "**bolder**"
        assert position == Position(block.id, 6)

    def test_typing_after_link_is_not_linked(self):
        link = Mark(MarkType.LINK, {"href": "https://e.com"})
        block = paragraph(text("site", [link]))
        result, _ = type_text(doc(block), caret(block, 4), "!")
        assert to_persisted(result) == "[site](https://e.com)!"

    def test_typing_without_selection_goes_to_end(self):
        result, _ = type_text(doc(paragraph(text("a"))), None, "b")
        assert to_persisted(result) == "ab"

    def test_typing_replaces_selection(self):
        block = paragraph(text("hello world"))
        result, _ = type_text(doc(block), span(block, 6, block, 11), "there")
        assert to_persisted(result) == "hello there"

    def test_paste_turns_newlines_into_breaks(self):
        block = paragraph()
        result, _ = paste_text(doc(block), caret(block), "line one\r\nline two")
        assert to_persisted(result) == "line one\nline two"

    def test_enter_splits_paragraph(self):
        block = paragraph(text("Hello world"))
        result, position = press_enter(doc(block), caret(block, 5))
        assert to_persisted(result) == "Hello\n\nworld"
        assert position == Position(result.content[1].id, 0)

    def test_enter_at_end_of_heading_starts_paragraph(self):
        block = heading(1, text("Title"))
        result, _ = press_enter(doc(block), caret(block, 5))
        assert [b.type for b in result.content] == [NodeType.HEADING, NodeType.PARAGRAPH]

    def test_enter_in_empty_list_item_leaves_list(self):
        a = Node(NodeType.LIST_ITEM, content=[text("a")])
        empty = Node(NodeType.LIST_ITEM)
        bullet = Node(NodeType.BULLET_LIST, content=[a, empty])
        result, position = press_enter(doc(bullet), caret(empty))

        assert [b.type for b in result.content] == [NodeType.BULLET_LIST, NodeType.PARAGRAPH]
        assert len(result.content[0].content) == 1
        assert position == Position(result.content[1].id, 0)

    def test_enter_after_atom_adds_paragraph(self):
        rule = Node(NodeType.HORIZONTAL_RULE)
        result, position = press_enter(doc(rule), caret(rule, 1))
        assert [b.type for b in result.content] == [NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert position == Position(result.content[1].id, 0)

    def test_enter_in_table_cell_adds_line_break(self):
        cell = Node(NodeType.TABLE_CELL, content=[text("Cell")])
        table = Node(NodeType.TABLE, content=[Node(NodeType.TABLE_ROW, content=[cell])])
        result, _ = press_enter(doc(table), caret(cell, 4))
        new_cell = result.content[0].content[0].content[0]
        assert [n.type for n in new_cell.content] == [NodeType.TEXT, NodeType.HARD_BREAK]


class TestRemoveLink:
    def test_link_run_becomes_plain_text(self):
        link = Mark(MarkType.LINK, {"href": "https://e.com"})
        linked = text("docs", [link])
        block = paragraph(text("read "), linked, text(" now"))
        result, position = remove_link(doc(block), linked.id)

        assert to_persisted(result) == "read docs now"
        assert position == Position(block.id, 9)
