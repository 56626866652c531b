"""Unit tests for position resolution and selection save/restore."""

import pytest

from newsdesk.models.document import Node, NodeType, doc, hard_break, paragraph, text
from newsdesk.models.selection import Position, SelectionRange
from newsdesk.services.document_editor import (
    end_position,
    resolve_position,
    resolve_range,
    selected_text,
)
from newsdesk.services.editor_errors import SelectionLost
from newsdesk.services.selection_service import SelectionManager


def caret(node: Node, offset: int = 0) -> SelectionRange:
    return SelectionRange.caret(node.id, offset)


class TestResolvePosition:
    """Tests for resolving id-based positions."""

    def test_text_node_offset_is_block_relative(self):
        first = text("Hello ")
        second = text("world")
        block = paragraph(first, second)
        document = doc(block)

        resolved = resolve_position(document, Position(second.id, 2))

        assert resolved.block is block
        assert resolved.path == (0,)
        assert resolved.offset == 8

    def test_hard_break_counts_as_one(self):
        after = text("b")
        block = paragraph(text("a"), hard_break(), after)
        resolved = resolve_position(doc(block), Position(after.id, 0))
        assert resolved.offset == 2

    def test_offset_is_clamped(self):
        block = paragraph(text("abc"))
        resolved = resolve_position(doc(block), Position(block.id, 99))
        assert resolved.offset == 3

    def test_atom_offsets(self):
        rule = Node(NodeType.HORIZONTAL_RULE)
        document = doc(paragraph(text("a")), rule)
        assert resolve_position(document, Position(rule.id, 5)).offset == 1

    def test_container_resolves_to_first_or_last_item(self):
        items = [Node(NodeType.LIST_ITEM, content=[text(t)]) for t in ("one", "three")]
        bullet_list = Node(NodeType.BULLET_LIST, content=items)
        document = doc(bullet_list)

        start = resolve_position(document, Position(bullet_list.id, 0))
        end = resolve_position(document, Position(bullet_list.id, 1))

        assert start.block is items[0] and start.offset == 0
        assert end.block is items[1] and end.offset == 5
        assert end.top_index == 0

    def test_missing_node_raises(self):
        with pytest.raises(SelectionLost):
            resolve_position(doc(paragraph()), Position("gone", 0))


class TestResolveRange:
    def test_backwards_selection_is_ordered(self):
        a = paragraph(text("first"))
        b = paragraph(text("second"))
        document = doc(a, b)

        rng = resolve_range(document, SelectionRange(Position(b.id, 3), Position(a.id, 1)))

        assert rng.start.block is a and rng.start.offset == 1
        assert rng.end.block is b and rng.end.offset == 3
        assert not rng.collapsed

    def test_selected_text_spans_blocks(self):
        a = paragraph(text("first"))
        b = paragraph(text("second"))
        document = doc(a, b)
        selection = SelectionRange(Position(a.id, 2), Position(b.id, 3))
        assert selected_text(document, selection) == "rst\nsec"

    def test_collapsed_selection_has_no_text(self):
        block = paragraph(text("abc"))
        assert selected_text(doc(block), caret(block, 1)) == ""

    def test_end_position(self):
        last = paragraph(text("end"))
        assert end_position(doc(paragraph(), last)) == Position(last.id, 3)


class TestSelectionManager:
    """Tests for saving and restoring the selection around dialogs."""

    def test_nothing_saved(self):
        manager = SelectionManager()
        assert manager.has_saved is False
        assert manager.restore(doc(paragraph())) is None

    def test_restore_resolves_saved_selection(self):
        block = paragraph(text("abcdef"))
        document = doc(block)
        manager = SelectionManager()
        manager.save(SelectionRange(Position(block.id, 1), Position(block.id, 4)))

        rng = manager.restore(document)

        assert rng.start.offset == 1
        assert rng.end.offset == 4

    def test_restore_clamps_after_text_shrinks(self):
        block = paragraph(text("abcdef"))
        manager = SelectionManager()
        manager.save(caret(block, 6))

        block.content = [text("ab")]
        rng = manager.restore(doc(block))

        assert rng.start.offset == 2

    def test_lost_selection_falls_back_to_document_end(self):
        old = paragraph(text("old"))
        manager = SelectionManager()
        manager.save(caret(old, 1))

        last = paragraph(text("new text"))
        rng = manager.restore(doc(paragraph(text("x")), last))

        assert rng.start.block is last
        assert rng.start.offset == 8
        assert manager.saved == SelectionRange.caret(last.id, 8)

    def test_clear(self):
        manager = SelectionManager()
        manager.save(SelectionRange.caret("n", 0))
        manager.clear()
        assert manager.saved is None
