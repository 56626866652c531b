"""Unit tests for block placement and the insertion handlers."""

import pytest

from newsdesk.models.document import MarkType, Node, NodeType, doc, paragraph, text
from newsdesk.models.selection import Position, SelectionRange
from newsdesk.schemas.editor import (
    ImageInsert,
    ImageSize,
    LinkInsert,
    PromptBoxInsert,
    SocialEmbedInsert,
    TableInsert,
    VideoEmbedInsert,
)
from newsdesk.services.content_converter import to_persisted
from newsdesk.services.document_editor import find_link_at, insert_blocks
from newsdesk.services.editor_errors import ContentValidationError, SelectionLost
from newsdesk.services.insertion_service import (
    MAX_TABLE_COLUMNS,
    MAX_TABLE_ROWS,
    apply_insertion,
    build_table,
)


def rule() -> Node:
    return Node(NodeType.HORIZONTAL_RULE)


def types(document: Node) -> list[NodeType]:
    return [block.type for block in document.content]


def caret(node: Node, offset: int = 0) -> SelectionRange:
    return SelectionRange.caret(node.id, offset)


class TestInsertBlocks:
    """Tests for where block fragments land."""

    def test_empty_paragraph_is_replaced(self):
        block = paragraph()
        result, position = insert_blocks(doc(block), caret(block), [rule()])

        assert types(result) == [NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert position == Position(result.content[1].id, 0)

    def test_caret_mid_paragraph_splits_it(self):
        block = paragraph(text("Hello world"))
        result, position = insert_blocks(doc(block), caret(block, 5), [rule()])

        assert types(result) == [NodeType.PARAGRAPH, NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert result.content[0].content[0].text == "Hello"
        assert result.content[2].content[0].text == " world"
        assert result.content[0].id == block.id
        assert position == Position(result.content[2].id, 0)

    def test_caret_at_start_inserts_before(self):
        block = paragraph(text("Hello"))
        result, position = insert_blocks(doc(block), caret(block, 0), [rule()])

        assert types(result) == [NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert position == Position(block.id, 0)

    def test_caret_at_end_inserts_after_with_trailing_paragraph(self):
        block = paragraph(text("Hello"))
        result, _ = insert_blocks(doc(block), caret(block, 5), [rule()])
        assert types(result) == [NodeType.PARAGRAPH, NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]

    def test_no_selection_appends_at_end(self):
        first = paragraph(text("a"))
        last = paragraph(text("b"))
        result, _ = insert_blocks(doc(first, last), None, [rule()])
        assert types(result) == [
            NodeType.PARAGRAPH,
            NodeType.PARAGRAPH,
            NodeType.HORIZONTAL_RULE,
            NodeType.PARAGRAPH,
        ]

    def test_inside_list_inserts_after_list(self):
        item = Node(NodeType.LIST_ITEM, content=[text("item")])
        bullet_list = Node(NodeType.BULLET_LIST, content=[item])
        after = paragraph(text("after"))
        result, _ = insert_blocks(doc(bullet_list, after), caret(item, 2), [rule()])

        assert types(result) == [NodeType.BULLET_LIST, NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert result.content[2].id == after.id

    def test_caret_before_atom_inserts_before_it(self):
        existing = rule()
        document = doc(paragraph(text("a")), existing)
        new = rule()
        result, _ = insert_blocks(document, caret(existing, 0), [new])
        assert result.content[1].id == new.id
        assert result.content[2].id == existing.id

    def test_selected_text_is_replaced(self):
        block = paragraph(text("Hello world"))
        selection = SelectionRange(Position(block.id, 0), Position(block.id, 5))
        result, _ = insert_blocks(doc(block), selection, [rule()])

        assert types(result) == [NodeType.HORIZONTAL_RULE, NodeType.PARAGRAPH]
        assert result.content[1].content[0].text == " world"

    def test_input_document_is_untouched(self):
        block = paragraph(text("Hello world"))
        document = doc(block)
        before = document.to_json()
        insert_blocks(document, caret(block, 5), [rule()])
        assert document.to_json() == before

    def test_lost_selection_raises(self):
        with pytest.raises(SelectionLost):
            insert_blocks(doc(paragraph()), SelectionRange.caret("gone"), [rule()])


class TestImageInsertion:
    def test_image_attributes(self):
        block = paragraph()
        request = ImageInsert(
            url=" https://cdn.example.com/a.jpg ",
            alt="A cat",
            caption="Our cat",
            description="A cat asleep on a desk",
            size=ImageSize.SMALL,
        )
        result = apply_insertion(doc(block), caret(block), request)

        image = result.document.content[0]
        assert image.type == NodeType.IMAGE
        assert image.attrs == {
            "src": "https://cdn.example.com/a.jpg",
            "alt": "A cat",
            "size": "small",
            "title": "A cat asleep on a desk",
            "caption": "Our cat",
        }

    def test_image_without_caption_is_bare(self):
        block = paragraph()
        result = apply_insertion(doc(block), caret(block), ImageInsert(url="https://e.com/a.png"))
        assert to_persisted(result.document).startswith("<img ")

    def test_missing_url(self):
        with pytest.raises(ContentValidationError):
            apply_insertion(doc(paragraph()), None, ImageInsert(url="  "))


class TestTableInsertion:
    def test_header_row_and_placeholders(self):
        table = build_table(TableInsert(rows=2, columns=3, has_header=True))

        assert len(table.content) == 2
        header, body = table.content
        assert [cell.type for cell in header.content] == [NodeType.TABLE_HEADER] * 3
        assert [cell.content[0].text for cell in header.content] == ["Header"] * 3
        assert [cell.content[0].text for cell in body.content] == ["Cell"] * 3

    def test_without_header(self):
        table = build_table(TableInsert(rows=1, columns=2, has_header=False))
        assert [cell.type for cell in table.content[0].content] == [NodeType.TABLE_CELL] * 2

    @pytest.mark.parametrize(
        "rows, columns",
        [(0, 3), (3, 0), (MAX_TABLE_ROWS + 1, 3), (3, MAX_TABLE_COLUMNS + 1)],
    )
    def test_out_of_range(self, rows, columns):
        with pytest.raises(ContentValidationError):
            build_table(TableInsert(rows=rows, columns=columns))

    def test_largest_table(self):
        table = build_table(TableInsert(rows=MAX_TABLE_ROWS, columns=MAX_TABLE_COLUMNS))
        assert len(table.content) == MAX_TABLE_ROWS
        assert len(table.content[-1].content) == MAX_TABLE_COLUMNS


class TestEmbedInsertion:
    def test_video_embed(self):
        block = paragraph()
        request = VideoEmbedInsert(source_url="https://youtu.be/abc123")
        result = apply_insertion(doc(block), caret(block), request)
        assert result.document.content[0].attrs == {
            "src": "https://www.youtube.com/embed/abc123",
            "kind": "video",
        }

    def test_invalid_video_url_leaves_document_unchanged(self):
        block = paragraph(text("keep"))
        document = doc(block)
        before = document.to_json()
        with pytest.raises(ContentValidationError):
            apply_insertion(document, caret(block, 4), VideoEmbedInsert(source_url="https://vimeo.com/1"))
        assert document.to_json() == before

    def test_social_embed_from_url(self):
        block = paragraph()
        url = "https://x.com/newsdesk/status/42"
        result = apply_insertion(doc(block), caret(block), SocialEmbedInsert(raw_code_or_url=url))
        embed = result.document.content[0]
        assert embed.type == NodeType.SOCIAL_EMBED
        assert embed.attrs["platform"] == "twitter"
        assert embed.attrs["url"] == url
        assert 'data-tweet-id="42"' in embed.attrs["html"]

    def test_unsupported_social_input(self):
        with pytest.raises(ContentValidationError):
            apply_insertion(doc(paragraph()), None, SocialEmbedInsert(raw_code_or_url="hello"))


class TestPromptBoxInsertion:
    def test_default_title(self):
        block = paragraph()
        request = PromptBoxInsert(title="  ", content="Summarize this\r\nin one line")
        result = apply_insertion(doc(block), caret(block), request)
        assert result.document.content[0].attrs == {
            "title": "Prompt",
            "content": "Summarize this\nin one line",
        }

    def test_content_required(self):
        with pytest.raises(ContentValidationError) as exc_info:
            apply_insertion(doc(paragraph()), None, PromptBoxInsert(content="   "))
        assert str(exc_info.value) == "Prompt content is required"


class TestLinkInsertion:
    def test_collapsed_caret_inserts_linked_url(self):
        block = paragraph(text("See "))
        result = apply_insertion(doc(block), caret(block, 4), LinkInsert(url="https://e.com"))
        assert to_persisted(result.document) == "See [https://e.com](https://e.com)"
        assert result.caret == Position(block.id, 4 + len("https://e.com"))

    def test_link_text_and_new_tab(self):
        block = paragraph()
        request = LinkInsert(url="https://e.com", text="docs", open_in_new_tab=True)
        result = apply_insertion(doc(block), caret(block), request)
        assert to_persisted(result.document) == "[docs](https://e.com)^"

    def test_selection_is_wrapped(self):
        block = paragraph(text("read the docs today"))
        selection = SelectionRange(Position(block.id, 9), Position(block.id, 13))
        result = apply_insertion(doc(block), selection, LinkInsert(url="https://e.com"))
        assert to_persisted(result.document) == "read the [docs](https://e.com) today"

    def test_edit_existing_link(self):
        linked = text("docs", [])
        block = paragraph(text("read "), linked)
        document = doc(block)
        document = apply_insertion(
            document,
            SelectionRange(Position(block.id, 5), Position(block.id, 9)),
            LinkInsert(url="https://old.example.com"),
        ).document

        info = find_link_at(document, SelectionRange.caret(block.id, 7))
        assert info.href == "https://old.example.com"

        request = LinkInsert(
            url="https://new.example.com",
            text="the docs",
            open_in_new_tab=True,
            existing_node_id=info.node_id,
        )
        result = apply_insertion(document, None, request)

        assert to_persisted(result.document) == "read [the docs](https://new.example.com)^"
        node = result.document.content[0].content[1]
        assert node.id == info.node_id
        assert node.mark(MarkType.LINK).attrs["target"] == "_blank"

    def test_edit_missing_link(self):
        request = LinkInsert(url="https://e.com", existing_node_id="gone")
        with pytest.raises(SelectionLost):
            apply_insertion(doc(paragraph()), None, request)

    def test_url_required(self):
        with pytest.raises(ContentValidationError) as exc_info:
            apply_insertion(doc(paragraph()), None, LinkInsert(url=""))
        assert str(exc_info.value) == "Link URL is required"
