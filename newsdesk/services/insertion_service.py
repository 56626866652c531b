"""Insertion handlers for rich content.

Each handler validates its request, builds the content in memory and applies
it to a copy of the document at the restored selection. Validation failures
raise ContentValidationError with a message meant for the user; the document
is untouched in that case.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..models.document import Node, NodeType, text
from ..models.selection import Position, SelectionRange
from ..schemas.editor import (
    ImageInsert,
    InsertionRequest,
    LinkInsert,
    PromptBoxInsert,
    SocialEmbedInsert,
    TableInsert,
    VideoEmbedInsert,
)
from .content_converter import normalize_markup
from .document_editor import apply_link, edit_link, insert_blocks
from .editor_errors import ContentValidationError
from .embed_parser import resolve_social_embed, resolve_video_embed

logger = logging.getLogger(__name__)

MAX_TABLE_ROWS = 20
MAX_TABLE_COLUMNS = 10
DEFAULT_PROMPT_TITLE = "Prompt"


@dataclass
class InsertionResult:
    """A document with inserted content and the caret after it."""

    document: Node
    caret: Position


# -- Fragment builders ------------------------------------------------------------


def build_image(request: ImageInsert) -> Node:
    url = request.url.strip()
    if not url:
        raise ContentValidationError("Image URL is required")
    attrs = {"src": url, "alt": request.alt.strip(), "size": request.size.value}
    if request.description.strip():
        attrs["title"] = request.description.strip()
    if request.caption.strip():
        attrs["caption"] = request.caption.strip()
    return Node(NodeType.IMAGE, attrs=attrs)


def build_table(request: TableInsert) -> Node:
    """
    Build a table of placeholder cells.

    The first row holds "Header" cells when has_header is set; every other
    cell reads "Cell".
    """
    if request.rows < 1 or request.columns < 1:
        raise ContentValidationError("Tables need at least one row and one column")
    if request.rows > MAX_TABLE_ROWS or request.columns > MAX_TABLE_COLUMNS:
        raise ContentValidationError(
            f"Tables can have at most {MAX_TABLE_ROWS} rows and {MAX_TABLE_COLUMNS} columns"
        )

    rows = []
    for i in range(request.rows):
        header = i == 0 and request.has_header
        cells = [
            Node(
                NodeType.TABLE_HEADER if header else NodeType.TABLE_CELL,
                content=[text("Header" if header else "Cell")],
            )
            for _ in range(request.columns)
        ]
        rows.append(Node(NodeType.TABLE_ROW, content=cells))
    return Node(NodeType.TABLE, content=rows)


def build_video_embed(request: VideoEmbedInsert) -> Node:
    target = resolve_video_embed(request.source_url)
    return Node(NodeType.VIDEO_EMBED, attrs={"src": target.src, "kind": target.kind})


def build_prompt_box(request: PromptBoxInsert) -> Node:
    content = request.content.replace("\r\n", "\n").strip()
    if not content:
        raise ContentValidationError("Prompt content is required")
    title = request.title.strip() or DEFAULT_PROMPT_TITLE
    return Node(NodeType.PROMPT_BOX, attrs={"title": title, "content": content})


def build_social_embed(request: SocialEmbedInsert) -> Node:
    target = resolve_social_embed(request.raw_code_or_url)
    attrs = {"platform": target.platform, "html": normalize_markup(target.html)}
    if target.url:
        attrs["url"] = target.url
    return Node(NodeType.SOCIAL_EMBED, attrs=attrs)


_BLOCK_BUILDERS: dict[type, Callable[..., Node]] = {
    ImageInsert: build_image,
    TableInsert: build_table,
    VideoEmbedInsert: build_video_embed,
    PromptBoxInsert: build_prompt_box,
    SocialEmbedInsert: build_social_embed,
}


# -- Application --------------------------------------------------------------------


def _apply_link(
    document: Node,
    selection: Optional[SelectionRange],
    request: LinkInsert,
) -> InsertionResult:
    url = request.url.strip()
    if not url:
        raise ContentValidationError("Link URL is required")
    if request.existing_node_id:
        new_document, caret = edit_link(
            document, request.existing_node_id, url, request.text, request.open_in_new_tab
        )
    else:
        new_document, caret = apply_link(
            document, selection, url, request.text, request.open_in_new_tab
        )
    return InsertionResult(document=new_document, caret=caret)


def apply_insertion(
    document: Node,
    selection: Optional[SelectionRange],
    request: InsertionRequest,
) -> InsertionResult:
    """
    Validate a request and insert its content.

    Args:
        document: Current document (not modified)
        selection: Restored selection; None inserts at the end of the document
        request: One of the insertion request variants

    Returns:
        InsertionResult with the new document and caret

    Raises:
        ContentValidationError: If the request is invalid
        SelectionLost: If a link being edited is no longer in the document
    """
    if isinstance(request, LinkInsert):
        return _apply_link(document, selection, request)

    builder = _BLOCK_BUILDERS.get(type(request))
    if builder is None:
        raise ContentValidationError(f"Unsupported insertion: {request.kind}")

    block = builder(request)
    new_document, caret = insert_blocks(document, selection, [block])
    logger.info(f"Inserted {block.type.value} block")
    return InsertionResult(document=new_document, caret=caret)
