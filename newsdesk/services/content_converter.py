"""Editable document to persisted Markdown converter, and back.

Converts the editor's document tree to the markdown-flavoured text stored for
an article body, and parses that text back into a tree for the editing
surface. Rich elements without a Markdown equivalent (images, tables, video
embeds, prompt boxes, social embeds) are persisted as inline HTML fragments.

Persisted grammar:
  Blocks are separated by one blank line.
  Block: "# ".."###### " headings, "> " blockquote lines, "- " bullet items,
         "1. " ordered items, "---" rule, paragraphs (single newline = line break),
         HTML fragments for rich blocks
  Inline: **bold**, *italic*, [text](url), [text](url)^ (opens in new tab),
          <br> line breaks inside headings and list items
  Escapes: literal \ * [ ] in text, a ^ right after a link, and a paragraph
           line that would otherwise start a block are backslash-escaped

Design decisions:
  - Empty paragraphs are editor-only affordances and are never persisted
  - Bold always wraps italic when both apply; whitespace moves outside markers
  - Rich HTML blocks are found by a balanced-tag scan anywhere in the input
    (pasted content may put them mid-line) and parsed with BeautifulSoup
  - Unrecognised HTML blocks are kept verbatim as htmlBlock nodes
  - Bare <div> wrappers from pasted content become paragraph breaks
"""

import re
from itertools import groupby
from typing import Any, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

from ..models.document import (
    Mark,
    MarkType,
    Node,
    NodeType,
    doc,
    empty_document,
    hard_break,
    heading,
    inline_text,
    is_empty_block,
    normalize_inline,
    paragraph,
    text,
)
from .html_renderer import (
    DEFAULT_IMAGE_SIZE,
    IMAGE_SIZE_CLASSES,
    group_link_runs,
    render_rich_block,
)

NEW_TAB_MARKER = "^"
NEW_TAB_REL = "noopener noreferrer"


# -- Markdown Serialization ----------------------------------------------------


def to_persisted(document: Optional[Node]) -> str:
    """Convert an editable document to persisted Markdown.

    Args:
        document: Document node with type=doc at root.

    Returns:
        Markdown string. Empty string for invalid/empty input.
    """
    if document is None or document.type != NodeType.DOC:
        return ""
    blocks = [_md_block(block) for block in document.content]
    return "\n\n".join(block for block in blocks if block).strip()


def _md_block(node: Node) -> str:
    t = node.type

    if t == NodeType.PARAGRAPH:
        if is_empty_block(node):
            return ""
        lines = _tidy_lines(_md_inline(node.content, "\n")).split("\n")
        return "\n".join(_escape_block_start(line) for line in lines)

    if t == NodeType.HEADING:
        if is_empty_block(node):
            return ""
        level = min(max(int(node.attrs.get("level", 1)), 1), 6)
        return "#" * level + " " + _md_inline(node.content, "<br>").strip()

    if t == NodeType.BLOCKQUOTE:
        if is_empty_block(node):
            return ""
        lines = _tidy_lines(_md_inline(node.content, "\n")).split("\n")
        return "\n".join(("> " + line).rstrip() for line in lines)

    if t in (NodeType.BULLET_LIST, NodeType.ORDERED_LIST):
        items = [item for item in node.content if not is_empty_block(item)]
        start = int(node.attrs.get("start", 1))
        lines: list[str] = []
        for i, item in enumerate(items):
            prefix = "- " if t == NodeType.BULLET_LIST else f"{start + i}. "
            lines.append(prefix + _md_inline(item.content, "<br>").strip())
        return "\n".join(lines)

    if t == NodeType.HORIZONTAL_RULE:
        return "---"

    if node.is_atom:
        return render_rich_block(node)

    # Unknown node -- render children if any (graceful degradation)
    return "\n\n".join(filter(None, (_md_block(child) for child in node.content)))


def _tidy_lines(value: str) -> str:
    """Trim trailing whitespace per line and strip the ends."""
    return "\n".join(line.rstrip() for line in value.split("\n")).strip()


def _escape_block_start(line: str) -> str:
    """Escape a paragraph line that would be read back as a new block."""
    stripped = line.lstrip()
    lead = line[: len(line) - len(stripped)]
    if _ORDERED.match(stripped):
        return lead + re.sub(r"^(\d+)\.", r"\1\\.", stripped)
    if any(p.match(stripped) for p in (_HEADING, _RULE, _QUOTE, _BULLET)):
        return lead + "\\" + stripped
    return line


def _escape_text(value: str) -> str:
    return _TEXT_SPECIALS.sub(r"\\\g<0>", value)


def _md_inline(nodes: list[Node], line_break: str) -> str:
    """Convert inline nodes (text + marks) to Markdown."""
    parts: list[str] = []
    after_link = False
    for key, run in group_link_runs(nodes):
        inner = _md_marked(run, line_break)
        if key is None:
            if after_link and inner.startswith(NEW_TAB_MARKER):
                inner = "\\" + inner
            parts.append(inner)
            after_link = False
            continue
        after_link = True
        href, target, _rel = key
        href = href.replace(" ", "%20").replace(")", "%29")
        marker = NEW_TAB_MARKER if target == "_blank" else ""
        parts.append(f"[{inner}]({href}){marker}")
    return "".join(parts)


def _md_marked(nodes: list[Node], line_break: str) -> str:
    """Wrap runs of bold text in ** and runs of italic text in *."""
    parts: list[str] = []
    for is_bold, bold_run in groupby(nodes, key=lambda n: _has_mark(n, MarkType.BOLD)):
        inner_parts: list[str] = []
        for is_italic, italic_run in groupby(bold_run, key=lambda n: _has_mark(n, MarkType.ITALIC)):
            chunk = "".join(
                line_break if n.type == NodeType.HARD_BREAK else _escape_text(n.text.replace("\xa0", " "))
                for n in italic_run
            )
            inner_parts.append(_wrap(chunk, "*") if is_italic else chunk)
        inner = "".join(inner_parts)
        parts.append(_wrap(inner, "**") if is_bold else inner)
    return "".join(parts)


def _has_mark(node: Node, mark_type: MarkType) -> bool:
    return node.type == NodeType.TEXT and node.mark(mark_type) is not None


def _wrap(value: str, marker: str) -> str:
    """Wrap text in a marker, keeping surrounding whitespace outside it."""
    core = value.strip()
    if not core:
        return value
    lead = value[: len(value) - len(value.lstrip())]
    trail = value[len(value.rstrip()):]
    return f"{lead}{marker}{core}{marker}{trail}"


# -- Markdown Parsing ----------------------------------------------------------

_RICH_BLOCK_START = re.compile(
    r"<(?P<tag>figure|table|iframe)\b[^>]*>"
    r"|<(?P<void>img)\b[^>]*>"
    r'|<(?P<div>div)\s+class="(?:prompt-box|youtube-embed|social-embed)[^"]*"[^>]*>',
    re.IGNORECASE,
)
_PLACEHOLDER = re.compile(r"^\x00RICH(\d+)\x00$")

_HEADING = re.compile(r"^(#{1,6})\s+(.*)$")
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_QUOTE = re.compile(r"^>\s?(.*)$")
_BULLET = re.compile(r"^[-*+]\s+(.*)$")
_ORDERED = re.compile(r"^(\d+)\.\s+(.*)$")

_TEXT_SPECIALS = re.compile(r"[\\*\[\]]")

# Bold content is plain characters, escapes and whole *italic* spans, so a
# closing ** never borrows the opening * of an adjacent italic run
_INLINE_TOKEN = re.compile(
    r"\\(?P<escaped>[\\*\[\]#>+\-._^])"
    r"|\*\*(?!\s)(?P<bold>(?:[^*\\]|\\.|\*(?!\s)(?:[^*\\]|\\.)+?(?<!\s)\*)+?)(?<!\s)\*\*"
    r"|\[(?P<link_text>(?:[^\]\\]|\\.)+)\]\((?P<href>[^)\s]+)\)(?P<new_tab>\^)?"
    r"|\*(?!\s)(?P<italic>(?:[^*\\]|\\.)+?)(?<!\s)\*"
    r"|(?P<br><br\s*/?>)"
    r"|(?P<newline>\n)",
    re.IGNORECASE,
)


def to_editable(persisted: Optional[str]) -> Node:
    """Parse persisted Markdown into an editable document.

    Args:
        persisted: Markdown string as stored for the article body.

    Returns:
        Document node. A document with one empty paragraph for empty input.
    """
    if not persisted or not persisted.strip():
        return empty_document()

    source = persisted.replace("\r\n", "\n").replace("\r", "\n").replace("\xa0", " ")
    rich_blocks: list[Node] = []
    source = _extract_rich_blocks(source, rich_blocks)
    source = _unwrap_plain_divs(source)

    blocks = _parse_blocks(source.split("\n"), rich_blocks)
    if not blocks:
        return empty_document()
    return doc(*blocks)


def _extract_rich_blocks(source: str, rich_blocks: list[Node]) -> str:
    """Replace rich HTML blocks with placeholder lines, parsing each one."""
    parts: list[str] = []
    pos = 0
    while True:
        match = _RICH_BLOCK_START.search(source, pos)
        if match is None:
            parts.append(source[pos:])
            break
        if match.group("void"):
            end = match.end()
        else:
            tag = (match.group("tag") or match.group("div")).lower()
            end = _find_block_end(source, tag, match.start())
        parts.append(source[pos:match.start()])
        parts.append(f"\n\n\x00RICH{len(rich_blocks)}\x00\n\n")
        rich_blocks.append(parse_rich_block(source[match.start():end]))
        pos = end
    return "".join(parts)


def _find_block_end(source: str, tag: str, start: int) -> int:
    """Index just past the tag closing the element opened at start."""
    token = re.compile(rf"<(/?){tag}\b[^>]*>", re.IGNORECASE)
    depth = 0
    for match in token.finditer(source, start):
        if match.group(1):
            depth -= 1
        elif not match.group(0).endswith("/>"):
            depth += 1
        if depth == 0:
            return match.end()
    return len(source)


def _unwrap_plain_divs(source: str) -> str:
    """Turn bare <div> wrappers from pasted rich text into paragraph breaks."""
    source = re.sub(r"<div>\s*</div>", "\n\n", source)
    source = re.sub(r"</div>\s*<div>", "\n\n", source)
    return re.sub(r"</?div>", "", source)


def _parse_blocks(lines: list[str], rich_blocks: list[Node]) -> list[Node]:
    blocks: list[Node] = []
    para_lines: list[str] = []
    quote_lines: list[str] = []
    list_node: Optional[Node] = None

    def flush_paragraph() -> None:
        if para_lines:
            blocks.append(paragraph(*parse_inline("\n".join(para_lines))))
            para_lines.clear()

    def flush_quote() -> None:
        if quote_lines:
            blocks.append(Node(NodeType.BLOCKQUOTE, content=parse_inline("\n".join(quote_lines))))
            quote_lines.clear()

    def flush_list() -> None:
        nonlocal list_node
        if list_node is not None:
            blocks.append(list_node)
            list_node = None

    def flush_all() -> None:
        flush_paragraph()
        flush_quote()
        flush_list()

    for raw in lines:
        line = raw.strip()
        if not line:
            flush_all()
            continue

        placeholder = _PLACEHOLDER.match(line)
        if placeholder:
            flush_all()
            blocks.append(rich_blocks[int(placeholder.group(1))])
            continue

        match = _HEADING.match(line)
        if match:
            flush_all()
            blocks.append(heading(len(match.group(1)), *parse_inline(match.group(2).strip())))
            continue

        if _RULE.match(line):
            flush_all()
            blocks.append(Node(NodeType.HORIZONTAL_RULE))
            continue

        match = _QUOTE.match(line)
        if match:
            flush_paragraph()
            flush_list()
            quote_lines.append(match.group(1))
            continue

        bullet = _BULLET.match(line)
        ordered = None if bullet else _ORDERED.match(line)
        if bullet or ordered:
            flush_paragraph()
            flush_quote()
            list_type = NodeType.BULLET_LIST if bullet else NodeType.ORDERED_LIST
            if list_node is None or list_node.type != list_type:
                flush_list()
                list_node = Node(list_type)
                if ordered and int(ordered.group(1)) != 1:
                    list_node.attrs["start"] = int(ordered.group(1))
            item_text = bullet.group(1) if bullet else ordered.group(2)
            list_node.content.append(Node(NodeType.LIST_ITEM, content=parse_inline(item_text)))
            continue

        flush_quote()
        flush_list()
        para_lines.append(line)

    flush_all()
    return blocks


def parse_inline(source: str, marks: Optional[list[Mark]] = None) -> list[Node]:
    """Parse inline Markdown into text and hard break nodes.

    Args:
        source: Inline Markdown
        marks: Marks inherited from enclosing formatting

    Returns:
        Normalized list of inline nodes
    """
    marks = list(marks or [])
    nodes: list[Node] = []
    pos = 0
    for match in _INLINE_TOKEN.finditer(source):
        if match.start() > pos:
            nodes.append(text(source[pos:match.start()], marks))
        pos = match.end()

        if match.group("escaped") is not None:
            nodes.append(text(match.group("escaped"), marks))
        elif match.group("bold") is not None:
            nodes.extend(parse_inline(match.group("bold"), marks + [Mark(MarkType.BOLD)]))
        elif match.group("link_text") is not None:
            attrs: dict[str, Any] = {"href": match.group("href")}
            if match.group("new_tab"):
                attrs["target"] = "_blank"
                attrs["rel"] = NEW_TAB_REL
            nodes.extend(parse_inline(match.group("link_text"), marks + [Mark(MarkType.LINK, attrs)]))
        elif match.group("italic") is not None:
            nodes.extend(parse_inline(match.group("italic"), marks + [Mark(MarkType.ITALIC)]))
        else:
            nodes.append(hard_break())

    if pos < len(source):
        nodes.append(text(source[pos:], marks))
    return normalize_inline(nodes)


# -- HTML Block Parsing ----------------------------------------------------------


def normalize_markup(markup: str) -> str:
    """Re-serialize an HTML snippet the way parsed blocks are serialized."""
    return BeautifulSoup(markup, "html.parser").decode().strip()


def parse_rich_block(fragment: str) -> Node:
    """Parse one persisted HTML fragment into a rich block node.

    Unrecognised fragments become htmlBlock nodes holding the raw markup.
    """
    soup = BeautifulSoup(fragment, "html.parser")
    element = soup.find(True)
    if element is None:
        return _html_block(fragment)

    name = element.name
    classes = element.get("class") or []

    if name == "figure":
        img = element.find("img")
        if img is None:
            return _html_block(fragment)
        caption = element.find("figcaption")
        return _image_node(img, caption.get_text(" ", strip=True) if caption else "")

    if name == "img":
        return _image_node(element, "")

    if name == "table":
        return _table_node(element)

    if name == "iframe":
        return _video_node(element.get("src", "")) or _html_block(fragment)

    if name == "div" and "youtube-embed" in classes:
        iframe = element.find("iframe")
        return _video_node(iframe.get("src", "") if iframe else "") or _html_block(fragment)

    if name == "div" and "prompt-box" in classes:
        return _prompt_node(element)

    if name == "div" and "social-embed" in classes:
        platform = next(
            (c[: -len("-embed")] for c in classes if c.endswith("-embed") and c != "social-embed"),
            "generic",
        )
        attrs: dict[str, Any] = {"platform": platform, "html": element.decode_contents().strip()}
        if element.get("data-url"):
            attrs["url"] = element["data-url"]
        return Node(NodeType.SOCIAL_EMBED, attrs=attrs)

    return _html_block(fragment)


def _html_block(fragment: str) -> Node:
    return Node(NodeType.HTML_BLOCK, attrs={"html": fragment.strip()})


def _image_node(img: Tag, caption: str) -> Node:
    size = img.get("data-size")
    if size not in IMAGE_SIZE_CLASSES:
        classes = img.get("class") or []
        size = next(
            (name for name, cls in IMAGE_SIZE_CLASSES.items() if cls in classes),
            DEFAULT_IMAGE_SIZE,
        )
    attrs: dict[str, Any] = {
        "src": img.get("src", ""),
        "alt": img.get("alt", ""),
        "size": size,
    }
    if img.get("title"):
        attrs["title"] = img["title"]
    if caption:
        attrs["caption"] = caption
    return Node(NodeType.IMAGE, attrs=attrs)


def _table_node(table: Tag) -> Node:
    rows: list[Node] = []
    for tr in table.find_all("tr"):
        cells = [
            Node(
                NodeType.TABLE_HEADER if cell.name == "th" else NodeType.TABLE_CELL,
                content=inline_from_html(cell),
            )
            for cell in tr.find_all(["th", "td"], recursive=False)
        ]
        rows.append(Node(NodeType.TABLE_ROW, content=cells))
    return Node(NodeType.TABLE, content=rows)


def _video_node(src: str) -> Optional[Node]:
    if "youtube.com/embed/" not in src and "youtube-nocookie.com/embed/" not in src:
        return None
    kind = "playlist" if "list=" in src else "video"
    return Node(NodeType.VIDEO_EMBED, attrs={"src": src, "kind": kind})


def _prompt_node(box: Tag) -> Node:
    title = box.get("data-prompt-title")
    if not title:
        title_el = box.find(class_="prompt-box-title")
        title = title_el.get_text(strip=True) if title_el else "Prompt"
    content = box.get("data-prompt-content")
    if content is None:
        body = box.find(class_="prompt-box-content")
        if body is not None:
            for br in body.find_all("br"):
                br.replace_with("\n")
            content = body.get_text()
        else:
            content = ""
    return Node(NodeType.PROMPT_BOX, attrs={"title": title, "content": content.strip()})


def inline_from_html(element: Tag, marks: Optional[list[Mark]] = None) -> list[Node]:
    """Convert the children of an HTML element to inline nodes."""
    marks = list(marks or [])
    nodes: list[Node] = []
    for child in element.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            value = re.sub(r"\s*\n\s*", " ", str(child))
            if value:
                nodes.append(text(value, marks))
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name
        if name == "br":
            nodes.append(hard_break())
        elif name in ("strong", "b"):
            nodes.extend(inline_from_html(child, marks + [Mark(MarkType.BOLD)]))
        elif name in ("em", "i"):
            nodes.extend(inline_from_html(child, marks + [Mark(MarkType.ITALIC)]))
        elif name == "a":
            attrs: dict[str, Any] = {"href": child.get("href", "")}
            if child.get("target") == "_blank":
                attrs["target"] = "_blank"
                attrs["rel"] = NEW_TAB_REL
            nodes.extend(inline_from_html(child, marks + [Mark(MarkType.LINK, attrs)]))
        else:
            nodes.extend(inline_from_html(child, marks))
    return normalize_inline(nodes)


# -- Plain Text Extraction -----------------------------------------------------


def to_plain_text(document: Optional[Node]) -> str:
    """Extract plain text from an editable document.

    Strips all formatting marks and returns clean text with newlines
    after block-level nodes.

    Args:
        document: Document node with type=doc at root.

    Returns:
        Plain text string. Empty string for invalid/empty input.
    """
    if document is None or document.type != NodeType.DOC:
        return ""
    return _extract_text_from_nodes(document.content).strip()


def _extract_text_from_nodes(nodes: list[Node]) -> str:
    """Recursively extract text from nodes, adding newlines after blocks."""
    parts: list[str] = []
    for node in nodes:
        if node.is_textblock:
            parts.append(inline_text(node))
            parts.append("\n")
        elif node.type == NodeType.IMAGE:
            if node.attrs.get("caption"):
                parts.append(node.attrs["caption"] + "\n")
        elif node.type == NodeType.PROMPT_BOX:
            parts.append(node.attrs.get("title", "") + "\n" + node.attrs.get("content", "") + "\n")
        elif node.content:
            parts.append(_extract_text_from_nodes(node.content))
    return "".join(parts)
