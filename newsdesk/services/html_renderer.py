"""HTML rendering of the editable document.

Renders the document tree as the HTML shown on the editing surface, and
builds the HTML fragments that rich blocks (images, tables, embeds, prompt
boxes) are persisted as. The persisted fragments and the live surface use the
same markup so published articles render exactly what the editor showed.
"""

import html
from typing import Any, Optional

from ..models.document import MarkType, Node, NodeType

IMAGE_SIZE_CLASSES: dict[str, str] = {
    "small": "max-w-xs",
    "medium": "max-w-md",
    "large": "max-w-full",
}
DEFAULT_IMAGE_SIZE = "large"
IMAGE_BASE_CLASS = "rounded-lg h-auto"
FIGCAPTION_CLASS = "text-sm text-muted-foreground mt-2 text-center italic"
TABLE_CLASS = "editor-table"

VIDEO_WRAPPER_STYLE = (
    "position: relative; padding-bottom: 56.25%; height: 0; overflow: hidden; "
    "max-width: 100%; margin: 2rem 0;"
)
VIDEO_IFRAME_STYLE = "position: absolute; top: 0; left: 0; width: 100%; height: 100%;"
VIDEO_IFRAME_ALLOW = (
    "accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture"
)

SOCIAL_EMBED_STYLES: dict[str, str] = {
    "instagram": "margin: 2rem 0; max-width: 540px;",
    "tiktok": "margin: 2rem 0; max-width: 325px;",
}
DEFAULT_SOCIAL_STYLE = "margin: 2rem 0;"

PROMPT_BOX_ICON = "✨"
PROMPT_COPY_SCRIPT = (
    "var b = this; "
    "navigator.clipboard.writeText(b.closest('.prompt-box').dataset.promptContent); "
    "b.innerHTML = '✓ Copied!'; "
    "setTimeout(function () { b.innerHTML = 'Copy'; }, 2000);"
)


def escape_text(value: str) -> str:
    return html.escape(value, quote=False)


def escape_attr(value: Any) -> str:
    """Escape an attribute value, keeping newlines as character references."""
    return html.escape(str(value), quote=True).replace("\r", "").replace("\n", "&#10;")


def size_class(size: str) -> str:
    return IMAGE_SIZE_CLASSES.get(size, IMAGE_SIZE_CLASSES[DEFAULT_IMAGE_SIZE])


# -- Inline ---------------------------------------------------------------------


def link_key(node: Node) -> Optional[tuple]:
    link = node.mark(MarkType.LINK) if node.type == NodeType.TEXT else None
    if link is None:
        return None
    return (link.attrs.get("href", ""), link.attrs.get("target"), link.attrs.get("rel"))


def group_link_runs(content: list[Node]) -> list[tuple[Optional[tuple], list[Node]]]:
    """Group consecutive inline nodes sharing the same link mark."""
    runs: list[tuple[Optional[tuple], list[Node]]] = []
    for node in content:
        key = link_key(node)
        if runs and runs[-1][0] == key and key is not None:
            runs[-1][1].append(node)
        else:
            runs.append((key, [node]))
    return runs


def render_inline(content: list[Node]) -> str:
    """Render inline nodes (text with marks, hard breaks) to HTML."""
    parts: list[str] = []
    for key, nodes in group_link_runs(content):
        inner = "".join(_render_inline_node(node) for node in nodes)
        if key is None:
            parts.append(inner)
            continue
        href, target, rel = key
        attrs = f' href="{escape_attr(href)}"'
        if target:
            attrs += f' target="{escape_attr(target)}"'
        if rel:
            attrs += f' rel="{escape_attr(rel)}"'
        parts.append(f"<a{attrs}>{inner}</a>")
    return "".join(parts)


def _render_inline_node(node: Node) -> str:
    if node.type == NodeType.HARD_BREAK:
        return "<br>"
    value = escape_text(node.text)
    if node.mark(MarkType.ITALIC):
        value = f"<em>{value}</em>"
    if node.mark(MarkType.BOLD):
        value = f"<strong>{value}</strong>"
    return value


# -- Rich block fragments -------------------------------------------------------


def render_image(attrs: dict[str, Any]) -> str:
    """
    Render an image, wrapped in a figure with a caption when one is set.

    The size class is exactly one of max-w-xs, max-w-md or max-w-full.
    """
    size = attrs.get("size") or DEFAULT_IMAGE_SIZE
    img = f'<img src="{escape_attr(attrs.get("src", ""))}" alt="{escape_attr(attrs.get("alt") or "")}"'
    if attrs.get("title"):
        img += f' title="{escape_attr(attrs["title"])}"'
    img += f' data-size="{escape_attr(size)}" class="{IMAGE_BASE_CLASS} {size_class(size)}">'

    caption = attrs.get("caption")
    if not caption:
        return img
    return (
        f"<figure>{img}"
        f'<figcaption class="{FIGCAPTION_CLASS}">{escape_text(caption)}</figcaption>'
        "</figure>"
    )


def render_table(node: Node) -> str:
    rows: list[str] = []
    for row in node.content:
        cells: list[str] = []
        for cell in row.content:
            tag = "th" if cell.type == NodeType.TABLE_HEADER else "td"
            cells.append(f"<{tag}>{render_inline(cell.content)}</{tag}>")
        rows.append("<tr>" + "".join(cells) + "</tr>")
    return f'<table class="{TABLE_CLASS}"><tbody>' + "".join(rows) + "</tbody></table>"


def render_video_embed(attrs: dict[str, Any]) -> str:
    src = escape_attr(attrs.get("src", ""))
    return (
        f'<div class="youtube-embed" style="{VIDEO_WRAPPER_STYLE}">'
        f'<iframe src="{src}" style="{VIDEO_IFRAME_STYLE}" frameborder="0" '
        f'allow="{VIDEO_IFRAME_ALLOW}" allowfullscreen></iframe>'
        "</div>"
    )


def render_prompt_box(attrs: dict[str, Any]) -> str:
    """
    Render a prompt box.

    The raw prompt is kept in data-prompt-content for the copy button; the
    visible content turns newlines into line breaks.
    """
    title = attrs.get("title") or "Prompt"
    content = attrs.get("content", "")
    body = "<br>".join(escape_text(line) for line in content.split("\n"))
    return (
        f'<div class="prompt-box" data-prompt-title="{escape_attr(title)}" '
        f'data-prompt-content="{escape_attr(content)}">'
        '<div class="prompt-box-header">'
        f'<span class="prompt-box-icon">{PROMPT_BOX_ICON}</span>'
        f'<span class="prompt-box-title">{escape_text(title)}</span>'
        f'<button class="prompt-box-copy" onclick="{escape_attr(PROMPT_COPY_SCRIPT)}" '
        'type="button">Copy</button>'
        "</div>"
        f'<div class="prompt-box-content">{body}</div>'
        "</div>"
    )


def render_social_embed(attrs: dict[str, Any]) -> str:
    platform = attrs.get("platform") or "generic"
    style = SOCIAL_EMBED_STYLES.get(platform, DEFAULT_SOCIAL_STYLE)
    data_url = f' data-url="{escape_attr(attrs["url"])}"' if attrs.get("url") else ""
    return (
        f'<div class="social-embed {escape_attr(platform)}-embed"{data_url} style="{style}">'
        f'{attrs.get("html", "")}'
        "</div>"
    )


def render_rich_block(node: Node) -> str:
    """Render an atom block to its HTML fragment."""
    if node.type == NodeType.IMAGE:
        return render_image(node.attrs)
    if node.type == NodeType.TABLE:
        return render_table(node)
    if node.type == NodeType.VIDEO_EMBED:
        return render_video_embed(node.attrs)
    if node.type == NodeType.PROMPT_BOX:
        return render_prompt_box(node.attrs)
    if node.type == NodeType.SOCIAL_EMBED:
        return render_social_embed(node.attrs)
    if node.type == NodeType.HTML_BLOCK:
        return node.attrs.get("html", "")
    if node.type == NodeType.HORIZONTAL_RULE:
        return "<hr>"
    raise ValueError(f"Not a rich block: {node.type.value}")


# -- Whole document -------------------------------------------------------------


def render_html(document: Node) -> str:
    """Render a document to the HTML of the editing surface."""
    return "".join(render_block(block) for block in document.content)


def render_block(node: Node) -> str:
    t = node.type

    if t == NodeType.PARAGRAPH:
        inner = render_inline(node.content)
        return f"<p>{inner or '<br>'}</p>"

    if t == NodeType.HEADING:
        level = min(max(int(node.attrs.get("level", 1)), 1), 6)
        return f"<h{level}>{render_inline(node.content)}</h{level}>"

    if t == NodeType.BLOCKQUOTE:
        return f"<blockquote>{render_inline(node.content)}</blockquote>"

    if t in (NodeType.BULLET_LIST, NodeType.ORDERED_LIST):
        items = "".join(f"<li>{render_inline(item.content)}</li>" for item in node.content)
        if t == NodeType.BULLET_LIST:
            return f"<ul>{items}</ul>"
        start = int(node.attrs.get("start", 1))
        start_attr = f' start="{start}"' if start != 1 else ""
        return f"<ol{start_attr}>{items}</ol>"

    if node.is_atom:
        return render_rich_block(node)

    # Unknown node -- render children (graceful degradation)
    return "".join(render_block(child) for child in node.content)
