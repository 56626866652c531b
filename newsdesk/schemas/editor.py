"""Pydantic schemas for the article body editor."""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class FormatCommand(str, Enum):
    """Toolbar formatting commands."""

    BOLD = "bold"
    ITALIC = "italic"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    UNORDERED_LIST = "unorderedList"
    ORDERED_LIST = "orderedList"
    QUOTE = "quote"
    RULE = "rule"


class DialogKind(str, Enum):
    """Insertion dialogs; at most one is open per session."""

    IMAGE = "image"
    LINK = "link"
    TABLE = "table"
    VIDEO_EMBED = "videoEmbed"
    PROMPT_BOX = "promptBox"
    SOCIAL_EMBED = "socialEmbed"


class ImageSize(str, Enum):
    """Display width of an inserted image."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class TextAction(str, Enum):
    """Keyboard and clipboard input."""

    TYPE = "type"
    PASTE = "paste"
    ENTER = "enter"


# -- Insertion requests ---------------------------------------------------------


class ImageInsert(BaseModel):
    """Insert an image by URL."""

    kind: Literal["image"] = "image"
    url: str = Field("", description="Public image URL", examples=["https://cdn.example.com/a.jpg"])
    caption: str = Field("", description="Visible caption under the image")
    alt: str = Field("", description="Alternative text")
    description: str = Field("", description="Image description, used as the title attribute")
    size: ImageSize = Field(ImageSize.LARGE, description="Display width")


class LinkInsert(BaseModel):
    """Insert a link, or rewrite an existing one."""

    kind: Literal["link"] = "link"
    url: str = Field("", description="Link target", examples=["https://example.com"])
    text: str = Field("", description="Link text; the URL is used when empty")
    open_in_new_tab: bool = Field(False, description="Open the link in a new tab")
    existing_node_id: Optional[str] = Field(
        None,
        description="Id of a text node in the link being edited",
    )


class TableInsert(BaseModel):
    """Insert a table with placeholder cells."""

    kind: Literal["table"] = "table"
    rows: int = Field(3, description="Number of rows, header row included")
    columns: int = Field(3, description="Number of columns")
    has_header: bool = Field(True, description="Render the first row as header cells")


class VideoEmbedInsert(BaseModel):
    """Embed a YouTube video or playlist."""

    kind: Literal["videoEmbed"] = "videoEmbed"
    source_url: str = Field(
        "",
        description="YouTube watch, short, embed or playlist URL",
        examples=["https://www.youtube.com/watch?v=dQw4w9WgXcQ"],
    )


class PromptBoxInsert(BaseModel):
    """Insert a copyable prompt box."""

    kind: Literal["promptBox"] = "promptBox"
    title: str = Field("Prompt", description="Prompt box title")
    content: str = Field("", description="Prompt text")


class SocialEmbedInsert(BaseModel):
    """Embed a Twitter/X, Instagram or TikTok post."""

    kind: Literal["socialEmbed"] = "socialEmbed"
    raw_code_or_url: str = Field("", description="Embed markup or post URL")


InsertionRequest = Annotated[
    Union[
        ImageInsert,
        LinkInsert,
        TableInsert,
        VideoEmbedInsert,
        PromptBoxInsert,
        SocialEmbedInsert,
    ],
    Field(discriminator="kind"),
]


# -- Session requests -----------------------------------------------------------


class PositionSchema(BaseModel):
    node_id: str = Field(..., description="Id of a text node, textblock or atom block")
    offset: int = Field(0, ge=0, description="Character offset, or 0/1 before/after an atom")


class SelectionSchema(BaseModel):
    anchor: PositionSchema
    focus: PositionSchema


class SessionCreate(BaseModel):
    """Schema for opening an editor session."""

    value: str = Field("", description="Persisted article body")
    keyword_synonyms: str = Field(
        "",
        description="Comma-separated keyword synonyms used for image filenames",
        examples=["solar panels, rooftop solar"],
    )


class ValueUpdate(BaseModel):
    """External update of the persisted value."""

    value: str = Field(..., description="Persisted article body")


class DocumentInput(BaseModel):
    """A user edit made on the surface, as a whole document."""

    document: dict[str, Any] = Field(..., description="Document JSON with type=doc at root")
    selection: Optional[SelectionSchema] = None


class SelectionUpdate(BaseModel):
    selection: Optional[SelectionSchema] = Field(None, description="Live selection, null to blur")


class FormatRequest(BaseModel):
    command: FormatCommand
    level: Optional[int] = Field(None, ge=1, le=6, description="Heading level")


class TextRequest(BaseModel):
    action: TextAction
    text: str = Field("", description="Typed or pasted text")


class KeywordUpdate(BaseModel):
    keyword_synonyms: str = Field("", description="Comma-separated keyword synonyms")


class ImageMetadataSchema(BaseModel):
    """Editable metadata of the pending image."""

    caption: str = ""
    alt: str = ""
    description: str = ""
    size: ImageSize = ImageSize.LARGE
    filename: str = Field("", description="Filename stem used to build the storage key")


class ConvertMarkdownRequest(BaseModel):
    markdown: str = Field("", description="Persisted article body")


class ConvertDocumentRequest(BaseModel):
    document: dict[str, Any] = Field(..., description="Document JSON with type=doc at root")


# -- Responses ------------------------------------------------------------------


class ToastResponse(BaseModel):
    title: str
    description: str = ""
    variant: str = "default"


class PendingImageResponse(BaseModel):
    preview_url: str
    original_filename: str
    original_size: int
    compressed_size: int
    content_type: str
    metadata: ImageMetadataSchema


class LinkPrefillResponse(BaseModel):
    url: str = ""
    text: str = ""
    open_in_new_tab: bool = False
    existing_node_id: Optional[str] = None


class InsertionOutcomeResponse(BaseModel):
    accepted: bool
    message: Optional[str] = None


class SessionResponse(BaseModel):
    """Editor session state returned by every session endpoint."""

    id: str
    value: str
    html: str
    document: dict[str, Any]
    selection: Optional[SelectionSchema] = None
    is_empty: bool
    dialog: Optional[DialogKind] = None
    handler_state: str
    pending_image: Optional[PendingImageResponse] = None
    link_prefill: Optional[LinkPrefillResponse] = None
    outcome: Optional[InsertionOutcomeResponse] = None
    toasts: list[ToastResponse] = Field(default_factory=list)


class ConvertHtmlResponse(BaseModel):
    html: str
    document: dict[str, Any]


class ConvertMarkdownResponse(BaseModel):
    markdown: str
    plain_text: str
