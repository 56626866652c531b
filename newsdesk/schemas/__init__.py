"""Pydantic schemas package for request/response validation."""

from .editor import (
    ConvertDocumentRequest,
    ConvertHtmlResponse,
    ConvertMarkdownRequest,
    ConvertMarkdownResponse,
    DialogKind,
    DocumentInput,
    FormatCommand,
    FormatRequest,
    ImageInsert,
    ImageMetadataSchema,
    ImageSize,
    InsertionOutcomeResponse,
    InsertionRequest,
    KeywordUpdate,
    LinkInsert,
    LinkPrefillResponse,
    PendingImageResponse,
    PositionSchema,
    PromptBoxInsert,
    SelectionSchema,
    SelectionUpdate,
    SessionCreate,
    SessionResponse,
    SocialEmbedInsert,
    TableInsert,
    TextAction,
    TextRequest,
    ToastResponse,
    ValueUpdate,
    VideoEmbedInsert,
)

__all__ = [
    # Enums
    "DialogKind",
    "FormatCommand",
    "ImageSize",
    "TextAction",
    # Insertion requests
    "ImageInsert",
    "InsertionRequest",
    "LinkInsert",
    "PromptBoxInsert",
    "SocialEmbedInsert",
    "TableInsert",
    "VideoEmbedInsert",
    # Session requests
    "DocumentInput",
    "FormatRequest",
    "ImageMetadataSchema",
    "KeywordUpdate",
    "PositionSchema",
    "SelectionSchema",
    "SelectionUpdate",
    "SessionCreate",
    "TextRequest",
    "ValueUpdate",
    # Conversion
    "ConvertDocumentRequest",
    "ConvertHtmlResponse",
    "ConvertMarkdownRequest",
    "ConvertMarkdownResponse",
    # Responses
    "InsertionOutcomeResponse",
    "LinkPrefillResponse",
    "PendingImageResponse",
    "SessionResponse",
    "ToastResponse",
]
