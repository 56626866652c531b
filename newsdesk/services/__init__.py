"""Editor services."""

from .content_converter import to_editable, to_persisted, to_plain_text
from .document_editor import (
    LinkInfo,
    apply_format,
    apply_link,
    edit_link,
    find_link_at,
    insert_blocks,
    insert_inline,
    paste_text,
    press_enter,
    remove_link,
    resolve_position,
    resolve_range,
    selected_text,
    type_text,
)
from .editor_errors import (
    CompressionError,
    ContentValidationError,
    DialogStateError,
    EditorError,
    PipelineBusyError,
    SelectionLost,
    UploadError,
)
from .editor_session import (
    EditorSession,
    EditorSessionStore,
    HandlerState,
    InsertionOutcome,
    LinkPrefill,
    get_session_store,
    session_store,
)
from .html_renderer import render_html
from .image_compression import CompressedImage, CompressionOptions, compress_image
from .insertion_service import InsertionResult, apply_insertion
from .minio_service import (
    MinIOService,
    MinIOServiceError,
    get_minio_service,
    minio_service,
)
from .notifier import CollectingNotifier, Notifier, Toast
from .selection_service import SelectionManager
from .upload_pipeline import (
    FilenameSuggester,
    ImageMetadata,
    PendingImage,
    PreviewRegistry,
    UploadPipeline,
    generate_slug,
    preview_registry,
)

__all__ = [
    # Content conversion
    "to_editable",
    "to_persisted",
    "to_plain_text",
    "render_html",
    # Document editing
    "LinkInfo",
    "apply_format",
    "apply_link",
    "edit_link",
    "find_link_at",
    "insert_blocks",
    "insert_inline",
    "paste_text",
    "press_enter",
    "remove_link",
    "resolve_position",
    "resolve_range",
    "selected_text",
    "type_text",
    # Errors
    "CompressionError",
    "ContentValidationError",
    "DialogStateError",
    "EditorError",
    "PipelineBusyError",
    "SelectionLost",
    "UploadError",
    # Sessions
    "EditorSession",
    "EditorSessionStore",
    "HandlerState",
    "InsertionOutcome",
    "LinkPrefill",
    "get_session_store",
    "session_store",
    "SelectionManager",
    # Insertion
    "InsertionResult",
    "apply_insertion",
    # Images
    "CompressedImage",
    "CompressionOptions",
    "compress_image",
    "FilenameSuggester",
    "ImageMetadata",
    "PendingImage",
    "PreviewRegistry",
    "UploadPipeline",
    "generate_slug",
    "preview_registry",
    # Storage
    "MinIOService",
    "MinIOServiceError",
    "get_minio_service",
    "minio_service",
    # Notifications
    "CollectingNotifier",
    "Notifier",
    "Toast",
]
