"""Article body editor API endpoints.

Provides stateless conversion endpoints and a stateful editor session API:
the browser surface reports edits and selections, opens insertion dialogs,
confirms them and uploads images. Every session endpoint answers with the
full session state, including the toasts raised since the last response.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from ..config import settings
from ..models.document import Node, NodeType
from ..models.selection import Position, SelectionRange
from ..schemas.editor import (
    ConvertDocumentRequest,
    ConvertHtmlResponse,
    ConvertMarkdownRequest,
    ConvertMarkdownResponse,
    DialogKind,
    DocumentInput,
    FormatRequest,
    ImageMetadataSchema,
    InsertionOutcomeResponse,
    InsertionRequest,
    KeywordUpdate,
    LinkPrefillResponse,
    PendingImageResponse,
    PositionSchema,
    SelectionSchema,
    SelectionUpdate,
    SessionCreate,
    SessionResponse,
    TextAction,
    TextRequest,
    ToastResponse,
    ValueUpdate,
)
from ..services.content_converter import to_editable, to_persisted, to_plain_text
from ..services.editor_errors import CompressionError, DialogStateError, PipelineBusyError
from ..services.editor_session import (
    EditorSession,
    EditorSessionStore,
    InsertionOutcome,
    get_session_store,
)
from ..services.html_renderer import render_html
from ..services.notifier import CollectingNotifier
from ..services.upload_pipeline import ImageMetadata, PREVIEW_URL_PREFIX, preview_registry

router = APIRouter(prefix="/api/editor", tags=["Editor"])


# ============================================================================
# Helper Functions
# ============================================================================


def get_session_or_404(session_id: str, store: EditorSessionStore) -> EditorSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Editor session {session_id} not found",
        )
    return session


def parse_document(data: dict) -> Node:
    """
    Build a document from request JSON.

    Raises:
        HTTPException: 400 if the JSON is not a valid document
    """
    try:
        document = Node.from_json(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid document: {str(e)}",
        )
    if document.type != NodeType.DOC:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid document: root node must be of type 'doc'",
        )
    return document


def selection_from_schema(selection: Optional[SelectionSchema]) -> Optional[SelectionRange]:
    if selection is None:
        return None
    return SelectionRange(
        anchor=Position(selection.anchor.node_id, selection.anchor.offset),
        focus=Position(selection.focus.node_id, selection.focus.offset),
    )


def selection_to_schema(selection: Optional[SelectionRange]) -> Optional[SelectionSchema]:
    if selection is None:
        return None
    return SelectionSchema(
        anchor=PositionSchema(node_id=selection.anchor.node_id, offset=selection.anchor.offset),
        focus=PositionSchema(node_id=selection.focus.node_id, offset=selection.focus.offset),
    )


def state_conflict(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def session_response(
    session: EditorSession,
    outcome: Optional[InsertionOutcome] = None,
) -> SessionResponse:
    """Snapshot a session, draining its pending toasts."""
    pending = session.pending_image
    pending_response = None
    if pending is not None:
        pending_response = PendingImageResponse(
            preview_url=pending.preview_url,
            original_filename=pending.original_filename,
            original_size=pending.image.original_size,
            compressed_size=pending.image.size,
            content_type=pending.image.content_type,
            metadata=ImageMetadataSchema(
                caption=pending.metadata.caption,
                alt=pending.metadata.alt,
                description=pending.metadata.description,
                size=pending.metadata.size,
                filename=pending.metadata.filename,
            ),
        )

    prefill = session.link_prefill
    toasts = session.notifier.drain() if isinstance(session.notifier, CollectingNotifier) else []

    return SessionResponse(
        id=session.id,
        value=session.value,
        html=session.html,
        document=session.document.to_json(),
        selection=selection_to_schema(session.selection),
        is_empty=session.is_empty,
        dialog=session.dialog,
        handler_state=session.state.value,
        pending_image=pending_response,
        link_prefill=LinkPrefillResponse(**vars(prefill)) if prefill is not None else None,
        outcome=(
            InsertionOutcomeResponse(accepted=outcome.accepted, message=outcome.message)
            if outcome is not None
            else None
        ),
        toasts=[ToastResponse(**toast.to_dict()) for toast in toasts],
    )


# ============================================================================
# Conversion
# ============================================================================


@router.post(
    "/convert/html",
    response_model=ConvertHtmlResponse,
    summary="Render persisted content",
    description="Parse a persisted article body and render it as editor HTML.",
)
async def convert_to_html(body: ConvertMarkdownRequest) -> ConvertHtmlResponse:
    document = to_editable(body.markdown)
    return ConvertHtmlResponse(html=render_html(document), document=document.to_json())


@router.post(
    "/convert/markdown",
    response_model=ConvertMarkdownResponse,
    summary="Serialize a document",
    description="Serialize an editor document to the persisted format.",
    responses={400: {"description": "Invalid document"}},
)
async def convert_to_markdown(body: ConvertDocumentRequest) -> ConvertMarkdownResponse:
    document = parse_document(body.document)
    return ConvertMarkdownResponse(
        markdown=to_persisted(document),
        plain_text=to_plain_text(document),
    )


# ============================================================================
# Sessions
# ============================================================================


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open an editor session",
)
async def create_session(
    body: SessionCreate,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = store.create(value=body.value, keyword_synonyms=body.keyword_synonyms)
    return session_response(session)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="Get editor session state",
    responses={404: {"description": "Session not found"}},
)
async def get_session(
    session_id: str,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    return session_response(get_session_or_404(session_id, store))


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close an editor session",
    responses={404: {"description": "Session not found"}},
)
async def close_session(
    session_id: str,
    store: EditorSessionStore = Depends(get_session_store),
) -> None:
    if not store.close(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Editor session {session_id} not found",
        )


@router.put(
    "/sessions/{session_id}/value",
    response_model=SessionResponse,
    summary="Replace content from outside the editor",
    description=(
        "Apply an external update (e.g. an AI rewrite). Echoes of the session's "
        "own output are ignored."
    ),
)
async def set_value(
    session_id: str,
    body: ValueUpdate,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    session.set_value(body.value)
    return session_response(session)


@router.put(
    "/sessions/{session_id}/keywords",
    response_model=SessionResponse,
    summary="Set keyword synonyms for image filenames",
)
async def set_keywords(
    session_id: str,
    body: KeywordUpdate,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    session.set_keyword_synonyms(body.keyword_synonyms)
    return session_response(session)


@router.post(
    "/sessions/{session_id}/input",
    response_model=SessionResponse,
    summary="Report a user edit",
    responses={400: {"description": "Invalid document"}},
)
async def handle_input(
    session_id: str,
    body: DocumentInput,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    session.handle_input(parse_document(body.document), selection_from_schema(body.selection))
    return session_response(session)


@router.put(
    "/sessions/{session_id}/selection",
    response_model=SessionResponse,
    summary="Report the live selection",
)
async def set_selection(
    session_id: str,
    body: SelectionUpdate,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    session.select(selection_from_schema(body.selection))
    return session_response(session)


@router.post(
    "/sessions/{session_id}/format",
    response_model=SessionResponse,
    summary="Apply a toolbar command",
)
async def apply_format(
    session_id: str,
    body: FormatRequest,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    session.apply_format(body.command, body.level)
    return session_response(session)


@router.post(
    "/sessions/{session_id}/text",
    response_model=SessionResponse,
    summary="Type, paste or press Enter",
)
async def text_input(
    session_id: str,
    body: TextRequest,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    if body.action == TextAction.TYPE:
        session.type_text(body.text)
    elif body.action == TextAction.PASTE:
        session.paste_text(body.text)
    else:
        session.press_enter()
    return session_response(session)


# ============================================================================
# Dialogs and insertion
# ============================================================================


@router.post(
    "/sessions/{session_id}/dialogs/confirm",
    response_model=SessionResponse,
    summary="Confirm the open dialog",
    description="Validation failures keep the dialog open and are reported in outcome and toasts.",
    responses={409: {"description": "No matching dialog is open"}},
)
async def confirm_dialog(
    session_id: str,
    body: InsertionRequest,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    try:
        outcome = session.confirm_dialog(body)
    except DialogStateError as e:
        raise state_conflict(e)
    return session_response(session, outcome)


@router.post(
    "/sessions/{session_id}/dialogs/{kind}",
    response_model=SessionResponse,
    summary="Open an insertion dialog",
    responses={409: {"description": "Another dialog is open"}},
)
async def open_dialog(
    session_id: str,
    kind: DialogKind,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    try:
        session.open_dialog(kind)
    except DialogStateError as e:
        raise state_conflict(e)
    return session_response(session)


@router.delete(
    "/sessions/{session_id}/dialogs",
    response_model=SessionResponse,
    summary="Cancel the open dialog",
    responses={409: {"description": "The pending image is being uploaded"}},
)
async def cancel_dialog(
    session_id: str,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    try:
        session.cancel_dialog()
    except PipelineBusyError as e:
        raise state_conflict(e)
    return session_response(session)


@router.post(
    "/sessions/{session_id}/insert",
    response_model=SessionResponse,
    summary="Insert content at the live selection",
    responses={409: {"description": "A dialog is open"}},
)
async def insert(
    session_id: str,
    body: InsertionRequest,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    try:
        outcome = session.insert(body)
    except DialogStateError as e:
        raise state_conflict(e)
    return session_response(session, outcome)


@router.delete(
    "/sessions/{session_id}/links/{node_id}",
    response_model=SessionResponse,
    summary="Remove a link",
    responses={404: {"description": "Session or link not found"}},
)
async def remove_link(
    session_id: str,
    node_id: str,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    if not session.remove_link(node_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Link {node_id} not found",
        )
    return session_response(session)


# ============================================================================
# Images
# ============================================================================


@router.post(
    "/sessions/{session_id}/images",
    response_model=SessionResponse,
    summary="Choose an image",
    description=(
        "Compress the image and open the image dialog with a local preview. "
        "Nothing is uploaded until the dialog is confirmed."
    ),
    responses={
        400: {"description": "Invalid file"},
        409: {"description": "Another dialog is open or an image is being processed"},
        413: {"description": "File too large"},
    },
)
async def choose_image(
    session_id: str,
    store: EditorSessionStore = Depends(get_session_store),
    file: UploadFile = File(..., description="The image to insert"),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)

    # Validate file is present
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided or file has no name",
        )

    content = await file.read()
    file_size = len(content)
    if file_size > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                f"File size ({file_size} bytes) exceeds maximum allowed "
                f"({settings.max_upload_bytes} bytes)"
            ),
        )

    try:
        await session.choose_image(content, file.filename, file.content_type)
    except (DialogStateError, PipelineBusyError) as e:
        raise state_conflict(e)
    except CompressionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session_response(session)


@router.post(
    "/sessions/{session_id}/images/confirm",
    response_model=SessionResponse,
    summary="Upload and insert the pending image",
    description="A failed upload keeps the image pending for a retry.",
    responses={409: {"description": "No image is pending or the upload is in progress"}},
)
async def confirm_image(
    session_id: str,
    body: Optional[ImageMetadataSchema] = None,
    store: EditorSessionStore = Depends(get_session_store),
) -> SessionResponse:
    session = get_session_or_404(session_id, store)
    metadata = ImageMetadata(**body.model_dump()) if body is not None else None
    try:
        outcome = await session.confirm_image(metadata)
    except (DialogStateError, PipelineBusyError) as e:
        raise state_conflict(e)
    return session_response(session, outcome)


@router.get(
    "/previews/{token}",
    summary="Get a local image preview",
    responses={404: {"description": "Preview not found or released"}},
)
async def get_preview(token: str) -> Response:
    preview = preview_registry.get(token)
    if preview is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Preview {PREVIEW_URL_PREFIX}{token} not found",
        )
    data, content_type = preview
    return Response(content=data, media_type=content_type)
