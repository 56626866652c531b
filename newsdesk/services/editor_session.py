"""Editor sessions.

An EditorSession owns one article body being edited: the document, the live
selection, the saved selection for dialogs, the dialog state and the image
upload pipeline. It is the only writer of its document. Every change is
serialized right away and pushed through on_change, which is the only way the
owning form observes the content.

Dialog flow:
    Idle -> DialogOpen -> Validating -> Inserting -> Idle
                              |
                              +-> DialogOpen (validation rejected)
    Cancelling from DialogOpen returns to Idle with the document untouched.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from ..models.document import Node, paragraph
from ..models.selection import Position, SelectionRange
from ..schemas.editor import DialogKind, FormatCommand, InsertionRequest
from .content_converter import to_editable, to_persisted
from .document_editor import (
    apply_format,
    find_link_at,
    paste_text,
    press_enter,
    remove_link,
    resolve_range,
    selected_text,
    type_text,
)
from .editor_errors import (
    CompressionError,
    ContentValidationError,
    DialogStateError,
    PipelineBusyError,
    SelectionLost,
    UploadError,
)
from .html_renderer import render_html
from .insertion_service import apply_insertion
from .minio_service import MinIOService, minio_service
from .notifier import CollectingNotifier, Notifier, Toast
from .selection_service import SelectionManager
from .upload_pipeline import (
    FilenameSuggester,
    ImageMetadata,
    PendingImage,
    PreviewRegistry,
    UploadPipeline,
)

logger = logging.getLogger(__name__)


class HandlerState(str, Enum):
    """State of the insertion dialog flow."""

    IDLE = "idle"
    DIALOG_OPEN = "dialogOpen"
    VALIDATING = "validating"
    INSERTING = "inserting"


@dataclass
class InsertionOutcome:
    """Result of confirming a dialog. Rejections carry the user-facing message."""

    accepted: bool
    message: Optional[str] = None


@dataclass
class LinkPrefill:
    """Initial values of the link dialog."""

    url: str = ""
    text: str = ""
    open_in_new_tab: bool = False
    existing_node_id: Optional[str] = None


class EditorSession:
    """One article body being edited."""

    def __init__(
        self,
        value: str = "",
        notifier: Optional[Notifier] = None,
        storage: Optional[MinIOService] = None,
        previews: Optional[PreviewRegistry] = None,
        keyword_synonyms: str = "",
        on_change: Optional[Callable[[str], None]] = None,
        on_select: Optional[Callable[[str], None]] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or uuid4().hex
        self.notifier = notifier if notifier is not None else CollectingNotifier()
        self.on_change = on_change
        self.on_select = on_select

        self.document: Node = to_editable(value)
        self.selection: Optional[SelectionRange] = None
        self.selections = SelectionManager()
        self.dialog: Optional[DialogKind] = None
        self.state = HandlerState.IDLE
        self.link_prefill: Optional[LinkPrefill] = None

        self.pipeline = UploadPipeline(
            storage=storage or minio_service,
            notifier=self.notifier,
            previews=previews,
            suggester=FilenameSuggester(keyword_synonyms),
        )

        self._value = to_persisted(self.document)
        self._last_emitted: Optional[str] = None

    # -- Content -------------------------------------------------------------------

    @property
    def value(self) -> str:
        """Current persisted serialization of the document."""
        return self._value

    @property
    def html(self) -> str:
        return render_html(self.document)

    @property
    def is_empty(self) -> bool:
        return not self._value

    @property
    def pending_image(self) -> Optional[PendingImage]:
        return self.pipeline.pending

    def _commit(self, document: Node, caret: Optional[Position] = None) -> None:
        """Swap in a new document, serialize it and notify the owner."""
        self.document = document
        if caret is not None:
            self.selection = SelectionRange(caret, caret)
        self._value = to_persisted(document)
        self._last_emitted = self._value
        if self.on_change is not None:
            self.on_change(self._value)

    def handle_input(self, document: Node, selection: Optional[SelectionRange] = None) -> str:
        """
        Apply a user edit made on the surface.

        A document without blocks gets one empty paragraph.

        Args:
            document: The edited document
            selection: Selection after the edit

        Returns:
            The new persisted value
        """
        if not document.content:
            document.content = [paragraph()]
        self._commit(document)
        self.select(selection)
        return self._value

    def set_value(self, value: Optional[str]) -> bool:
        """
        Apply an external update of the persisted value.

        The surface is re-rendered only when the value differs from the current
        serialization and from the last value this session emitted. Echoes of
        the session's own output therefore never clobber in-progress typing.

        Returns:
            True if the document was replaced
        """
        value = value or ""
        if value in (self._value, self._last_emitted):
            return False

        self.document = to_editable(value)
        self.selection = None
        self._value = to_persisted(self.document)
        logger.info(f"Session {self.id}: applied external update ({len(value)} chars)")
        return True

    # -- Selection -----------------------------------------------------------------

    def select(self, selection: Optional[SelectionRange]) -> str:
        """
        Set the live selection.

        Returns:
            The selected text; on_select fires when it is not empty
        """
        if selection is not None:
            try:
                resolve_range(self.document, selection)
            except SelectionLost as e:
                logger.debug(f"Session {self.id}: ignoring stale selection: {e}")
                selection = None
        self.selection = selection

        text = selected_text(self.document, selection)
        if text and self.on_select is not None:
            self.on_select(text)
        return text

    def _live_selection(self) -> Optional[SelectionRange]:
        if self.selection is None:
            return None
        try:
            resolve_range(self.document, self.selection)
        except SelectionLost:
            self.selection = None
        return self.selection

    # -- Dialogs -------------------------------------------------------------------

    def open_dialog(self, kind: DialogKind) -> Optional[LinkPrefill]:
        """
        Open an insertion dialog, saving the live selection.

        Returns:
            The link dialog prefill for DialogKind.LINK, otherwise None

        Raises:
            DialogStateError: If a dialog is already open
        """
        if self.state != HandlerState.IDLE:
            raise DialogStateError(f"The {self.dialog.value} dialog is already open")

        self.selections.save(self._live_selection())
        self.dialog = kind
        self.state = HandlerState.DIALOG_OPEN
        if kind == DialogKind.LINK:
            self.link_prefill = self._link_prefill()
        return self.link_prefill

    def _link_prefill(self) -> LinkPrefill:
        selection = self.selections.saved
        if selection is None:
            return LinkPrefill()
        link = find_link_at(self.document, selection)
        if link is not None:
            return LinkPrefill(
                url=link.href,
                text=link.text,
                open_in_new_tab=link.open_in_new_tab,
                existing_node_id=link.node_id,
            )
        return LinkPrefill(text=selected_text(self.document, selection))

    def confirm_dialog(self, request: InsertionRequest) -> InsertionOutcome:
        """
        Confirm the open dialog with its parameters.

        Invalid parameters are reported through the notifier and keep the
        dialog open; they do not raise.

        Raises:
            DialogStateError: If no dialog is open or the request is for another dialog
        """
        if self.state != HandlerState.DIALOG_OPEN:
            raise DialogStateError("No dialog is open")
        if DialogKind(request.kind) != self.dialog:
            raise DialogStateError(
                f"A {request.kind} request cannot confirm the {self.dialog.value} dialog"
            )

        self.state = HandlerState.VALIDATING
        self.selections.restore(self.document)
        outcome = self._insert(request, self.selections.saved)
        if outcome.accepted:
            self._close_dialog()
        else:
            self.state = HandlerState.DIALOG_OPEN
        return outcome

    def insert(self, request: InsertionRequest) -> InsertionOutcome:
        """
        Run an insertion handler without a dialog, at the live selection.

        Raises:
            DialogStateError: If a dialog is open
        """
        if self.state != HandlerState.IDLE:
            raise DialogStateError(f"The {self.dialog.value} dialog is open")
        outcome = self._insert(request, self._live_selection())
        self.state = HandlerState.IDLE
        return outcome

    def _insert(
        self,
        request: InsertionRequest,
        selection: Optional[SelectionRange],
    ) -> InsertionOutcome:
        try:
            result = apply_insertion(self.document, selection, request)
        except ContentValidationError as e:
            self.notifier.notify(Toast("Invalid input", str(e), "destructive"))
            return InsertionOutcome(accepted=False, message=str(e))
        except SelectionLost as e:
            logger.warning(f"Session {self.id}: insertion target lost: {e}")
            message = "The link no longer exists"
            self.notifier.notify(Toast("Invalid input", message, "destructive"))
            return InsertionOutcome(accepted=False, message=message)

        self.state = HandlerState.INSERTING
        self._commit(result.document, result.caret)
        return InsertionOutcome(accepted=True)

    def cancel_dialog(self) -> None:
        """
        Close the open dialog without inserting.

        The document and value stay untouched; a pending image is discarded
        and its preview released.

        Raises:
            PipelineBusyError: If the pending image is being uploaded
        """
        if self.state == HandlerState.IDLE:
            return
        if self.pipeline.is_uploading:
            raise PipelineBusyError("The image is being uploaded")
        self._close_dialog()

    def _close_dialog(self) -> None:
        self.pipeline.discard()
        self.dialog = None
        self.state = HandlerState.IDLE
        self.link_prefill = None
        self.selections.clear()

    # -- Editing -------------------------------------------------------------------

    def apply_format(self, command: FormatCommand, level: Optional[int] = None) -> None:
        """Apply a toolbar command at the live selection."""
        document, selection = apply_format(self.document, self._live_selection(), command, level)
        if document is self.document:
            return
        self._commit(document)
        self.selection = selection

    def remove_link(self, node_id: str) -> bool:
        """
        Unlink a link run. Closes the link dialog when it is open.

        Returns:
            False if the link is no longer in the document
        """
        try:
            document, caret = remove_link(self.document, node_id)
        except SelectionLost as e:
            logger.debug(f"Session {self.id}: link to remove is gone: {e}")
            return False
        self._commit(document, caret)
        if self.dialog == DialogKind.LINK:
            self._close_dialog()
        return True

    def type_text(self, value: str) -> None:
        document, caret = type_text(self.document, self._live_selection(), value)
        self._commit(document, caret)

    def paste_text(self, value: str) -> None:
        document, caret = paste_text(self.document, self._live_selection(), value)
        self._commit(document, caret)

    def press_enter(self) -> None:
        document, caret = press_enter(self.document, self._live_selection())
        self._commit(document, caret)

    # -- Images --------------------------------------------------------------------

    def set_keyword_synonyms(self, keyword_synonyms: str) -> None:
        self.pipeline.suggester.set_keywords(keyword_synonyms)

    async def choose_image(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> PendingImage:
        """
        Compress a chosen image and open the image dialog with its preview.

        Raises:
            DialogStateError: If another dialog is open
            PipelineBusyError: If an image is being processed
            CompressionError: If the file is not a readable image
        """
        if self.state != HandlerState.IDLE and self.dialog != DialogKind.IMAGE:
            raise DialogStateError(f"The {self.dialog.value} dialog is open")

        opened_here = self.state == HandlerState.IDLE
        if opened_here:
            self.open_dialog(DialogKind.IMAGE)
        try:
            return await self.pipeline.select_file(data, filename, content_type)
        except CompressionError:
            if opened_here:
                self._close_dialog()
            raise

    async def confirm_image(self, metadata: Optional[ImageMetadata] = None) -> InsertionOutcome:
        """
        Upload the pending image and insert it at the saved selection.

        A failed upload is reported and leaves the dialog open with the image
        still pending, ready for a retry.

        Raises:
            DialogStateError: If the image dialog is not open or nothing is pending
            PipelineBusyError: If the image is already being uploaded
        """
        if self.state != HandlerState.DIALOG_OPEN or self.dialog != DialogKind.IMAGE:
            raise DialogStateError("The image dialog is not open")
        try:
            request = await self.pipeline.confirm(metadata)
        except UploadError as e:
            return InsertionOutcome(accepted=False, message=str(e))
        return self.confirm_dialog(request)

    def close(self) -> None:
        """Release held previews."""
        self.pipeline.discard()


class EditorSessionStore:
    """In-memory editor sessions keyed by id."""

    def __init__(
        self,
        storage: Optional[MinIOService] = None,
        previews: Optional[PreviewRegistry] = None,
    ):
        self.storage = storage
        self.previews = previews
        self._sessions: dict[str, EditorSession] = {}

    def create(self, value: str = "", keyword_synonyms: str = "") -> EditorSession:
        session = EditorSession(
            value=value,
            storage=self.storage,
            previews=self.previews,
            keyword_synonyms=keyword_synonyms,
        )
        self._sessions[session.id] = session
        logger.info(f"Opened editor session {session.id}")
        return session

    def get(self, session_id: str) -> Optional[EditorSession]:
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Closed editor session {session_id}")
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


# Global store instance
session_store = EditorSessionStore()


def get_session_store() -> EditorSessionStore:
    """
    FastAPI dependency for getting the session store.

    Returns:
        Editor session store instance
    """
    return session_store
