"""Selection save/restore across asynchronous gaps.

Opening a dialog moves focus away from the editing surface, and uploads take
time. The selection is saved when a dialog opens and restored before content
is inserted so the content lands where the user left the caret.
"""

import logging
from typing import Optional

from ..models.document import Node
from ..models.selection import ResolvedRange, SelectionRange
from .document_editor import end_selection, resolve_range
from .editor_errors import SelectionLost

logger = logging.getLogger(__name__)


class SelectionManager:
    """Holds at most one saved selection."""

    def __init__(self):
        self._saved: Optional[SelectionRange] = None

    @property
    def saved(self) -> Optional[SelectionRange]:
        return self._saved

    @property
    def has_saved(self) -> bool:
        return self._saved is not None

    def save(self, live: Optional[SelectionRange]) -> Optional[SelectionRange]:
        """
        Save a copy of the live selection.

        Args:
            live: The current selection, or None when the surface has none

        Returns:
            The saved selection
        """
        self._saved = live
        return self._saved

    def restore(self, document: Node) -> Optional[ResolvedRange]:
        """
        Re-apply the saved selection to a document.

        A saved selection whose nodes are gone degrades to the end of the
        document. Offsets past the current text are clamped.

        Args:
            document: Document the selection is restored into

        Returns:
            ResolvedRange, or None when nothing was saved
        """
        if self._saved is None:
            return None
        try:
            return resolve_range(document, self._saved)
        except SelectionLost as e:
            logger.debug(f"Saved selection no longer resolves, using document end: {e}")
            self._saved = end_selection(document)
            return resolve_range(document, self._saved)

    def clear(self) -> None:
        self._saved = None
