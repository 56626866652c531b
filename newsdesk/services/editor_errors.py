"""Exceptions raised by the editor services."""


class EditorError(Exception):
    """Base class for editor errors."""

    pass


class ContentValidationError(EditorError):
    """User input is malformed (bad URL pattern, empty required field)."""

    pass


class CompressionError(EditorError):
    """An image could not be read or compressed."""

    pass


class UploadError(EditorError):
    """Uploading an image to object storage failed."""

    pass


class SelectionLost(EditorError):
    """A saved selection references a node that no longer exists."""

    pass


class DialogStateError(EditorError):
    """A dialog action does not fit the current dialog state."""

    pass


class PipelineBusyError(EditorError):
    """The upload pipeline is already compressing or uploading."""

    pass
