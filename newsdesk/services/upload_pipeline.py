"""Preview-first image upload pipeline.

Choosing a file compresses it and registers a local preview; nothing is
uploaded until the user confirms the metadata dialog. Cancelling releases the
preview without any network call. A failed upload keeps the compressed image
pending so the user can retry without choosing and compressing the file again.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import uuid4

from ..config import settings
from ..schemas.editor import ImageInsert, ImageSize
from .editor_errors import CompressionError, DialogStateError, PipelineBusyError, UploadError
from .image_compression import CompressedImage, CompressionOptions, compress_image
from .minio_service import MinIOService
from .notifier import Notifier, Toast

logger = logging.getLogger(__name__)

PREVIEW_URL_PREFIX = "/api/editor/previews/"
FALLBACK_SLUG = "image"


def generate_slug(value: str) -> str:
    """
    Lowercase slug: runs of characters other than a-z and 0-9 become "-".

    Examples:
        "My Photo (1)" -> "my-photo-1"
        "Résumé" -> "r-sum"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower())
    return slug.strip("-")


def filename_stem(filename: str) -> str:
    """Filename without its extension."""
    return re.sub(r"\.[^/.]+$", "", filename or "")


def format_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


# -- Previews -----------------------------------------------------------------------


class PreviewRegistry:
    """
    In-memory previews of images that are not uploaded yet.

    Each preview gets a URL under PREVIEW_URL_PREFIX. Revoking a URL drops the
    bytes it holds.
    """

    def __init__(self):
        self._previews: dict[str, tuple[bytes, str]] = {}

    def create(self, data: bytes, content_type: str) -> str:
        token = uuid4().hex
        self._previews[token] = (data, content_type)
        return f"{PREVIEW_URL_PREFIX}{token}"

    def get(self, token: str) -> Optional[tuple[bytes, str]]:
        """Return (data, content_type) for a preview token, or None."""
        return self._previews.get(token)

    def revoke(self, url: str) -> bool:
        """Release a preview. Returns False if it was not registered."""
        token = url[len(PREVIEW_URL_PREFIX):] if url.startswith(PREVIEW_URL_PREFIX) else url
        return self._previews.pop(token, None) is not None

    def __contains__(self, url: str) -> bool:
        token = url[len(PREVIEW_URL_PREFIX):] if url.startswith(PREVIEW_URL_PREFIX) else url
        return token in self._previews

    def __len__(self) -> int:
        return len(self._previews)


# Global registry shared by sessions and the preview endpoint
preview_registry = PreviewRegistry()


# -- Filename suggestion ---------------------------------------------------------


class FilenameSuggester:
    """
    Suggests image filenames from keyword synonyms.

    Synonyms are used round-robin, one per image selection, for the lifetime
    of the editor session. Without synonyms the original filename stem is used.
    """

    def __init__(self, keyword_synonyms: str = ""):
        self._keywords: list[str] = []
        self._counter = 0
        self.set_keywords(keyword_synonyms)

    @property
    def keywords(self) -> list[str]:
        return list(self._keywords)

    def set_keywords(self, keyword_synonyms: str) -> None:
        self._keywords = [k.strip() for k in (keyword_synonyms or "").split(",") if k.strip()]

    def suggest(self, original_filename: str) -> str:
        if not self._keywords:
            return filename_stem(original_filename)
        keyword = self._keywords[self._counter % len(self._keywords)]
        self._counter += 1
        return keyword


# -- Pipeline ---------------------------------------------------------------------


@dataclass
class ImageMetadata:
    """User-editable metadata of a pending image."""

    caption: str = ""
    alt: str = ""
    description: str = ""
    size: ImageSize = ImageSize.LARGE
    filename: str = ""


@dataclass
class PendingImage:
    """A compressed image waiting for the user to confirm or cancel."""

    image: CompressedImage
    original_filename: str
    preview_url: str
    metadata: ImageMetadata = field(default_factory=ImageMetadata)


class UploadPipeline:
    """Compress, preview, then upload on confirm."""

    def __init__(
        self,
        storage: MinIOService,
        notifier: Notifier,
        previews: Optional[PreviewRegistry] = None,
        suggester: Optional[FilenameSuggester] = None,
        options: Optional[CompressionOptions] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.notifier = notifier
        self.previews = previews if previews is not None else preview_registry
        self.suggester = suggester or FilenameSuggester()
        self.options = options
        self.clock = clock
        self.pending: Optional[PendingImage] = None
        self.is_compressing = False
        self.is_uploading = False

    @property
    def is_busy(self) -> bool:
        return self.is_compressing or self.is_uploading

    async def select_file(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> PendingImage:
        """
        Compress a chosen file and register its preview.

        Args:
            data: Raw file bytes
            filename: Original filename
            content_type: MIME type reported by the client

        Returns:
            The new PendingImage with a suggested filename

        Raises:
            PipelineBusyError: If a compression or upload is in progress
            CompressionError: If the file cannot be read as an image
        """
        if self.is_busy:
            raise PipelineBusyError("An image is already being processed")

        self.discard()
        self.is_compressing = True
        self.notifier.notify(
            Toast("Optimizing image...", "Compressing image for best performance")
        )
        try:
            image = await asyncio.to_thread(
                compress_image, data, filename, content_type, self.options
            )
        except CompressionError as e:
            self.notifier.notify(Toast("Image processing failed", str(e), "destructive"))
            raise
        finally:
            self.is_compressing = False

        preview_url = self.previews.create(image.data, image.content_type)
        self.pending = PendingImage(
            image=image,
            original_filename=filename,
            preview_url=preview_url,
            metadata=ImageMetadata(filename=self.suggester.suggest(filename)),
        )
        self.notifier.notify(
            Toast(
                "Image ready",
                f"Optimized ({format_mb(image.original_size)}MB → {format_mb(image.size)}MB). "
                "Add details and insert.",
            )
        )
        return self.pending

    def build_object_name(self, pending: PendingImage) -> str:
        """Storage key: {content prefix}/{slug}-{epoch ms}.{ext}"""
        slug = (
            generate_slug(pending.metadata.filename)
            or generate_slug(filename_stem(pending.original_filename))
            or FALLBACK_SLUG
        )
        timestamp = int(self.clock() * 1000)
        return f"{settings.content_prefix}/{slug}-{timestamp}.{pending.image.extension}"

    async def confirm(self, metadata: Optional[ImageMetadata] = None) -> ImageInsert:
        """
        Upload the pending image and return the insertion request for it.

        Args:
            metadata: Final metadata from the dialog; keeps the current one if None

        Returns:
            ImageInsert pointing at the public URL

        Raises:
            DialogStateError: If no image is pending
            PipelineBusyError: If a compression or upload is in progress
            UploadError: If the upload fails; the image stays pending
        """
        if self.pending is None:
            raise DialogStateError("No image is pending")
        if self.is_busy:
            raise PipelineBusyError("An image is already being processed")

        pending = self.pending
        if metadata is not None:
            pending.metadata = metadata
        object_name = self.build_object_name(pending)

        self.is_uploading = True
        try:
            await asyncio.to_thread(
                self.storage.upload_bytes,
                object_name,
                pending.image.data,
                pending.image.content_type,
            )
        except Exception as e:
            logger.error(f"Image upload failed for {object_name}: {e}")
            self.notifier.notify(Toast("Upload failed", str(e) or "Failed to upload image", "destructive"))
            raise UploadError(str(e) or "Failed to upload image") from e
        finally:
            self.is_uploading = False

        url = self.storage.get_public_url(object_name)
        self.pending = None
        self.previews.revoke(pending.preview_url)
        self.notifier.notify(
            Toast(
                "Image uploaded",
                f"Optimized and uploaded ({format_mb(pending.image.original_size)}MB → "
                f"{format_mb(pending.image.size)}MB)",
            )
        )
        return ImageInsert(
            url=url,
            caption=pending.metadata.caption,
            alt=pending.metadata.alt,
            description=pending.metadata.description,
            size=pending.metadata.size,
        )

    def discard(self) -> None:
        """Drop the pending image and release its preview. No network call."""
        if self.pending is not None:
            self.previews.revoke(self.pending.preview_url)
            self.pending = None

    def cancel(self) -> None:
        self.discard()
