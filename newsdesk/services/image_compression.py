"""Image compression for uploaded article images.

Images are scaled down to fit the configured bounds and re-encoded. PNG input
stays PNG so transparency survives; everything else is flattened on a white
background and encoded as JPEG, lowering the quality step by step until the
result fits the size ceiling or the quality floor is reached.
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import settings
from .editor_errors import CompressionError

logger = logging.getLogger(__name__)

QUALITY_STEP = 0.1
QUALITY_FLOOR = 0.3
WHITE = (255, 255, 255)


@dataclass(frozen=True)
class CompressionOptions:
    """Bounds for compression. Quality is in (0, 1]."""

    max_width: int = 1920
    max_height: int = 1080
    quality: float = 0.85
    max_size_mb: float = 1.0

    @classmethod
    def from_settings(cls) -> "CompressionOptions":
        return cls(
            max_width=settings.image_max_width,
            max_height=settings.image_max_height,
            quality=settings.image_quality,
            max_size_mb=settings.image_max_size_mb,
        )


@dataclass(frozen=True)
class CompressedImage:
    """Result of compressing one image."""

    data: bytes
    content_type: str
    extension: str
    filename: str
    width: int
    height: int
    original_size: int

    @property
    def size(self) -> int:
        return len(self.data)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale dimensions to fit the bounds, preserving aspect ratio. Never upscales."""
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def replace_extension(filename: str, extension: str) -> str:
    """Swap a filename's extension, e.g. photo.heic -> photo.jpg."""
    name = filename or "image"
    if re.search(r"\.[^/.]+$", name):
        return re.sub(r"\.[^/.]+$", f".{extension}", name)
    return f"{name}.{extension}"


def _flatten(img: Image.Image) -> Image.Image:
    """Composite onto white, dropping any alpha channel."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, WHITE)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def _encode_jpeg(img: Image.Image, quality: float) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=int(round(quality * 100)), optimize=True)
    return buffer.getvalue()


def _encode_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def compress_image(
    data: bytes,
    filename: str,
    content_type: Optional[str] = None,
    options: Optional[CompressionOptions] = None,
) -> CompressedImage:
    """
    Compress an image for upload.

    Args:
        data: Raw image bytes
        filename: Original filename
        content_type: MIME type reported by the client
        options: Compression bounds (defaults from settings)

    Returns:
        CompressedImage with the encoded bytes

    Raises:
        CompressionError: If the data cannot be decoded or re-encoded as an image
    """
    options = options or CompressionOptions.from_settings()
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise CompressionError(f"Failed to load image: {e}") from e

    try:
        image = _optimize(img, filename, content_type, options, len(data))
    except (OSError, ValueError, TypeError) as e:
        raise CompressionError(f"Failed to optimize image: {e}") from e

    logger.info(
        f"Compressed {filename}: {len(data)} -> {image.size} bytes ({image.width}x{image.height})"
    )
    return image


def _optimize(
    img: Image.Image,
    filename: str,
    content_type: Optional[str],
    options: CompressionOptions,
    original_size: int,
) -> CompressedImage:
    """Orient, resize and re-encode a decoded image."""
    is_png = content_type == "image/png" or img.format == "PNG"
    img = ImageOps.exif_transpose(img)

    width, height = fit_within(img.width, img.height, options.max_width, options.max_height)
    if (width, height) != img.size:
        img = img.resize((width, height), Image.Resampling.LANCZOS)

    max_bytes = options.max_size_mb * 1024 * 1024

    if is_png:
        if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            img = img.convert("RGBA")
        encoded = _encode_png(img)
        extension, output_type = "png", "image/png"
    else:
        img = _flatten(img)
        quality = options.quality
        encoded = _encode_jpeg(img, quality)
        while len(encoded) > max_bytes and quality > QUALITY_FLOOR:
            quality = max(QUALITY_FLOOR, round(quality - QUALITY_STEP, 2))
            logger.debug(f"Re-encoding {filename} at quality {quality}")
            encoded = _encode_jpeg(img, quality)
        extension, output_type = "jpg", "image/jpeg"

    return CompressedImage(
        data=encoded,
        content_type=output_type,
        extension=extension,
        filename=replace_extension(filename, extension),
        width=width,
        height=height,
        original_size=original_size,
    )
