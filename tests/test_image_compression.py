"""Unit tests for image compression."""

import io
from unittest.mock import patch

import pytest
from PIL import Image

from newsdesk.services.editor_errors import CompressionError
from newsdesk.services.image_compression import (
    CompressionOptions,
    compress_image,
    fit_within,
    replace_extension,
)


def decode(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestFitWithin:
    def test_small_image_is_not_upscaled(self):
        assert fit_within(100, 50, 1920, 1080) == (100, 50)

    def test_wide_image_is_bound_by_width(self):
        assert fit_within(3840, 1080, 1920, 1080) == (1920, 540)

    def test_tall_image_is_bound_by_height(self):
        assert fit_within(1000, 2160, 1920, 1080) == (500, 1080)


class TestReplaceExtension:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("photo.heic", "photo.jpg"),
            ("archive.tar.gz", "archive.tar.jpg"),
            ("noext", "noext.jpg"),
            ("", "image.jpg"),
        ],
    )
    def test_replace(self, filename, expected):
        assert replace_extension(filename, "jpg") == expected


class TestCompressImage:
    """Tests for resizing and re-encoding."""

    def test_jpeg_is_resized_within_bounds(self, make_image):
        data = make_image(400, 200, "JPEG")
        options = CompressionOptions(max_width=100, max_height=100)

        result = compress_image(data, "wide.jpeg", "image/jpeg", options)

        assert (result.width, result.height) == (100, 50)
        assert decode(result.data).size == (100, 50)
        assert result.content_type == "image/jpeg"
        assert result.extension == "jpg"
        assert result.filename == "wide.jpg"
        assert result.original_size == len(data)

    def test_png_stays_png_with_transparency(self, make_image):
        data = make_image(40, 40, "PNG", mode="RGBA")

        result = compress_image(data, "logo.png", "image/png", CompressionOptions())

        img = decode(result.data)
        assert img.format == "PNG"
        assert img.mode == "RGBA"
        assert result.content_type == "image/png"
        assert result.filename == "logo.png"

    def test_non_png_with_alpha_is_flattened_to_jpeg(self, make_image):
        data = make_image(40, 40, "TIFF", mode="RGBA")

        result = compress_image(data, "sticker.tiff", "image/tiff", CompressionOptions())

        img = decode(result.data)
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert result.filename == "sticker.jpg"

    def test_quality_is_lowered_to_fit_size_ceiling(self):
        noise = Image.effect_noise((600, 600), 120).convert("RGB")
        buffer = io.BytesIO()
        noise.save(buffer, format="BMP")
        data = buffer.getvalue()

        generous = compress_image(data, "noise.bmp", "image/bmp", CompressionOptions(max_size_mb=50))
        tight = compress_image(data, "noise.bmp", "image/bmp", CompressionOptions(max_size_mb=0.01))

        assert tight.size < generous.size

    def test_content_type_png_is_detected_from_data(self, png_bytes):
        result = compress_image(png_bytes, "upload", None, CompressionOptions())
        assert result.content_type == "image/png"
        assert result.filename == "upload.png"

    @pytest.mark.parametrize("data", [b"", b"not an image at all"])
    def test_unreadable_data_raises(self, data):
        with pytest.raises(CompressionError):
            compress_image(data, "broken.jpg", "image/jpeg", CompressionOptions())

    def test_options_from_settings(self):
        options = CompressionOptions.from_settings()
        assert options.max_width == 1920
        assert options.max_height == 1080
        assert options.quality == 0.85
        assert options.max_size_mb == 1.0

    @pytest.mark.parametrize("error", [ValueError("bad mode"), OSError("encoder error")])
    def test_optimize_failure_raises(self, png_bytes, error):
        with patch("newsdesk.services.image_compression.ImageOps.exif_transpose", side_effect=error):
            with pytest.raises(CompressionError) as exc_info:
                compress_image(png_bytes, "car.png", "image/png", CompressionOptions())
        assert "Failed to optimize image" in str(exc_info.value)
