"""Shared pytest fixtures for editor tests."""

import io
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from newsdesk.main import app
from newsdesk.services.editor_session import EditorSession, EditorSessionStore, get_session_store
from newsdesk.services.notifier import CollectingNotifier
from newsdesk.services.upload_pipeline import PreviewRegistry, preview_registry

PUBLIC_BASE = "https://cdn.example.com/article-images"


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    image_format: str = "PNG",
    mode: str = "RGB",
) -> bytes:
    """Encode a solid-colour test image."""
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    return make_image_bytes


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes(image_format="PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes(image_format="JPEG")


@pytest.fixture
def mock_storage() -> MagicMock:
    """Object storage double that records uploads and builds public URLs."""
    storage = MagicMock()
    storage.upload_bytes.side_effect = lambda object_name, data, content_type: object_name
    storage.get_public_url.side_effect = lambda object_name: f"{PUBLIC_BASE}/{object_name}"
    return storage


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def previews() -> PreviewRegistry:
    return PreviewRegistry()


@pytest.fixture
def session(mock_storage: MagicMock, notifier: CollectingNotifier, previews: PreviewRegistry) -> EditorSession:
    """An empty editor session backed by test doubles."""
    return EditorSession(
        value="",
        notifier=notifier,
        storage=mock_storage,
        previews=previews,
    )


@pytest.fixture(scope="function")
def session_store(mock_storage: MagicMock) -> EditorSessionStore:
    """Session store sharing the preview registry served by the API."""
    return EditorSessionStore(storage=mock_storage, previews=preview_registry)


@pytest.fixture(scope="function")
def client(session_store: EditorSessionStore) -> Generator[TestClient, None, None]:
    """Create a test client with the session store dependency overridden."""
    app.dependency_overrides[get_session_store] = lambda: session_store

    with TestClient(app) as test_client:
        yield test_client

    session_store.close_all()
    app.dependency_overrides.clear()
