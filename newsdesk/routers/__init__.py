"""API routers package.

This package contains all FastAPI routers for the application.
"""

from .editor import router as editor_router

__all__ = [
    "editor_router",
]
