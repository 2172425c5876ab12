"""FastAPI surface exposing the sync controller to a UI."""

from .app import create_fastapi_app, get_app

__all__ = ["create_fastapi_app", "get_app"]
