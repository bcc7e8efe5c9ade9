"""Public API routers exposed by the FastAPI application."""

from . import health, saved_chats

__all__ = ["health", "saved_chats"]
