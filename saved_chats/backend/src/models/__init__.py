"""ORM models exposed for easy imports."""

from .saved_chat import SavedChat

__all__ = ["SavedChat"]
