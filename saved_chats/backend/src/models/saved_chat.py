"""Saved chat model."""

from __future__ import annotations

import secrets
import string
import time
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

CHAT_ID_PREFIX = "nc-"
ALPHABET = string.ascii_letters + string.digits


def generate_chat_id(length: int = 14) -> str:
    """Return a new random chat identifier such as ``nc-Ab3...``."""

    raw = "".join(secrets.choice(ALPHABET) for _ in range(length))
    return f"{CHAT_ID_PREFIX}{raw}"


def _now_millis() -> int:
    return int(time.time() * 1000)


class SavedChat(Base):
    """A persisted chat transcript tied to a user and a dandiset."""

    __tablename__ = "saved_chats"

    chat_id: Mapped[str] = mapped_column(
        String(32), primary_key=True, default=generate_chat_id
    )
    chat_title: Mapped[str] = mapped_column(String(512), nullable=False)
    dandiset_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dandiset_version: Mapped[str | None] = mapped_column(String(64), index=True)
    nwb_file_url: Mapped[str | None] = mapped_column(Text)
    feedback_response: Mapped[str | None] = mapped_column(String(32))
    feedback_notes: Mapped[str | None] = mapped_column(Text)
    feedback_only: Mapped[bool | None] = mapped_column(Boolean, index=True)
    user_id: Mapped[str | None] = mapped_column(String(255), index=True)
    messages: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    timestamp_created: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=_now_millis, index=True
    )

    def __repr__(self) -> str:
        return f"SavedChat(chat_id={self.chat_id!r}, user_id={self.user_id!r})"
