"""Service layer functions for saved chat records."""

from __future__ import annotations

import structlog
from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from saved_chats.backend.src.models import SavedChat
from saved_chats.backend.src.models.saved_chat import generate_chat_id
from saved_chats.backend.src.schemas.saved_chat import (
    AddSavedChatRequest,
    GetSavedChatsRequest,
)
from saved_chats.backend.src.services.image_placeholders import (
    ImageSubstitution,
    Minter,
    collect_image_urls,
    rewrite_all,
)
from saved_chats.backend.src.services.metrics import (
    chat_image_uploads_issued_total,
    saved_chats_added_total,
    saved_chats_deleted_total,
)

LOGGER = structlog.get_logger(__name__)


def _get_chat_or_404(session: Session, chat_id: str) -> SavedChat:
    chat = session.get(SavedChat, chat_id)
    if chat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Saved chat not found",
        )
    return chat


def _blank_to_none(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    return value


def list_saved_chats(session: Session, filters: GetSavedChatsRequest) -> list[SavedChat]:
    """Return saved chats matching the provided filters, oldest first."""

    query = session.query(SavedChat)
    if filters.chat_id:
        query = query.filter(SavedChat.chat_id == filters.chat_id)
    if filters.user_id:
        query = query.filter(SavedChat.user_id == filters.user_id)
    if filters.dandiset_id:
        query = query.filter(SavedChat.dandiset_id == filters.dandiset_id)
    if filters.dandiset_version:
        query = query.filter(SavedChat.dandiset_version == filters.dandiset_version)
    if filters.nwb_file_url:
        query = query.filter(SavedChat.nwb_file_url == filters.nwb_file_url)

    if filters.feedback:
        query = query.filter(SavedChat.feedback_only.is_(True))
    elif not filters.chat_id:
        # an explicit chat id is returned whether or not it is feedback
        query = query.filter(
            or_(SavedChat.feedback_only.is_(None), SavedChat.feedback_only.is_(False))
        )

    return query.order_by(SavedChat.timestamp_created.asc()).all()


def add_saved_chat(
    session: Session,
    payload: AddSavedChatRequest,
    *,
    user_id: str | None,
    mint: Minter,
) -> tuple[SavedChat, list[ImageSubstitution]]:
    """Rewrite image placeholders and persist a new saved chat.

    Placeholder errors propagate before anything is written.
    """

    messages, substitutions = rewrite_all(payload.messages, mint=mint)

    chat = SavedChat(
        chat_id=generate_chat_id(),
        chat_title=payload.chat_title,
        dandiset_id=payload.dandiset_id,
        dandiset_version=_blank_to_none(payload.dandiset_version),
        nwb_file_url=_blank_to_none(payload.nwb_file_url),
        feedback_response=_blank_to_none(payload.feedback_response),
        feedback_notes=_blank_to_none(payload.feedback_notes),
        feedback_only=payload.feedback_only,
        user_id=user_id,
        messages=messages,
        image_urls=collect_image_urls(messages),
    )
    session.add(chat)
    session.commit()
    session.refresh(chat)

    saved_chats_added_total.labels(feedback_only=str(bool(chat.feedback_only)).lower()).inc()
    chat_image_uploads_issued_total.inc(len(substitutions))
    LOGGER.info(
        "saved_chat_added",
        chat_id=chat.chat_id,
        user_id=user_id,
        dandiset_id=chat.dandiset_id,
        messages=len(messages),
        images=len(substitutions),
    )
    return chat, substitutions


def delete_saved_chat(
    session: Session,
    chat_id: str,
    *,
    user_id: str,
    feedback_admins: set[str],
) -> None:
    """Delete a saved chat owned by ``user_id``.

    Feedback-only records have no meaningful owner and may only be removed
    by one of ``feedback_admins``.
    """

    chat = _get_chat_or_404(session, chat_id)
    if chat.feedback_only:
        if user_id not in feedback_admins:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )
    elif chat.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: wrong user",
        )

    session.delete(chat)
    session.commit()
    saved_chats_deleted_total.inc()
    LOGGER.info("saved_chat_deleted", chat_id=chat_id, user_id=user_id)


__all__ = ["add_saved_chat", "delete_saved_chat", "list_saved_chats"]
