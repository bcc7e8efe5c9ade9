"""Saved chat endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from saved_chats.backend.src.core.config import get_settings
from saved_chats.backend.src.core.security import (
    get_current_user_id,
    get_optional_user_id,
)
from saved_chats.backend.src.db import get_session_dependency
from saved_chats.backend.src.schemas.saved_chat import (
    AddSavedChatRequest,
    AddSavedChatResponse,
    DeleteSavedChatRequest,
    GetSavedChatsRequest,
    GetSavedChatsResponse,
    ImageUploadOut,
    SavedChatOut,
)
from saved_chats.backend.src.services import saved_chats as saved_chat_service
from saved_chats.backend.src.services.image_placeholders import (
    ImageStorageNotConfiguredError,
    ImageUploadMinter,
    ImageUploadSigningError,
    Minter,
    UnsupportedImageFormatError,
)

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/saved-chats", tags=["saved-chats"])


def get_image_minter() -> Minter:
    """Dependency returning the minter used for new chat images.

    Saving is refused outright while image storage is unconfigured, even for
    chats that reference no images.
    """

    if not get_settings().chat_images_configured:
        LOGGER.error("chat_image_storage_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image storage is not configured",
        )
    return ImageUploadMinter()


@router.post(
    "/get",
    response_model=GetSavedChatsResponse,
    response_model_exclude_none=True,
)
def get_saved_chats(
    payload: GetSavedChatsRequest,
    session: Session = Depends(get_session_dependency),
) -> GetSavedChatsResponse:
    """List saved chats matching the request filters."""

    chats = saved_chat_service.list_saved_chats(session, payload)
    return GetSavedChatsResponse(
        saved_chats=[SavedChatOut.model_validate(chat) for chat in chats]
    )


@router.post("/add", response_model=AddSavedChatResponse)
def add_saved_chat(
    payload: AddSavedChatRequest,
    session: Session = Depends(get_session_dependency),
    user_id: str | None = Depends(get_optional_user_id),
    mint: Minter = Depends(get_image_minter),
) -> AddSavedChatResponse:
    """Persist a chat and return upload URLs for any new images it references."""

    # anonymous saves are only accepted for feedback
    if user_id is None and not payload.feedback_only:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    if payload.user_id and payload.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized (wrong user)",
        )

    try:
        chat, substitutions = saved_chat_service.add_saved_chat(
            session, payload, user_id=user_id, mint=mint
        )
    except UnsupportedImageFormatError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ImageUploadSigningError as exc:
        LOGGER.error("chat_image_signing_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to issue image upload URL",
        ) from exc
    except ImageStorageNotConfiguredError as exc:
        LOGGER.error("chat_image_storage_not_configured", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Image storage is not configured",
        ) from exc

    return AddSavedChatResponse(
        chat_id=chat.chat_id,
        image_uploads=[
            ImageUploadOut(name=item.name, url=item.url, upload_url=item.upload_url)
            for item in substitutions
        ],
    )


@router.post("/delete")
def delete_saved_chat(
    payload: DeleteSavedChatRequest,
    session: Session = Depends(get_session_dependency),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, str]:
    """Delete a saved chat owned by the caller."""

    saved_chat_service.delete_saved_chat(
        session,
        payload.chat_id,
        user_id=user_id,
        feedback_admins=get_settings().feedback_admin_user_ids,
    )
    return {}
