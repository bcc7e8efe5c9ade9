"""Pydantic schemas for saved chat requests and responses."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class GetSavedChatsRequest(BaseModel):
    """Filters for listing saved chats."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["GetSavedChats"]
    chat_id: str | None = Field(default=None, alias="chatId")
    user_id: str | None = Field(default=None, alias="userId")
    dandiset_id: str | None = Field(default=None, alias="dandisetId")
    dandiset_version: str | None = Field(default=None, alias="dandisetVersion")
    nwb_file_url: str | None = Field(default=None, alias="nwbFileUrl")
    feedback: bool | None = None


class AddSavedChatRequest(BaseModel):
    """Payload for persisting a new chat."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["AddSavedChat"]
    chat_title: str = Field(alias="chatTitle")
    dandiset_id: str = Field(alias="dandisetId")
    dandiset_version: str | None = Field(default=None, alias="dandisetVersion")
    nwb_file_url: str | None = Field(default=None, alias="nwbFileUrl")
    feedback_response: str | None = Field(default=None, alias="feedbackResponse")
    feedback_notes: str | None = Field(default=None, alias="feedbackNotes")
    feedback_only: bool | None = Field(default=None, alias="feedbackOnly")
    user_id: str | None = Field(default=None, alias="userId")
    messages: list[dict[str, Any]]


class DeleteSavedChatRequest(BaseModel):
    """Payload identifying the chat to delete."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["DeleteSavedChat"]
    chat_id: str = Field(alias="chatId")


class SavedChatOut(BaseModel):
    """Serialized saved chat record."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    chat_title: str = Field(alias="chatTitle")
    dandiset_id: str = Field(alias="dandisetId")
    dandiset_version: str | None = Field(default=None, alias="dandisetVersion")
    nwb_file_url: str | None = Field(default=None, alias="nwbFileUrl")
    feedback_response: str | None = Field(default=None, alias="feedbackResponse")
    feedback_notes: str | None = Field(default=None, alias="feedbackNotes")
    feedback_only: bool | None = Field(default=None, alias="feedbackOnly")
    user_id: str | None = Field(default=None, alias="userId")
    messages: list[dict[str, Any]]
    image_urls: list[str] = Field(default_factory=list, alias="imageUrls")
    timestamp_created: int = Field(alias="timestampCreated")


class GetSavedChatsResponse(BaseModel):
    """Response listing saved chats."""

    type: Literal["GetSavedChats"] = "GetSavedChats"
    saved_chats: list[SavedChatOut] = Field(alias="savedChats")

    model_config = ConfigDict(populate_by_name=True)


class ImageUploadOut(BaseModel):
    """Upload instructions for one image referenced by a saved chat."""

    name: str
    url: str
    upload_url: str = Field(alias="uploadUrl")

    model_config = ConfigDict(populate_by_name=True)


class AddSavedChatResponse(BaseModel):
    """Response returned after a chat is saved."""

    type: Literal["AddSavedChat"] = "AddSavedChat"
    chat_id: str = Field(alias="chatId")
    image_uploads: list[ImageUploadOut] = Field(
        default_factory=list, alias="imageUploads"
    )

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "AddSavedChatRequest",
    "AddSavedChatResponse",
    "DeleteSavedChatRequest",
    "GetSavedChatsRequest",
    "GetSavedChatsResponse",
    "ImageUploadOut",
    "SavedChatOut",
]
