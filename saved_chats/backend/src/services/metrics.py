"""Prometheus metric definitions for saved chats."""

from __future__ import annotations

from prometheus_client import Counter

saved_chats_added_total = Counter(
    "saved_chats_added_total",
    "Total saved chats persisted, split by feedback-only records.",
    labelnames=["feedback_only"],
)

saved_chats_deleted_total = Counter(
    "saved_chats_deleted_total",
    "Total saved chats deleted.",
)

chat_image_uploads_issued_total = Counter(
    "chat_image_uploads_issued_total",
    "Presigned chat image upload URLs handed out to clients.",
)

__all__ = [
    "chat_image_uploads_issued_total",
    "saved_chats_added_total",
    "saved_chats_deleted_total",
]
