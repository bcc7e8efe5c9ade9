"""Minimal S3 client helpers for chat image storage."""

from __future__ import annotations

import re
import urllib.parse
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
import structlog

from saved_chats.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)


class ImageStorageNotConfiguredError(RuntimeError):
    """Raised when chat images are needed but no bucket is configured."""


def _require_bucket() -> str:
    settings = get_settings()
    if not settings.chat_images_bucket or not settings.chat_images_public_url:
        raise ImageStorageNotConfiguredError(
            "CHAT_IMAGES_BUCKET and CHAT_IMAGES_PUBLIC_URL must be set"
        )
    return settings.chat_images_bucket


def _local_bucket_root() -> Path:
    settings = get_settings()
    root = Path(settings.local_storage_path)
    root.mkdir(parents=True, exist_ok=True)
    return root


def _is_local_mode() -> bool:
    return (get_settings().chat_images_bucket or "").lower() == "local"


@lru_cache()
def _resolve_bucket_region(bucket: str) -> str | None:
    """Return the region for the configured S3 bucket."""

    settings = get_settings()

    session_kwargs: dict[str, str] = {}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        session_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        session_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    try:
        session = boto3.session.Session(**session_kwargs)
        client = session.client("s3", config=Config(signature_version="s3v4"))
        response = client.get_bucket_location(Bucket=bucket)
        region = response.get("LocationConstraint") or "us-east-1"
        LOGGER.info("resolved_s3_region", bucket=bucket, region=region)
        return region
    except (BotoCoreError, NoCredentialsError, ClientError) as exc:
        LOGGER.warning("resolve_s3_region_failed", bucket=bucket, error=str(exc))
        return None


def _client() -> BaseClient:
    settings = get_settings()
    client_kwargs: dict[str, object] = {
        "config": Config(
            signature_version="s3v4",
            s3={"addressing_style": "virtual"},
        ),
    }

    if settings.aws_endpoint_url:
        client_kwargs["endpoint_url"] = settings.aws_endpoint_url
        client_kwargs["region_name"] = settings.aws_region or "auto"
    else:
        client_kwargs["region_name"] = (
            settings.aws_region
            or _resolve_bucket_region(_require_bucket())
            or "us-east-1"
        )

    if settings.aws_access_key_id and settings.aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    return boto3.client("s3", **client_kwargs)


def sanitize_object_key(key: str) -> str:
    """Minimal, safe normalization that preserves exact S3 key semantics."""

    if not key:
        return ""

    sanitized = str(key).strip().strip('"').strip("'")
    sanitized = urllib.parse.unquote(sanitized)
    sanitized = re.sub(r"/+", "/", sanitized)
    if sanitized.startswith("/"):
        sanitized = sanitized[1:]
    return sanitized


def build_public_url(key: str) -> str:
    """Return the permanent public download URL for ``key``."""

    _require_bucket()
    base_url = get_settings().chat_images_public_url or ""
    return f"{base_url.rstrip('/')}/{sanitize_object_key(key)}"


def generate_presigned_upload_url(
    key: str,
    *,
    expires_in: int | None = None,
    content_type: str | None = "image/png",
) -> str:
    """Generate a presigned PUT URL allowing a single object write to ``key``."""

    settings = get_settings()
    bucket = _require_bucket()
    sanitized_key = sanitize_object_key(key)
    ttl = expires_in or settings.chat_images_upload_expires_in

    if _is_local_mode():
        destination = _local_bucket_root() / sanitized_key
        destination.parent.mkdir(parents=True, exist_ok=True)
        return destination.resolve().as_uri()

    params: dict[str, str] = {"Bucket": bucket, "Key": sanitized_key}
    if content_type:
        params["ContentType"] = content_type

    client = _client()
    try:
        url = client.generate_presigned_url(
            "put_object",
            Params=params,
            ExpiresIn=ttl,
        )
    except (BotoCoreError, ClientError) as exc:
        LOGGER.error(
            "s3_presign_upload_failed",
            bucket=bucket,
            key=sanitized_key,
            error=str(exc),
        )
        raise

    LOGGER.info(
        "s3_presigned_upload_issued",
        bucket=bucket,
        region=client.meta.region_name,
        key=sanitized_key,
        expires_in=ttl,
    )
    return url


def get_s3_client() -> BaseClient:
    """Return a configured S3 client instance."""

    return _client()


__all__ = [
    "ImageStorageNotConfiguredError",
    "build_public_url",
    "generate_presigned_upload_url",
    "get_s3_client",
    "sanitize_object_key",
]
