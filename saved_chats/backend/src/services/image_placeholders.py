"""Rewrite ``(image://<name>.png)`` placeholders in chat messages.

Clients save chats that reference images they have not uploaded yet.  Each
distinct placeholder name is assigned a fresh storage key, a permanent public
URL and a presigned upload URL; every occurrence of the placeholder is then
replaced by ``(<public url>)``.  The client receives the upload URLs and pushes
the image bytes itself after the save returns.

Names are deduplicated across all messages of one save, so an image quoted
twice (or from two messages) is uploaded once.
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from saved_chats.backend.src.core.config import get_settings
from saved_chats.backend.src.services import s3
from saved_chats.backend.src.services.s3 import ImageStorageNotConfiguredError

LOGGER = structlog.get_logger(__name__)

PLACEHOLDER_OPEN = "(image://"
PLACEHOLDER_CLOSE = ")"
SUPPORTED_EXTENSION = ".png"
KEY_SUFFIX_LENGTH = 10
ALPHABET = string.ascii_letters + string.digits

_IMAGE_URL_PATTERN = re.compile(r"\((https://[^()\s]+\.png)\)")


class ImagePlaceholderError(Exception):
    """Base class for failures while resolving image placeholders."""


class UnsupportedImageFormatError(ImagePlaceholderError):
    """A placeholder referenced something other than a PNG image."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported image format for {name!r}; only .png is allowed")
        self.name = name


class ImageUploadSigningError(ImagePlaceholderError):
    """The storage service refused to issue an upload URL."""


@dataclass(frozen=True)
class ImageSubstitution:
    """One resolved placeholder: its name, public URL and upload URL."""

    name: str
    url: str
    upload_url: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url, "uploadUrl": self.upload_url}


Minter = Callable[[str], ImageSubstitution]


class ImageUploadMinter:
    """Create storage locations and upload credentials for new placeholder names."""

    def __init__(
        self,
        *,
        key_prefix: str | None = None,
        sign_upload: Callable[[str], str] | None = None,
        public_url: Callable[[str], str] | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        if key_prefix is None:
            key_prefix = get_settings().chat_images_key_prefix
        self.key_prefix = key_prefix.strip("/")
        self._sign_upload = sign_upload or s3.generate_presigned_upload_url
        self._public_url = public_url or s3.build_public_url
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    def mint_key(self) -> str:
        """Return a new ``<prefix>/images/<date>/<random>.png`` object key."""

        suffix = "".join(secrets.choice(ALPHABET) for _ in range(KEY_SUFFIX_LENGTH))
        key = f"images/{self._today().isoformat()}/{suffix}{SUPPORTED_EXTENSION}"
        if self.key_prefix:
            key = f"{self.key_prefix}/{key}"
        return key

    def __call__(self, name: str) -> ImageSubstitution:
        key = self.mint_key()
        url = self._public_url(key)
        try:
            upload_url = self._sign_upload(key)
        except (BotoCoreError, ClientError) as exc:
            raise ImageUploadSigningError(f"Unable to sign upload for {name!r}") from exc

        LOGGER.info("chat_image_minted", name=name, key=key)
        return ImageSubstitution(name=name, url=url, upload_url=upload_url)


def rewrite_content(
    content: str,
    seen: dict[str, ImageSubstitution],
    *,
    mint: Minter,
) -> tuple[str, list[ImageSubstitution]]:
    """Replace every placeholder in ``content`` with its public URL.

    ``seen`` maps placeholder names to substitutions already created during
    the current save and is updated in place as new names are minted.
    Returns the rewritten text and the substitutions created by this call.
    """

    pieces: list[str] = []
    created: list[ImageSubstitution] = []
    cursor = 0

    while True:
        start = content.find(PLACEHOLDER_OPEN, cursor)
        if start == -1:
            pieces.append(content[cursor:])
            break

        name_start = start + len(PLACEHOLDER_OPEN)
        end = content.find(PLACEHOLDER_CLOSE, name_start)
        if end == -1:
            # unterminated placeholder, keep the tail as-is
            pieces.append(content[cursor:])
            break

        name = content[name_start:end]
        if not name.endswith(SUPPORTED_EXTENSION):
            raise UnsupportedImageFormatError(name)

        substitution = seen.get(name)
        if substitution is None:
            substitution = mint(name)
            seen[name] = substitution
            created.append(substitution)

        pieces.append(content[cursor:start])
        pieces.append(f"({substitution.url})")
        cursor = end + len(PLACEHOLDER_CLOSE)

    return "".join(pieces), created


def rewrite_all(
    messages: Iterable[Mapping[str, Any]],
    *,
    mint: Minter,
) -> tuple[list[dict[str, Any]], list[ImageSubstitution]]:
    """Rewrite placeholders across ``messages`` in order.

    The input messages are left untouched; copies are returned with their
    ``content`` replaced.  Any error aborts the whole rewrite.
    """

    seen: dict[str, ImageSubstitution] = {}
    rewritten: list[dict[str, Any]] = []
    substitutions: list[ImageSubstitution] = []

    for message in messages:
        content = message.get("content")
        if not isinstance(content, str) or PLACEHOLDER_OPEN not in content:
            rewritten.append(dict(message))
            continue

        text, created = rewrite_content(content, seen, mint=mint)
        substitutions.extend(created)
        rewritten.append({**message, "content": text})

    return rewritten, substitutions


def collect_image_urls(messages: Iterable[Mapping[str, Any]]) -> list[str]:
    """Return the distinct ``(https://...png)`` URLs in first-appearance order."""

    urls: list[str] = []
    found: set[str] = set()
    for message in messages:
        content = message.get("content")
        if not isinstance(content, str):
            continue
        for url in _IMAGE_URL_PATTERN.findall(content):
            if url not in found:
                found.add(url)
                urls.append(url)
    return urls


__all__ = [
    "ImagePlaceholderError",
    "ImageStorageNotConfiguredError",
    "ImageSubstitution",
    "ImageUploadMinter",
    "ImageUploadSigningError",
    "UnsupportedImageFormatError",
    "collect_image_urls",
    "rewrite_all",
    "rewrite_content",
]
