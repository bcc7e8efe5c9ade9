"""Unit tests for image placeholder rewriting."""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_saved_chats.db")

import pytest
from botocore.exceptions import ClientError

from saved_chats.backend.src.services import image_placeholders
from saved_chats.backend.src.services.image_placeholders import (
    ImageSubstitution,
    ImageUploadMinter,
    ImageUploadSigningError,
    UnsupportedImageFormatError,
    collect_image_urls,
    rewrite_all,
    rewrite_content,
)


class FakeMinter:
    """Deterministic minter recording every name it was asked for."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, name: str) -> ImageSubstitution:
        self.calls.append(name)
        index = len(self.calls)
        return ImageSubstitution(
            name=name,
            url=f"https://images.example.com/key-{index}.png",
            upload_url=f"https://upload.example.com/key-{index}.png?sig=abc",
        )


@pytest.fixture()
def minter() -> FakeMinter:
    return FakeMinter()


def test_rewrite_content_without_placeholders_is_unchanged(minter: FakeMinter) -> None:
    content = "Plain text with (parentheses) and https://example.com/x.png"

    text, created = rewrite_content(content, {}, mint=minter)

    assert text == content
    assert created == []
    assert minter.calls == []


def test_rewrite_content_replaces_placeholder_and_keeps_surrounding_text(
    minter: FakeMinter,
) -> None:
    text, created = rewrite_content(
        "Before ![plot](image://figure.png) after", {}, mint=minter
    )

    assert text == "Before ![plot](https://images.example.com/key-1.png) after"
    assert [record.name for record in created] == ["figure.png"]


def test_rewrite_content_dedupes_repeated_name(minter: FakeMinter) -> None:
    seen: dict[str, ImageSubstitution] = {}

    text, created = rewrite_content(
        "(image://a.png) then (image://a.png)", seen, mint=minter
    )

    assert len(created) == 1
    assert minter.calls == ["a.png"]
    assert text == (
        "(https://images.example.com/key-1.png) then "
        "(https://images.example.com/key-1.png)"
    )
    assert seen == {"a.png": created[0]}


def test_rewrite_content_reuses_records_already_seen(minter: FakeMinter) -> None:
    existing = ImageSubstitution(
        name="a.png", url="https://images.example.com/old.png", upload_url="u"
    )

    text, created = rewrite_content("x (image://a.png)", {"a.png": existing}, mint=minter)

    assert text == "x (https://images.example.com/old.png)"
    assert created == []
    assert minter.calls == []


def test_rewrite_content_rejects_non_png(minter: FakeMinter) -> None:
    with pytest.raises(UnsupportedImageFormatError) as excinfo:
        rewrite_content("see (image://a.jpg)", {}, mint=minter)

    assert excinfo.value.name == "a.jpg"
    assert minter.calls == []


def test_rewrite_content_rejects_missing_extension(minter: FakeMinter) -> None:
    with pytest.raises(UnsupportedImageFormatError):
        rewrite_content("(image://figure)", {}, mint=minter)


def test_rewrite_content_keeps_unterminated_placeholder(minter: FakeMinter) -> None:
    content = "ok (image://a.png) and then (image://unterminated"

    text, created = rewrite_content(content, {}, mint=minter)

    assert text == "ok (https://images.example.com/key-1.png) and then (image://unterminated"
    assert [record.name for record in created] == ["a.png"]


def test_rewrite_content_unterminated_only_creates_nothing(minter: FakeMinter) -> None:
    text, created = rewrite_content("(image://unterminated", {}, mint=minter)

    assert text == "(image://unterminated"
    assert created == []


def test_rewrite_all_dedupes_across_messages(minter: FakeMinter) -> None:
    messages = [
        {"role": "user", "content": "first (image://shared.png)"},
        {"role": "assistant", "content": "again (image://shared.png)"},
    ]

    rewritten, substitutions = rewrite_all(messages, mint=minter)

    assert len(substitutions) == 1
    assert minter.calls == ["shared.png"]
    assert rewritten[0]["content"] == "first (https://images.example.com/key-1.png)"
    assert rewritten[1]["content"] == "again (https://images.example.com/key-1.png)"


def test_rewrite_all_does_not_mutate_input(minter: FakeMinter) -> None:
    messages = [{"role": "user", "content": "(image://a.png)", "extra": {"k": 1}}]

    rewritten, _ = rewrite_all(messages, mint=minter)

    assert messages[0]["content"] == "(image://a.png)"
    assert rewritten[0] is not messages[0]
    assert rewritten[0]["extra"] == {"k": 1}
    assert rewritten[0]["role"] == "user"


def test_rewrite_all_passes_through_messages_without_string_content(
    minter: FakeMinter,
) -> None:
    messages = [
        {"role": "tool"},
        {"role": "user", "content": [{"type": "text", "text": "(image://a.png)"}]},
        {"role": "user", "content": "nothing here"},
    ]

    rewritten, substitutions = rewrite_all(messages, mint=minter)

    assert rewritten == messages
    assert substitutions == []


def test_rewrite_all_failure_yields_no_output(minter: FakeMinter) -> None:
    messages = [
        {"role": "user", "content": "(image://good.png)"},
        {"role": "user", "content": "(image://bad.gif)"},
    ]

    with pytest.raises(UnsupportedImageFormatError):
        rewrite_all(messages, mint=minter)

    assert messages[0]["content"] == "(image://good.png)"


def test_collect_image_urls_after_rewrite(minter: FakeMinter) -> None:
    messages = [
        {"role": "user", "content": "see (image://a.png) and (image://a.png)"},
        {"role": "assistant", "content": "also (image://b.png)"},
    ]

    rewritten, substitutions = rewrite_all(messages, mint=minter)
    urls = collect_image_urls(rewritten)

    assert [record.name for record in substitutions] == ["a.png", "b.png"]
    assert urls == [substitutions[0].url, substitutions[1].url]


def test_collect_image_urls_empty_and_ignores_placeholders() -> None:
    messages = [
        {"role": "user", "content": "no images"},
        {"role": "user", "content": "(image://pending.png)"},
        {"role": "user", "content": "(http://insecure.example.com/a.png)"},
        {"role": "user"},
    ]

    assert collect_image_urls(messages) == []


def test_substitution_to_dict_uses_wire_names() -> None:
    record = ImageSubstitution(name="a.png", url="https://x/a.png", upload_url="https://u")

    assert record.to_dict() == {
        "name": "a.png",
        "url": "https://x/a.png",
        "uploadUrl": "https://u",
    }


def test_minter_builds_dated_key_and_signs_it() -> None:
    signed: list[str] = []

    def sign(key: str) -> str:
        signed.append(key)
        return f"https://upload.example.com/{key}?sig=1"

    minter = ImageUploadMinter(
        key_prefix="saved-chats",
        sign_upload=sign,
        public_url=lambda key: f"https://public.example.com/{key}",
        today=lambda: date(2024, 5, 17),
    )

    record = minter("figure.png")

    key = signed[0]
    assert key.startswith("saved-chats/images/2024-05-17/")
    assert key.endswith(".png")
    suffix = key.rsplit("/", 1)[1][: -len(".png")]
    assert len(suffix) == 10
    assert suffix.isalnum()
    assert record.name == "figure.png"
    assert record.url == f"https://public.example.com/{key}"
    assert record.upload_url == f"https://upload.example.com/{key}?sig=1"


def test_minter_keys_are_unique_for_same_name() -> None:
    minter = ImageUploadMinter(
        key_prefix="",
        sign_upload=lambda key: "u",
        public_url=lambda key: f"https://public.example.com/{key}",
    )

    first = minter("a.png")
    second = minter("a.png")

    assert first.url != second.url
    assert first.url.startswith("https://public.example.com/images/")


def test_minter_wraps_signing_failures() -> None:
    def failing_sign(key: str) -> str:
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")

    minter = ImageUploadMinter(
        key_prefix="p",
        sign_upload=failing_sign,
        public_url=lambda key: key,
    )

    with pytest.raises(ImageUploadSigningError):
        rewrite_all([{"content": "(image://a.png)"}], mint=minter)


def test_minter_uses_configured_prefix_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = image_placeholders.get_settings().model_copy(
        update={"chat_images_key_prefix": "/custom-prefix/"}
    )
    monkeypatch.setattr(image_placeholders, "get_settings", lambda: settings)

    minter = ImageUploadMinter(sign_upload=lambda key: "u", public_url=lambda key: key)

    assert minter.mint_key().startswith("custom-prefix/images/")
