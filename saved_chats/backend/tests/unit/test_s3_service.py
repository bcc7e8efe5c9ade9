import os
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_saved_chats.db")

import pytest

from saved_chats.backend.src.services import s3


def _settings(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "aws_region": "us-east-1",
        "aws_endpoint_url": None,
        "aws_access_key_id": "test",
        "aws_secret_access_key": "secret",
        "chat_images_bucket": "chat-images",
        "chat_images_public_url": "https://chat-images.example.com/",
        "chat_images_upload_expires_in": 900,
        "local_storage_path": "/tmp/saved-chats-tests",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_generate_presigned_upload_url_uses_sigv4_put(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    mock_client = Mock()
    mock_client.generate_presigned_url.return_value = "https://example.com/presigned"
    mock_client.meta.region_name = "us-east-1"

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured.update(kwargs)
        return mock_client

    monkeypatch.setattr(s3, "get_settings", lambda: _settings())
    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)

    url = s3.generate_presigned_upload_url("/saved-chats//images/2024-01-01/abc.png")

    assert url == "https://example.com/presigned"
    assert getattr(captured["config"], "signature_version", None) == "s3v4"
    mock_client.generate_presigned_url.assert_called_once_with(
        "put_object",
        Params={
            "Bucket": "chat-images",
            "Key": "saved-chats/images/2024-01-01/abc.png",
            "ContentType": "image/png",
        },
        ExpiresIn=900,
    )


def test_custom_endpoint_is_passed_to_client(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured.update(kwargs)
        return Mock()

    monkeypatch.setattr(
        s3,
        "get_settings",
        lambda: _settings(aws_endpoint_url="https://r2.example.com", aws_region=None),
    )
    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)

    s3.get_s3_client()

    assert captured["endpoint_url"] == "https://r2.example.com"
    assert captured["region_name"] == "auto"


def test_build_public_url_joins_base_and_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(s3, "get_settings", lambda: _settings())

    assert (
        s3.build_public_url("saved-chats/images/2024-01-01/abc.png")
        == "https://chat-images.example.com/saved-chats/images/2024-01-01/abc.png"
    )


def test_missing_configuration_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        s3, "get_settings", lambda: _settings(chat_images_bucket=None)
    )

    with pytest.raises(s3.ImageStorageNotConfiguredError):
        s3.build_public_url("a.png")
    with pytest.raises(s3.ImageStorageNotConfiguredError):
        s3.generate_presigned_upload_url("a.png")


def test_local_mode_returns_file_uri(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        s3,
        "get_settings",
        lambda: _settings(chat_images_bucket="local", local_storage_path=str(tmp_path)),
    )

    url = s3.generate_presigned_upload_url("images/2024-01-01/abc.png")

    assert url.startswith("file://")
    assert url.endswith("images/2024-01-01/abc.png")
    assert (tmp_path / "images" / "2024-01-01").is_dir()


def test_sanitize_object_key() -> None:
    assert s3.sanitize_object_key(' "/a//b%20c.png" ') == "a/b c.png"
    assert s3.sanitize_object_key("") == ""
