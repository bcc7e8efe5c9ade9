"""Security helpers for GitHub access-token identity checks."""

from __future__ import annotations

import httpx
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import get_settings
from .identity_cache import get_identity_cache

LOGGER = structlog.get_logger(__name__)

USER_ID_PREFIX = "github|"
_scheme = HTTPBearer(auto_error=False)


class IdentityResolutionError(Exception):
    """Raised when an access token cannot be mapped to a user."""


# -------------------------------------------------------
# Token Resolution
# -------------------------------------------------------

def _fetch_github_login(token: str, *, api_url: str) -> str:
    """Return the GitHub login that owns ``token``."""
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(
                f"{api_url.rstrip('/')}/user",
                headers={
                    "Authorization": f"token {token}",
                    "Accept": "application/vnd.github+json",
                },
            )
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPError as exc:
        raise IdentityResolutionError("Failed to get user id") from exc
    except ValueError as exc:
        raise IdentityResolutionError("Invalid identity response") from exc

    login = payload.get("login") if isinstance(payload, dict) else None
    if not isinstance(login, str) or not login:
        raise IdentityResolutionError("Identity response missing login")
    return login


def resolve_github_user_id(token: str) -> str:
    """Map an access token to a ``github|<login>`` user id, consulting the cache."""

    cache = get_identity_cache()
    cached = cache.get(token)
    if cached:
        return cached

    login = _fetch_github_login(token, api_url=get_settings().github_api_url)
    user_id = f"{USER_ID_PREFIX}{login}"
    cache.set(token, user_id)
    LOGGER.info("github_identity_resolved", user_id=user_id)
    return user_id


# -------------------------------------------------------
# FastAPI Dependencies
# -------------------------------------------------------

def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
) -> str | None:
    """Resolve the caller when a bearer token is supplied, else return ``None``."""
    if credentials is None or not credentials.credentials:
        return None

    try:
        return resolve_github_user_id(credentials.credentials)
    except IdentityResolutionError as exc:
        LOGGER.warning("github_identity_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Failed to get user id",
        ) from exc


def get_current_user_id(
    user_id: str | None = Depends(get_optional_user_id),
) -> str:
    """Require an authenticated caller."""
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user_id


__all__ = [
    "IdentityResolutionError",
    "get_current_user_id",
    "get_optional_user_id",
    "resolve_github_user_id",
]
