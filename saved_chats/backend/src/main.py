"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import health, saved_chats
from .core.config import get_settings
from .core.logging import configure_logging

LOGGER = structlog.get_logger(__name__)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    LOGGER.info("invalid_request", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request"},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Saved Chats API", version="0.1.0")

    if not get_settings().chat_images_configured:
        LOGGER.warning(
            "chat_image_storage_not_configured",
            hint="/api/saved-chats/add is disabled until CHAT_IMAGES_BUCKET and CHAT_IMAGES_PUBLIC_URL are set",
        )

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(health.router, prefix="/api")
    app.include_router(saved_chats.router, prefix="/api")

    return app


app = create_app()
