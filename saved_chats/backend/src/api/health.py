"""Health check endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_session_dependency
from ..models import SavedChat

LOGGER = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health/live")
def liveness() -> dict[str, str]:
    """Return a liveness indicator."""

    return {"status": "live"}


@router.get("/health/ready")
def readiness(session: Session = Depends(get_session_dependency)) -> dict[str, str]:
    """Report ready once the saved chats table can be queried."""

    try:
        session.execute(select(SavedChat.chat_id).limit(1)).all()
    except SQLAlchemyError as exc:
        LOGGER.warning("readiness_check_failed", table=SavedChat.__tablename__, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Saved chats table unavailable",
        ) from exc
    return {"status": "ready", "table": SavedChat.__tablename__}


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
