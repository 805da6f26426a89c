"""
app/api/dependencies.py

Shared FastAPI dependencies and pipeline error mapping.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.events.publisher import EventPublisher, OutboxEventPublisher
from db.repositories.errors import NotFoundError, PipelineError, StoreError, ValidationError


def get_event_publisher() -> EventPublisher:
    """
    Publisher used by request-driven batch processing.
    """

    return OutboxEventPublisher()


def to_http_error(exc: PipelineError) -> HTTPException:
    """
    Map a pipeline exception onto the HTTP status clients should see.
    """

    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, StoreError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
