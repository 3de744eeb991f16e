"""Dependency injection for the API layer."""

import logging

from fastapi import HTTPException, Request

from services.reader_service import ReaderService


logger = logging.getLogger(__name__)


def get_reader_service(request: Request) -> ReaderService:
    """Get the reader service created by the application lifespan."""
    service = getattr(request.app.state, "reader_service", None)
    if service is None:
        logger.error("Reader service requested before startup")
        raise HTTPException(status_code=503, detail="Reader service not available")
    return service
