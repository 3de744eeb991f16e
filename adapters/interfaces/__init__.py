"""Interfaces package for adapters.

Define interfaces para servicios."""

from .base_service import (
    BaseService,
    ServiceStatus,
    WebSocketManagerInterface,
    ReaderServiceInterface,
)

__all__ = [
    "BaseService",
    "ServiceStatus",
    "WebSocketManagerInterface",
    "ReaderServiceInterface",
]
