"""Pydantic request/response models for the API."""

from .common import ApiResponse
from .events import ClassUpdatedEvent, EventAccepted, MemberUpdatedEvent
from .search import SemanticSearchRequest

__all__ = [
    "ApiResponse",
    "ClassUpdatedEvent",
    "EventAccepted",
    "MemberUpdatedEvent",
    "SemanticSearchRequest",
]
