"""Internal change-event Pydantic models (sent by the member and class services)."""

from typing import List

from pydantic import BaseModel


class ClassUpdatedEvent(BaseModel):
    class_id: str
    changed_fields: List[str] = []


class MemberUpdatedEvent(BaseModel):
    member_id: str
    changed_fields: List[str] = []


class EventAccepted(BaseModel):
    accepted: bool = True
    cache_invalidated: bool = False
    reembedding_scheduled: bool = False
