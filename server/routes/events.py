"""
Internal change events.

Always answered with 202: the caller's write has already happened and must not
depend on embedding work, which runs as a background task after the response.
"""

from fastapi import APIRouter, BackgroundTasks, Depends

from ..models import ClassUpdatedEvent, EventAccepted, MemberUpdatedEvent
from ..state import AppState, get_state

router = APIRouter()


@router.post("/class-updated", status_code=202, response_model=EventAccepted)
async def class_updated(
    event: ClassUpdatedEvent,
    background_tasks: BackgroundTasks,
    state: AppState = Depends(get_state),
):
    scheduled = state.maintenance.class_needs_reembedding(event.changed_fields)
    if scheduled:
        background_tasks.add_task(state.maintenance.reembed_class, event.class_id)
    return EventAccepted(reembedding_scheduled=scheduled)


@router.post("/member-updated", status_code=202, response_model=EventAccepted)
async def member_updated(
    event: MemberUpdatedEvent,
    background_tasks: BackgroundTasks,
    state: AppState = Depends(get_state),
):
    invalidated = await state.maintenance.member_updated(event.member_id, event.changed_fields)
    scheduled = state.maintenance.member_needs_reembedding(event.changed_fields)
    if scheduled:
        background_tasks.add_task(state.maintenance.reembed_member, event.member_id)
    return EventAccepted(cache_invalidated=invalidated, reembedding_scheduled=scheduled)
