"""Schedule-slot suggestion endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..models import ApiResponse
from ..state import AppState, get_state

router = APIRouter()


@router.get("/suggestions/{member_id}", response_model=ApiResponse)
async def get_schedule_suggestions(
    member_id: str,
    class_id: Optional[str] = Query(None, alias="classId"),
    category: Optional[str] = Query(None),
    trainer_id: Optional[str] = Query(None, alias="trainerId"),
    date_range: int = Query(30, alias="dateRange"),
    use_ai: bool = Query(False, alias="useAI"),
    state: AppState = Depends(get_state),
):
    data = await state.orchestrator.schedule_suggestions(
        member_id,
        class_id=class_id,
        category=category,
        trainer_id=trainer_id,
        date_range=date_range,
        use_ai=use_ai,
    )
    return ApiResponse(data=data)
