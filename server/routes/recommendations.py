"""Class recommendation and semantic search endpoints."""

from fastapi import APIRouter, Depends, Query

from ..models import ApiResponse, SemanticSearchRequest
from ..state import AppState, get_state

router = APIRouter()


@router.get("/recommendations/{member_id}", response_model=ApiResponse)
async def get_class_recommendations(
    member_id: str,
    use_ai: bool = Query(False, alias="useAI"),
    use_vector: bool = Query(True, alias="useVector"),
    skip_cache: bool = Query(False, alias="skipCache"),
    state: AppState = Depends(get_state),
):
    """Ranked classes for a member plus the method that produced them."""
    data = await state.orchestrator.recommend_classes(
        member_id,
        use_ai=use_ai,
        use_vector=use_vector,
        skip_cache=skip_cache,
    )
    return ApiResponse(data=data)


@router.post("/search/semantic", response_model=ApiResponse)
async def semantic_search(request: SemanticSearchRequest, state: AppState = Depends(get_state)):
    """Top-10 active classes closest to a free-text query."""
    data = await state.orchestrator.semantic_search(request.query)
    return ApiResponse(data=data)
