"""Root and health endpoints."""

from fastapi import APIRouter, Depends

from ..state import AppState, get_state

router = APIRouter()


@router.get("/")
def root(state: AppState = Depends(get_state)):
    return {
        "name": "Gym Recommendation Engine API",
        "version": "1.0.0",
        "endpoints": {
            "recommendations": ["/classes/recommendations/{member_id}", "/classes/search/semantic"],
            "schedules": ["/schedules/suggestions/{member_id}"],
            "events": ["/internal/events/class-updated", "/internal/events/member-updated"],
        },
    }


@router.get("/health")
def health(state: AppState = Depends(get_state)):
    return {
        "status": "healthy",
        "data_source": state.config.data_source,
        "cache": state.cache.backend.name,
        "vector_index": state.vector_index.name,
        "embedding": {"configured": state.embedding_client.is_configured, "model": state.embedding_client.model},
        "ai": {"configured": state.ai_client.is_configured, "model": state.ai_client.model},
        "cache_warming": {
            "enabled": state.config.cache_warming_enabled,
            "running": state.warming_job.is_running,
            "last_results": state.warming_job.last_results,
        },
    }
