"""
Error taxonomy for the recommendation service.

Only InputError, MemberNotFoundError and DataStoreUnavailableError reach the
caller on the recommendation paths. Upstream errors (embedding provider, AI
provider) are raised by the clients and absorbed by the orchestrator, which
falls through to the next strategy and logs the stage and raw message.
Semantic search has no fallback, so an embedding failure there surfaces as 503.
"""

from typing import Optional


class EngineError(Exception):
    """Base class; status_code and code shape the HTTP error body."""

    status_code = 500
    code = "ENGINE_ERROR"

    def __init__(self, message: str, *, entity_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id


# Surfaced to callers


class InputError(EngineError):
    status_code = 400
    code = "INVALID_INPUT"


class MemberNotFoundError(EngineError):
    status_code = 404
    code = "MEMBER_NOT_FOUND"


class DataStoreUnavailableError(EngineError):
    """Primary data store cannot be read at all."""

    status_code = 500
    code = "DATA_STORE_UNAVAILABLE"


# Upstream failures (absorbed)


class UpstreamError(EngineError):
    status_code = 503
    code = "UPSTREAM_UNAVAILABLE"


class EmbeddingUnavailableError(UpstreamError):
    code = "EMBEDDING_UNAVAILABLE"


class EmbeddingRateLimitError(EmbeddingUnavailableError):
    code = "EMBEDDING_RATE_LIMITED"


class AIUnavailableError(UpstreamError):
    code = "AI_UNAVAILABLE"


class AIRateLimitError(AIUnavailableError):
    code = "RATE_LIMIT_EXCEEDED"


class AIMalformedResponseError(AIUnavailableError):
    code = "AI_MALFORMED_RESPONSE"


def error_body(exc: EngineError) -> dict:
    """JSON body returned for an EngineError."""
    return {"success": False, "error": {"code": exc.code, "message": exc.message}}
