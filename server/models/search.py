"""Semantic search Pydantic models."""

from pydantic import BaseModel


class SemanticSearchRequest(BaseModel):
    # Empty / missing query is rejected by the orchestrator as INVALID_INPUT
    query: str = ""
