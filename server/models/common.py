"""Common Pydantic models shared across routes."""

from typing import Any, Dict

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Success envelope: {"success": true, "data": {...}}."""

    success: bool = True
    data: Dict[str, Any] = {}
