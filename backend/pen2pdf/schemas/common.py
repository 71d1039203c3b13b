"""
Pen2PDF Backend: Shared Pydantic Schemas
==========================================

What:  Base model and the response shapes shared by every route.
How:   CamelModel serializes snake_case fields as camelCase (the frontend
       reads `modelUsed`, `generatedNotes`, `subTodos`...) and accepts either
       spelling on input. FastAPI serializes response_model by alias.

Envelope convention:
    Workspace resources answer {"success": true, "data": ...}.
    Errors always use ErrorResponse, produced by the handlers in main.py.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SuccessResponse(BaseModel):
    """Body for operations that return no resource (deletes, clears)."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "rate_limited",
            "message": "Model \\"gpt-4o\\" has reached its quota or rate limit. ...",
            "details": {"model": "gpt-4o", "attempted_models": ["gpt-4o"]},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    Health check response.

    `backends` maps each AI backend to "configured" or "not_configured";
    a missing credential degrades the service but does not make it unhealthy.
    """

    status: str = Field(description="Overall status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    backends: Dict[str, str]
    uptime_seconds: float
