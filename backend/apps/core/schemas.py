"""
Core schemas - shared Pydantic models for API responses.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str = Field(..., description="Stable machine-readable error code")
    detail: str = Field(..., description="Human-readable error message")
    identifier: dict[str, str | None] | None = Field(
        default=None,
        description="Echo of the lookup identifiers for ORG_NOT_FOUND",
    )

    model_config = {
        "json_schema_extra": {
            "example": {"code": "LAST_ADMIN", "detail": "Cannot remove the last administrator."}
        }
    }


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str = Field(..., description="Human-readable status message")

    model_config = {
        "json_schema_extra": {"example": {"message": "Operation completed successfully."}}
    }
