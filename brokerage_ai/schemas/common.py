"""Common Pydantic schemas used across API endpoints."""

from pydantic import BaseModel, Field

# =============================================================================
# Error Responses
# =============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(description="Error message")
    code: str | None = Field(default=None, description="Error code")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type")
    message: str = Field(description="Human-readable error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Additional error details"
    )


# =============================================================================
# Service
# =============================================================================


class HealthResponse(BaseModel):
    status: str = Field(description="Service health")
    version: str = Field(description="Service version")
    fact_store: str = Field(description="Active fact store backend")
