"""Shared schemas."""

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Machine-readable error."""

    code: str = Field(..., description="Stable error code, e.g. 'budget_exceeded'")
    message: str = Field(..., description="Human-readable message")
    details: dict = Field(default_factory=dict)
    retryable: bool = False


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: ErrorBody


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
