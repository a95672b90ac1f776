"""Response envelope shared by every endpoint."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Successful response: ``{"success": true, "data": ...}``."""

    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    """Failed response: ``{"success": false, "error": "..."}``."""

    success: bool = False
    error: str = Field(..., description="Human-readable reason")


class MessageResponse(BaseModel):
    message: str
