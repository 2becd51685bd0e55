"""Response envelopes shared by every endpoint."""

from typing import Any, Optional

from pydantic import BaseModel


class Envelope(BaseModel):
    """Success envelope: ``{"message": ..., "data": ...}``."""
    message: str
    data: Optional[Any] = None


class ErrorEnvelope(BaseModel):
    """Error envelope; ``stack`` is only filled in debug mode."""
    message: str
    stack: Optional[str] = None
