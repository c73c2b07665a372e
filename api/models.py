"""
API request and response schemas.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Registration body. Fields are optional so missing ones get a 400 with a readable message."""
    username: Optional[str] = Field(None, description="Unique username (3+ characters)")
    email: Optional[str] = Field(None, description="Unique email address")
    password: Optional[str] = Field(None, description="Password (6+ characters)")


class LoginRequest(BaseModel):
    """Login body."""
    email: Optional[str] = Field(None, description="Registered email address")
    password: Optional[str] = Field(None, description="Account password")


class CreateBookRequest(BaseModel):
    """New post body."""
    title: Optional[str] = Field(None, description="Book title")
    caption: Optional[str] = Field(None, description="Recommendation text")
    rating: Any = Field(None, description="Rating (1-5); checked by the catalog, so booleans are not coerced")
    image: Optional[str] = Field(None, description="Cover image as base64 data URI or http(s) URL")


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str = Field(..., description="Human-readable message")


class ErrorResponse(BaseModel):
    """Error response model."""
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
