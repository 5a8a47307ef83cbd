"""
Response models for pagesmith
"""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    request_id: Optional[str] = Field(None, description="Request ID for log correlation")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field("healthy", description="Service status")
    backend: str = Field(..., description="Configured model backend")
    model: str = Field(..., description="Configured model name")
