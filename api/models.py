"""
API response models for the console's own HTTP surface.

These Pydantic v2 models define the error envelope and the health check.
They are separate from the dataclasses in core/models.py (what the backend
returns) and services/payloads.py (what we send to the backend).
"""

from typing import Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error detail included in all error responses."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned by all error handlers."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    status: str = "healthy"
    version: str
    authenticated: bool
