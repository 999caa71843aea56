"""
Synergy Backend: Shared Response Schemas
=========================================

What:  Response models used by more than one route module: the error
       envelope, the health report and a plain acknowledgement.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.
    Why:   Clients need a consistent structure to parse errors programmatically.

    Fields:
        error: Machine-readable error code (e.g., "role_unavailable", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which role was full)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "team_full",
            "message": "Team size limit reached",
            "details": {"team_size": 3},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer checks."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class MessageResponse(BaseModel):
    message: str = Field(description="Human-readable confirmation")
