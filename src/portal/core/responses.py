"""
Response envelopes shared by every endpoint.

Successful calls return ``GenericResponse[T]``; the exception handlers in
``main`` render failures as ``ErrorResponse`` so clients always see the same
``success`` / ``meta`` frame.
"""
from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

ComponentStatus = Literal["healthy", "degraded", "unhealthy"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResponseMeta(BaseModel):
    request_id: str | None = Field(default=None, description="Echo of X-Request-ID")
    timestamp: datetime = Field(default_factory=_utcnow)
    version: str = "1.0.0"


class GenericResponse(BaseModel, Generic[T]):
    """Envelope for a successful call, e.g. ``GenericResponse[BatchResult]``."""

    success: bool = True
    message: str
    data: T
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class ErrorDetail(BaseModel):
    code: str = Field(description="Machine-readable error code, e.g. DOCTOR_NOT_FOUND")
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class HealthCheck(BaseModel):
    """Status of one dependency (document store, identity provider, SMTP)."""

    status: ComponentStatus
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    status: ComponentStatus
    service: str
    version: str
    environment: str
    checks: dict[str, HealthCheck] = Field(default_factory=dict)
