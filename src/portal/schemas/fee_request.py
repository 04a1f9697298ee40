"""
Fee-Change Request Schemas.

``FeeChangeRequest`` is a flattened, read-only view of the fee-change
marker embedded in a doctor record; the review payloads drive
approve/reject.
"""
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..models.enums import FeeRequestStatus


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so stored and filter dates compare."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class FeeChangeRequest(BaseModel):
    """A pending fee-change request projected out of a doctor record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    doctor_id: str
    doctor_name: str
    doctor_email: str = ""
    specialty: str | None = None
    previous_fee: float = Field(ge=0)
    requested_fee: float = Field(ge=0)
    request_date: datetime
    status: FeeRequestStatus = FeeRequestStatus.PENDING
    reason: str = ""
    created_at: datetime | None = None
    last_updated: datetime | None = None

    @field_validator("request_date", "created_at", "last_updated")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class _ReviewDecision(BaseModel):
    status: FeeRequestStatus

    @field_validator("status")
    @classmethod
    def must_be_final(cls, value: FeeRequestStatus) -> FeeRequestStatus:
        if value == FeeRequestStatus.PENDING:
            raise ValueError("status must be approved or rejected")
        return value


class FeeRequestStatusUpdate(_ReviewDecision):
    """Decision applied to one request by the service."""

    reviewed_by: str
    review_notes: str = ""


class FeeRequestReview(_ReviewDecision):
    """Request body for PATCH /fee-requests/{doctor_id}."""

    review_notes: str = Field(default="", max_length=1000)


class BulkFeeRequestAction(BaseModel):
    """Request body for the bulk approve/reject endpoints."""

    doctor_ids: list[str] = Field(min_length=1, max_length=200)
    review_notes: str = Field(default="", max_length=1000)


class BulkFeeRequestFailure(BaseModel):
    doctor_id: str
    error: str


class BulkFeeRequestResult(BaseModel):
    """Independent per-id outcomes of a bulk review."""

    status: FeeRequestStatus
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkFeeRequestFailure] = Field(default_factory=list)


class FeeRequestFilters(BaseModel):
    """Client-side style filters applied over a list of requests."""

    status: FeeRequestStatus | Literal["all"] | None = None
    doctor_name: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    fee_min: float | None = Field(default=None, ge=0)
    fee_max: float | None = Field(default=None, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_ranges(self) -> "FeeRequestFilters":
        if self.fee_min is not None and self.fee_max is not None and self.fee_min > self.fee_max:
            raise ValueError("fee_min must not exceed fee_max")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class FeeRequestStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class FeeRequestListResponse(BaseModel):
    requests: list[FeeChangeRequest]
    stats: FeeRequestStats


class FeeReviewOutcome(BaseModel):
    """State of a doctor's fee after a review was written."""

    doctor_id: str
    status: FeeRequestStatus
    professional_fee: float | None = None
    reviewed_by: str
    reviewed_at: datetime

    @field_validator("reviewed_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)
