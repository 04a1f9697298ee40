"""
Fee-Change Request Service.

A specialist's fee-change request is not stored on its own: it is the
``feeChangeRequest`` marker embedded in ``doctors/{uid}`` together with the
top-level ``professionalFeeStatus``. This service projects those markers
into ``FeeChangeRequest`` views and applies approve/reject decisions.

The document store has no multi-key transactions. A review is a single
full-record write of the doctor document (last writer wins); the activity
log entry and the user notification follow as best-effort side effects
that never undo the write.
"""
from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Iterable
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import (
    AppException,
    BadRequestError,
    DoctorNotFoundError,
    ExternalServiceError,
)
from ..db.document_store import DocumentStore, Unsubscribe, utc_now_iso
from ..models.enums import ActivityCategory, FeeRequestStatus
from ..repositories import DoctorRepository
from ..repositories.doctor_repository import DOCTORS_PATH
from ..schemas.fee_request import (
    BulkFeeRequestFailure,
    BulkFeeRequestResult,
    FeeChangeRequest,
    FeeRequestFilters,
    FeeRequestStats,
    FeeRequestStatusUpdate,
)
from .activity_log_service import ActivityLogService
from .notification_service import NotificationService

logger = structlog.get_logger(__name__)

PENDING = FeeRequestStatus.PENDING.value

# Top-level fields any of which marks a pending request.
PENDING_MARKER_FIELDS = ("professionalFeeStatus", "professionalChangeRequest", "feeChangeRequest")


def _as_fee(value: Any) -> float | None:
    """A stored fee as a finite float; numeric strings ("2,500") count."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.replace(",", "").strip())
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def _first_number(*candidates: Any) -> float | None:
    """First candidate that reads as a fee; unreadable ones are skipped."""
    for value in candidates:
        fee = _as_fee(value)
        if fee is not None:
            return fee
    return None


def _resolve_fee(*candidates: Any) -> float | None:
    """Fee from the first candidate that is present at all.

    A present but unreadable value yields ``None`` instead of falling
    through, so a review never silently applies a different fee.
    """
    for value in candidates:
        if value is not None and value != "":
            return _as_fee(value)
    return None


def _first_text(*candidates: Any) -> str | None:
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def _marker(doctor: dict[str, Any]) -> dict[str, Any]:
    marker = doctor.get("feeChangeRequest")
    return marker if isinstance(marker, dict) else {}


def has_pending_request(doctor: Any) -> bool:
    """True for a specialist record carrying any pending marker."""
    if not isinstance(doctor, dict) or doctor.get("isSpecialist") is not True:
        return False
    if any(doctor.get(name) == PENDING for name in PENDING_MARKER_FIELDS):
        return True
    return _marker(doctor).get("status") == PENDING


def project_request(doctor_id: str, doctor: dict[str, Any]) -> FeeChangeRequest:
    """Flatten a doctor record into a ``FeeChangeRequest``.

    Raises ``pydantic.ValidationError`` for records that cannot be projected.
    """
    marker = _marker(doctor)
    now = utc_now_iso()
    name = f"{doctor.get('firstName') or ''} {doctor.get('lastName') or ''}".strip()
    return FeeChangeRequest(
        id=doctor_id,
        doctor_id=doctor_id,
        doctor_name=name,
        doctor_email=doctor.get("email") or "",
        specialty=doctor.get("specialty"),
        previous_fee=_first_number(
            marker.get("previousFee"), doctor.get("previousFee"), doctor.get("professionalFee")
        ) or 0.0,
        requested_fee=_first_number(
            marker.get("requestedFee"), doctor.get("requestedFee"), doctor.get("professionalFee")
        ) or 0.0,
        request_date=_first_text(
            marker.get("requestDate"), doctor.get("requestDate"), doctor.get("lastUpdated")
        ) or now,
        status=doctor.get("professionalFeeStatus") or PENDING,
        reason=_first_text(marker.get("reason"), doctor.get("reason")) or "",
        created_at=doctor.get("createdAt") or now,
        last_updated=doctor.get("lastUpdated") or now,
    )


def _project_pending(doctors: Any) -> list[FeeChangeRequest]:
    if not isinstance(doctors, dict):
        return []
    requests: list[FeeChangeRequest] = []
    for doctor_id, doctor in doctors.items():
        if not has_pending_request(doctor):
            continue
        try:
            requests.append(project_request(doctor_id, doctor))
        except (PydanticValidationError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed fee request", doctor_id=doctor_id, error=str(exc))
    requests.sort(key=lambda request: request.request_date, reverse=True)
    return requests


def filter_requests(
    requests: Iterable[FeeChangeRequest],
    filters: FeeRequestFilters,
) -> list[FeeChangeRequest]:
    """Apply status, doctor-name, request-date and requested-fee filters."""
    name = filters.doctor_name.casefold() if filters.doctor_name else None
    matched = []
    for request in requests:
        if filters.status and filters.status != "all" and request.status != filters.status:
            continue
        if name and name not in request.doctor_name.casefold():
            continue
        if filters.date_from and request.request_date < filters.date_from:
            continue
        if filters.date_to and request.request_date > filters.date_to:
            continue
        if filters.fee_min is not None and request.requested_fee < filters.fee_min:
            continue
        if filters.fee_max is not None and request.requested_fee > filters.fee_max:
            continue
        matched.append(request)
    return matched


def fee_request_stats(requests: Iterable[FeeChangeRequest]) -> FeeRequestStats:
    stats = FeeRequestStats()
    for request in requests:
        stats.total += 1
        if request.status == FeeRequestStatus.PENDING:
            stats.pending += 1
        elif request.status == FeeRequestStatus.APPROVED:
            stats.approved += 1
        elif request.status == FeeRequestStatus.REJECTED:
            stats.rejected += 1
    return stats


class FeeRequestService:
    """Lists and reviews fee-change requests."""

    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService | None = None,
        activity: ActivityLogService | None = None,
    ) -> None:
        self.store = store
        self.doctors = DoctorRepository(store)
        self.notifications = notifications or NotificationService(store)
        self.activity = activity or ActivityLogService(store)

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_pending(self) -> list[FeeChangeRequest]:
        """Pending requests across all specialists, newest first."""
        requests = _project_pending(await self.doctors.get_all())
        logger.info("Pending fee requests listed", count=len(requests))
        return requests

    async def get_requests_for_doctor(self, doctor_id: str) -> list[FeeChangeRequest]:
        doctor = await self.doctors.get(doctor_id)
        if doctor is None:
            return []
        return _project_pending({doctor_id: doctor})

    async def subscribe_pending(
        self,
        on_update: Callable[[list[FeeChangeRequest]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe:
        """Call ``on_update`` with the pending list now and whenever doctors change."""

        def _on_change(doctors: Any) -> None:
            try:
                requests = _project_pending(doctors)
            except Exception as exc:
                logger.error("Fee request subscription update failed", error=str(exc))
                if on_error is None:
                    raise
                on_error(exc)
                return
            on_update(requests)

        return await self.store.subscribe(DOCTORS_PATH, _on_change, on_error)

    # =========================================================================
    # Review
    # =========================================================================

    async def update_status(
        self,
        doctor_id: str,
        update: FeeRequestStatusUpdate,
        reviewer_email: str | None = None,
    ) -> dict[str, Any]:
        """Approve or reject one request and return the written doctor record.

        Raises:
            DoctorNotFoundError: No record at ``doctors/{doctor_id}``.
            BadRequestError: The fee to apply is missing or unreadable;
                nothing is written and the request stays pending.
            ExternalServiceError: The read or write failed; the request
                stays pending.
        """
        try:
            doctor = await self.doctors.get(doctor_id)
        except Exception as exc:
            logger.error("Fee request read failed", doctor_id=doctor_id, error=str(exc))
            raise ExternalServiceError(
                "document_store",
                f"Failed to read doctor {doctor_id}: {exc}",
            ) from exc
        if doctor is None:
            raise DoctorNotFoundError(doctor_id)

        marker = _marker(doctor)
        current_fee = doctor.get("professionalFee")
        previous_fee = _resolve_fee(marker.get("previousFee"), doctor.get("previousFee"), current_fee)
        requested_fee = _resolve_fee(marker.get("requestedFee"), current_fee)
        status = FeeRequestStatus(update.status)

        if status == FeeRequestStatus.APPROVED:
            new_fee, fee_field = requested_fee, "requestedFee"
        else:
            new_fee, fee_field = previous_fee, "previousFee"
        if new_fee is None or new_fee < 0:
            logger.warning("Fee request has no usable fee", doctor_id=doctor_id, field=fee_field)
            raise BadRequestError(
                f"Fee change request for doctor {doctor_id} has no valid {fee_field}",
                error_code="INVALID_FEE_REQUEST",
                details={"doctor_id": doctor_id, "field": fee_field},
            )

        now = utc_now_iso()
        updated = {
            **doctor,
            "professionalFeeStatus": status.value,
            "professionalFee": new_fee,
            "lastUpdated": now,
            "feeChangeRequest": {
                **marker,
                "status": status.value,
                "reviewedBy": update.reviewed_by,
                "reviewedAt": now,
                "reviewNotes": update.review_notes,
            },
        }
        # A legacy string marker would keep the record listed as pending.
        if updated.get("professionalChangeRequest") == PENDING:
            updated["professionalChangeRequest"] = status.value

        try:
            await self.doctors.save(doctor_id, updated)
        except Exception as exc:
            logger.error("Fee request update failed", doctor_id=doctor_id, error=str(exc))
            raise ExternalServiceError(
                "document_store",
                f"Failed to update fee request for doctor {doctor_id}: {exc}",
            ) from exc

        logger.info(
            "Fee request reviewed",
            doctor_id=doctor_id,
            status=status.value,
            previous_fee=previous_fee,
            new_fee=new_fee,
            reviewed_by=update.reviewed_by,
        )

        await self._log_review(doctor_id, status, update, reviewer_email, previous_fee, new_fee)
        await self._notify_review(doctor_id, status, previous_fee, requested_fee, update.review_notes)
        return updated

    async def bulk_approve(
        self,
        doctor_ids: list[str],
        reviewed_by: str,
        review_notes: str = "",
        reviewer_email: str | None = None,
    ) -> BulkFeeRequestResult:
        return await self._bulk_review(
            FeeRequestStatus.APPROVED, doctor_ids, reviewed_by, review_notes, reviewer_email
        )

    async def bulk_reject(
        self,
        doctor_ids: list[str],
        reviewed_by: str,
        review_notes: str = "",
        reviewer_email: str | None = None,
    ) -> BulkFeeRequestResult:
        return await self._bulk_review(
            FeeRequestStatus.REJECTED, doctor_ids, reviewed_by, review_notes, reviewer_email
        )

    async def _bulk_review(
        self,
        status: FeeRequestStatus,
        doctor_ids: list[str],
        reviewed_by: str,
        review_notes: str,
        reviewer_email: str | None,
    ) -> BulkFeeRequestResult:
        """Review each id independently; one failure never affects another."""
        unique_ids = list(dict.fromkeys(doctor_ids))
        update = FeeRequestStatusUpdate(status=status, reviewed_by=reviewed_by, review_notes=review_notes)

        async def _review(doctor_id: str) -> BulkFeeRequestFailure | None:
            try:
                await self.update_status(doctor_id, update, reviewer_email)
            except AppException as exc:
                return BulkFeeRequestFailure(doctor_id=doctor_id, error=exc.message)
            except Exception as exc:
                logger.exception("Bulk fee review failed for doctor", doctor_id=doctor_id)
                return BulkFeeRequestFailure(doctor_id=doctor_id, error=f"Unexpected error: {exc}")
            return None

        outcomes = await asyncio.gather(*(_review(doctor_id) for doctor_id in unique_ids))
        result = BulkFeeRequestResult(status=status)
        for doctor_id, failure in zip(unique_ids, outcomes):
            if failure is None:
                result.succeeded.append(doctor_id)
            else:
                result.failed.append(failure)

        logger.info(
            "Bulk fee review complete",
            status=status.value,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        try:
            await self.activity.log(
                user_id=reviewed_by,
                user_email=reviewer_email or reviewed_by,
                action=f"Bulk {status.value} fee change requests",
                category=ActivityCategory.FEE_MANAGEMENT,
                target_id="bulk",
                target_type="fee_request",
                details={
                    "requestCount": len(unique_ids),
                    "requestIds": unique_ids,
                    "reviewNotes": review_notes,
                },
            )
        except Exception as exc:
            logger.error("Failed to record bulk fee review activity", error=str(exc))
        return result

    # -------------------------------------------------------------------------
    # Best-effort side effects
    # -------------------------------------------------------------------------

    async def _log_review(
        self,
        doctor_id: str,
        status: FeeRequestStatus,
        update: FeeRequestStatusUpdate,
        reviewer_email: str | None,
        previous_fee: float | None,
        new_fee: float | None,
    ) -> None:
        try:
            await self.activity.log(
                user_id=update.reviewed_by,
                user_email=reviewer_email or update.reviewed_by,
                action=f"Fee change request {status.value}",
                category=ActivityCategory.FEE_MANAGEMENT,
                target_id=doctor_id,
                target_type="doctor",
                details={
                    "newStatus": status.value,
                    "reviewNotes": update.review_notes,
                    "reviewedBy": update.reviewed_by,
                    "previousFee": previous_fee,
                    "newFee": new_fee,
                },
            )
        except Exception as exc:
            logger.error("Failed to record fee review activity", doctor_id=doctor_id, error=str(exc))

    async def _notify_review(
        self,
        doctor_id: str,
        status: FeeRequestStatus,
        previous_fee: float | None,
        requested_fee: float | None,
        review_notes: str,
    ) -> None:
        try:
            await self.notifications.notify_fee_change(
                doctor_id,
                status,
                previous_fee or 0.0,
                requested_fee or 0.0,
                review_notes,
            )
        except Exception as exc:
            logger.error("Failed to send fee change notification", doctor_id=doctor_id, error=str(exc))

