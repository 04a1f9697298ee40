"""
Fee-Change Request Endpoints.

Admin review of the professional-fee change requests raised by specialists:
listing with filters and counts, per-doctor lookup, single and bulk
approve/reject.
"""
from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path, Query

from ....core.rbac import AdminUser
from ....core.responses import GenericResponse
from ....db.document_store import DocumentStore, get_document_store
from ....models.enums import FeeRequestStatus
from ....schemas.fee_request import (
    BulkFeeRequestAction,
    BulkFeeRequestResult,
    FeeChangeRequest,
    FeeRequestFilters,
    FeeRequestListResponse,
    FeeRequestReview,
    FeeRequestStatusUpdate,
    FeeReviewOutcome,
)
from ....services.fee_request_service import (
    FeeRequestService,
    fee_request_stats,
    filter_requests,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/fee-requests", tags=["Fee Requests"])


# =============================================================================
# Dependencies
# =============================================================================

def get_fee_request_service(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> FeeRequestService:
    """Get fee request service."""
    return FeeRequestService(store)


FeeRequestServiceDep = Annotated[FeeRequestService, Depends(get_fee_request_service)]


# =============================================================================
# Queries
# =============================================================================

@router.get(
    "",
    response_model=GenericResponse[FeeRequestListResponse],
    summary="List pending fee-change requests",
    description=(
        "Pending requests of all specialists, newest first. Optional filters narrow "
        "the list; ``stats`` always counts the unfiltered list."
    ),
)
async def list_fee_requests(
    _: AdminUser,
    service: FeeRequestServiceDep,
    filters: Annotated[FeeRequestFilters, Query()],
) -> GenericResponse[FeeRequestListResponse]:
    requests = await service.list_pending()
    filtered = filter_requests(requests, filters)
    return GenericResponse(
        message="Fee requests retrieved successfully",
        data=FeeRequestListResponse(requests=filtered, stats=fee_request_stats(requests)),
    )


@router.get(
    "/doctors/{doctor_id}",
    response_model=GenericResponse[list[FeeChangeRequest]],
    summary="Fee-change requests of one doctor",
)
async def get_doctor_fee_requests(
    _: AdminUser,
    service: FeeRequestServiceDep,
    doctor_id: Annotated[str, Path(min_length=1)],
) -> GenericResponse[list[FeeChangeRequest]]:
    requests = await service.get_requests_for_doctor(doctor_id)
    return GenericResponse(message="Fee requests retrieved successfully", data=requests)


# =============================================================================
# Review
# =============================================================================

@router.patch(
    "/{doctor_id}",
    response_model=GenericResponse[FeeReviewOutcome],
    summary="Approve or reject a fee-change request",
    responses={
        404: {"description": "Doctor not found"},
        502: {"description": "Write failed; the request is still pending and can be retried"},
    },
)
async def review_fee_request(
    admin: AdminUser,
    service: FeeRequestServiceDep,
    review: FeeRequestReview,
    doctor_id: Annotated[str, Path(min_length=1)],
) -> GenericResponse[FeeReviewOutcome]:
    update = FeeRequestStatusUpdate(
        status=review.status,
        reviewed_by=admin.uid,
        review_notes=review.review_notes,
    )
    doctor = await service.update_status(doctor_id, update, reviewer_email=admin.email)
    marker = doctor["feeChangeRequest"]
    status = FeeRequestStatus(review.status)
    return GenericResponse(
        message=f"Fee change request {status.value}",
        data=FeeReviewOutcome(
            doctor_id=doctor_id,
            status=status,
            professional_fee=doctor.get("professionalFee"),
            reviewed_by=marker["reviewedBy"],
            reviewed_at=marker["reviewedAt"],
        ),
    )


@router.post(
    "/bulk-approve",
    response_model=GenericResponse[BulkFeeRequestResult],
    summary="Approve several fee-change requests",
    description="Each id is reviewed independently; failures are listed per id.",
)
async def bulk_approve_fee_requests(
    admin: AdminUser,
    service: FeeRequestServiceDep,
    action: BulkFeeRequestAction,
) -> GenericResponse[BulkFeeRequestResult]:
    result = await service.bulk_approve(
        action.doctor_ids, admin.uid, action.review_notes, reviewer_email=admin.email
    )
    return GenericResponse(
        message=f"Approved {len(result.succeeded)} of {len(result.succeeded) + len(result.failed)} requests",
        data=result,
    )


@router.post(
    "/bulk-reject",
    response_model=GenericResponse[BulkFeeRequestResult],
    summary="Reject several fee-change requests",
    description="Each id is reviewed independently; failures are listed per id.",
)
async def bulk_reject_fee_requests(
    admin: AdminUser,
    service: FeeRequestServiceDep,
    action: BulkFeeRequestAction,
) -> GenericResponse[BulkFeeRequestResult]:
    result = await service.bulk_reject(
        action.doctor_ids, admin.uid, action.review_notes, reviewer_email=admin.email
    )
    return GenericResponse(
        message=f"Rejected {len(result.succeeded)} of {len(result.succeeded) + len(result.failed)} requests",
        data=result,
    )
