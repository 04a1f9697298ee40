"""
Specialist Bulk Import Endpoints.

Provides endpoints for:
- Downloading the import template (header row + sample row)
- Dry-run validation of an uploaded spreadsheet
- Running the import (identity + profile + schedule per row)
"""
from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from ....core.config import Settings, get_settings
from ....core.rbac import AdminUser
from ....core.responses import GenericResponse
from ....db.document_store import DocumentStore, get_document_store
from ....schemas.specialist_import import (
    BatchResult,
    ImportValidationResponse,
    OperatorCredential,
)
from ....services.bulk_import_service import BulkImportService
from ....services.email_service import EmailService, get_email_service
from ....services.identity_service import IdentityProvider, get_identity_provider
from ....services.spreadsheet_reader import ParsedSpreadsheet, read_spreadsheet, render_template_csv

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/specialists/import", tags=["Specialist Import"])

TEMPLATE_FILENAME = "specialist_import_template.csv"


# =============================================================================
# Dependencies
# =============================================================================

def get_bulk_import_service(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BulkImportService:
    """Get a bulk import service bound to the request's collaborators."""
    return BulkImportService(
        store=store,
        identity=identity,
        email_service=email_service,
        settings=settings,
    )


ImportServiceDep = Annotated[BulkImportService, Depends(get_bulk_import_service)]


async def _read_spreadsheet_upload(file: UploadFile, settings: Settings) -> ParsedSpreadsheet:
    """Read an uploaded .csv/.xlsx file into data rows."""
    content = await file.read()
    return read_spreadsheet(
        content,
        file.filename or "",
        settings.IMPORT_MAX_ROWS,
        content_type=file.content_type,
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get(
    "/template",
    summary="Download the specialist import template",
    description=(
        "CSV with the 22 required column headers and one sample row. "
        "The sample row (row 2) is always skipped on import; data starts at row 3."
    ),
    responses={200: {"content": {"text/csv": {}}, "description": "CSV template file"}},
)
async def download_import_template(_: AdminUser) -> Response:
    return Response(
        content=render_template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.post(
    "/validate",
    response_model=ImportValidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate a specialist spreadsheet (dry-run, no writes)",
    responses={
        200: {"description": "Validation complete; check ``valid`` and ``errors``"},
        400: {"description": "Structural problem (format, missing headers, empty file, too many rows)"},
    },
)
async def validate_import(
    _: AdminUser,
    service: ImportServiceDep,
    settings: Annotated[Settings, Depends(get_settings)],
    file: UploadFile = File(..., description="Completed import template (.csv or .xlsx)"),
) -> ImportValidationResponse:
    """Parse and validate every row; nothing is written."""
    parsed = await _read_spreadsheet_upload(file, settings)
    return service.validate_rows(parsed.rows, parsed.row_numbers)


@router.post(
    "",
    response_model=GenericResponse[BatchResult],
    status_code=status.HTTP_200_OK,
    summary="Import specialists from a spreadsheet",
    description="""
Creates an identity account, user record, doctor profile and weekly schedule
for every data row.

Rows are processed in batches; a failing row never stops the others. The
response lists per-row errors (with category, retryability and batch number),
a per-batch breakdown and the temporary credentials of every created account.

With the REST identity backend each account creation replaces the active
session, so ``operator_password`` is required to restore the operator's
session after every row.
    """,
    responses={
        400: {"description": "Structural spreadsheet problem, no rows or too many rows"},
        401: {"description": "Operator credential missing or rejected"},
    },
)
async def run_import(
    admin: AdminUser,
    service: ImportServiceDep,
    settings: Annotated[Settings, Depends(get_settings)],
    file: UploadFile = File(..., description="Completed import template (.csv or .xlsx)"),
    operator_password: str = Form(default="", description="Operator's own password"),
) -> GenericResponse[BatchResult]:
    parsed = await _read_spreadsheet_upload(file, settings)
    operator = OperatorCredential(uid=admin.uid, email=admin.email, password=operator_password)

    result = await service.run_import(parsed.rows, operator, row_numbers=parsed.row_numbers)

    logger.info(
        "Specialist import request complete",
        filename=file.filename or "unknown",
        operator_id=admin.uid,
        total=result.total,
        successful=result.successful,
        failed=result.failed,
    )
    return GenericResponse(
        message=f"Imported {result.successful} of {result.total} specialists",
        data=result,
    )
