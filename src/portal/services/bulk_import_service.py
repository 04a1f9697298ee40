"""
Bulk Specialist Import Service.

Onboards specialists from spreadsheet rows. For every row it creates an
identity account, then writes ``users/{uid}``, ``doctors/{uid}`` and one
``specialistSchedules/{uid}/{scheduleId}`` block.

Pacing:
- rows are split into batches of ``IMPORT_BATCH_SIZE``; batches run one
  after another with ``IMPORT_BATCH_DELAY_SECONDS`` between them;
- records inside a batch run concurrently, record ``k`` starting after
  ``k * IMPORT_RECORD_DELAY_SECONDS`` so identity calls are staggered;
- a record failing with a ``network`` error is retried with exponential
  backoff (tenacity). A retry resumes after the last step that succeeded,
  so an identity account is never created twice for one row.

A failing record never stops the run. Only pre-flight problems (no rows,
too many rows, unusable operator credential) raise.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    BadRequestError,
    ClinicNotFoundError,
    DoctorAlreadyExistsError,
    ExternalServiceError,
    UnauthorizedError,
)
from ..db.document_store import DocumentStore, utc_now_iso
from ..models.enums import ActivityCategory, ImportErrorType, RecordState
from ..repositories import (
    ClinicRepository,
    DoctorRepository,
    ScheduleRepository,
    UserRepository,
    build_doctor_profile,
)
from ..schemas.specialist_import import (
    BatchResult,
    BatchSummary,
    ImportFailure,
    ImportRow,
    ImportValidationResponse,
    IssuedCredential,
    OperatorCredential,
    RecordOutcome,
    RowValidationError,
    SpecialistImportRecord,
)
from .activity_log_service import ActivityLogService
from .email_service import EmailService
from .error_classifier import ImportRecordError, classify_error
from .identity_service import IdentityProvider, IdentityProviderError
from .import_schema import map_row
from .schedule_builder import build_schedule_block
from .spreadsheet_reader import FIRST_DATA_ROW

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[int, int], None]


@dataclass
class _RecordContext:
    """Mutable progress of one row across retry attempts."""

    row: ImportRow
    row_number: int
    batch: int
    position: int
    state: RecordState = RecordState.PENDING
    attempts: int = 0
    record: SpecialistImportRecord | None = None
    account_id: str | None = None
    user_written: bool = False
    profile_written: bool = False
    schedule_id: str | None = None
    email_sent: bool = False
    failure: ImportFailure | None = None

    @property
    def email(self) -> str | None:
        if self.record is not None:
            return self.record.email
        value = self.row.get("Email*")
        return str(value).strip() if value else None

    def outcome(self) -> RecordOutcome:
        return RecordOutcome(
            row=self.row_number,
            batch=self.batch,
            email=self.email,
            state=self.state,
            attempts=self.attempts,
            account_id=self.account_id,
            error=self.failure.error if self.failure else None,
        )


def _is_retryable(exc: BaseException) -> bool:
    return classify_error(exc).retryable


class BulkImportService:
    """Runs a bulk specialist import against the document store and identity provider."""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        email_service: EmailService | None = None,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.identity = identity
        self.email_service = email_service
        self.clinics = ClinicRepository(store)
        self.doctors = DoctorRepository(store)
        self.users = UserRepository(store)
        self.schedules = ScheduleRepository(store)
        self.activity = ActivityLogService(store)
        self._sleep = sleep

    # =========================================================================
    # Dry run
    # =========================================================================

    def validate_rows(
        self,
        rows: Sequence[ImportRow],
        row_numbers: Sequence[int] | None = None,
    ) -> ImportValidationResponse:
        """Validate every row without touching the store or identity provider.

        Besides the per-row checks, an email repeated inside the file is
        reported on each later occurrence.
        """
        numbers = list(row_numbers) if row_numbers is not None else self._default_row_numbers(rows)
        errors: list[RowValidationError] = []
        warnings: list[RowValidationError] = []
        seen_emails: dict[str, int] = {}

        for row, row_number in zip(rows, numbers):
            mapped = map_row(row, row_number)
            errors.extend(mapped.errors)
            warnings.extend(mapped.warnings)
            if mapped.record is None:
                continue
            key = mapped.record.email.casefold()
            if key in seen_emails:
                errors.append(RowValidationError(
                    row=row_number,
                    field="email",
                    error=(
                        f"Row {row_number}: Email {mapped.record.email} is already used "
                        f"in row {seen_emails[key]}"
                    ),
                ))
            else:
                seen_emails[key] = row_number

        logger.info(
            "Import validation complete",
            total_rows=len(rows),
            errors=len(errors),
            warnings=len(warnings),
        )
        return ImportValidationResponse(
            valid=not errors,
            total_rows=len(rows),
            error_count=len(errors),
            errors=errors,
            warnings=warnings,
        )

    # =========================================================================
    # Import run
    # =========================================================================

    async def run_import(
        self,
        rows: Sequence[ImportRow],
        operator: OperatorCredential | None,
        *,
        row_numbers: Sequence[int] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Import ``rows`` and return the aggregate result.

        Raises:
            BadRequestError: No rows, or more than ``IMPORT_MAX_ROWS``.
            UnauthorizedError: Operator credential missing or rejected.
        """
        await self._preflight(rows, operator)
        numbers = list(row_numbers) if row_numbers is not None else self._default_row_numbers(rows)

        batch_size = self.settings.IMPORT_BATCH_SIZE
        batches = [
            list(zip(rows[start:start + batch_size], numbers[start:start + batch_size]))
            for start in range(0, len(rows), batch_size)
        ]
        result = BatchResult(total=len(rows))
        processed = 0

        logger.info(
            "Import started",
            total=len(rows),
            batches=len(batches),
            batch_size=batch_size,
            operator_id=operator.uid,
        )

        for batch_number, batch_rows in enumerate(batches, start=1):
            contexts = [
                _RecordContext(row=row, row_number=row_number, batch=batch_number, position=position)
                for position, (row, row_number) in enumerate(batch_rows)
            ]
            try:
                await self._run_batch(contexts, operator)
            except Exception as exc:
                logger.error("Import batch failed", batch=batch_number, error=str(exc))
                for ctx in contexts:
                    ctx.state = RecordState.FAILED
                    ctx.failure = ImportFailure(
                        row=ctx.row_number,
                        error=f"Batch processing failed: {exc}",
                        retryable=True,
                        batch=batch_number,
                        error_type=ImportErrorType.SYSTEM,
                    )

            summary = self._collect(contexts, result)
            result.batches.append(summary)
            processed += len(contexts)
            logger.info(
                "Import batch complete",
                batch=batch_number,
                successful=summary.successful,
                failed=summary.failed,
            )
            if on_progress is not None:
                on_progress(processed, len(rows))

            if batch_number < len(batches) and self.settings.IMPORT_BATCH_DELAY_SECONDS > 0:
                await self._sleep(self.settings.IMPORT_BATCH_DELAY_SECONDS)

        logger.info(
            "Import finished",
            total=result.total,
            successful=result.successful,
            failed=result.failed,
            emails_sent=result.emails_sent,
        )
        await self._log_activity(operator, result)
        return result

    # -------------------------------------------------------------------------
    # Pre-flight
    # -------------------------------------------------------------------------

    async def _preflight(
        self,
        rows: Sequence[ImportRow],
        operator: OperatorCredential | None,
    ) -> None:
        if not rows:
            raise BadRequestError("No rows to import", error_code="EMPTY_IMPORT")
        if len(rows) > self.settings.IMPORT_MAX_ROWS:
            raise BadRequestError(
                f"Too many rows: {len(rows)} (maximum allowed: {self.settings.IMPORT_MAX_ROWS}).",
                error_code="TOO_MANY_ROWS",
                details={"row_count": len(rows), "max_rows": self.settings.IMPORT_MAX_ROWS},
            )
        if operator is None or not operator.email:
            raise UnauthorizedError("Operator credential is required to run an import")
        if not self.identity.requires_operator_password:
            return
        if not operator.password:
            raise UnauthorizedError(
                "Operator password is required to restore the session after each account"
            )
        try:
            await self.identity.reauthenticate(operator.email, operator.password)
        except IdentityProviderError as exc:
            logger.warning("Operator credential rejected", operator_id=operator.uid, code=exc.code)
            raise UnauthorizedError("Operator credential was rejected by the identity provider") from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError("identity", f"Could not verify operator credential: {exc}") from exc

    @staticmethod
    def _default_row_numbers(rows: Sequence[ImportRow]) -> list[int]:
        return list(range(FIRST_DATA_ROW, FIRST_DATA_ROW + len(rows)))

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    async def _run_batch(
        self,
        contexts: list[_RecordContext],
        operator: OperatorCredential,
    ) -> None:
        # One clinic read per batch; a failure here fails the whole batch.
        clinics = await self.clinics.get_all()
        await asyncio.gather(*(self._run_record(ctx, operator, clinics) for ctx in contexts))

    def _collect(self, contexts: list[_RecordContext], result: BatchResult) -> BatchSummary:
        summary = BatchSummary(batch=contexts[0].batch, total=len(contexts), successful=0, failed=0)
        for ctx in contexts:
            result.records.append(ctx.outcome())
            if ctx.state == RecordState.COMMITTED:
                summary.successful += 1
                result.successful += 1
                result.credentials.append(
                    IssuedCredential(email=ctx.record.email, password=ctx.record.temporary_password)
                )
                if ctx.email_sent:
                    result.emails_sent += 1
            else:
                summary.failed += 1
                result.failed += 1
                if ctx.failure is not None:
                    summary.errors.append(ctx.failure.error)
                    result.errors.append(ctx.failure)
        return summary

    # -------------------------------------------------------------------------
    # Record
    # -------------------------------------------------------------------------

    async def _run_record(
        self,
        ctx: _RecordContext,
        operator: OperatorCredential,
        clinics: list[dict[str, Any]],
    ) -> None:
        stagger = ctx.position * self.settings.IMPORT_RECORD_DELAY_SECONDS
        if stagger > 0:
            await self._sleep(stagger)

        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Retrying import record",
                row=ctx.row_number,
                batch=ctx.batch,
                attempt=retry_state.attempt_number,
                wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(exc),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.IMPORT_MAX_RETRIES + 1),
            wait=wait_exponential(multiplier=self.settings.IMPORT_RETRY_BASE_DELAY_SECONDS, min=0),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=_before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    ctx.attempts += 1
                    await self._process_record(ctx, operator, clinics)
        except Exception as exc:
            error_type, retryable = classify_error(exc)
            if ctx.state != RecordState.REJECTED:
                ctx.state = RecordState.FAILED
            ctx.failure = ImportFailure(
                row=ctx.row_number,
                error=str(exc) or exc.__class__.__name__,
                retryable=retryable,
                batch=ctx.batch,
                error_type=error_type,
            )
            logger.warning(
                "Import record failed",
                row=ctx.row_number,
                batch=ctx.batch,
                error_type=error_type.value,
                attempts=ctx.attempts,
                error=ctx.failure.error,
            )
            return

        await self._send_welcome(ctx)

    async def _process_record(
        self,
        ctx: _RecordContext,
        operator: OperatorCredential,
        clinics: list[dict[str, Any]],
    ) -> None:
        """One attempt at a record; resumes after the last completed step."""
        ctx.state = RecordState.VALIDATING
        if ctx.record is None:
            mapped = map_row(ctx.row, ctx.row_number)
            if not mapped.is_valid:
                ctx.state = RecordState.REJECTED
                raise ImportRecordError(
                    "; ".join(error.error for error in mapped.errors),
                    ImportErrorType.VALIDATION,
                )
            ctx.record = mapped.record
        record = ctx.record

        clinic, clinic_names = await self.clinics.find_by_name(record.clinic_name, clinics)
        if clinic is None:
            ctx.state = RecordState.REJECTED
            raise ImportRecordError(
                f"Row {ctx.row_number}: {ClinicNotFoundError(record.clinic_name, clinic_names).message}",
                ImportErrorType.VALIDATION,
            )

        if ctx.account_id is None and await self.doctors.find_by_email(record.email) is not None:
            ctx.state = RecordState.REJECTED
            raise ImportRecordError(
                f"Row {ctx.row_number}: {DoctorAlreadyExistsError(record.email).message}",
                ImportErrorType.DUPLICATE,
            )

        if ctx.account_id is None:
            ctx.state = RecordState.CREATING
            try:
                account = await self.identity.create_account(record.email, record.temporary_password)
            except Exception:
                ctx.state = RecordState.IDENTITY_FAILED
                raise
            ctx.account_id = account.account_id
        ctx.state = RecordState.CREATED

        uid = ctx.account_id
        ctx.state = RecordState.PROFILE_WRITING
        now = utc_now_iso()
        if not ctx.user_written:
            await self.users.create_specialist(uid, record, now)
            ctx.user_written = True
        if not ctx.profile_written:
            await self.doctors.save(uid, build_doctor_profile(record, uid, clinic["id"], now))
            ctx.profile_written = True
        if ctx.schedule_id is None:
            block = build_schedule_block(
                specialist_id=uid,
                clinic_id=clinic["id"],
                room_or_unit=record.room_or_unit,
                days_of_week=record.days_of_week,
                start=record.start_time,
                end=record.end_time,
                valid_from=record.valid_from,
                now=now,
            )
            ctx.schedule_id = await self.schedules.add(uid, block)

        await self._restore_operator(ctx, operator)
        ctx.state = RecordState.COMMITTED
        logger.info(
            "Specialist imported",
            row=ctx.row_number,
            batch=ctx.batch,
            account_id=uid,
            schedule_id=ctx.schedule_id,
        )

    async def _restore_operator(self, ctx: _RecordContext, operator: OperatorCredential) -> None:
        """Re-authenticate the operator; failure is logged and the record still commits."""
        try:
            await self.identity.reauthenticate(operator.email, operator.password)
        except Exception as exc:
            logger.error(
                "Operator re-authentication failed",
                row=ctx.row_number,
                operator_id=operator.uid,
                error=str(exc),
            )

    # -------------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------------

    async def _send_welcome(self, ctx: _RecordContext) -> None:
        """Best-effort welcome email; never fails the record."""
        if (
            not self.settings.IMPORT_SEND_WELCOME_EMAIL
            or self.email_service is None
            or not self.email_service.enabled
        ):
            return
        record = ctx.record
        template_vars = self.email_service.build_welcome_vars(
            doctor_name=record.full_name,
            email=record.email,
            temporary_password=record.temporary_password,
            clinic_name=record.clinic_name,
        )
        try:
            await self.email_service.send_specialist_welcome(
                to_address=record.email,
                template_vars=template_vars,
            )
        except Exception as exc:
            logger.warning("Welcome email failed", row=ctx.row_number, to=record.email, error=str(exc))
            return
        ctx.email_sent = True

    async def _log_activity(self, operator: OperatorCredential, result: BatchResult) -> None:
        try:
            await self.activity.log(
                user_id=operator.uid,
                user_email=operator.email,
                action="Bulk imported specialists",
                category=ActivityCategory.USER_MANAGEMENT,
                target_id="bulk",
                target_type="doctor",
                details={
                    "total": result.total,
                    "successful": result.successful,
                    "failed": result.failed,
                    "createdBy": operator.uid,
                },
            )
        except Exception as exc:
            logger.error("Failed to record import activity", error=str(exc))
