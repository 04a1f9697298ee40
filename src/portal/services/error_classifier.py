"""
Import Error Classification.

Every per-record import failure is sorted into one of five categories.
Only ``network`` failures are retried.

Resolution order:
1. an ``error_type`` attribute carried by the exception itself;
2. httpx timeout / transport errors;
3. substring match of the message against ``ERROR_PATTERNS`` (first hit wins);
4. ``system``.
"""
from __future__ import annotations

from typing import NamedTuple

import httpx

from ..models.enums import ImportErrorType

RETRYABLE_TYPES = frozenset({ImportErrorType.NETWORK})

# Lower-case substrings, checked in order.
ERROR_PATTERNS: tuple[tuple[str, ImportErrorType], ...] = (
    # Identity provider / transport
    ("network-request-failed", ImportErrorType.NETWORK),
    ("too-many-requests", ImportErrorType.NETWORK),
    ("too_many_attempts", ImportErrorType.NETWORK),
    ("quota", ImportErrorType.NETWORK),
    ("rate limit", ImportErrorType.NETWORK),
    ("timed out", ImportErrorType.NETWORK),
    ("timeout", ImportErrorType.NETWORK),
    ("temporarily unavailable", ImportErrorType.NETWORK),
    ("service unavailable", ImportErrorType.NETWORK),
    ("connection reset", ImportErrorType.NETWORK),
    ("connection refused", ImportErrorType.NETWORK),
    ("network", ImportErrorType.NETWORK),
    # Duplicates
    ("email-already-in-use", ImportErrorType.DUPLICATE),
    ("email_exists", ImportErrorType.DUPLICATE),
    ("already exists", ImportErrorType.DUPLICATE),
    ("already in use", ImportErrorType.DUPLICATE),
    # Authorisation
    ("admin-restricted-operation", ImportErrorType.PERMISSION),
    ("admin_only_operation", ImportErrorType.PERMISSION),
    ("operation_not_allowed", ImportErrorType.PERMISSION),
    ("permission", ImportErrorType.PERMISSION),
    ("unauthorized", ImportErrorType.PERMISSION),
    ("forbidden", ImportErrorType.PERMISSION),
    # Bad input
    ("weak-password", ImportErrorType.VALIDATION),
    ("weak_password", ImportErrorType.VALIDATION),
    ("invalid-email", ImportErrorType.VALIDATION),
    ("invalid_email", ImportErrorType.VALIDATION),
    ("is required", ImportErrorType.VALIDATION),
    ("invalid", ImportErrorType.VALIDATION),
)


class ErrorClassification(NamedTuple):
    error_type: ImportErrorType
    retryable: bool


class ImportRecordError(Exception):
    """A per-record failure whose category is already known."""

    def __init__(self, message: str, error_type: ImportErrorType) -> None:
        self.message = message
        self.error_type = error_type
        super().__init__(message)


def _classification(error_type: ImportErrorType) -> ErrorClassification:
    return ErrorClassification(error_type, error_type in RETRYABLE_TYPES)


def classify_message(message: str) -> ErrorClassification:
    lowered = message.lower()
    for pattern, error_type in ERROR_PATTERNS:
        if pattern in lowered:
            return _classification(error_type)
    return _classification(ImportErrorType.SYSTEM)


def classify_error(exc: BaseException) -> ErrorClassification:
    """Categorise an exception raised while importing one record."""
    error_type = getattr(exc, "error_type", None)
    if isinstance(error_type, ImportErrorType):
        return _classification(error_type)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError, TimeoutError, ConnectionError)):
        return _classification(ImportErrorType.NETWORK)
    return classify_message(str(exc))
