"""Pytest fixtures and configuration."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import Any

# Local backends for anything that builds settings from the environment.
os.environ.setdefault("DOCUMENT_STORE_BACKEND", "memory")
os.environ.setdefault("EMAIL_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.portal.core.config import Settings, get_settings
from src.portal.core.security import Principal, require_authentication
from src.portal.db.document_store import InMemoryDocumentStore, get_document_store
from src.portal.main import app
from src.portal.models.enums import ImportErrorType
from src.portal.schemas.specialist_import import OperatorCredential
from src.portal.services.identity_service import (
    AccountRecord,
    IdentityProviderError,
    get_identity_provider,
)
from src.portal.services.import_schema import SAMPLE_ROW

ADMIN_UID = "admin-uid"
ADMIN_EMAIL = "admin@example.com"
OPERATOR_PASSWORD = "operator-secret"
CLINIC_NAME = "Makati Medical Center"


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that records every delay."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeIdentityProvider:
    """Scripted identity provider with REST-style session swapping.

    ``failures[email]`` is a list of exceptions raised by successive
    ``create_account`` calls for that email; ``always_fail[email]`` is raised
    on every call.
    """

    def __init__(self, requires_operator_password: bool = True) -> None:
        self.active_email: str | None = None
        self.accounts: dict[str, str] = {}
        self.create_calls: list[str] = []
        self.reauth_calls: list[str] = []
        self.failures: dict[str, list[Exception]] = {}
        self.always_fail: dict[str, Exception] = {}
        self.reject_operator = False
        self.fail_reauth_after_create = False
        self._requires_operator_password = requires_operator_password

    @property
    def requires_operator_password(self) -> bool:
        return self._requires_operator_password

    async def create_account(self, email: str, password: str) -> AccountRecord:
        self.create_calls.append(email)
        if email in self.always_fail:
            raise self.always_fail[email]
        queued = self.failures.get(email)
        if queued:
            raise queued.pop(0)
        if email.casefold() in self.accounts:
            raise IdentityProviderError(
                "Email address is already in use by another account",
                code="EMAIL_EXISTS",
                error_type=ImportErrorType.DUPLICATE,
            )
        uid = f"uid-{len(self.accounts) + 1:03d}"
        self.accounts[email.casefold()] = uid
        self.active_email = email
        return AccountRecord(account_id=uid, email=email)

    async def reauthenticate(self, email: str, password: str) -> None:
        self.reauth_calls.append(email)
        if self.reject_operator:
            raise IdentityProviderError(
                "INVALID_LOGIN_CREDENTIALS",
                code="INVALID_LOGIN_CREDENTIALS",
                error_type=ImportErrorType.PERMISSION,
            )
        if self.fail_reauth_after_create and len(self.reauth_calls) > 1:
            raise IdentityProviderError("TOO_MANY_ATTEMPTS_TRY_LATER", code="TOO_MANY_ATTEMPTS_TRY_LATER")
        self.active_email = email

    async def aclose(self) -> None:
        return None


def make_row(index: int, **overrides: Any) -> dict[str, Any]:
    """A valid import row with a unique email; keys are template headers."""
    row: dict[str, Any] = dict(SAMPLE_ROW)
    row["Email*"] = f"specialist{index}@example.com"
    row["First Name*"] = f"Doctor{index}"
    row.update(overrides)
    return row


def seed_tree() -> dict[str, Any]:
    return {
        "clinics": {
            "clinic-1": {"name": CLINIC_NAME, "isActive": True},
            "clinic-2": {"name": "St. Luke's Medical Center", "isActive": True},
        },
        "users": {
            ADMIN_UID: {"email": ADMIN_EMAIL, "role": "admin", "firstName": "Ada", "lastName": "Admin"},
        },
    }


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the default pacing and local backends."""
    return Settings(
        APP_ENV="development",
        DOCUMENT_STORE_BACKEND="memory",
        IDENTITY_BACKEND="rest",
        EMAIL_ENABLED=False,
    )


@pytest.fixture
def fast_settings() -> Settings:
    """Settings without pacing delays, for endpoint tests."""
    return Settings(
        APP_ENV="development",
        DOCUMENT_STORE_BACKEND="memory",
        EMAIL_ENABLED=False,
        IMPORT_RECORD_DELAY_SECONDS=0,
        IMPORT_BATCH_DELAY_SECONDS=0,
        IMPORT_RETRY_BASE_DELAY_SECONDS=0,
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(seed_tree())


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def operator() -> OperatorCredential:
    return OperatorCredential(uid=ADMIN_UID, email=ADMIN_EMAIL, password=OPERATOR_PASSWORD)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer header; token verification is overridden in ``client``."""
    return {"Authorization": "Bearer test-id-token"}


@pytest_asyncio.fixture(scope="function")
async def client(
    store: InMemoryDocumentStore,
    identity: FakeIdentityProvider,
    fast_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Test HTTP client with the store, identity provider and auth overridden."""

    async def override_authentication() -> Principal:
        return Principal(uid=ADMIN_UID, email=ADMIN_EMAIL)

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_settings] = lambda: fast_settings
    app.dependency_overrides[require_authentication] = override_authentication

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
