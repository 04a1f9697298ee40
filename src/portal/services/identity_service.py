"""
Identity Provider Service.

Creates login accounts for imported specialists.

Two backends implement :class:`IdentityProvider`:

* :class:`FirebaseRestIdentityProvider` calls the Identity Toolkit REST API
  (``accounts:signUp`` / ``accounts:signInWithPassword``) over httpx. Signing
  up a new account makes it the active session, so the operator has to be
  re-authenticated after every creation. ``active_email`` tracks whose
  session is current.
* :class:`FirebaseAdminIdentityProvider` creates accounts with the
  service-account credentials of the Admin SDK. There is no session to
  displace, so ``reauthenticate`` does nothing.

Provider error codes are mapped onto import error categories so the
import engine never has to parse messages from this module.
"""
from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..models.enums import ImportErrorType

logger = structlog.get_logger(__name__)

# Identity Toolkit error codes -> import error categories
IDENTITY_ERROR_TYPES: dict[str, ImportErrorType] = {
    "EMAIL_EXISTS": ImportErrorType.DUPLICATE,
    "DUPLICATE_EMAIL": ImportErrorType.DUPLICATE,
    "INVALID_EMAIL": ImportErrorType.VALIDATION,
    "WEAK_PASSWORD": ImportErrorType.VALIDATION,
    "MISSING_PASSWORD": ImportErrorType.VALIDATION,
    "TOO_MANY_ATTEMPTS_TRY_LATER": ImportErrorType.NETWORK,
    "QUOTA_EXCEEDED": ImportErrorType.NETWORK,
    "OPERATION_NOT_ALLOWED": ImportErrorType.PERMISSION,
    "ADMIN_ONLY_OPERATION": ImportErrorType.PERMISSION,
    "INVALID_PASSWORD": ImportErrorType.PERMISSION,
    "INVALID_LOGIN_CREDENTIALS": ImportErrorType.PERMISSION,
    "EMAIL_NOT_FOUND": ImportErrorType.PERMISSION,
    "USER_DISABLED": ImportErrorType.PERMISSION,
    "API_KEY_INVALID": ImportErrorType.PERMISSION,
}

_FRIENDLY_MESSAGES: dict[str, str] = {
    "EMAIL_EXISTS": "Email address is already in use by another account",
    "OPERATION_NOT_ALLOWED": (
        "Account creation is restricted. Enable email/password sign-up for the "
        "project or switch IDENTITY_BACKEND to 'admin'"
    ),
    "ADMIN_ONLY_OPERATION": (
        "Account creation is restricted. Enable email/password sign-up for the "
        "project or switch IDENTITY_BACKEND to 'admin'"
    ),
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Identity provider rate limit reached; try again later",
}


@dataclass(frozen=True)
class AccountRecord:
    """A newly created login account."""

    account_id: str
    email: str


class IdentityProviderError(Exception):
    """Identity provider rejected a request."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN",
        error_type: ImportErrorType = ImportErrorType.SYSTEM,
    ) -> None:
        self.message = message
        self.code = code
        self.error_type = error_type
        super().__init__(message)

    @classmethod
    def from_code(cls, raw_message: str) -> IdentityProviderError:
        """Build from an Identity Toolkit message such as ``"WEAK_PASSWORD : ..."``."""
        code = raw_message.split(":", 1)[0].strip().split(" ", 1)[0] or "UNKNOWN"
        error_type = IDENTITY_ERROR_TYPES.get(code, ImportErrorType.SYSTEM)
        message = _FRIENDLY_MESSAGES.get(code, raw_message)
        return cls(message=message, code=code, error_type=error_type)


class IdentityProvider(Protocol):
    """Interface for the external identity provider."""

    active_email: str | None

    @property
    def requires_operator_password(self) -> bool:
        """Whether ``reauthenticate`` needs the operator's password."""
        ...

    async def create_account(self, email: str, password: str) -> AccountRecord:
        """Create an account. May make it the active session."""
        ...

    async def reauthenticate(self, email: str, password: str) -> None:
        """Restore the operator's session."""
        ...

    async def aclose(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Identity Toolkit REST backend
# ---------------------------------------------------------------------------


class FirebaseRestIdentityProvider:
    """Identity Toolkit over httpx; reproduces the client SDK session swap."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.IDENTITY_API_BASE_URL,
            timeout=self._settings.IDENTITY_API_TIMEOUT,
        )
        self._owns_client = client is None
        self._lock = asyncio.Lock()
        self.active_email: str | None = None

    @property
    def requires_operator_password(self) -> bool:
        return True

    async def _call(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to ``accounts:<endpoint>``. Transport errors propagate unchanged.

        The API key is sent as a query parameter and never logged.
        """
        response = await self._client.post(
            f"/accounts:{endpoint}",
            params={"key": self._settings.FIREBASE_WEB_API_KEY},
            json=payload,
        )
        if response.status_code >= 400:
            try:
                raw_message = response.json().get("error", {}).get("message", "")
            except ValueError:
                raw_message = ""
            if not raw_message:
                raw_message = f"HTTP {response.status_code}"
            if response.status_code >= 500:
                raise IdentityProviderError(
                    message=f"Identity provider unavailable ({raw_message})",
                    code=raw_message,
                    error_type=ImportErrorType.NETWORK,
                )
            raise IdentityProviderError.from_code(raw_message)
        return response.json()

    async def create_account(self, email: str, password: str) -> AccountRecord:
        async with self._lock:
            data = await self._call(
                "signUp",
                {"email": email, "password": password, "returnSecureToken": True},
            )
            self.active_email = data.get("email", email)
        logger.info("Identity account created", account_id=data["localId"], email=email)
        return AccountRecord(account_id=data["localId"], email=data.get("email", email))

    async def reauthenticate(self, email: str, password: str) -> None:
        async with self._lock:
            await self._call(
                "signInWithPassword",
                {"email": email, "password": password, "returnSecureToken": True},
            )
            self.active_email = email
        logger.debug("Operator session restored", email=email)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# ---------------------------------------------------------------------------
# Admin SDK backend
# ---------------------------------------------------------------------------


class FirebaseAdminIdentityProvider:
    """Creates accounts with ``firebase_admin.auth``; never swaps sessions."""

    def __init__(self, app: Any = None) -> None:
        from ..core.firebase_config import get_firebase_app

        self._app = app or get_firebase_app()
        self.active_email: str | None = None

    @property
    def requires_operator_password(self) -> bool:
        return False

    async def create_account(self, email: str, password: str) -> AccountRecord:
        from firebase_admin import auth as firebase_auth
        from firebase_admin import exceptions as firebase_exceptions

        loop = asyncio.get_running_loop()
        try:
            user = await loop.run_in_executor(
                None,
                functools.partial(
                    firebase_auth.create_user, email=email, password=password, app=self._app
                ),
            )
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise IdentityProviderError(
                "Email address is already in use by another account",
                code="EMAIL_EXISTS",
                error_type=ImportErrorType.DUPLICATE,
            ) from exc
        except ValueError as exc:
            raise IdentityProviderError(
                str(exc), code="INVALID_ARGUMENT", error_type=ImportErrorType.VALIDATION
            ) from exc
        except (
            firebase_exceptions.UnavailableError,
            firebase_exceptions.DeadlineExceededError,
            firebase_exceptions.ResourceExhaustedError,
        ) as exc:
            raise IdentityProviderError(
                str(exc), code=exc.code, error_type=ImportErrorType.NETWORK
            ) from exc
        except (
            firebase_exceptions.PermissionDeniedError,
            firebase_exceptions.UnauthenticatedError,
        ) as exc:
            raise IdentityProviderError(
                str(exc), code=exc.code, error_type=ImportErrorType.PERMISSION
            ) from exc

        logger.info("Identity account created", account_id=user.uid, email=email)
        return AccountRecord(account_id=user.uid, email=user.email or email)

    async def reauthenticate(self, email: str, password: str) -> None:
        logger.debug("Admin SDK backend keeps the operator session; nothing to restore")

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_identity_provider: IdentityProvider | None = None


def create_identity_provider(settings: Settings | None = None) -> IdentityProvider:
    settings = settings or get_settings()
    if settings.IDENTITY_BACKEND == "admin":
        return FirebaseAdminIdentityProvider()
    return FirebaseRestIdentityProvider(settings)


def get_identity_provider() -> IdentityProvider:
    """Return the process-level IdentityProvider singleton (FastAPI dependency)."""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = create_identity_provider()
    return _identity_provider


async def reset_identity_provider() -> None:
    """Close and drop the singleton (shutdown and tests)."""
    global _identity_provider
    if _identity_provider is not None:
        await _identity_provider.aclose()
    _identity_provider = None
