"""Firebase Admin initialisation and ID-token verification.

One ``firebase_admin`` app is shared by the Realtime Database backend, the
admin identity backend and bearer-token verification. Blocking SDK calls
are offloaded to the default thread-pool executor.
"""

import asyncio
import functools
import os

import firebase_admin
import httpx
import structlog
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from .config import Settings, get_settings
from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def init_firebase(settings: Settings | None = None) -> firebase_admin.App:
    """Initialise (once) and return the Firebase Admin app."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    settings = settings or get_settings()
    if not settings.FIREBASE_PROJECT_ID:
        raise ConfigurationError(
            "FIREBASE_PROJECT_ID is not set. Firebase services cannot be used without it."
        )
    os.environ.setdefault("GOOGLE_CLOUD_PROJECT", settings.FIREBASE_PROJECT_ID)

    options = {"projectId": settings.FIREBASE_PROJECT_ID}
    if settings.FIREBASE_DATABASE_URL:
        options["databaseURL"] = settings.FIREBASE_DATABASE_URL

    credential = None
    if settings.FIREBASE_CREDENTIALS_PATH:
        credential = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)

    try:
        _firebase_app = firebase_admin.initialize_app(credential=credential, options=options)
        logger.info(
            "Firebase Admin initialized",
            project_id=settings.FIREBASE_PROJECT_ID,
            database_url=settings.FIREBASE_DATABASE_URL or None,
        )
    except ValueError:
        _firebase_app = firebase_admin.get_app()
        logger.info("Firebase Admin already initialized")
    return _firebase_app


async def _verify_via_identity_api(id_token: str, settings: Settings) -> dict:
    """Verify an ID token through ``accounts:lookup`` (development fallback).

    The API key is never included in exception messages.
    """
    if not settings.FIREBASE_WEB_API_KEY:
        raise ValueError(
            "FIREBASE_WEB_API_KEY is not set. "
            "Cannot use the Identity Toolkit fallback for token verification."
        )
    verify_url = f"{settings.IDENTITY_API_BASE_URL}/accounts:lookup"

    async with httpx.AsyncClient(timeout=settings.IDENTITY_API_TIMEOUT) as client:
        response = await client.post(
            verify_url,
            params={"key": settings.FIREBASE_WEB_API_KEY},
            json={"idToken": id_token},
        )

    if response.status_code != 200:
        error_msg = response.json().get("error", {}).get("message", "Unknown error")
        raise ValueError(f"Token verification failed: {error_msg}")

    users = response.json().get("users", [])
    if not users:
        raise ValueError("No user found for this token")

    user_info = users[0]
    return {
        "uid": user_info.get("localId", ""),
        "email": user_info.get("email", ""),
        "email_verified": user_info.get("emailVerified", False),
    }


async def verify_firebase_token(id_token: str, settings: Settings | None = None) -> dict:
    """Verify a Firebase ID token and return the decoded claims.

    Tries the Admin SDK first. Outside production, falls back to the
    Identity Toolkit lookup endpoint when the SDK has no credentials.

    Raises:
        ValueError: If the token is invalid or expired.
    """
    settings = settings or get_settings()
    init_firebase(settings)
    loop = asyncio.get_running_loop()
    try:
        decoded_token = await loop.run_in_executor(
            None,
            functools.partial(firebase_auth.verify_id_token, id_token, app=_firebase_app),
        )
        logger.debug("Firebase token verified (SDK)", uid=decoded_token.get("uid"))
        return decoded_token
    except Exception as sdk_error:
        if settings.is_production:
            logger.error("Firebase SDK verification failed in production", error=str(sdk_error))
            raise ValueError("Firebase token verification failed") from sdk_error
        logger.warning(
            "Firebase SDK verification failed, trying Identity Toolkit fallback",
            error=str(sdk_error),
        )

    try:
        decoded_token = await _verify_via_identity_api(id_token, settings)
        logger.info("Firebase token verified (Identity Toolkit fallback)", uid=decoded_token.get("uid"))
        return decoded_token
    except Exception as api_error:
        logger.error("All token verification methods failed", error=str(api_error))
        raise ValueError("Firebase token verification failed") from api_error


def get_firebase_app() -> firebase_admin.App:
    """Return the initialised Firebase Admin app."""
    return init_firebase()
