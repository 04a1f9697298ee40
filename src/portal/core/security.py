"""Security helpers for Firebase ID-token authentication.

Provides a FastAPI dependency that requires a valid Bearer token on
protected endpoints and resolves it to the authenticated principal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from .config import Settings, get_settings
from .exceptions import UnauthorizedError
from .firebase_config import verify_firebase_token


@dataclass(frozen=True)
class Principal:
    """Identity carried by a verified ID token."""

    uid: str
    email: str


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise UnauthorizedError(
            message="Missing or invalid Authorization header",
            error_code="UNAUTHORIZED",
        )

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError(
            message="Missing access token",
            error_code="UNAUTHORIZED",
        )
    return token


async def require_authentication(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Principal:
    """FastAPI dependency that enforces a valid Firebase ID token."""

    token = _bearer_token(request)
    try:
        claims = await verify_firebase_token(token, settings)
    except ValueError as exc:
        raise UnauthorizedError(
            message="Invalid or expired token",
            error_code="INVALID_TOKEN",
        ) from exc

    uid = claims.get("uid") or claims.get("sub")
    if not isinstance(uid, str) or not uid:
        raise UnauthorizedError(
            message="Invalid token subject",
            error_code="INVALID_TOKEN",
        )

    return Principal(uid=uid, email=claims.get("email") or "")
