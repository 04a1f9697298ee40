"""RBAC (Role-Based Access Control) FastAPI dependencies.

Roles live on the immutable ``users/{uid}`` record.

Usage:
    @router.post("/specialists/import")
    async def import_specialists(admin: AdminUser):
        ...
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends

from ..db.document_store import DocumentStore, get_document_store
from ..models.enums import UserRole
from ..repositories.user_repository import UserRepository
from .exceptions import ForbiddenError, UnauthorizedError
from .security import Principal, require_authentication

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PortalUser:
    """Authenticated principal with its stored role."""

    uid: str
    email: str
    role: str


async def get_current_user(
    principal: Annotated[Principal, Depends(require_authentication)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> PortalUser:
    """Resolve the token principal to its ``users/{uid}`` record.

    Raises:
        UnauthorizedError: No user record for the token's uid.
    """
    user = await UserRepository(store).get(principal.uid)
    if not user:
        logger.warning("User record not found", uid=principal.uid)
        raise UnauthorizedError(
            message="User not found. Please contact administrator.",
            error_code="USER_NOT_FOUND",
        )

    return PortalUser(
        uid=principal.uid,
        email=principal.email or user.get("email") or "",
        role=user.get("role") or "",
    )


async def require_admin(current_user: Annotated[PortalUser, Depends(get_current_user)]) -> PortalUser:
    """Require Admin role. Raises ForbiddenError otherwise."""
    if current_user.role != UserRole.ADMIN.value:
        logger.warning(
            "Non-admin access attempt",
            user_id=current_user.uid,
            role=current_user.role,
        )
        raise ForbiddenError(message="Admin access required", error_code="ADMIN_REQUIRED")
    return current_user


# ---------------------------------------------------------------------------
# Type alias for endpoint signatures
# ---------------------------------------------------------------------------
AdminUser = Annotated[PortalUser, Depends(require_admin)]
