"""User Repository - immutable user records at ``users/{uid}``."""
from __future__ import annotations

from typing import Any

import structlog

from ..db.document_store import DocumentStore
from ..models.enums import UserRole
from ..schemas.specialist_import import SpecialistImportRecord

log = structlog.get_logger(__name__)

USERS_PATH = "users"


class UserRepository:
    """Repository for user records used by RBAC and the import."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get(self, uid: str) -> dict[str, Any] | None:
        user = await self.store.read(f"{USERS_PATH}/{uid}")
        return user if isinstance(user, dict) else None

    async def get_role(self, uid: str) -> str | None:
        user = await self.get(uid)
        return user.get("role") if user else None

    async def create_specialist(
        self,
        uid: str,
        record: SpecialistImportRecord,
        now: str,
    ) -> dict[str, Any]:
        """Write the ``users/{uid}`` record for an imported specialist."""
        user = {
            "contactNumber": record.contact_number,
            "createdAt": now,
            "email": record.email,
            "firstName": record.first_name,
            "lastName": record.last_name,
            "role": UserRole.SPECIALIST.value,
            "specialty": record.specialty,
        }
        await self.store.write(f"{USERS_PATH}/{uid}", user)
        log.debug("user_created", uid=uid, role=UserRole.SPECIALIST.value)
        return user
