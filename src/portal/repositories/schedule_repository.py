"""Schedule Repository - ``specialistSchedules/{uid}/{scheduleId}``."""
from __future__ import annotations

from typing import Any

from ..db.document_store import DocumentStore

SCHEDULES_PATH = "specialistSchedules"


class ScheduleRepository:
    """Repository for a specialist's schedule blocks."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def add(self, uid: str, block: dict[str, Any]) -> str:
        """Store a schedule block under a generated key and return the key."""
        return await self.store.push(f"{SCHEDULES_PATH}/{uid}", block)

    async def get_for_specialist(self, uid: str) -> dict[str, Any]:
        blocks = await self.store.read(f"{SCHEDULES_PATH}/{uid}")
        return blocks if isinstance(blocks, dict) else {}
