"""Activity Log Service - append-only audit trail at ``activityLogs/{logId}``."""
from __future__ import annotations

from typing import Any

import structlog

from ..db.document_store import DocumentStore, utc_now_iso
from ..models.enums import ActivityCategory

logger = structlog.get_logger(__name__)

ACTIVITY_LOGS_PATH = "activityLogs"


class ActivityLogService:
    """Records administrative actions."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def log(
        self,
        *,
        user_id: str,
        action: str,
        category: ActivityCategory,
        target_id: str,
        target_type: str,
        user_email: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> str:
        entry = {
            "userId": user_id,
            "userEmail": user_email,
            "action": action,
            "category": ActivityCategory(category).value,
            "targetId": target_id,
            "targetType": target_type,
            "details": details or {},
            "timestamp": utc_now_iso(),
        }
        log_id = await self.store.push(ACTIVITY_LOGS_PATH, entry)
        logger.debug("Activity logged", log_id=log_id, action=action, target_id=target_id)
        return log_id
