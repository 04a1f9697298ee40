"""
Notification Service.

Writes in-app notifications to ``notifications/{uid}/{notificationId}``.
Delivery is a side-channel: callers treat failures as non-fatal.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from ..core.config import Settings, get_settings
from ..db.document_store import DocumentStore, utc_now_iso
from ..models.enums import FeeRequestStatus, NotificationPriority

logger = structlog.get_logger(__name__)

NOTIFICATIONS_PATH = "notifications"
FEE_CHANGE_CATEGORY = "fee_change"


def format_peso(amount: float) -> str:
    """``2500`` -> ``"₱2,500"``; ``1500.5`` -> ``"₱1,500.50"``."""
    if float(amount).is_integer():
        return f"₱{int(amount):,}"
    return f"₱{amount:,.2f}"


def describe_fee_change(previous_fee: float, new_fee: float) -> str:
    delta = new_fee - previous_fee
    if delta > 0:
        return f"increased by {format_peso(delta)}"
    if delta < 0:
        return f"decreased by {format_peso(-delta)}"
    return "unchanged"


def build_fee_change_message(
    status: FeeRequestStatus,
    previous_fee: float,
    requested_fee: float,
    review_notes: str = "",
) -> tuple[str, str, NotificationPriority]:
    """Return ``(title, message, priority)`` for a reviewed fee-change request."""
    if status == FeeRequestStatus.APPROVED:
        message = (
            "Your professional fee change request has been approved. "
            f"Your fee has been {describe_fee_change(previous_fee, requested_fee)} "
            f"from {format_peso(previous_fee)} to {format_peso(requested_fee)}."
        )
        return "Fee Change Approved", message, NotificationPriority.MEDIUM

    message = (
        "Your professional fee change request has been rejected. "
        f"Your fee remains at {format_peso(previous_fee)}."
    )
    if review_notes:
        message += f" Reason: {review_notes}"
    return "Fee Change Rejected", message, NotificationPriority.HIGH


class NotificationService:
    """Creates user notifications in the document store."""

    def __init__(self, store: DocumentStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        category: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        related_id: str | None = None,
    ) -> str:
        """Create one notification and return its id."""
        now = datetime.now(UTC)
        timestamp_ms = int(now.timestamp() * 1000)
        expires = now + timedelta(days=self.settings.NOTIFICATION_EXPIRY_DAYS)
        created = utc_now_iso()

        notification: dict[str, Any] = {
            "userId": user_id,
            "title": title,
            "message": message,
            "type": category,
            "priority": NotificationPriority(priority).value,
            "read": False,
            "timestamp": timestamp_ms,
            "expiresAt": int(expires.timestamp() * 1000),
            "relatedId": related_id,
            "createdAt": created,
            "updatedAt": created,
        }
        base = f"{NOTIFICATIONS_PATH}/{user_id}"
        notification_id = await self.store.push(base, notification)
        # The document carries its own key.
        await self.store.write(f"{base}/{notification_id}/id", notification_id)

        logger.info(
            "Notification created",
            user_id=user_id,
            notification_id=notification_id,
            type=category,
            priority=notification["priority"],
        )
        return notification_id

    async def notify_fee_change(
        self,
        doctor_id: str,
        status: FeeRequestStatus,
        previous_fee: float,
        requested_fee: float,
        review_notes: str = "",
    ) -> str:
        title, message, priority = build_fee_change_message(
            status, previous_fee, requested_fee, review_notes
        )
        return await self.notify(
            user_id=doctor_id,
            title=title,
            message=message,
            category=FEE_CHANGE_CATEGORY,
            priority=priority,
            related_id=doctor_id,
        )
