"""
Welcome email for imported specialists.

Subjects and bodies live in ``config/email_templates.yaml``; placeholders use
``str.format`` syntax and unknown ones survive rendering untouched. Delivery
goes through aiosmtplib (STARTTLS or implicit TLS, per settings).
"""

from __future__ import annotations

from email.message import EmailMessage
from functools import lru_cache
from pathlib import Path
from typing import Any

import aiosmtplib
import structlog
import yaml
from fastapi import Depends

from ..core.config import Settings, get_settings

log = structlog.get_logger(__name__)

WELCOME_TEMPLATE = "specialist_welcome"
TEMPLATE_PARTS = ("subject", "body_text", "body_html")

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


@lru_cache(maxsize=4)
def _load_templates(path: str) -> dict[str, Any]:
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    with resolved.open(encoding="utf-8") as fh:
        templates = yaml.safe_load(fh) or {}
    log.info("email_templates_loaded", path=str(resolved), names=sorted(templates))
    return templates


def get_template(name: str, templates_path: str) -> dict[str, str]:
    """Raw subject / body_text / body_html for *name*."""
    entry = _load_templates(templates_path).get(name)
    if not entry:
        raise ValueError(f"No email template found for '{name}'")
    return {part: entry.get(part, "") for part in TEMPLATE_PARTS}


class _KeepUnknown(dict):  # type: ignore[type-arg]
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_template(template: dict[str, str], variables: dict[str, str]) -> dict[str, str]:
    values = _KeepUnknown(variables)
    return {part: template[part].format_map(values) for part in TEMPLATE_PARTS}


class EmailService:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return self._settings.EMAIL_ENABLED

    def build_welcome_vars(
        self,
        *,
        doctor_name: str,
        email: str,
        temporary_password: str,
        clinic_name: str = "",
    ) -> dict[str, str]:
        return {
            "doctor_name": doctor_name,
            "email": email,
            "temporary_password": temporary_password,
            "clinic_name": clinic_name or "N/A",
            "login_url": self._settings.PORTAL_LOGIN_URL,
            "platform_name": self._settings.EMAIL_FROM_NAME,
            "support_email": self._settings.EMAIL_FROM_ADDRESS,
        }

    def _compose(self, to_address: str, rendered: dict[str, str]) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = rendered["subject"]
        message["From"] = f"{self._settings.EMAIL_FROM_NAME} <{self._settings.EMAIL_FROM_ADDRESS}>"
        message["To"] = to_address
        message.set_content(rendered["body_text"])
        message.add_alternative(rendered["body_html"], subtype="html")
        return message

    async def send_specialist_welcome(self, *, to_address: str, template_vars: dict[str, str]) -> None:
        """Email a new specialist their temporary password.

        Raises ``RuntimeError`` when email is disabled and lets SMTP errors
        propagate; the import engine treats both as a non-fatal miss.
        """
        if not self.enabled:
            raise RuntimeError("Email sending is disabled (EMAIL_ENABLED=false)")

        raw = get_template(WELCOME_TEMPLATE, self._settings.EMAIL_TEMPLATES_PATH)
        message = self._compose(to_address, render_template(raw, template_vars))
        await self._smtp_send(message)
        log.info("welcome_email_sent", to=to_address)

    async def _smtp_send(self, message: EmailMessage) -> None:
        s = self._settings
        implicit_tls = s.SMTP_USE_SSL
        try:
            await aiosmtplib.send(
                message,
                hostname=s.SMTP_HOST,
                port=s.SMTP_PORT,
                username=s.SMTP_USERNAME or None,
                password=s.SMTP_PASSWORD or None,
                use_tls=implicit_tls,
                start_tls=s.SMTP_USE_TLS and not implicit_tls,
                timeout=s.EMAIL_TIMEOUT_SECONDS,
            )
        except aiosmtplib.SMTPException as exc:
            log.error("smtp_send_failed", error=str(exc), smtp_host=s.SMTP_HOST, smtp_port=s.SMTP_PORT)
            raise


def get_email_service(settings: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(settings)
