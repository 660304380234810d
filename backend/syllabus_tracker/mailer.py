"""Outbound mail for scheduled report delivery."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol, Sequence

from .config import Settings, get_settings
from .errors import TransientDownstreamError

logger = logging.getLogger(__name__)

_MIME_TYPES = {
    "json": ("application", "json"),
    "csv": ("text", "csv"),
}


class MailTransport(Protocol):
    def send_with_attachment(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachment: bytes,
        filename: str,
    ) -> None:
        ...


class SmtpMailTransport:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def send_with_attachment(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachment: bytes,
        filename: str,
    ) -> None:
        settings = self._settings
        if not settings.smtp_host:
            raise TransientDownstreamError("SYLLABUS_SMTP_HOST is not configured; cannot deliver mail.")
        if not recipients:
            logger.warning("No recipients for %r; skipping delivery", subject)
            return

        message = EmailMessage()
        message["From"] = settings.smtp_from
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        message.set_content(body)
        extension = filename.rsplit(".", 1)[-1].lower()
        maintype, subtype = _MIME_TYPES.get(extension, ("application", "octet-stream"))
        message.add_attachment(attachment, maintype=maintype, subtype=subtype, filename=filename)

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as client:
                if settings.smtp_use_tls:
                    client.starttls()
                if settings.smtp_user and settings.smtp_password:
                    client.login(settings.smtp_user, settings.smtp_password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransientDownstreamError(f"Mail delivery failed: {exc}") from exc
        logger.info("Delivered %s to %s recipients", filename, len(recipients))


__all__ = ["MailTransport", "SmtpMailTransport"]
