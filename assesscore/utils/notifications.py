# assesscore/utils/notifications.py
"""
Письма кандидатам: приглашение, напоминание, уведомление о завершении.
HTML собирается из Jinja2-шаблонов, доставка -- через SMTP.
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Request
from jinja2 import Environment, FileSystemLoader, select_autoescape

from assesscore.config import Settings

logger = logging.getLogger(__name__)

TEMPLATES_ROOT = Path(__file__).resolve().parents[1] / "templates" / "email"


class NotificationError(Exception):
    """Письмо не удалось отправить."""
    pass


class SmtpTransport:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, recipient: str, subject: str, html: str) -> None:
        s = self.settings
        msg = EmailMessage()
        msg["From"] = s.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            if s.email_secure:
                with smtplib.SMTP_SSL(s.email_host, s.email_port, timeout=30) as smtp:
                    smtp.login(s.email_user, s.email_password)
                    smtp.send_message(msg)
            else:
                with smtplib.SMTP(s.email_host, s.email_port, timeout=30) as smtp:
                    smtp.starttls()
                    smtp.login(s.email_user, s.email_password)
                    smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email: {e}") from e


class Notifier:
    """
    transport -- объект с методом ``send(recipient, subject, html)``.
    Если транспорт не задан и SMTP не настроен, письма не уходят.
    """

    def __init__(self, settings: Settings, transport: Optional[Any] = None):
        self.settings = settings
        if transport is None and settings.email_configured:
            transport = SmtpTransport(settings)
        self.transport = transport
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_ROOT)),
            autoescape=select_autoescape(["html"]),
        )
        if self.transport is None:
            logger.warning("Email configuration missing: EMAIL_HOST, EMAIL_USER, EMAIL_PASSWORD")

    def render(self, template: str, **context: Any) -> str:
        return self.env.get_template(template).render(**context)

    def _deliver(self, recipient: str, subject: str, html: str) -> None:
        if self.transport is None:
            raise NotificationError("Email service not configured")
        self.transport.send(recipient, subject, html)

    def send_invitation(self, *, candidate_email: str, candidate_name: str | None, token: str,
                        test: Dict[str, Any], invited_by_name: str | None, expires_at) -> None:
        link = self.settings.invitation_link(token)
        html = self.render(
            "invitation.html",
            candidate_name=candidate_name or candidate_email,
            invited_by_name=invited_by_name or "Your recruiter",
            test=test,
            link=link,
            expires_at=expires_at,
        )
        self._deliver(candidate_email, f"Test Invitation: {test['title']}", html)
        logger.info("Invitation email sent to %s", candidate_email)

    def send_reminder(self, *, candidate_email: str, candidate_name: str | None, token: str,
                      test: Dict[str, Any], invited_by_name: str | None, expires_at) -> None:
        link = self.settings.invitation_link(token)
        html = self.render(
            "reminder.html",
            candidate_name=candidate_name or candidate_email,
            invited_by_name=invited_by_name or "Your recruiter",
            test=test,
            link=link,
            expires_at=expires_at,
        )
        self._deliver(candidate_email, f"Reminder: Test Invitation - {test['title']}", html)
        logger.info("Reminder email sent to %s", candidate_email)

    def send_completion(self, *, candidate_email: str, candidate_name: str | None,
                        test_title: str, details: Dict[str, Any]) -> None:
        if self.transport is None:
            logger.warning("Email service not configured, skipping completion notification")
            return
        html = self.render(
            "completion.html",
            candidate_name=candidate_name or candidate_email,
            test_title=test_title,
            details=details,
        )
        self._deliver(candidate_email, f"Test Completed: {test_title}", html)
        logger.info("Completion notification sent to %s", candidate_email)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier
