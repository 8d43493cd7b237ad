"""
app/services/import_notification_service.py

Email notifications for exhausted and recovered scheduled imports.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Any

from app.config import NotificationSettings, get_notification_settings
from app.domain.imports import ImportResult

logger = logging.getLogger(__name__)

_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .header { color: white; padding: 20px; }
        .failed { background-color: #dc3545; }
        .recovered { background-color: #28a745; }
        .content { padding: 20px; }
        .details { background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 15px 0; }
        .label { font-weight: bold; color: #666; }
        .footer { padding: 20px; font-size: 12px; color: #666; border-top: 1px solid #ddd; }
"""


def _detail(label: str, value: Any) -> str:
    return f"<p><span class='label'>{escape(label)}:</span> {escape(str(value if value is not None else ''))}</p>"


def _page(header_class: str, title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
    <style>{_STYLE}    </style>
</head>
<body>
    <div class='header {header_class}'>
        <h2>{title}</h2>
    </div>
    <div class='content'>
{body}
    </div>
    <div class='footer'>
        <p>This is an automated message from the graph importer.</p>
    </div>
</body>
</html>
"""


def build_failure_email_body(config: Any, result: ImportResult, total_attempts: int) -> str:
    name = escape(config.name or "")
    errors = "<br/>".join(f"&bull; {escape(error)}" for error in result.errors)
    body = "\n".join(
        [
            f"<p>The scheduled import <strong>{name}</strong> has failed after {total_attempts} attempt(s).</p>",
            "<div class='details'>",
            _detail("Configuration", config.name),
            _detail("Source ID", config.target_source_id),
            _detail("Content Type", config.target_content_type),
            _detail("API URL", config.api_url),
            _detail("Duration", f"{result.duration.total_seconds():.1f} seconds"),
            "</div>",
            "<h3>Errors:</h3>",
            "<div class='details'>",
            f"<p>{errors}</p>" if errors else "<p>No specific error details available.</p>",
            "</div>",
            "<h3>Statistics:</h3>",
            "<div class='details'>",
            _detail("Items Received", result.total_items_received),
            _detail("Items Imported", result.items_imported),
            _detail("Items Skipped", result.items_skipped),
            _detail("Items Failed", result.items_failed),
            "</div>",
            "<p>The import will be attempted again at the next scheduled time. "
            "Please review the configuration and external API to resolve the issue.</p>",
        ]
    )
    return _page("failed", f"Import Failed: {name}", body)


def build_recovery_email_body(config: Any, result: ImportResult) -> str:
    name = escape(config.name or "")
    body = "\n".join(
        [
            f"<p>The scheduled import <strong>{name}</strong> has recovered and completed successfully.</p>",
            "<div class='details'>",
            _detail("Configuration", config.name),
            _detail("Source ID", config.target_source_id),
            _detail("Content Type", config.target_content_type),
            _detail("Duration", f"{result.duration.total_seconds():.1f} seconds"),
            "</div>",
            "<h3>Statistics:</h3>",
            "<div class='details'>",
            _detail("Items Received", result.total_items_received),
            _detail("Items Imported", result.items_imported),
            _detail("Items Skipped", result.items_skipped),
            "</div>",
        ]
    )
    return _page("recovered", f"Import Recovered: {name}", body)


class ImportNotificationService:
    """
    Sends HTML status emails to a configuration's ``notification_email``.

    Delivery problems are logged and never raised to the scheduler.
    """

    def __init__(self, settings: NotificationSettings | None = None) -> None:
        self._settings = settings or get_notification_settings()

    def send_failure_notification(self, config: Any, result: ImportResult, total_attempts: int) -> bool:
        recipient = (config.notification_email or "").strip()
        if not recipient:
            logger.debug("No notification email configured name=%s; skipping failure notification", config.name)
            return False
        return self._send(
            recipient,
            f"[Graph Import Failed] {config.name}",
            build_failure_email_body(config, result, total_attempts),
        )

    def send_recovery_notification(self, config: Any, result: ImportResult) -> bool:
        recipient = (config.notification_email or "").strip()
        if not recipient:
            logger.debug("No notification email configured name=%s; skipping recovery notification", config.name)
            return False
        return self._send(
            recipient,
            f"[Graph Import Recovered] {config.name}",
            build_recovery_email_body(config, result),
        )

    def _send(self, recipient: str, subject: str, html_body: str) -> bool:
        settings = self._settings
        if not settings.smtp_host:
            logger.warning("SMTP not configured; would have sent email to=%s subject=%s", recipient, subject)
            logger.debug("Email body: %s", html_body)
            return False

        message = EmailMessage()
        message["From"] = settings.from_email
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable email client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as client:
                if settings.use_tls:
                    client.starttls()
                if settings.smtp_username and settings.smtp_password:
                    client.login(settings.smtp_username, settings.smtp_password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send notification email to=%s subject=%s error=%s", recipient, subject, exc)
            return False

        logger.info("Sent notification email to=%s subject=%s", recipient, subject)
        return True
