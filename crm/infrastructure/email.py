"""Helpers for delivering notification emails through SendGrid."""

from __future__ import annotations

import html
import json
import logging
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from crm.config import get_settings

logger = logging.getLogger(__name__)

RTL_LANGUAGES = frozenset({"ar"})


def _describe_sendgrid_body(body: Any) -> str | None:
    """Flatten a SendGrid error body into ``message (help: url)`` fragments."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body
    if not body:
        return None

    if isinstance(body, dict) and isinstance(body.get("errors"), list):
        parts = []
        for error in body["errors"]:
            if not isinstance(error, dict) or not error.get("message"):
                continue
            part = str(error["message"])
            if error.get("help"):
                part = f"{part} (help: {error['help']})"
            parts.append(part)
        if parts:
            return "; ".join(parts)
    return json.dumps(body, default=str)


def _log_sendgrid_failure(source: Any, *, recipient: str) -> None:
    status_code = getattr(source, "status_code", None)
    details = _describe_sendgrid_body(getattr(source, "body", None))
    logger.error(
        "SendGrid rejected email to %s (status %s): %s",
        recipient,
        status_code if status_code is not None else "n/a",
        details or source,
    )


def send_email(subject: str, html_content: str, recipient: str) -> bool:
    """Send an email using the configured SendGrid credentials.

    Returns ``False`` instead of raising when email is not configured or the
    API call fails.
    """

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        logger.info("SendGrid configuration incomplete; skipping email to %s", recipient)
        return False

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as exc:
        _log_sendgrid_failure(exc, recipient=recipient)
        return False

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        _log_sendgrid_failure(response, recipient=recipient)
        return False
    return True


def build_notification_html(title: str, message: str, *, language: str = "en") -> str:
    """Plain HTML body used when a template provides no ``email_html``."""

    direction = "rtl" if language in RTL_LANGUAGES else "ltr"
    return (
        f'<div dir="{direction}" lang="{html.escape(language)}">'
        f"<h2>{html.escape(title)}</h2>"
        f"<p>{html.escape(message)}</p>"
        "</div>"
    )


def send_notification_email(
    recipient: str,
    subject: str,
    html_content: str | None,
    *,
    title: str,
    message: str,
    language: str = "en",
) -> bool:
    """Deliver a rendered notification to ``recipient``."""

    body = html_content or build_notification_html(title, message, language=language)
    return send_email(subject or title, body, recipient)


__all__ = ["build_notification_html", "send_email", "send_notification_email"]
