"""Domain entity for localized notification templates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .notification import NotificationPriority, NotificationType


class TemplateChannel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"


@dataclass
class NotificationTemplate:
    """Title and message patterns for a ``(type, language, channel)`` triple."""

    id: int | None
    type: NotificationType
    language: str
    channel: TemplateChannel
    title: str
    message: str
    email_subject: str | None = None
    email_html: str | None = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    is_active: bool = True


__all__ = ["NotificationTemplate", "TemplateChannel"]
