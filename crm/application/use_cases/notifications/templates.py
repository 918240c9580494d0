"""Localized notification templates and ``{{placeholder}}`` rendering."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from crm.domain.entities import Notification, NotificationType, TemplateChannel
from crm.domain.exceptions import TemplateNotFound
from crm.infrastructure.repositories import NotificationTemplateRepository

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")


def render(pattern: str, values: Mapping[str, Any]) -> str:
    """Replace ``{{token}}`` occurrences with ``values[token]``.

    Tokens missing from ``values`` (or mapped to ``None``) are left as-is.
    """

    def substitute(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, pattern)


@dataclass(frozen=True)
class ResolvedTemplate:
    title_pattern: str
    message_pattern: str
    email_subject: str | None = None
    email_html: str | None = None

    def render(self, values: Mapping[str, Any]) -> tuple[str, str]:
        return render(self.title_pattern, values), render(self.message_pattern, values)

    def render_email(self, values: Mapping[str, Any]) -> tuple[str | None, str | None]:
        subject = render(self.email_subject, values) if self.email_subject else None
        body = render(self.email_html, values) if self.email_html else None
        return subject, body


class TemplateResolver:
    """Look up the active template for ``(type, language, channel)``."""

    def __init__(self, session: Session) -> None:
        self._repository = NotificationTemplateRepository(session)
        self._localized: dict[tuple[NotificationType, str], ResolvedTemplate | None] = {}

    def resolve(
        self,
        notification_type: NotificationType,
        language: str,
        channel: TemplateChannel = TemplateChannel.IN_APP,
    ) -> ResolvedTemplate:
        template = self._repository.get_active(notification_type, language, channel)
        if template is None:
            raise TemplateNotFound(notification_type.value, language, channel.value)
        return ResolvedTemplate(
            title_pattern=template.title,
            message_pattern=template.message,
            email_subject=template.email_subject,
            email_html=template.email_html,
        )

    def localize(self, notification: Notification, language: str) -> tuple[str, str]:
        """Return the in-app title and message of ``notification`` in ``language``.

        The active template is rendered with the notification metadata; without
        one the stored event text is used. Lookups are cached per resolver.
        """

        key = (notification.type, language)
        if key not in self._localized:
            try:
                self._localized[key] = self.resolve(
                    notification.type, language, TemplateChannel.IN_APP
                )
            except TemplateNotFound as exc:
                logger.debug("%s; using event text", exc)
                self._localized[key] = None
        template = self._localized[key]
        if template is None:
            return notification.localized_text(language)
        return template.render(notification.metadata or {})


__all__ = ["PLACEHOLDER_PATTERN", "ResolvedTemplate", "TemplateResolver", "render"]
