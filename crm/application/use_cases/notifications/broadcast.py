"""Administrator announcements and housekeeping over stored notifications."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from crm.domain.entities import NotificationPriority, NotificationType, RelatedEntity, User
from crm.domain.exceptions import ValidationError
from crm.infrastructure.repositories import NotificationRepository

from .dispatcher import DispatchEvent, DispatchResult, NotificationDispatcher


def broadcast_notification(
    session: Session,
    *,
    sender: User,
    type: NotificationType,
    title: str,
    message: str,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    title_ar: str | None = None,
    message_ar: str | None = None,
    target_roles: Sequence[str] | None = None,
    user_ids: Sequence[int] | None = None,
    related_entity: RelatedEntity | None = None,
    metadata: dict[str, Any] | None = None,
    expires_at: datetime | None = None,
    **dependencies: Any,
) -> DispatchResult:
    """Send an announcement authored by ``sender``.

    An empty ``user_ids`` list means "not specified", so the announcement
    falls back to ``target_roles`` or to every user.
    """

    event = DispatchEvent(
        type=type,
        title=title,
        message=message,
        title_ar=title_ar,
        message_ar=message_ar,
        priority=priority,
        source=related_entity,
        metadata=dict(metadata or {}),
        explicit_recipients=list(user_ids) if user_ids else None,
        target_roles=list(target_roles) if target_roles else None,
        created_by=sender.id,
        expires_at=expires_at,
    )
    return NotificationDispatcher(session, **dependencies).dispatch(event)


def get_notification_statistics(
    session: Session,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict[str, Any]:
    if start and end and start > end:
        raise ValidationError("start must not be after end")
    return NotificationRepository(session).statistics(start=start, end=end)


def purge_expired_notifications(session: Session, *, now: datetime | None = None) -> int:
    """Delete notifications whose ``expires_at`` has passed, with their deliveries."""

    return NotificationRepository(session).delete_expired(now=now)


__all__ = [
    "broadcast_notification",
    "get_notification_statistics",
    "purge_expired_notifications",
]
