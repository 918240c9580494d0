"""Use cases over a user's own deliveries: listing, counting, read and hide."""

from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy.orm import Session

from crm.domain.entities import DeliveryStatus, UserNotification
from crm.domain.exceptions import InvalidTransition, NotFound, ValidationError
from crm.infrastructure.notifications import notification_publisher
from crm.infrastructure.repositories import DeliveryRepository
from crm.utils import now_in_app_timezone

from .dispatcher import Publisher

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class NotificationPage:
    items: list[UserNotification]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


def list_user_notifications(
    session: Session,
    user_id: int,
    *,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    include_hidden: bool = False,
) -> NotificationPage:
    """Return a page of the user's notifications, newest first.

    ``include_hidden`` turns the listing into the full audit history.
    """

    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    items, total = DeliveryRepository(session).list_for_user(
        user_id,
        offset=(page - 1) * limit,
        limit=limit,
        visible_only=not include_hidden,
        unread_only=unread_only,
    )
    return NotificationPage(items=list(items), total=total, page=page, limit=limit)


def get_unread_count(session: Session, user_id: int) -> int:
    return DeliveryRepository(session).count_unread(user_id)


def _load(repository: DeliveryRepository, user_id: int, notification_id: int) -> UserNotification:
    item = repository.get_with_notification(user_id=user_id, notification_id=notification_id)
    if item is None:
        raise NotFound(user_id, notification_id)
    return item


def mark_notification_read(
    session: Session,
    user_id: int,
    notification_id: int,
    *,
    publisher: Publisher | None = None,
) -> UserNotification:
    """Move a delivery from unseen to read.

    Reading an already read delivery changes nothing and keeps the original
    ``read_at``, even once it is hidden. Hidden unread deliveries cannot be
    read.
    """

    repository = DeliveryRepository(session)
    item = _load(repository, user_id, notification_id)
    if item.delivery.is_read:
        return item
    if not item.delivery.can_transition_to(DeliveryStatus.READ):
        raise InvalidTransition(
            f"Notification {notification_id} is {item.delivery.status.value} and cannot be read"
        )

    changed = repository.mark_read(
        user_id=user_id, notification_id=notification_id, read_at=now_in_app_timezone()
    )
    item = _load(repository, user_id, notification_id)
    if not changed and item.delivery.status is DeliveryStatus.HIDDEN and not item.delivery.is_read:
        raise InvalidTransition(f"Notification {notification_id} was hidden")

    if changed:
        (publisher or notification_publisher).publish(
            user_id,
            {
                "notification_id": notification_id,
                "read_at": item.delivery.read_at.isoformat() if item.delivery.read_at else None,
                "unread_count": repository.count_unread(user_id),
            },
            event_type="notification_read",
        )
    return item


def mark_all_notifications_read(
    session: Session, user_id: int, *, publisher: Publisher | None = None
) -> int:
    """Mark every visible unread delivery of the user as read; return how many changed."""

    repository = DeliveryRepository(session)
    updated = repository.mark_all_read(user_id=user_id, read_at=now_in_app_timezone())
    if updated:
        (publisher or notification_publisher).publish(
            user_id,
            {"updated": updated, "unread_count": repository.count_unread(user_id)},
            event_type="notifications_all_read",
        )
    return updated


def hide_notification(
    session: Session,
    user_id: int,
    notification_id: int,
    *,
    publisher: Publisher | None = None,
) -> UserNotification:
    """Remove a delivery from the user's visible list. Hiding twice is a no-op."""

    repository = DeliveryRepository(session)
    item = _load(repository, user_id, notification_id)
    if item.delivery.status is DeliveryStatus.HIDDEN:
        return item

    changed = repository.hide(
        user_id=user_id, notification_id=notification_id, hidden_at=now_in_app_timezone()
    )
    item = _load(repository, user_id, notification_id)
    if changed:
        (publisher or notification_publisher).publish(
            user_id,
            {
                "notification_id": notification_id,
                "unread_count": repository.count_unread(user_id),
            },
            event_type="notification_hidden",
        )
    return item


__all__ = [
    "MAX_PAGE_SIZE",
    "NotificationPage",
    "get_unread_count",
    "hide_notification",
    "list_user_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
]
