"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from anyio import from_thread

from crm.domain.entities import Notification, UserNotification

from .manager import NotificationConnectionManager, notification_manager

logger = logging.getLogger(__name__)


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


class NotificationPublisher:
    """Wrap payloads in the realtime envelope and schedule their delivery."""

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._pending: set[asyncio.Task] = set()

    @property
    def manager(self) -> NotificationConnectionManager:
        return self._manager

    @property
    def pending_sends(self) -> int:
        """Number of scheduled sends that have not finished yet."""

        return len(self._pending)

    def publish(
        self,
        recipient_id: int,
        payload: Any,
        *,
        event_type: str = "notification",
    ) -> int:
        """Emit ``payload`` to every connection of ``recipient_id``.

        Returns the number of connections the message was handed to; offline
        users get ``0``. Called from the event loop the send is scheduled as a
        task, otherwise it runs on the loop through ``anyio.from_thread``.
        Failures are logged and never raised.
        """

        if not self._manager.is_connected(recipient_id):
            return 0

        message = {"type": event_type, "data": payload}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self._manager.send_to_user(recipient_id, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return self._manager.connection_count(recipient_id)

        try:
            return from_thread.run(self._manager.send_to_user, recipient_id, message)
        except RuntimeError:
            logger.warning(
                "No event loop available to push %s to user %s", event_type, recipient_id
            )
            return 0
        except Exception:
            logger.exception("Failed to push %s to user %s", event_type, recipient_id)
            return 0

    @staticmethod
    def serialize_notification(
        notification: Notification,
        *,
        title: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        related = notification.related_entity
        return {
            "id": notification.id,
            "type": notification.type.value,
            "title": title if title is not None else notification.title,
            "message": message if message is not None else notification.message,
            "priority": notification.priority.value,
            "is_broadcast": notification.is_broadcast,
            "target_roles": notification.target_roles,
            "related_entity": (
                {"kind": related.kind.value, "id": related.id} if related else None
            ),
            "metadata": notification.metadata or {},
            "created_by": notification.created_by,
            "expires_at": _isoformat(notification.expires_at),
            "created_at": _isoformat(notification.created_at),
        }


notification_publisher = NotificationPublisher(notification_manager)


def publish(recipient_id: int, payload: Any, *, event_type: str = "notification") -> int:
    """Public helper that delegates to the shared publisher instance."""

    return notification_publisher.publish(recipient_id, payload, event_type=event_type)


def serialize_notification(
    notification: Notification,
    *,
    title: str | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return NotificationPublisher.serialize_notification(
        notification, title=title, message=message
    )


def serialize_user_notification(
    item: UserNotification,
    *,
    language: str | None = None,
    title: str | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """Return the ``{notification, delivery_id}`` payload for one delivery.

    ``title`` and ``message`` default to the stored text in ``language``.
    """

    if title is None or message is None:
        title, message = item.notification.localized_text(language or "en")
    delivery = item.delivery
    return {
        "notification": serialize_notification(
            item.notification, title=title, message=message
        ),
        "delivery_id": delivery.id,
        "is_read": delivery.is_read,
        "read_at": _isoformat(delivery.read_at),
        "is_visible": delivery.is_visible,
    }


__all__ = [
    "NotificationPublisher",
    "notification_publisher",
    "publish",
    "serialize_notification",
    "serialize_user_notification",
]
