"""Errors raised by the notification core.

Route handlers translate these into HTTP responses; event producers decide
whether to retry based on :attr:`NotificationError.retryable`.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification errors."""

    retryable = False


class ValidationError(NotificationError, ValueError):
    """The event is malformed or misses required metadata."""


class PersistenceError(NotificationError):
    """The notification transaction failed; the producer may retry."""

    retryable = True


class TemplateNotFound(NotificationError, LookupError):
    """No active template matches ``(type, language, channel)``."""

    def __init__(self, notification_type: str, language: str, channel: str) -> None:
        super().__init__(
            f"No active {channel} template for {notification_type} in {language}"
        )
        self.notification_type = notification_type
        self.language = language
        self.channel = channel


class DeliveryTargetError(NotificationError):
    """Recipient resolution produced nobody to notify."""


class NotFound(NotificationError, LookupError):
    """The user has no delivery for the requested notification."""

    def __init__(self, user_id: int, notification_id: int) -> None:
        super().__init__(
            f"Notification {notification_id} not found for user {user_id}"
        )
        self.user_id = user_id
        self.notification_id = notification_id


class InvalidTransition(NotificationError):
    """The requested delivery status change is not allowed."""


__all__ = [
    "DeliveryTargetError",
    "InvalidTransition",
    "NotFound",
    "NotificationError",
    "PersistenceError",
    "TemplateNotFound",
    "ValidationError",
]
