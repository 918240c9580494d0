"""Aggregate application use cases."""

from .notifications import NotificationDispatcher, dispatch_notification

__all__ = [
    "NotificationDispatcher",
    "dispatch_notification",
]
