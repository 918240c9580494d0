"""Domain entities exposed by the application."""

from .delivery import DELIVERY_TRANSITIONS, Delivery, DeliveryStatus, UserNotification
from .notification import (
    MANDATORY_NOTIFICATION_TYPES,
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedEntity,
    RelatedEntityKind,
)
from .notification_template import NotificationTemplate, TemplateChannel
from .preference import (
    DEFAULT_LANGUAGE,
    Preference,
    PreferencePatch,
    SUPPORTED_LANGUAGES,
    default_preference,
)
from .role import Role
from .user import User

__all__ = [
    "DELIVERY_TRANSITIONS",
    "DEFAULT_LANGUAGE",
    "Delivery",
    "DeliveryStatus",
    "MANDATORY_NOTIFICATION_TYPES",
    "Notification",
    "NotificationPriority",
    "NotificationTemplate",
    "NotificationType",
    "Preference",
    "PreferencePatch",
    "RelatedEntity",
    "RelatedEntityKind",
    "Role",
    "SUPPORTED_LANGUAGES",
    "TemplateChannel",
    "User",
    "UserNotification",
    "default_preference",
]
