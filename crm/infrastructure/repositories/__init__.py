"""Repository implementations for infrastructure layer."""

from .delivery_repository import DeliveryRepository
from .notification_repository import NotificationRepository
from .notification_template_repository import NotificationTemplateRepository
from .preference_repository import PreferenceRepository
from .user_repository import UserRepository

__all__ = [
    "DeliveryRepository",
    "NotificationRepository",
    "NotificationTemplateRepository",
    "PreferenceRepository",
    "UserRepository",
]
