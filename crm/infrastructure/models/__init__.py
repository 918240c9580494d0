"""ORM models used by the application infrastructure."""

from .role import RoleModel
from .user import UserModel
from .notification import NotificationModel
from .delivery import DeliveryModel
from .preference import PreferenceModel
from .notification_template import NotificationTemplateModel

__all__ = [
    "RoleModel",
    "UserModel",
    "NotificationModel",
    "DeliveryModel",
    "PreferenceModel",
    "NotificationTemplateModel",
]
