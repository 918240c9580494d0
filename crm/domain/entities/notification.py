"""Domain entity representing a business-event notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    """Closed set of notification types persisted by the service."""

    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_PAYMENT_UPDATED = "order_payment_updated"
    ORDER_HIGH_VALUE = "order_high_value"
    ORDER_FAILED = "order_failed"
    STOCK_LOW = "stock_low"
    STOCK_MEDIUM = "stock_medium"
    STOCK_OUT = "stock_out"
    RESTOCK_RECOMMENDATION = "restock_recommendation"
    CUSTOMER_REGISTERED = "customer_registered"
    SALES_SUMMARY_DAILY = "sales_summary_daily"
    SALES_SUMMARY_WEEKLY = "sales_summary_weekly"
    SYSTEM_ALERT = "system_alert"
    MAINTENANCE_NOTICE = "maintenance_notice"


# Operational announcements cannot be opted out of.
MANDATORY_NOTIFICATION_TYPES = frozenset(
    {NotificationType.SYSTEM_ALERT, NotificationType.MAINTENANCE_NOTICE}
)


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RelatedEntityKind(str, Enum):
    ORDER = "order"
    PRODUCT = "product"
    CUSTOMER = "customer"
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class RelatedEntity:
    """Reference to the business object a notification is about.

    ``system`` references carry no identifier; every other kind requires one.
    """

    kind: RelatedEntityKind
    id: int | None = None

    def __post_init__(self) -> None:
        if self.kind is not RelatedEntityKind.SYSTEM and self.id is None:
            raise ValueError(f"A {self.kind.value} reference requires an id")

    @classmethod
    def order(cls, order_id: int) -> "RelatedEntity":
        return cls(RelatedEntityKind.ORDER, order_id)

    @classmethod
    def product(cls, product_id: int) -> "RelatedEntity":
        return cls(RelatedEntityKind.PRODUCT, product_id)

    @classmethod
    def customer(cls, customer_id: int) -> "RelatedEntity":
        return cls(RelatedEntityKind.CUSTOMER, customer_id)

    @classmethod
    def user(cls, user_id: int) -> "RelatedEntity":
        return cls(RelatedEntityKind.USER, user_id)

    @classmethod
    def system(cls) -> "RelatedEntity":
        return cls(RelatedEntityKind.SYSTEM)


@dataclass
class Notification:
    """Single business event shared by every recipient it was fanned out to."""

    id: int | None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    title_ar: str | None = None
    message_ar: str | None = None
    created_by: int | None = None
    is_broadcast: bool = False
    target_roles: list[str] | None = None
    related_entity: RelatedEntity | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    expires_at: datetime | None = None
    created_at: datetime | None = None

    def localized_text(self, language: str) -> tuple[str, str]:
        """Return the raw ``(title, message)`` pair for ``language``."""

        if language == "ar":
            return self.title_ar or self.title, self.message_ar or self.message
        return self.title, self.message


__all__ = [
    "MANDATORY_NOTIFICATION_TYPES",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "RelatedEntity",
    "RelatedEntityKind",
]
