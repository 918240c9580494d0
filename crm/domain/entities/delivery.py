"""Domain entity for the per-recipient delivery of a notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .notification import Notification


class DeliveryStatus(str, Enum):
    UNSEEN = "unseen"
    READ = "read"
    HIDDEN = "hidden"


# Legal status changes. Same-status moves are idempotent no-ops and handled
# by the caller; anything not listed here (e.g. un-hiding) is rejected.
DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.UNSEEN: frozenset({DeliveryStatus.READ, DeliveryStatus.HIDDEN}),
    DeliveryStatus.READ: frozenset({DeliveryStatus.HIDDEN}),
    DeliveryStatus.HIDDEN: frozenset(),
}


@dataclass
class Delivery:
    """Read, visibility and email state of a notification for one user."""

    id: int | None
    user_id: int
    notification_id: int
    is_read: bool = False
    read_at: datetime | None = None
    is_email_sent: bool = False
    email_sent_at: datetime | None = None
    is_visible: bool = True
    hidden_at: datetime | None = None
    in_app_suppressed: bool = False
    created_at: datetime | None = None

    @property
    def status(self) -> DeliveryStatus:
        if not self.is_visible:
            return DeliveryStatus.HIDDEN
        if self.is_read:
            return DeliveryStatus.READ
        return DeliveryStatus.UNSEEN

    def can_transition_to(self, target: DeliveryStatus) -> bool:
        return target in DELIVERY_TRANSITIONS[self.status]


@dataclass
class UserNotification:
    """A delivery joined with the notification it belongs to."""

    delivery: Delivery
    notification: Notification


__all__ = [
    "DELIVERY_TRANSITIONS",
    "Delivery",
    "DeliveryStatus",
    "UserNotification",
]
