"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from crm.domain.entities import NotificationPriority, NotificationType, RelatedEntityKind


class RelatedEntityRead(BaseModel):
    kind: RelatedEntityKind
    id: int | None = None


class NotificationRead(BaseModel):
    """A delivered notification as seen by its recipient."""

    id: int
    delivery_id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    is_broadcast: bool
    related_entity: RelatedEntityRead | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    read_at: datetime | None = None
    is_visible: bool
    hidden_at: datetime | None = None
    is_email_sent: bool
    expires_at: datetime | None = None
    created_at: datetime | None = None


class NotificationPageRead(BaseModel):
    items: list[NotificationRead]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


class UnreadCountRead(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class BroadcastCreate(BaseModel):
    """Payload accepted by the administrator broadcast endpoint."""

    model_config = ConfigDict(extra="forbid")

    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=1000)
    title_ar: str | None = Field(default=None, min_length=1, max_length=255)
    message_ar: str | None = Field(default=None, min_length=1, max_length=1000)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    target_roles: list[str] | None = None
    user_ids: list[int] | None = None
    related_entity_type: RelatedEntityKind | None = None
    related_entity_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    expires_at: datetime | None = None

    @model_validator(mode="after")
    def _check_related_entity(self) -> "BroadcastCreate":
        if (
            self.related_entity_type is not None
            and self.related_entity_type is not RelatedEntityKind.SYSTEM
            and self.related_entity_id is None
        ):
            raise ValueError("related_entity_id is required for this entity type")
        return self


class BroadcastResult(BaseModel):
    notification_id: int | None
    recipient_count: int


class NotificationStatisticsRead(BaseModel):
    total_notifications: int
    total_deliveries: int
    unread_deliveries: int
    read_rate: float
    by_type: dict[str, int]
    by_priority: dict[str, int]


class PurgeResult(BaseModel):
    deleted: int


__all__ = [
    "BroadcastCreate",
    "BroadcastResult",
    "MarkAllReadResponse",
    "NotificationPageRead",
    "NotificationRead",
    "NotificationStatisticsRead",
    "PurgeResult",
    "RelatedEntityRead",
    "UnreadCountRead",
]
