"""Persistence helpers for notification entities."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm.domain.entities import (
    Delivery,
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedEntity,
    RelatedEntityKind,
)
from crm.domain.exceptions import PersistenceError
from crm.infrastructure.models import DeliveryModel, NotificationModel
from crm.utils import ensure_app_naive_datetime, ensure_app_timezone, now_in_app_timezone

from .delivery_repository import DeliveryRepository

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Create notifications together with their fan-out delivery rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_with_deliveries(
        self,
        notification: Notification,
        recipients: Sequence[tuple[int, bool]],
    ) -> tuple[Notification, list[Delivery]]:
        """Persist ``notification`` and one delivery per ``(user_id, suppressed)``.

        Everything is committed in a single transaction. Any database failure
        rolls the whole unit back and surfaces as :class:`PersistenceError`.
        """

        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        created_at = model.created_at
        delivery_models = [
            DeliveryModel(
                user_id=user_id,
                in_app_suppressed=suppressed,
                created_at=created_at,
            )
            for user_id, suppressed in recipients
        ]
        model.deliveries = delivery_models

        try:
            self.session.add(model)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "Failed to persist %s notification for %d recipients: %s",
                notification.type.value,
                len(recipients),
                exc,
            )
            raise PersistenceError(
                f"Could not store {notification.type.value} notification"
            ) from exc

        self.session.refresh(model)
        deliveries = [DeliveryRepository.to_entity(item) for item in delivery_models]
        return self.to_entity(model), deliveries

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self.to_entity(model) if model else None

    def delete_expired(self, *, now: datetime | None = None) -> int:
        """Delete notifications past ``expires_at`` along with their deliveries."""

        cutoff = ensure_app_naive_datetime(now or now_in_app_timezone())
        expired_ids = [
            notification_id
            for (notification_id,) in self.session.query(NotificationModel.id)
            .filter(NotificationModel.expires_at.is_not(None))
            .filter(NotificationModel.expires_at < cutoff)
            .all()
        ]
        if not expired_ids:
            return 0

        self.session.query(DeliveryModel).filter(
            DeliveryModel.notification_id.in_(expired_ids)
        ).delete(synchronize_session=False)
        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.id.in_(expired_ids))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def statistics(
        self, *, start: datetime | None = None, end: datetime | None = None
    ) -> dict[str, Any]:
        """Aggregate notification and delivery counts, optionally within a date range."""

        def in_range(query):
            if start is not None:
                query = query.filter(
                    NotificationModel.created_at >= ensure_app_naive_datetime(start)
                )
            if end is not None:
                query = query.filter(
                    NotificationModel.created_at <= ensure_app_naive_datetime(end)
                )
            return query

        total_notifications = in_range(
            self.session.query(func.count(NotificationModel.id))
        ).scalar()
        delivery_query = self.session.query(func.count(DeliveryModel.id)).join(
            NotificationModel, DeliveryModel.notification_id == NotificationModel.id
        )
        total_deliveries = in_range(delivery_query).scalar()
        unread_deliveries = in_range(
            delivery_query.filter(DeliveryModel.is_read.is_(False))
        ).scalar()

        def grouped(column) -> dict[str, int]:
            query = (
                self.session.query(column, func.count(DeliveryModel.id))
                .join(DeliveryModel, DeliveryModel.notification_id == NotificationModel.id)
                .group_by(column)
            )
            return {key: count for key, count in in_range(query).all()}

        total_deliveries = total_deliveries or 0
        unread_deliveries = unread_deliveries or 0
        read_rate = (
            round((total_deliveries - unread_deliveries) / total_deliveries * 100, 2)
            if total_deliveries
            else 0.0
        )
        return {
            "total_notifications": total_notifications or 0,
            "total_deliveries": total_deliveries,
            "unread_deliveries": unread_deliveries,
            "read_rate": read_rate,
            "by_type": grouped(NotificationModel.type),
            "by_priority": grouped(NotificationModel.priority),
        }

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )
        model.created_by = notification.created_by
        model.is_broadcast = notification.is_broadcast
        model.target_roles = (
            sorted(notification.target_roles) if notification.target_roles else None
        )
        model.type = notification.type.value
        model.title = notification.title
        model.title_ar = notification.title_ar
        model.message = notification.message
        model.message_ar = notification.message_ar
        model.priority = notification.priority.value
        related = notification.related_entity
        model.related_entity_type = related.kind.value if related else None
        model.related_entity_id = related.id if related else None
        model.payload = dict(notification.metadata or {})
        model.expires_at = ensure_app_naive_datetime(notification.expires_at)

    @staticmethod
    def to_entity(model: NotificationModel) -> Notification:
        related = None
        if model.related_entity_type:
            related = RelatedEntity(
                RelatedEntityKind(model.related_entity_type), model.related_entity_id
            )
        return Notification(
            id=model.id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            priority=NotificationPriority(model.priority),
            title_ar=model.title_ar,
            message_ar=model.message_ar,
            created_by=model.created_by,
            is_broadcast=model.is_broadcast,
            target_roles=list(model.target_roles) if model.target_roles else None,
            related_entity=related,
            metadata=dict(model.payload or {}),
            expires_at=ensure_app_timezone(model.expires_at),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["NotificationRepository"]
