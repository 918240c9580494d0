"""Persistence helpers for per-recipient notification deliveries."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session, contains_eager

from crm.domain.entities import Delivery, UserNotification
from crm.infrastructure.models import DeliveryModel, NotificationModel
from crm.utils import ensure_app_naive_datetime, ensure_app_timezone


class DeliveryRepository:
    """Read and mutate the delivery rows owned by a single user.

    Every mutating query is scoped by ``user_id`` so a user can never touch
    another user's delivery.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, *, user_id: int, notification_id: int) -> Delivery | None:
        model = self._get_model(user_id=user_id, notification_id=notification_id)
        return self.to_entity(model) if model else None

    def get_with_notification(
        self, *, user_id: int, notification_id: int
    ) -> UserNotification | None:
        model = self._get_model(user_id=user_id, notification_id=notification_id)
        if model is None:
            return None
        return self._to_user_notification(model)

    def list_for_user(
        self,
        user_id: int,
        *,
        offset: int = 0,
        limit: int = 20,
        visible_only: bool = True,
        unread_only: bool = False,
    ) -> tuple[Sequence[UserNotification], int]:
        """Return one page of deliveries (newest first) and the total row count."""

        query = (
            self.session.query(DeliveryModel)
            .join(NotificationModel, DeliveryModel.notification_id == NotificationModel.id)
            .options(contains_eager(DeliveryModel.notification))
            .filter(DeliveryModel.user_id == user_id)
        )
        if visible_only:
            query = query.filter(DeliveryModel.is_visible.is_(True))
        if unread_only:
            query = query.filter(DeliveryModel.is_read.is_(False))

        total = query.order_by(None).count()
        rows = (
            query.order_by(NotificationModel.created_at.desc(), DeliveryModel.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_user_notification(model) for model in rows], total

    def list_unread_for_user(self, user_id: int, *, limit: int = 50) -> Sequence[UserNotification]:
        items, _ = self.list_for_user(user_id, limit=limit, unread_only=True)
        return [item for item in items if not item.delivery.in_app_suppressed]

    def count_unread(self, user_id: int) -> int:
        count = (
            self.session.query(func.count(DeliveryModel.id))
            .filter(DeliveryModel.user_id == user_id)
            .filter(DeliveryModel.is_read.is_(False))
            .filter(DeliveryModel.is_visible.is_(True))
            .filter(DeliveryModel.in_app_suppressed.is_(False))
            .scalar()
        )
        return int(count or 0)

    def mark_read(self, *, user_id: int, notification_id: int, read_at: datetime) -> bool:
        """Flip an unread, visible delivery to read.

        The ``is_read`` guard in the ``WHERE`` clause makes concurrent calls
        safe: only the first one writes ``read_at``. Returns whether a row
        changed.
        """

        updated = (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.user_id == user_id)
            .filter(DeliveryModel.notification_id == notification_id)
            .filter(DeliveryModel.is_read.is_(False))
            .filter(DeliveryModel.is_visible.is_(True))
            .update(
                {
                    DeliveryModel.is_read: True,
                    DeliveryModel.read_at: ensure_app_naive_datetime(read_at),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated > 0

    def mark_all_read(self, *, user_id: int, read_at: datetime) -> int:
        updated = (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.user_id == user_id)
            .filter(DeliveryModel.is_read.is_(False))
            .filter(DeliveryModel.is_visible.is_(True))
            .update(
                {
                    DeliveryModel.is_read: True,
                    DeliveryModel.read_at: ensure_app_naive_datetime(read_at),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def hide(self, *, user_id: int, notification_id: int, hidden_at: datetime) -> bool:
        updated = (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.user_id == user_id)
            .filter(DeliveryModel.notification_id == notification_id)
            .filter(DeliveryModel.is_visible.is_(True))
            .update(
                {
                    DeliveryModel.is_visible: False,
                    DeliveryModel.hidden_at: ensure_app_naive_datetime(hidden_at),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated > 0

    def mark_email_sent(self, delivery_ids: Iterable[int], *, sent_at: datetime) -> int:
        ids = [delivery_id for delivery_id in delivery_ids if delivery_id is not None]
        if not ids:
            return 0
        updated = (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.id.in_(ids))
            .update(
                {
                    DeliveryModel.is_email_sent: True,
                    DeliveryModel.email_sent_at: ensure_app_naive_datetime(sent_at),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def list_for_notification(self, notification_id: int) -> Sequence[Delivery]:
        query = (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.notification_id == notification_id)
            .order_by(DeliveryModel.user_id)
        )
        return [self.to_entity(model) for model in query.all()]

    def _get_model(self, *, user_id: int, notification_id: int) -> DeliveryModel | None:
        return (
            self.session.query(DeliveryModel)
            .filter(DeliveryModel.user_id == user_id)
            .filter(DeliveryModel.notification_id == notification_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def _to_user_notification(model: DeliveryModel) -> UserNotification:
        from .notification_repository import NotificationRepository

        return UserNotification(
            delivery=DeliveryRepository.to_entity(model),
            notification=NotificationRepository.to_entity(model.notification),
        )

    @staticmethod
    def to_entity(model: DeliveryModel) -> Delivery:
        return Delivery(
            id=model.id,
            user_id=model.user_id,
            notification_id=model.notification_id,
            is_read=model.is_read,
            read_at=ensure_app_timezone(model.read_at),
            is_email_sent=model.is_email_sent,
            email_sent_at=ensure_app_timezone(model.email_sent_at),
            is_visible=model.is_visible,
            hidden_at=ensure_app_timezone(model.hidden_at),
            in_app_suppressed=model.in_app_suppressed,
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["DeliveryRepository"]
