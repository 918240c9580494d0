"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from crm.infrastructure.database import Base
from crm.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation of a business-event notification."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_type_created_at", "type", "created_at"),
        Index("ix_notification_related_entity", "related_entity_type", "related_entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(
        Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_broadcast = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    target_roles = Column(JSON, nullable=True)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    title_ar = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    message_ar = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="medium")
    related_entity_type = Column(String(20), nullable=True)
    related_entity_id = Column(Integer, nullable=True)
    # ``metadata`` is reserved on declarative classes.
    payload = Column("metadata", JSON, nullable=False, default=dict)
    expires_at = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)

    deliveries = relationship(
        "DeliveryModel",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


__all__ = ["NotificationModel"]
