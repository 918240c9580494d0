"""SQLAlchemy model for per-recipient notification deliveries."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from crm.infrastructure.database import Base
from crm.utils import now_in_app_naive_datetime


class DeliveryModel(Base):
    """Read/visibility/email state of a notification for a single user."""

    __tablename__ = "user_notification"
    __table_args__ = (
        UniqueConstraint("user_id", "notification_id", name="uq_user_notification"),
        Index("ix_user_notification_read_status", "user_id", "is_read"),
        Index("ix_user_notification_visibility", "user_id", "is_visible"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    notification_id = Column(
        Integer,
        ForeignKey("notification.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_read = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    read_at = Column(DateTime(), nullable=True)
    is_email_sent = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    email_sent_at = Column(DateTime(), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    hidden_at = Column(DateTime(), nullable=True)
    in_app_suppressed = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)

    notification = relationship("NotificationModel", back_populates="deliveries")


__all__ = ["DeliveryModel"]
