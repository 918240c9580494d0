"""SQLAlchemy model for notification preferences."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint

from crm.infrastructure.database import Base
from crm.utils import now_in_app_naive_datetime


class PreferenceModel(Base):
    """Stored per ``(user, notification type)`` delivery preferences."""

    __tablename__ = "notification_preference"
    __table_args__ = (
        UniqueConstraint("user_id", "notification_type", name="uq_notification_preference"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notification_type = Column(String(40), nullable=False)
    in_app_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=False)
    threshold = Column(JSON, nullable=True)
    language = Column(String(5), nullable=False, default="en")
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(DateTime(), nullable=True, onupdate=now_in_app_naive_datetime)


__all__ = ["PreferenceModel"]
