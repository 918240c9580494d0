"""SQLAlchemy model for localized notification templates."""

from sqlalchemy import Boolean, Column, Integer, String, Text, UniqueConstraint

from crm.infrastructure.database import Base


class NotificationTemplateModel(Base):
    """Title/message patterns keyed by type, language and channel."""

    __tablename__ = "notification_template"
    __table_args__ = (
        UniqueConstraint("type", "language", "channel", name="uq_notification_template"),
    )

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(40), nullable=False)
    language = Column(String(5), nullable=False)
    channel = Column(String(10), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    email_subject = Column(String(255), nullable=True)
    email_html = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="medium")
    is_active = Column(Boolean, nullable=False, default=True)


__all__ = ["NotificationTemplateModel"]
