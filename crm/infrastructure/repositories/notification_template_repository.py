"""Persistence layer for localized notification templates."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from crm.domain.entities import (
    NotificationPriority,
    NotificationTemplate,
    NotificationType,
    TemplateChannel,
)
from crm.infrastructure.models import NotificationTemplateModel


class NotificationTemplateRepository:
    """Look up templates at dispatch time and load them from seed data."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_active(
        self,
        notification_type: NotificationType,
        language: str,
        channel: TemplateChannel,
    ) -> NotificationTemplate | None:
        model = (
            self._query(notification_type, language, channel)
            .filter(NotificationTemplateModel.is_active.is_(True))
            .first()
        )
        return self._to_entity(model) if model else None

    def list(self) -> Sequence[NotificationTemplate]:
        query = self.session.query(NotificationTemplateModel).order_by(
            NotificationTemplateModel.type,
            NotificationTemplateModel.language,
            NotificationTemplateModel.channel,
        )
        return [self._to_entity(model) for model in query.all()]

    def upsert(self, template: NotificationTemplate) -> NotificationTemplate:
        model = self._query(template.type, template.language, template.channel).first()
        if model is None:
            model = NotificationTemplateModel()
        self._apply_entity_to_model(model, template)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _query(
        self,
        notification_type: NotificationType,
        language: str,
        channel: TemplateChannel,
    ):
        return (
            self.session.query(NotificationTemplateModel)
            .filter(NotificationTemplateModel.type == notification_type.value)
            .filter(NotificationTemplateModel.language == language)
            .filter(NotificationTemplateModel.channel == channel.value)
        )

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationTemplateModel, template: NotificationTemplate
    ) -> None:
        model.type = template.type.value
        model.language = template.language
        model.channel = template.channel.value
        model.title = template.title
        model.message = template.message
        model.email_subject = template.email_subject
        model.email_html = template.email_html
        model.priority = template.priority.value
        model.is_active = template.is_active

    @staticmethod
    def _to_entity(model: NotificationTemplateModel) -> NotificationTemplate:
        return NotificationTemplate(
            id=model.id,
            type=NotificationType(model.type),
            language=model.language,
            channel=TemplateChannel(model.channel),
            title=model.title,
            message=model.message,
            email_subject=model.email_subject,
            email_html=model.email_html,
            priority=NotificationPriority(model.priority),
            is_active=model.is_active,
        )


__all__ = ["NotificationTemplateRepository"]
