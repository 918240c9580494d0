"""Fan a business event out to its recipients.

The dispatcher resolves who should hear about an event, applies preference
and threshold filters, writes the notification together with one delivery row
per recipient in a single transaction and only then localizes the content,
pushes it to connected clients and sends opted-in emails.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm.domain.entities import (
    MANDATORY_NOTIFICATION_TYPES,
    Delivery,
    Notification,
    NotificationPriority,
    NotificationType,
    Preference,
    RelatedEntity,
    TemplateChannel,
    User,
)
from crm.domain.exceptions import DeliveryTargetError, TemplateNotFound, ValidationError
from crm.infrastructure.email import send_notification_email
from crm.infrastructure.notifications import notification_publisher, serialize_notification
from crm.infrastructure.repositories import (
    DeliveryRepository,
    NotificationRepository,
    UserRepository,
)
from crm.utils import now_in_app_timezone

from .preferences import PreferenceStore
from .recipients import UserDirectory, recipient_strategy_for
from .templates import ResolvedTemplate, TemplateResolver
from .thresholds import effective_threshold, extract_metric, gate_type_for, threshold_crossed

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(
        self, recipient_id: int, payload: Any, *, event_type: str = "notification"
    ) -> int: ...


EmailSender = Callable[..., bool]


@dataclass
class DispatchEvent:
    """A business event handed to :class:`NotificationDispatcher`."""

    type: NotificationType
    title: str
    message: str
    title_ar: str | None = None
    message_ar: str | None = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    source: RelatedEntity | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    explicit_recipients: Sequence[int] | None = None
    target_roles: Sequence[str] | None = None
    created_by: int | None = None
    expires_at: datetime | None = None
    threshold_type: NotificationType | None = None


@dataclass(frozen=True)
class DispatchResult:
    notification_id: int | None
    recipient_count: int
    pushed: int = 0
    emailed: int = 0


@dataclass(frozen=True)
class _Recipient:
    user: User
    preference: Preference
    suppressed: bool


def _coerce_enum(enum_cls, value, label: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown {label} '{value}'") from exc


def validate_event(event: DispatchEvent) -> DispatchEvent:
    """Return a normalized copy of ``event`` or raise :class:`ValidationError`."""

    notification_type = _coerce_enum(NotificationType, event.type, "notification type")
    if notification_type is None:
        raise ValidationError("Notification type is required")
    priority = _coerce_enum(
        NotificationPriority, event.priority or NotificationPriority.MEDIUM, "priority"
    )
    threshold_type = _coerce_enum(NotificationType, event.threshold_type, "threshold type")

    title = (event.title or "").strip()
    message = (event.message or "").strip()
    if not title or not message:
        raise ValidationError("Notification title and message are required")
    if event.metadata is not None and not isinstance(event.metadata, Mapping):
        raise ValidationError("Notification metadata must be a mapping")
    gate_type = gate_type_for(notification_type, threshold_type)
    if gate_type is not None:
        extract_metric(gate_type, event.metadata or {})

    return replace(
        event,
        type=notification_type,
        priority=priority,
        threshold_type=threshold_type,
        title=title,
        message=message,
        metadata=dict(event.metadata or {}),
        target_roles=[role for role in (event.target_roles or []) if role] or None,
    )


class NotificationDispatcher:
    """Create notifications and deliver them to every matching recipient."""

    def __init__(
        self,
        session: Session,
        *,
        publisher: Publisher | None = None,
        directory: UserDirectory | None = None,
        templates: TemplateResolver | None = None,
        preferences: PreferenceStore | None = None,
        email_sender: EmailSender | None = None,
    ) -> None:
        self._session = session
        self._publisher = publisher or notification_publisher
        self._directory = directory or UserRepository(session)
        self._templates = templates or TemplateResolver(session)
        self._preferences = preferences or PreferenceStore(session)
        self._email_sender = email_sender or send_notification_email
        self._notifications = NotificationRepository(session)
        self._deliveries = DeliveryRepository(session)

    def dispatch(self, event: DispatchEvent) -> DispatchResult:
        event = validate_event(event)
        strategy = recipient_strategy_for(
            explicit_recipients=event.explicit_recipients,
            target_roles=event.target_roles,
        )
        try:
            recipients = self._select_recipients(event, strategy.resolve(self._directory))
        except DeliveryTargetError as exc:
            logger.info("Skipping %s notification: %s", event.type.value, exc)
            return DispatchResult(notification_id=None, recipient_count=0)

        notification = Notification(
            id=None,
            type=event.type,
            title=event.title,
            message=event.message,
            priority=event.priority,
            title_ar=event.title_ar,
            message_ar=event.message_ar,
            created_by=event.created_by,
            is_broadcast=strategy.is_broadcast,
            target_roles=list(event.target_roles) if event.target_roles else None,
            related_entity=event.source,
            metadata=event.metadata,
            expires_at=event.expires_at,
            created_at=now_in_app_timezone(),
        )
        notification, deliveries = self._notifications.create_with_deliveries(
            notification,
            [(recipient.user.id, recipient.suppressed) for recipient in recipients],
        )
        logger.info(
            "Created %s notification %s with %d deliveries",
            notification.type.value,
            notification.id,
            len(deliveries),
        )

        by_user = {recipient.user.id: recipient for recipient in recipients}
        pushed = self._push(notification, deliveries, by_user)
        emailed = self._send_emails(notification, deliveries, by_user)
        return DispatchResult(
            notification_id=notification.id,
            recipient_count=len(deliveries),
            pushed=pushed,
            emailed=emailed,
        )

    def _select_recipients(
        self, event: DispatchEvent, users: Sequence[User]
    ) -> list[_Recipient]:
        """Apply the preference and threshold filters to the resolved users.

        An empty candidate set raises :class:`DeliveryTargetError`. Recipients
        excluded by their threshold simply get no delivery row, so the result
        may be empty without raising.
        """

        if not users:
            raise DeliveryTargetError("no recipients matched the event")

        gate_type = gate_type_for(event.type, event.threshold_type)
        metric = extract_metric(gate_type, event.metadata) if gate_type else None

        user_ids = [user.id for user in users]
        preferences = self._preferences.get_many(user_ids, event.type)
        gate_preferences = (
            preferences
            if gate_type in (None, event.type)
            else self._preferences.get_many(user_ids, gate_type)
        )
        low_preferences = (
            self._preferences.get_many(user_ids, NotificationType.STOCK_LOW)
            if gate_type is NotificationType.STOCK_MEDIUM
            else {}
        )

        selected: list[_Recipient] = []
        for user in users:
            if gate_type is not None:
                threshold = effective_threshold(gate_type, gate_preferences[user.id].threshold)
                low = (
                    effective_threshold(
                        NotificationType.STOCK_LOW, low_preferences[user.id].threshold
                    )
                    if low_preferences
                    else None
                )
                if not threshold_crossed(gate_type, metric, threshold, low_threshold=low):
                    logger.debug(
                        "User %s below %s threshold (%s vs %s)",
                        user.id,
                        gate_type.value,
                        metric,
                        threshold,
                    )
                    continue
            preference = preferences[user.id]
            suppressed = (
                not preference.in_app_enabled
                and event.type not in MANDATORY_NOTIFICATION_TYPES
            )
            selected.append(_Recipient(user=user, preference=preference, suppressed=suppressed))
        return selected

    def _push(
        self,
        notification: Notification,
        deliveries: Sequence[Delivery],
        recipients: Mapping[int, _Recipient],
    ) -> int:
        reached = 0
        for delivery in deliveries:
            recipient = recipients[delivery.user_id]
            if recipient.suppressed:
                continue
            title, message = self._templates.localize(
                notification, recipient.preference.language
            )
            payload = {
                "notification": serialize_notification(
                    notification, title=title, message=message
                ),
                "delivery_id": delivery.id,
            }
            try:
                reached += self._publisher.publish(delivery.user_id, payload)
            except Exception:
                logger.exception(
                    "Failed to push notification %s to user %s",
                    notification.id,
                    delivery.user_id,
                )
        return reached

    def _send_emails(
        self,
        notification: Notification,
        deliveries: Sequence[Delivery],
        recipients: Mapping[int, _Recipient],
    ) -> int:
        email_templates: dict[str, ResolvedTemplate | None] = {}
        sent_ids: list[int] = []
        for delivery in deliveries:
            recipient = recipients[delivery.user_id]
            if not recipient.preference.email_enabled or not recipient.user.email:
                continue
            language = recipient.preference.language
            if language not in email_templates:
                try:
                    email_templates[language] = self._templates.resolve(
                        notification.type, language, TemplateChannel.EMAIL
                    )
                except TemplateNotFound as exc:
                    logger.debug("%s; using plain email body", exc)
                    email_templates[language] = None

            template = email_templates[language]
            values = {**notification.metadata, "userName": recipient.user.name}
            if template is not None:
                title, message = template.render(values)
                subject, html_content = template.render_email(values)
            else:
                title, message = self._templates.localize(notification, language)
                subject, html_content = title, None

            try:
                sent = self._email_sender(
                    recipient.user.email,
                    subject or title,
                    html_content,
                    title=title,
                    message=message,
                    language=language,
                )
            except Exception:
                logger.exception(
                    "Failed to email notification %s to user %s",
                    notification.id,
                    delivery.user_id,
                )
                continue
            if sent:
                sent_ids.append(delivery.id)

        if sent_ids:
            try:
                self._deliveries.mark_email_sent(sent_ids, sent_at=now_in_app_timezone())
            except SQLAlchemyError:
                self._session.rollback()
                logger.exception(
                    "Emails for notification %s were sent but could not be recorded",
                    notification.id,
                )
        return len(sent_ids)


def dispatch_notification(
    session: Session, event: DispatchEvent, **dependencies: Any
) -> DispatchResult:
    """Dispatch ``event`` with the default collaborators bound to ``session``."""

    return NotificationDispatcher(session, **dependencies).dispatch(event)


__all__ = [
    "DispatchEvent",
    "DispatchResult",
    "NotificationDispatcher",
    "Publisher",
    "dispatch_notification",
    "validate_event",
]
