"""Tests for fan-out, filtering and hand-off performed by the dispatcher."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy.exc import OperationalError

from crm.application.use_cases.notifications import (
    DispatchEvent,
    NotificationDispatcher,
    PreferenceStore,
    get_unread_count,
    list_user_notifications,
    notify_order_created,
)
from crm.domain.entities import (
    NotificationPriority,
    NotificationTemplate,
    NotificationType,
    PreferencePatch,
    RelatedEntity,
    TemplateChannel,
)
from crm.domain.exceptions import PersistenceError, ValidationError
from crm.infrastructure import database
from crm.infrastructure.models import DeliveryModel, NotificationModel
from crm.infrastructure.repositories import NotificationTemplateRepository


def _event(**overrides) -> DispatchEvent:
    values = {
        "type": NotificationType.CUSTOMER_REGISTERED,
        "title": "New Customer Registered",
        "message": "New customer Mona Ali has registered",
        "metadata": {"customerName": "Mona Ali"},
    }
    values.update(overrides)
    return DispatchEvent(**values)


def _delivered_user_ids(session) -> set[int]:
    return {user_id for (user_id,) in session.query(DeliveryModel.user_id).all()}


def test_explicit_recipients_get_exactly_one_row_each(session, make_user, publisher):
    first, second, bystander = make_user(), make_user(), make_user()
    dispatcher = NotificationDispatcher(session, publisher=publisher)

    result = dispatcher.dispatch(_event(explicit_recipients=[first.id, second.id, second.id]))

    assert result.recipient_count == 2
    assert _delivered_user_ids(session) == {first.id, second.id}
    assert bystander.id not in publisher.recipients()
    notification = session.get(NotificationModel, result.notification_id)
    assert notification.is_broadcast is False


def test_unknown_explicit_recipients_are_dropped(session, make_user, publisher, caplog):
    user = make_user()

    with caplog.at_level(logging.WARNING):
        result = NotificationDispatcher(session, publisher=publisher).dispatch(
            _event(explicit_recipients=[user.id, 9999])
        )

    assert result.recipient_count == 1
    assert _delivered_user_ids(session) == {user.id}
    assert "9999" in caplog.text


def test_broadcast_reaches_users_existing_at_dispatch_time_only(session, make_user, publisher):
    existing = [make_user("admin"), make_user("staff")]
    make_user("staff", deleted=True)

    result = NotificationDispatcher(session, publisher=publisher).dispatch(_event())
    late_joiner = make_user("viewer")

    assert result.recipient_count == 2
    assert _delivered_user_ids(session) == {user.id for user in existing}
    assert get_unread_count(session, late_joiner.id) == 0
    assert session.get(NotificationModel, result.notification_id).is_broadcast is True


def test_target_roles_limit_recipients(session, make_user, publisher):
    admin = make_user("admin")
    make_user("staff")

    result = NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(target_roles=["admin"])
    )

    assert result.recipient_count == 1
    assert _delivered_user_ids(session) == {admin.id}
    stored = session.get(NotificationModel, result.notification_id)
    assert stored.target_roles == ["admin"]
    assert stored.is_broadcast is True


def test_empty_recipient_set_is_a_no_op(session, publisher):
    result = NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(target_roles=["nobody"])
    )

    assert result.notification_id is None
    assert result.recipient_count == 0
    assert session.query(NotificationModel).count() == 0
    assert publisher.messages == []


def test_stock_threshold_excludes_recipients_by_row_absence(session, make_user, publisher):
    strict = make_user("staff")
    relaxed = make_user("staff")
    PreferenceStore(session).set(
        strict.id, NotificationType.STOCK_LOW, PreferencePatch(threshold={"quantity": 2})
    )

    result = NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(
            type=NotificationType.STOCK_LOW,
            title="Low Stock Alert: Widget",
            message="Widget is running low on stock (3 units remaining)",
            source=RelatedEntity.product(7),
            metadata={"productName": "Widget", "stockQuantity": 3},
        )
    )

    assert result.recipient_count == 1
    assert _delivered_user_ids(session) == {relaxed.id}
    assert publisher.recipients() == [relaxed.id]


def test_stock_medium_respects_recipient_low_threshold(session, make_user, publisher):
    user = make_user("staff")
    PreferenceStore(session).set(
        user.id, NotificationType.STOCK_LOW, PreferencePatch(threshold={"quantity": 8})
    )

    result = NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(
            type=NotificationType.STOCK_MEDIUM,
            title="Medium Stock Warning: Widget",
            message="Widget stock is getting low",
            metadata={"stockQuantity": 7},
        )
    )

    assert result.recipient_count == 0
    assert result.notification_id is not None


def test_high_value_order_scenario_creates_single_delivery(session, make_user, publisher):
    strict, relaxed = make_user("admin"), make_user("admin")
    store = PreferenceStore(session)
    store.set(
        strict.id, NotificationType.ORDER_HIGH_VALUE, PreferencePatch(threshold={"amount": 1000})
    )
    store.set(
        relaxed.id, NotificationType.ORDER_HIGH_VALUE, PreferencePatch(threshold={"amount": 100})
    )
    unread_before = {user.id: get_unread_count(session, user.id) for user in (strict, relaxed)}

    result = notify_order_created(
        session,
        order_id=42,
        total_amount=500,
        customer_name="Mona Ali",
        gate_by_value=True,
        publisher=publisher,
    )

    assert result.recipient_count == 1
    assert _delivered_user_ids(session) == {relaxed.id}
    assert get_unread_count(session, relaxed.id) == unread_before[relaxed.id] + 1
    assert get_unread_count(session, strict.id) == unread_before[strict.id]
    assert publisher.recipients() == [relaxed.id]
    stored = session.get(NotificationModel, result.notification_id)
    assert stored.type == NotificationType.ORDER_CREATED.value
    assert stored.related_entity_type == "order"
    assert stored.related_entity_id == 42


def test_gated_event_without_metric_is_rejected(session, make_user, publisher):
    make_user()

    with pytest.raises(ValidationError):
        NotificationDispatcher(session, publisher=publisher).dispatch(
            _event(type=NotificationType.STOCK_OUT, metadata={})
        )

    assert session.query(NotificationModel).count() == 0


def test_unknown_priority_is_rejected(session, make_user, publisher):
    make_user()

    with pytest.raises(ValidationError):
        NotificationDispatcher(session, publisher=publisher).dispatch(
            _event(priority="urgent")
        )


def test_in_app_disabled_recipient_gets_suppressed_row(session, make_user, publisher):
    muted = make_user()
    listening = make_user()
    PreferenceStore(session).set(
        muted.id,
        NotificationType.CUSTOMER_REGISTERED,
        PreferencePatch(in_app_enabled=False),
    )

    result = NotificationDispatcher(session, publisher=publisher).dispatch(_event())

    assert result.recipient_count == 2
    assert publisher.recipients() == [listening.id]
    assert get_unread_count(session, muted.id) == 0
    history = list_user_notifications(session, muted.id)
    assert history.total == 1
    assert history.items[0].delivery.in_app_suppressed is True


def test_mandatory_types_ignore_in_app_preference(session, make_user, publisher):
    user = make_user("admin")
    PreferenceStore(session).set(
        user.id, NotificationType.SYSTEM_ALERT, PreferencePatch(in_app_enabled=False)
    )

    NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(
            type=NotificationType.SYSTEM_ALERT,
            title="System Alert",
            message="Disk almost full",
            priority=NotificationPriority.CRITICAL,
        )
    )

    assert publisher.recipients() == [user.id]
    assert get_unread_count(session, user.id) == 1


def test_persistence_failure_rolls_back_and_is_retryable(
    session, make_user, publisher, monkeypatch
):
    make_user()
    make_user()

    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)

    with pytest.raises(PersistenceError) as excinfo:
        NotificationDispatcher(session, publisher=publisher).dispatch(_event())

    assert excinfo.value.retryable is True
    assert publisher.messages == []
    other = database.SessionLocal()
    try:
        assert other.query(NotificationModel).count() == 0
        assert other.query(DeliveryModel).count() == 0
    finally:
        other.close()


def test_publisher_failure_does_not_undo_delivery(session, make_user, make_publisher, caplog):
    broken = make_user()
    healthy = make_user()
    publisher = make_publisher(fail_for={broken.id})

    with caplog.at_level(logging.ERROR):
        result = NotificationDispatcher(session, publisher=publisher).dispatch(_event())

    assert result.recipient_count == 2
    assert publisher.recipients() == [healthy.id]
    assert get_unread_count(session, broken.id) == 1
    assert "Failed to push notification" in caplog.text


def test_push_payload_uses_recipient_language_template(session, make_user, publisher):
    arabic = make_user()
    english = make_user()
    PreferenceStore(session).set(
        arabic.id,
        NotificationType.CUSTOMER_REGISTERED,
        PreferencePatch(language="ar"),
    )
    NotificationTemplateRepository(session).upsert(
        NotificationTemplate(
            id=None,
            type=NotificationType.CUSTOMER_REGISTERED,
            language="ar",
            channel=TemplateChannel.IN_APP,
            title="عميل جديد مسجل",
            message="عميل جديد {{customerName}} قام بالتسجيل {{unknownToken}}",
        )
    )

    NotificationDispatcher(session, publisher=publisher).dispatch(_event())

    payloads = {user_id: payload for user_id, _, payload in publisher.messages}
    assert payloads[arabic.id]["notification"]["message"] == (
        "عميل جديد Mona Ali قام بالتسجيل {{unknownToken}}"
    )
    assert payloads[english.id]["notification"]["title"] == "New Customer Registered"
    assert payloads[english.id]["delivery_id"] is not None


def test_arabic_recipient_without_template_gets_arabic_event_text(session, make_user, publisher):
    user = make_user()
    PreferenceStore(session).set(
        user.id, NotificationType.CUSTOMER_REGISTERED, PreferencePatch(language="ar")
    )

    NotificationDispatcher(session, publisher=publisher).dispatch(
        _event(title_ar="عميل جديد مسجل", message_ar="عميل جديد Mona Ali قام بالتسجيل")
    )

    (_, _, payload), = publisher.messages
    assert payload["notification"]["title"] == "عميل جديد مسجل"


def test_email_enabled_recipients_are_emailed_and_recorded(session, make_user, publisher):
    subscriber = make_user()
    make_user()
    PreferenceStore(session).set(
        subscriber.id,
        NotificationType.CUSTOMER_REGISTERED,
        PreferencePatch(email_enabled=True),
    )
    sent = []

    def fake_sender(recipient, subject, html_content, *, title, message, language):
        sent.append((recipient, subject, language))
        return True

    result = NotificationDispatcher(
        session, publisher=publisher, email_sender=fake_sender
    ).dispatch(_event())

    assert result.emailed == 1
    assert sent == [(subscriber.email, "New Customer Registered", "en")]
    row = (
        session.query(DeliveryModel)
        .filter(DeliveryModel.user_id == subscriber.id)
        .one()
    )
    assert row.is_email_sent is True
    assert row.email_sent_at is not None


def test_email_failure_is_logged_and_skipped(session, make_user, publisher, caplog):
    user = make_user()
    PreferenceStore(session).set(
        user.id,
        NotificationType.CUSTOMER_REGISTERED,
        PreferencePatch(email_enabled=True),
    )

    def exploding_sender(*_args, **_kwargs):
        raise ConnectionError("smtp down")

    with caplog.at_level(logging.ERROR):
        result = NotificationDispatcher(
            session, publisher=publisher, email_sender=exploding_sender
        ).dispatch(_event())

    assert result.recipient_count == 1
    assert result.emailed == 0
    assert "Failed to email notification" in caplog.text
