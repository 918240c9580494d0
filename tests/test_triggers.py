"""Tests for the producer-facing trigger helpers."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from crm.application.use_cases.notifications import (
    PreferenceStore,
    classify_stock_level,
    notify_maintenance_notice,
    notify_order_status_changed,
    notify_sales_summary,
    notify_stock_level_change,
    notify_system_alert,
)
from crm.domain.entities import NotificationPriority, NotificationType, PreferencePatch
from crm.domain.exceptions import ValidationError
from crm.infrastructure.models import DeliveryModel, NotificationModel


def _recipients(session, notification_id: int) -> set[int]:
    rows = session.query(DeliveryModel.user_id).filter(
        DeliveryModel.notification_id == notification_id
    )
    return {user_id for (user_id,) in rows}


def test_order_status_change_targets_operations_roles(session, make_user, publisher):
    admin, staff, viewer = make_user("admin"), make_user("staff"), make_user("viewer")

    result = notify_order_status_changed(
        session,
        order_id=7,
        old_status="pending",
        new_status="cancelled",
        publisher=publisher,
    )

    assert _recipients(session, result.notification_id) == {admin.id, staff.id}
    assert viewer.id not in publisher.recipients()
    notification = session.get(NotificationModel, result.notification_id)
    assert notification.priority == NotificationPriority.HIGH.value
    assert notification.message == "Order #7 status changed from pending to cancelled"
    assert notification.message_ar == "تم تغيير حالة الطلب #7 من في الانتظار إلى ملغي"


def test_order_status_change_defaults_to_medium_priority(session, make_user, publisher):
    make_user("staff")

    result = notify_order_status_changed(
        session, order_id=8, old_status="pending", new_status="shipped", publisher=publisher
    )

    notification = session.get(NotificationModel, result.notification_id)
    assert notification.priority == NotificationPriority.MEDIUM.value


@pytest.mark.parametrize(
    "quantity, expected",
    [
        (0, NotificationType.STOCK_OUT),
        (-2, NotificationType.STOCK_OUT),
        (4, NotificationType.STOCK_LOW),
        (5, NotificationType.STOCK_LOW),
        (9, NotificationType.STOCK_MEDIUM),
        (11, None),
    ],
)
def test_classify_stock_level_with_default_thresholds(session, make_user, quantity, expected):
    make_user("staff")

    assert classify_stock_level(session, quantity) is expected


def test_classify_stock_level_uses_highest_configured_threshold(session, make_user):
    cautious, relaxed = make_user("admin"), make_user("staff")
    store = PreferenceStore(session)
    store.set(cautious.id, NotificationType.STOCK_MEDIUM, PreferencePatch(threshold={"quantity": 25}))
    store.set(relaxed.id, NotificationType.STOCK_LOW, PreferencePatch(threshold={"quantity": 2}))

    assert classify_stock_level(session, 20) is NotificationType.STOCK_MEDIUM
    assert classify_stock_level(session, 4) is NotificationType.STOCK_LOW


def test_stock_level_change_filters_by_each_recipient(session, make_user, publisher):
    cautious, relaxed = make_user("admin"), make_user("staff")
    store = PreferenceStore(session)
    store.set(cautious.id, NotificationType.STOCK_MEDIUM, PreferencePatch(threshold={"quantity": 25}))

    result = notify_stock_level_change(
        session, product_id=3, product_name="Olive Oil", quantity=20, publisher=publisher
    )

    assert _recipients(session, result.notification_id) == {cautious.id}
    assert relaxed.id not in publisher.recipients()


def test_stock_above_every_threshold_sends_nothing(session, make_user, publisher):
    make_user("staff")

    assert (
        notify_stock_level_change(
            session, product_id=3, product_name="Olive Oil", quantity=500, publisher=publisher
        )
        is None
    )
    assert session.query(NotificationModel).count() == 0


def test_sales_summary_goes_to_admins(session, make_user, publisher):
    admin, staff = make_user("admin"), make_user("staff")

    result = notify_sales_summary(
        session, period="weekly", total_sales=1520.5, order_count=12, publisher=publisher
    )

    notification = session.get(NotificationModel, result.notification_id)
    assert notification.type == NotificationType.SALES_SUMMARY_WEEKLY.value
    assert _recipients(session, result.notification_id) == {admin.id}
    assert staff.id not in publisher.recipients()


def test_sales_summary_rejects_unknown_period(session, make_user, publisher):
    make_user("admin")

    with pytest.raises(ValidationError):
        notify_sales_summary(
            session, period="monthly", total_sales=1, order_count=1, publisher=publisher
        )


def test_system_alert_honours_explicit_roles(session, make_user, publisher):
    make_user("admin")
    viewer = make_user("viewer")

    result = notify_system_alert(
        session, message="Disk almost full", target_roles=["viewer"], publisher=publisher
    )

    assert _recipients(session, result.notification_id) == {viewer.id}


def test_maintenance_notice_records_schedule(session, make_user, publisher):
    make_user("staff")
    scheduled = datetime(2026, 11, 2, 22, 0, tzinfo=timezone.utc)

    result = notify_maintenance_notice(
        session, message="Planned downtime", scheduled_at=scheduled, publisher=publisher
    )

    notification = session.get(NotificationModel, result.notification_id)
    assert notification.payload["scheduledTime"] == scheduled.isoformat()
    assert notification.expires_at is None
