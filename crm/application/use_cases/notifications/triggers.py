"""Helpers producers call after committing a business change.

Each helper builds the bilingual raw text and metadata for one kind of event,
picks the default audience for its type and hands the event to the
dispatcher. Errors propagate so that producers can retry a
:class:`~crm.domain.exceptions.PersistenceError`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from crm.domain.entities import NotificationPriority, NotificationType, RelatedEntity
from crm.domain.exceptions import ValidationError
from crm.infrastructure.repositories import UserRepository

from .dispatcher import DispatchEvent, DispatchResult, NotificationDispatcher
from .preferences import PreferenceStore
from .thresholds import effective_threshold

logger = logging.getLogger(__name__)

CURRENCY_EN = "EGP"
CURRENCY_AR = "ج م"

_OPERATIONS = ("admin", "staff")
_ADMINS = ("admin",)

DEFAULT_TARGET_ROLES: dict[NotificationType, tuple[str, ...]] = {
    NotificationType.ORDER_CREATED: _OPERATIONS,
    NotificationType.ORDER_UPDATED: _OPERATIONS,
    NotificationType.ORDER_STATUS_CHANGED: _OPERATIONS,
    NotificationType.ORDER_PAYMENT_UPDATED: _OPERATIONS,
    NotificationType.ORDER_HIGH_VALUE: _ADMINS,
    NotificationType.ORDER_FAILED: _OPERATIONS,
    NotificationType.STOCK_LOW: _OPERATIONS,
    NotificationType.STOCK_MEDIUM: _OPERATIONS,
    NotificationType.STOCK_OUT: _OPERATIONS,
    NotificationType.RESTOCK_RECOMMENDATION: _ADMINS,
    NotificationType.CUSTOMER_REGISTERED: _OPERATIONS,
    NotificationType.SALES_SUMMARY_DAILY: _ADMINS,
    NotificationType.SALES_SUMMARY_WEEKLY: _ADMINS,
    NotificationType.SYSTEM_ALERT: _ADMINS,
    NotificationType.MAINTENANCE_NOTICE: _OPERATIONS,
}

ORDER_STATUS_LABELS = {
    "en": {
        "pending": "pending",
        "processing": "processing",
        "shipped": "shipped",
        "delivered": "delivered",
        "completed": "completed",
        "cancelled": "cancelled",
    },
    "ar": {
        "pending": "في الانتظار",
        "processing": "قيد المعالجة",
        "shipped": "تم الشحن",
        "delivered": "تم التسليم",
        "completed": "مكتمل",
        "cancelled": "ملغي",
    },
}


def _dispatch(session: Session, event: DispatchEvent, dependencies: dict[str, Any]) -> DispatchResult:
    if event.explicit_recipients is None and event.target_roles is None:
        event.target_roles = list(DEFAULT_TARGET_ROLES[event.type])
    result = NotificationDispatcher(session, **dependencies).dispatch(event)
    logger.info(
        "%s trigger reached %d recipients", event.type.value, result.recipient_count
    )
    return result


def _customer(customer_name: str | None) -> str:
    return customer_name or "Unknown Customer"


def notify_order_created(
    session: Session,
    *,
    order_id: int,
    total_amount: float,
    customer_name: str | None = None,
    status: str | None = None,
    created_by: int | None = None,
    gate_by_value: bool = False,
    **dependencies: Any,
) -> DispatchResult:
    """Announce a new order.

    With ``gate_by_value`` only recipients whose ``order_high_value``
    threshold the amount reaches are notified.
    """

    customer = _customer(customer_name)
    event = DispatchEvent(
        type=NotificationType.ORDER_CREATED,
        title=f"New Order #{order_id}",
        title_ar=f"طلب جديد #{order_id}",
        message=f"New order placed by {customer} for {total_amount} {CURRENCY_EN}",
        message_ar=f"طلب جديد من {customer} بقيمة {total_amount} {CURRENCY_AR}",
        source=RelatedEntity.order(order_id),
        metadata={
            "orderId": order_id,
            "customerName": customer,
            "totalAmount": total_amount,
            "status": status,
        },
        created_by=created_by,
        threshold_type=NotificationType.ORDER_HIGH_VALUE if gate_by_value else None,
    )
    return _dispatch(session, event, dependencies)


def notify_order_updated(
    session: Session,
    *,
    order_id: int,
    customer_name: str | None = None,
    changes: dict[str, Any] | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    changes = changes or {}
    summary: list[str] = []
    if changes.get("customer"):
        summary.append(f"customer changed to {changes['customer']}")
    if changes.get("items"):
        summary.append("order items modified")
    if changes.get("notes"):
        summary.append("notes updated")
    if changes.get("totalAmount"):
        summary.append(f"total amount changed to {changes['totalAmount']} {CURRENCY_EN}")
    suffix = f" ({', '.join(summary)})" if summary else ""

    event = DispatchEvent(
        type=NotificationType.ORDER_UPDATED,
        title=f"Order #{order_id} Updated",
        title_ar=f"تم تحديث الطلب #{order_id}",
        message=f"Order #{order_id} has been updated{suffix}",
        message_ar=f"تم تحديث الطلب #{order_id}{suffix}",
        source=RelatedEntity.order(order_id),
        metadata={
            "orderId": order_id,
            "customerName": _customer(customer_name),
            "changes": changes,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_order_status_changed(
    session: Session,
    *,
    order_id: int,
    old_status: str,
    new_status: str,
    customer_name: str | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    en, ar = ORDER_STATUS_LABELS["en"], ORDER_STATUS_LABELS["ar"]
    event = DispatchEvent(
        type=NotificationType.ORDER_STATUS_CHANGED,
        title=f"Order #{order_id} Status Updated",
        title_ar=f"تم تحديث حالة الطلب #{order_id}",
        message=(
            f"Order #{order_id} status changed from "
            f"{en.get(old_status, old_status)} to {en.get(new_status, new_status)}"
        ),
        message_ar=(
            f"تم تغيير حالة الطلب #{order_id} من "
            f"{ar.get(old_status, old_status)} إلى {ar.get(new_status, new_status)}"
        ),
        priority=(
            NotificationPriority.HIGH
            if new_status == "cancelled"
            else NotificationPriority.MEDIUM
        ),
        source=RelatedEntity.order(order_id),
        metadata={
            "orderId": order_id,
            "customerName": _customer(customer_name),
            "oldStatus": old_status,
            "newStatus": new_status,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_order_payment_updated(
    session: Session,
    *,
    order_id: int,
    payment_status: str,
    total_amount: float | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    event = DispatchEvent(
        type=NotificationType.ORDER_PAYMENT_UPDATED,
        title=f"Payment Updated for Order #{order_id}",
        title_ar=f"تم تحديث الدفع للطلب #{order_id}",
        message=f"Payment status for order #{order_id} is now {payment_status}",
        message_ar=f"حالة الدفع للطلب #{order_id} أصبحت {payment_status}",
        source=RelatedEntity.order(order_id),
        metadata={
            "orderId": order_id,
            "paymentStatus": payment_status,
            "totalAmount": total_amount,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_high_value_order(
    session: Session,
    *,
    order_id: int,
    total_amount: float,
    customer_name: str | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    customer = _customer(customer_name)
    event = DispatchEvent(
        type=NotificationType.ORDER_HIGH_VALUE,
        title=f"High-Value Order Alert #{order_id}",
        title_ar=f"تنبيه طلب عالي القيمة #{order_id}",
        message=f"High-value order ({total_amount} {CURRENCY_EN}) placed by {customer}",
        message_ar=f"طلب عالي القيمة ({total_amount} {CURRENCY_AR}) من {customer}",
        priority=NotificationPriority.HIGH,
        source=RelatedEntity.order(order_id),
        metadata={
            "orderId": order_id,
            "customerName": customer,
            "totalAmount": total_amount,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_order_failed(
    session: Session,
    *,
    order_id: int,
    error_message: str,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    event = DispatchEvent(
        type=NotificationType.ORDER_FAILED,
        title=f"Order Processing Failed #{order_id}",
        title_ar=f"فشل في معالجة الطلب #{order_id}",
        message=f"Order #{order_id} processing failed: {error_message}",
        message_ar=f"فشل في معالجة الطلب #{order_id}: {error_message}",
        priority=NotificationPriority.CRITICAL,
        source=RelatedEntity.order(order_id),
        metadata={"orderId": order_id, "errorMessage": error_message},
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def _stock_event(
    notification_type: NotificationType,
    *,
    product_id: int,
    product_name: str,
    quantity: float,
    created_by: int | None,
) -> DispatchEvent:
    if notification_type is NotificationType.STOCK_OUT:
        texts = (
            f"Out of Stock: {product_name}",
            f"نفد من المخزون: {product_name}",
            f"{product_name} is now out of stock! Immediate restocking required.",
            f"{product_name} نفد من المخزون! مطلوب إعادة تخزين فورية.",
            NotificationPriority.CRITICAL,
        )
    elif notification_type is NotificationType.STOCK_LOW:
        texts = (
            f"Low Stock Alert: {product_name}",
            f"تنبيه مخزون منخفض: {product_name}",
            f"{product_name} is running low on stock ({quantity:g} units remaining)",
            f"{product_name} ينخفض مخزونه ({quantity:g} وحدة متبقية)",
            NotificationPriority.MEDIUM,
        )
    else:
        texts = (
            f"Medium Stock Warning: {product_name}",
            f"تحذير مخزون متوسط: {product_name}",
            f"{product_name} stock is getting low ({quantity:g} units remaining)",
            f"مخزون {product_name} ينخفض ({quantity:g} وحدة متبقية)",
            NotificationPriority.LOW,
        )
    title, title_ar, message, message_ar, priority = texts
    return DispatchEvent(
        type=notification_type,
        title=title,
        title_ar=title_ar,
        message=message,
        message_ar=message_ar,
        priority=priority,
        source=RelatedEntity.product(product_id),
        metadata={
            "productId": product_id,
            "productName": product_name,
            "stockQuantity": quantity,
        },
        created_by=created_by,
    )


def classify_stock_level(session: Session, quantity: float) -> NotificationType | None:
    """Pick the stock notification type for ``quantity``.

    Uses the highest ``stock_low`` and ``stock_medium`` thresholds configured
    by any admin or staff user, so the per-recipient filter of the dispatcher
    can still narrow the audience down.
    """

    if quantity <= 0:
        return NotificationType.STOCK_OUT

    user_ids = [user.id for user in UserRepository(session).list_by_roles(_OPERATIONS)]
    store = PreferenceStore(session)
    max_low = effective_threshold(NotificationType.STOCK_LOW, None)
    max_medium = effective_threshold(NotificationType.STOCK_MEDIUM, None)
    if user_ids:
        low_preferences = store.get_many(user_ids, NotificationType.STOCK_LOW)
        medium_preferences = store.get_many(user_ids, NotificationType.STOCK_MEDIUM)
        max_low = max(
            effective_threshold(NotificationType.STOCK_LOW, preference.threshold)
            for preference in low_preferences.values()
        )
        max_medium = max(
            effective_threshold(NotificationType.STOCK_MEDIUM, preference.threshold)
            for preference in medium_preferences.values()
        )

    if quantity <= max_low:
        return NotificationType.STOCK_LOW
    if quantity <= max_medium:
        return NotificationType.STOCK_MEDIUM
    return None


def notify_stock_level_change(
    session: Session,
    *,
    product_id: int,
    product_name: str,
    quantity: float,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult | None:
    """Send the matching stock alert, or nothing when stock is above every threshold."""

    notification_type = classify_stock_level(session, quantity)
    if notification_type is None:
        logger.debug(
            "Stock level %s for %s is above all thresholds", quantity, product_name
        )
        return None
    event = _stock_event(
        notification_type,
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_restock_recommendation(
    session: Session,
    *,
    product_id: int,
    product_name: str,
    current_stock: float,
    recommended_quantity: float,
    average_sales: float = 0,
    days_until_empty: float = 0,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    event = DispatchEvent(
        type=NotificationType.RESTOCK_RECOMMENDATION,
        title=f"Restock Recommendation: {product_name}",
        title_ar=f"توصية إعادة التخزين: {product_name}",
        message=(
            f"Based on sales trends, {product_name} should be restocked. "
            f"Current: {current_stock:g}, Recommended: {recommended_quantity:g}"
        ),
        message_ar=(
            f"بناءً على اتجاهات المبيعات، يجب إعادة تخزين {product_name}. "
            f"الحالي: {current_stock:g}، الموصى به: {recommended_quantity:g}"
        ),
        source=RelatedEntity.product(product_id),
        metadata={
            "productId": product_id,
            "productName": product_name,
            "currentStock": current_stock,
            "recommendedQuantity": recommended_quantity,
            "averageSales": average_sales,
            "daysUntilEmpty": days_until_empty,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_customer_registered(
    session: Session,
    *,
    customer_id: int,
    customer_name: str,
    order_id: int | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    """Announce a new customer, optionally one created while placing ``order_id``."""

    if order_id is None:
        title, title_ar = "New Customer Registered", "عميل جديد مسجل"
        message = f"New customer {customer_name} has registered"
        message_ar = f"عميل جديد {customer_name} قام بالتسجيل"
    else:
        title, title_ar = "New Customer Created", "تم إنشاء عميل جديد"
        message = f"New customer {customer_name} was created during order #{order_id} processing"
        message_ar = f"تم إنشاء عميل جديد {customer_name} أثناء معالجة الطلب #{order_id}"

    event = DispatchEvent(
        type=NotificationType.CUSTOMER_REGISTERED,
        title=title,
        title_ar=title_ar,
        message=message,
        message_ar=message_ar,
        priority=NotificationPriority.LOW,
        source=RelatedEntity.customer(customer_id),
        metadata={
            "customerId": customer_id,
            "customerName": customer_name,
            "orderId": order_id,
        },
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_sales_summary(
    session: Session,
    *,
    period: str,
    total_sales: float,
    order_count: int,
    period_start: datetime | None = None,
    **dependencies: Any,
) -> DispatchResult:
    """Send the daily or weekly sales digest to administrators."""

    if period == "daily":
        notification_type = NotificationType.SALES_SUMMARY_DAILY
        title, title_ar = "Daily Sales Summary", "ملخص المبيعات اليومي"
    elif period == "weekly":
        notification_type = NotificationType.SALES_SUMMARY_WEEKLY
        title, title_ar = "Weekly Sales Summary", "ملخص المبيعات الأسبوعي"
    else:
        raise ValidationError(f"Unsupported sales summary period '{period}'")

    event = DispatchEvent(
        type=notification_type,
        title=title,
        title_ar=title_ar,
        message=f"{order_count} orders totalling {total_sales} {CURRENCY_EN}",
        message_ar=f"{order_count} طلبات بإجمالي {total_sales} {CURRENCY_AR}",
        priority=NotificationPriority.LOW,
        source=RelatedEntity.system(),
        metadata={
            "period": period,
            "totalSales": total_sales,
            "orderCount": order_count,
            "periodStart": period_start.isoformat() if period_start else None,
        },
    )
    return _dispatch(session, event, dependencies)


def notify_system_alert(
    session: Session,
    *,
    message: str,
    message_ar: str | None = None,
    priority: NotificationPriority = NotificationPriority.HIGH,
    target_roles: Sequence[str] | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    event = DispatchEvent(
        type=NotificationType.SYSTEM_ALERT,
        title="System Alert",
        title_ar="تنبيه النظام",
        message=message,
        message_ar=message_ar,
        priority=priority,
        source=RelatedEntity.system(),
        target_roles=list(target_roles) if target_roles else None,
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


def notify_maintenance_notice(
    session: Session,
    *,
    message: str,
    scheduled_at: datetime,
    message_ar: str | None = None,
    created_by: int | None = None,
    **dependencies: Any,
) -> DispatchResult:
    event = DispatchEvent(
        type=NotificationType.MAINTENANCE_NOTICE,
        title="Maintenance Notice",
        title_ar="إشعار صيانة",
        message=message,
        message_ar=message_ar,
        source=RelatedEntity.system(),
        metadata={"scheduledTime": scheduled_at.isoformat()},
        created_by=created_by,
    )
    return _dispatch(session, event, dependencies)


__all__ = [
    "DEFAULT_TARGET_ROLES",
    "classify_stock_level",
    "notify_customer_registered",
    "notify_high_value_order",
    "notify_maintenance_notice",
    "notify_order_created",
    "notify_order_failed",
    "notify_order_payment_updated",
    "notify_order_status_changed",
    "notify_order_updated",
    "notify_restock_recommendation",
    "notify_sales_summary",
    "notify_stock_level_change",
    "notify_system_alert",
]
