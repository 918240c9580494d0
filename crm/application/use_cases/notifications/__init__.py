"""Notification fan-out, delivery state and producer triggers."""

from .broadcast import (
    broadcast_notification,
    get_notification_statistics,
    purge_expired_notifications,
)
from .deliveries import (
    NotificationPage,
    get_unread_count,
    hide_notification,
    list_user_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from .dispatcher import (
    DispatchEvent,
    DispatchResult,
    NotificationDispatcher,
    dispatch_notification,
)
from .preferences import PreferenceStore
from .recipients import AllUsers, ByIds, ByRole, recipient_strategy_for
from .templates import ResolvedTemplate, TemplateResolver, render
from .triggers import (
    DEFAULT_TARGET_ROLES,
    classify_stock_level,
    notify_customer_registered,
    notify_high_value_order,
    notify_maintenance_notice,
    notify_order_created,
    notify_order_failed,
    notify_order_payment_updated,
    notify_order_status_changed,
    notify_order_updated,
    notify_restock_recommendation,
    notify_sales_summary,
    notify_stock_level_change,
    notify_system_alert,
)

__all__ = [
    "AllUsers",
    "DEFAULT_TARGET_ROLES",
    "ByIds",
    "ByRole",
    "DispatchEvent",
    "DispatchResult",
    "NotificationDispatcher",
    "NotificationPage",
    "PreferenceStore",
    "ResolvedTemplate",
    "TemplateResolver",
    "broadcast_notification",
    "classify_stock_level",
    "dispatch_notification",
    "get_notification_statistics",
    "get_unread_count",
    "hide_notification",
    "list_user_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
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
    "purge_expired_notifications",
    "recipient_strategy_for",
    "render",
]
