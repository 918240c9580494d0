"""Default English and Arabic templates loaded by the seed script."""

from __future__ import annotations

from sqlalchemy.orm import Session

from crm.domain.entities import (
    NotificationPriority,
    NotificationTemplate,
    NotificationType,
    TemplateChannel,
)
from crm.infrastructure.repositories import NotificationTemplateRepository

T = NotificationType
P = NotificationPriority

# type -> (priority, {language: (title, message)})
_TEXTS: dict[NotificationType, tuple[NotificationPriority, dict[str, tuple[str, str]]]] = {
    T.ORDER_CREATED: (
        P.MEDIUM,
        {
            "en": ("New Order #{{orderId}}", "New order placed by {{customerName}} for {{totalAmount}} EGP"),
            "ar": ("طلب جديد #{{orderId}}", "طلب جديد من {{customerName}} بقيمة {{totalAmount}} ج م"),
        },
    ),
    T.ORDER_UPDATED: (
        P.MEDIUM,
        {
            "en": ("Order #{{orderId}} Updated", "Order #{{orderId}} for {{customerName}} has been updated"),
            "ar": ("تم تحديث الطلب #{{orderId}}", "تم تحديث الطلب #{{orderId}} للعميل {{customerName}}"),
        },
    ),
    T.ORDER_STATUS_CHANGED: (
        P.MEDIUM,
        {
            "en": ("Order #{{orderId}} Status Updated", "Order #{{orderId}} status changed from {{oldStatus}} to {{newStatus}}"),
            "ar": ("تم تحديث حالة الطلب #{{orderId}}", "تم تغيير حالة الطلب #{{orderId}} من {{oldStatus}} إلى {{newStatus}}"),
        },
    ),
    T.ORDER_PAYMENT_UPDATED: (
        P.MEDIUM,
        {
            "en": ("Payment Updated for Order #{{orderId}}", "Payment status for order #{{orderId}} is now {{paymentStatus}}"),
            "ar": ("تم تحديث الدفع للطلب #{{orderId}}", "حالة الدفع للطلب #{{orderId}} أصبحت {{paymentStatus}}"),
        },
    ),
    T.ORDER_HIGH_VALUE: (
        P.HIGH,
        {
            "en": ("High-Value Order Alert #{{orderId}}", "High-value order ({{totalAmount}} EGP) placed by {{customerName}}"),
            "ar": ("تنبيه طلب عالي القيمة #{{orderId}}", "طلب عالي القيمة ({{totalAmount}} ج م) من {{customerName}}"),
        },
    ),
    T.ORDER_FAILED: (
        P.CRITICAL,
        {
            "en": ("Order Processing Failed #{{orderId}}", "Order #{{orderId}} processing failed: {{errorMessage}}"),
            "ar": ("فشل في معالجة الطلب #{{orderId}}", "فشل في معالجة الطلب #{{orderId}}: {{errorMessage}}"),
        },
    ),
    T.STOCK_LOW: (
        P.MEDIUM,
        {
            "en": ("Low Stock Alert: {{productName}}", "{{productName}} is running low on stock ({{stockQuantity}} units remaining)"),
            "ar": ("تنبيه مخزون منخفض: {{productName}}", "{{productName}} ينخفض مخزونه ({{stockQuantity}} وحدة متبقية)"),
        },
    ),
    T.STOCK_MEDIUM: (
        P.LOW,
        {
            "en": ("Medium Stock Warning: {{productName}}", "{{productName}} stock is getting low ({{stockQuantity}} units remaining)"),
            "ar": ("تحذير مخزون متوسط: {{productName}}", "مخزون {{productName}} ينخفض ({{stockQuantity}} وحدة متبقية)"),
        },
    ),
    T.STOCK_OUT: (
        P.CRITICAL,
        {
            "en": ("Out of Stock: {{productName}}", "{{productName}} is now out of stock! Immediate restocking required."),
            "ar": ("نفد من المخزون: {{productName}}", "{{productName}} نفد من المخزون! مطلوب إعادة تخزين فورية."),
        },
    ),
    T.RESTOCK_RECOMMENDATION: (
        P.MEDIUM,
        {
            "en": ("Restock Recommendation: {{productName}}", "{{productName}} should be restocked. Current: {{currentStock}}, Recommended: {{recommendedQuantity}}"),
            "ar": ("توصية إعادة التخزين: {{productName}}", "يجب إعادة تخزين {{productName}}. الحالي: {{currentStock}}، الموصى به: {{recommendedQuantity}}"),
        },
    ),
    T.CUSTOMER_REGISTERED: (
        P.LOW,
        {
            "en": ("New Customer Registered", "New customer {{customerName}} has registered"),
            "ar": ("عميل جديد مسجل", "عميل جديد {{customerName}} قام بالتسجيل"),
        },
    ),
    T.SALES_SUMMARY_DAILY: (
        P.LOW,
        {
            "en": ("Daily Sales Summary", "{{orderCount}} orders totalling {{totalSales}} EGP"),
            "ar": ("ملخص المبيعات اليومي", "{{orderCount}} طلبات بإجمالي {{totalSales}} ج م"),
        },
    ),
    T.SALES_SUMMARY_WEEKLY: (
        P.LOW,
        {
            "en": ("Weekly Sales Summary", "{{orderCount}} orders totalling {{totalSales}} EGP"),
            "ar": ("ملخص المبيعات الأسبوعي", "{{orderCount}} طلبات بإجمالي {{totalSales}} ج م"),
        },
    ),
}

_EMAIL_HTML = {
    "en": (
        '<div dir="ltr"><h2>{title}</h2><p>{message}</p>'
        "<p>You are receiving this email because you enabled email alerts for this "
        "notification type.</p></div>"
    ),
    "ar": (
        '<div dir="rtl"><h2>{title}</h2><p>{message}</p>'
        "<p>تصلك هذه الرسالة لأنك فعّلت تنبيهات البريد الإلكتروني لهذا النوع من الإشعارات.</p></div>"
    ),
}


def build_default_templates() -> list[NotificationTemplate]:
    """Return one in-app and one email template per type and language.

    ``system_alert`` and ``maintenance_notice`` carry free-form text and rely on
    the raw event content instead of a template.
    """

    templates: list[NotificationTemplate] = []
    for notification_type, (priority, languages) in _TEXTS.items():
        for language, (title, message) in languages.items():
            templates.append(
                NotificationTemplate(
                    id=None,
                    type=notification_type,
                    language=language,
                    channel=TemplateChannel.IN_APP,
                    title=title,
                    message=message,
                    priority=priority,
                )
            )
            templates.append(
                NotificationTemplate(
                    id=None,
                    type=notification_type,
                    language=language,
                    channel=TemplateChannel.EMAIL,
                    title=title,
                    message=message,
                    email_subject=title,
                    email_html=_EMAIL_HTML[language].format(title=title, message=message),
                    priority=priority,
                )
            )
    return templates


def seed_default_templates(session: Session) -> int:
    """Insert or refresh the default templates; return how many were written."""

    repository = NotificationTemplateRepository(session)
    templates = build_default_templates()
    for template in templates:
        repository.upsert(template)
    return len(templates)


__all__ = ["build_default_templates", "seed_default_templates"]
