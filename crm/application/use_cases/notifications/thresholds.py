"""Per-recipient threshold rules for stock and order-value notifications."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from crm.domain.entities import NotificationType
from crm.domain.exceptions import ValidationError

DEFAULT_THRESHOLDS: dict[NotificationType, dict[str, float]] = {
    NotificationType.STOCK_LOW: {"quantity": 5},
    NotificationType.STOCK_MEDIUM: {"quantity": 10},
    NotificationType.STOCK_OUT: {"quantity": 0},
    NotificationType.ORDER_HIGH_VALUE: {"amount": 1000},
}

THRESHOLD_GATED_TYPES = frozenset(DEFAULT_THRESHOLDS)

_QUANTITY_KEYS = ("stockQuantity", "quantity")
_AMOUNT_KEYS = ("totalAmount", "amount")


def gate_type_for(
    notification_type: NotificationType, threshold_type: NotificationType | None = None
) -> NotificationType | None:
    """Return the type whose thresholds gate an event, or ``None`` if ungated."""

    if threshold_type is not None:
        if threshold_type not in THRESHOLD_GATED_TYPES:
            raise ValidationError(
                f"{threshold_type.value} does not define a threshold"
            )
        return threshold_type
    if notification_type in THRESHOLD_GATED_TYPES:
        return notification_type
    return None


def _metric(metadata: Mapping[str, Any], keys: tuple[str, ...], label: str) -> float:
    for key in keys:
        value = metadata.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Metadata '{key}' must be numeric") from exc
    raise ValidationError(f"Metadata must include {label} ({' or '.join(keys)})")


def extract_metric(gate_type: NotificationType, metadata: Mapping[str, Any]) -> float:
    """Read the numeric payload compared against ``gate_type`` thresholds."""

    if gate_type is NotificationType.ORDER_HIGH_VALUE:
        return _metric(metadata, _AMOUNT_KEYS, "an amount")
    return _metric(metadata, _QUANTITY_KEYS, "a quantity")


def effective_threshold(
    gate_type: NotificationType, custom: Mapping[str, Any] | None
) -> float:
    """Return the recipient's threshold value, falling back to the system default."""

    key, default = next(iter(DEFAULT_THRESHOLDS[gate_type].items()))
    if custom and custom.get(key) is not None:
        return float(custom[key])
    return float(default)


def validate_threshold(
    notification_type: NotificationType, threshold: Mapping[str, Any]
) -> dict[str, float]:
    """Normalize a user-supplied threshold map for ``notification_type``."""

    if notification_type not in THRESHOLD_GATED_TYPES:
        raise ValidationError(f"{notification_type.value} does not accept a threshold")
    key = next(iter(DEFAULT_THRESHOLDS[notification_type]))
    if key not in threshold:
        raise ValidationError(f"Threshold for {notification_type.value} needs '{key}'")
    try:
        value = float(threshold[key])
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Threshold '{key}' must be numeric") from exc
    if value < 0:
        raise ValidationError(f"Threshold '{key}' cannot be negative")
    return {key: value}


def threshold_crossed(
    gate_type: NotificationType,
    value: float,
    threshold: float,
    *,
    low_threshold: float | None = None,
) -> bool:
    """Decide whether ``value`` crosses ``threshold`` for ``gate_type``.

    ``low_threshold`` is the recipient's own ``stock_low`` threshold and only
    matters for ``stock_medium``.
    """

    if gate_type is NotificationType.ORDER_HIGH_VALUE:
        return value >= threshold
    if gate_type is NotificationType.STOCK_LOW:
        return 0 < value <= threshold
    if gate_type is NotificationType.STOCK_MEDIUM:
        if low_threshold is None:
            low_threshold = effective_threshold(NotificationType.STOCK_LOW, None)
        return low_threshold < value <= threshold
    if gate_type is NotificationType.STOCK_OUT:
        return value <= 0
    return True


__all__ = [
    "DEFAULT_THRESHOLDS",
    "THRESHOLD_GATED_TYPES",
    "effective_threshold",
    "extract_metric",
    "gate_type_for",
    "threshold_crossed",
    "validate_threshold",
]
