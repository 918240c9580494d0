"""Unit tests for per-recipient threshold rules."""

from __future__ import annotations

import pytest

from crm.application.use_cases.notifications.thresholds import (
    effective_threshold,
    extract_metric,
    gate_type_for,
    threshold_crossed,
)
from crm.domain.entities import NotificationType
from crm.domain.exceptions import ValidationError


@pytest.mark.parametrize(
    "gate_type, value, threshold, expected",
    [
        (NotificationType.ORDER_HIGH_VALUE, 1000, 1000, True),
        (NotificationType.ORDER_HIGH_VALUE, 999.99, 1000, False),
        (NotificationType.STOCK_LOW, 3, 5, True),
        (NotificationType.STOCK_LOW, 0, 5, False),
        (NotificationType.STOCK_OUT, 0, 0, True),
        (NotificationType.STOCK_OUT, 1, 0, False),
    ],
)
def test_threshold_crossed(gate_type, value, threshold, expected):
    assert threshold_crossed(gate_type, value, threshold) is expected


def test_stock_medium_sits_between_low_and_medium():
    assert threshold_crossed(NotificationType.STOCK_MEDIUM, 7, 10, low_threshold=5) is True
    assert threshold_crossed(NotificationType.STOCK_MEDIUM, 5, 10, low_threshold=5) is False
    assert threshold_crossed(NotificationType.STOCK_MEDIUM, 11, 10, low_threshold=5) is False


def test_effective_threshold_prefers_custom_value():
    assert effective_threshold(NotificationType.STOCK_LOW, {"quantity": 2}) == 2
    assert effective_threshold(NotificationType.STOCK_LOW, None) == 5
    assert effective_threshold(NotificationType.ORDER_HIGH_VALUE, {}) == 1000


def test_extract_metric_accepts_either_key():
    assert extract_metric(NotificationType.ORDER_HIGH_VALUE, {"totalAmount": "500"}) == 500
    assert extract_metric(NotificationType.ORDER_HIGH_VALUE, {"amount": 42}) == 42
    assert extract_metric(NotificationType.STOCK_LOW, {"quantity": 3}) == 3

    with pytest.raises(ValidationError):
        extract_metric(NotificationType.STOCK_LOW, {"stockQuantity": "many"})


def test_gate_type_defaults_to_event_type_for_gated_types():
    assert gate_type_for(NotificationType.STOCK_OUT) is NotificationType.STOCK_OUT
    assert gate_type_for(NotificationType.ORDER_CREATED) is None
    assert (
        gate_type_for(NotificationType.ORDER_CREATED, NotificationType.ORDER_HIGH_VALUE)
        is NotificationType.ORDER_HIGH_VALUE
    )
    with pytest.raises(ValidationError):
        gate_type_for(NotificationType.ORDER_CREATED, NotificationType.SYSTEM_ALERT)
