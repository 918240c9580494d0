"""Tests for the websocket connection registry and the realtime publisher."""

from __future__ import annotations

import asyncio
import logging

import anyio

from crm.infrastructure.notifications import (
    NotificationConnectionManager,
    NotificationPublisher,
)


class FakeWebSocket:
    def __init__(self, *, delay: float = 0.0, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.accepted = False
        self._delay = delay
        self._fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)


def test_send_to_user_reaches_every_connection():
    manager = NotificationConnectionManager(send_timeout=1)
    first, second = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(5, first)
        await manager.connect(5, second)
        return await manager.send_to_user(5, {"type": "ping"})

    assert asyncio.run(scenario()) == 2
    assert first.accepted and second.accepted
    assert first.sent == second.sent == [{"type": "ping"}]


def test_slow_or_broken_connections_are_dropped():
    manager = NotificationConnectionManager(send_timeout=0.01)
    healthy, slow, broken = FakeWebSocket(), FakeWebSocket(delay=0.5), FakeWebSocket(fail=True)
    for socket in (healthy, slow, broken):
        manager.register(3, socket)

    reached = asyncio.run(manager.send_to_user(3, {"type": "notification"}))

    assert reached == 1
    assert manager.connection_count(3) == 1
    assert slow.sent == []


def test_disconnect_removes_empty_users():
    manager = NotificationConnectionManager(send_timeout=1)
    socket = FakeWebSocket()
    manager.register(1, socket)

    manager.disconnect(1, socket)
    manager.disconnect(1, socket)

    assert manager.is_connected(1) is False


def test_publish_to_offline_user_returns_zero():
    publisher = NotificationPublisher(NotificationConnectionManager(send_timeout=1))

    assert publisher.publish(99, {"notification": {}}) == 0


def test_publish_from_event_loop_schedules_send():
    manager = NotificationConnectionManager(send_timeout=1)
    publisher = NotificationPublisher(manager)
    socket = FakeWebSocket()
    manager.register(8, socket)

    async def scenario():
        count = publisher.publish(8, {"notification_id": 1}, event_type="notification_read")
        await asyncio.sleep(0.01)
        return count

    assert asyncio.run(scenario()) == 1
    assert socket.sent == [{"type": "notification_read", "data": {"notification_id": 1}}]


def test_scheduled_sends_are_held_until_finished():
    manager = NotificationConnectionManager(send_timeout=1)
    publisher = NotificationPublisher(manager)
    socket = FakeWebSocket(delay=0.01)
    manager.register(6, socket)

    async def scenario():
        publisher.publish(6, {"delivery_id": 1})
        publisher.publish(6, {"delivery_id": 2})
        scheduled = publisher.pending_sends
        await asyncio.sleep(0.1)
        return scheduled, publisher.pending_sends

    assert asyncio.run(scenario()) == (2, 0)
    assert [message["data"]["delivery_id"] for message in socket.sent] == [1, 2]


def test_publish_from_worker_thread_runs_on_the_loop():
    manager = NotificationConnectionManager(send_timeout=1)
    publisher = NotificationPublisher(manager)
    socket = FakeWebSocket()
    manager.register(4, socket)

    async def scenario():
        return await anyio.to_thread.run_sync(publisher.publish, 4, {"delivery_id": 10})

    assert anyio.run(scenario) == 1
    assert socket.sent == [{"type": "notification", "data": {"delivery_id": 10}}]


def test_publish_without_any_loop_logs_and_returns_zero(caplog):
    manager = NotificationConnectionManager(send_timeout=1)
    publisher = NotificationPublisher(manager)
    manager.register(2, FakeWebSocket())

    with caplog.at_level(logging.WARNING):
        assert publisher.publish(2, {"delivery_id": 1}) == 0

    assert "No event loop available" in caplog.text
