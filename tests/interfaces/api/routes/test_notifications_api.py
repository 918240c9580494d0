"""Integration tests for the notification REST and websocket endpoints."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from crm.application.use_cases.notifications import DispatchEvent, NotificationDispatcher
from crm.domain.entities import NotificationTemplate, NotificationType, TemplateChannel
from crm.infrastructure.models import NotificationModel
from crm.infrastructure.repositories import NotificationTemplateRepository
from crm.infrastructure.security import create_access_token


@pytest.fixture()
def client():
    from main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


def _token(user) -> str:
    return create_access_token({"sub": str(user.id)})


def _auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(user)}"}


def _dispatch(session, publisher, users, *, title="Order #5 Updated", **extra) -> int:
    result = NotificationDispatcher(session, publisher=publisher).dispatch(
        DispatchEvent(
            type=NotificationType.ORDER_UPDATED,
            title=title,
            message=f"{title} by staff",
            explicit_recipients=[user.id for user in users],
            **extra,
        )
    )
    return result.notification_id


def test_requests_without_token_are_rejected(client: TestClient) -> None:
    response = client.get("/notifications/")

    assert response.status_code == 401


def test_list_read_and_hide_flow(client, session, make_user, publisher) -> None:
    user = make_user()
    first = _dispatch(session, publisher, [user], title="Order #1 Updated")
    second = _dispatch(
        session,
        publisher,
        [user],
        title="Order #2 Updated",
        title_ar="تم تحديث الطلب #2",
        message_ar="تم تحديث الطلب #2 بواسطة الموظف",
    )

    listing = client.get("/notifications/", headers=_auth(user), params={"language": "ar"})
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 2
    assert [item["id"] for item in body["items"]] == [second, first]
    assert body["items"][0]["title"] == "تم تحديث الطلب #2"
    assert body["items"][1]["title"] == "Order #1 Updated"

    assert client.get("/notifications/unread-count", headers=_auth(user)).json() == {
        "unread_count": 2
    }

    read = client.patch(f"/notifications/{first}/read", headers=_auth(user))
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert read.json()["read_at"] is not None

    hidden = client.patch(f"/notifications/{second}/hide", headers=_auth(user))
    assert hidden.status_code == 200
    assert hidden.json()["is_visible"] is False

    conflict = client.patch(f"/notifications/{second}/read", headers=_auth(user))
    assert conflict.status_code == 409

    client.patch(f"/notifications/{first}/hide", headers=_auth(user))
    reread = client.patch(f"/notifications/{first}/read", headers=_auth(user))
    assert reread.status_code == 200
    assert reread.json()["read_at"] == read.json()["read_at"]

    visible = client.get("/notifications/", headers=_auth(user)).json()
    assert visible["items"] == []
    history = client.get(
        "/notifications/", headers=_auth(user), params={"include_hidden": True}
    ).json()
    assert history["total"] == 2


def test_listing_uses_the_same_template_text_as_pushes(
    client, session, make_user, publisher
) -> None:
    user = make_user()
    NotificationTemplateRepository(session).upsert(
        NotificationTemplate(
            id=None,
            type=NotificationType.ORDER_UPDATED,
            language="en",
            channel=TemplateChannel.IN_APP,
            title="Order #{{orderId}} changed",
            message="{{customerName}} changed order #{{orderId}}",
        )
    )
    _dispatch(session, publisher, [user], metadata={"orderId": 5, "customerName": "Mona Ali"})

    (pushed,) = [payload for _, _, payload in publisher.messages]
    (item,) = client.get("/notifications/", headers=_auth(user)).json()["items"]

    assert item["title"] == pushed["notification"]["title"] == "Order #5 changed"
    assert item["message"] == pushed["notification"]["message"] == "Mona Ali changed order #5"


def test_other_users_delivery_is_not_found(client, session, make_user, publisher) -> None:
    owner, stranger = make_user(), make_user()
    notification_id = _dispatch(session, publisher, [owner])

    response = client.patch(f"/notifications/{notification_id}/read", headers=_auth(stranger))

    assert response.status_code == 404


def test_mark_all_read(client, session, make_user, publisher) -> None:
    user = make_user()
    for index in range(3):
        _dispatch(session, publisher, [user], title=f"Order #{index} Updated")

    response = client.patch("/notifications/mark-all-read", headers=_auth(user))

    assert response.status_code == 200
    assert response.json() == {"updated": 3}
    assert client.get("/notifications/unread-count", headers=_auth(user)).json() == {
        "unread_count": 0
    }


def test_preferences_round_trip(client, make_user) -> None:
    user = make_user()

    defaults = client.get("/notifications/preferences", headers=_auth(user))
    assert defaults.status_code == 200
    assert len(defaults.json()) == len(NotificationType)
    assert all(item["is_default"] for item in defaults.json())

    update = client.put(
        "/notifications/preferences",
        headers=_auth(user),
        json={
            "preferences": [
                {
                    "notification_type": "stock_low",
                    "email_enabled": True,
                    "threshold": {"quantity": 3},
                    "language": "ar",
                }
            ]
        },
    )
    assert update.status_code == 200
    (stored,) = update.json()
    assert stored["email_enabled"] is True
    assert stored["threshold"] == {"quantity": 3.0}
    assert stored["language"] == "ar"

    invalid = client.put(
        "/notifications/preferences",
        headers=_auth(user),
        json={"preferences": [{"notification_type": "order_created", "threshold": {"amount": 5}}]},
    )
    assert invalid.status_code == 400


def test_broadcast_requires_admin(client, make_user) -> None:
    staff = make_user("staff")

    response = client.post(
        "/notifications/broadcast",
        headers=_auth(staff),
        json={"type": "system_alert", "title": "Heads up", "message": "Deploy at 18:00"},
    )

    assert response.status_code == 403


def test_broadcast_to_role_and_statistics(client, session, make_user) -> None:
    admin = make_user("admin")
    staff = [make_user("staff"), make_user("staff")]
    make_user("viewer")

    response = client.post(
        "/notifications/broadcast",
        headers=_auth(admin),
        json={
            "type": "system_alert",
            "title": "Heads up",
            "message": "Deploy at 18:00",
            "priority": "high",
            "target_roles": ["staff"],
        },
    )

    assert response.status_code == 201
    assert response.json()["recipient_count"] == len(staff)
    notification = session.get(NotificationModel, response.json()["notification_id"])
    assert notification.is_broadcast is True
    assert notification.created_by == admin.id

    stats = client.get("/notifications/statistics", headers=_auth(admin)).json()
    assert stats["total_notifications"] == 1
    assert stats["total_deliveries"] == 2
    assert stats["unread_deliveries"] == 2
    assert stats["by_type"] == {"system_alert": 2}


def test_statistics_rejects_inverted_range(client, make_user) -> None:
    admin = make_user("admin")

    response = client.get(
        "/notifications/statistics",
        headers=_auth(admin),
        params={"start": "2026-02-01T00:00:00", "end": "2026-01-01T00:00:00"},
    )

    assert response.status_code == 400


def test_purge_expired(client, session, make_user, publisher) -> None:
    admin = make_user("admin")
    _dispatch(
        session,
        publisher,
        [admin],
        title="Order #9 Updated",
        expires_at=datetime(2000, 1, 1),
    )
    _dispatch(session, publisher, [admin], title="Order #10 Updated")

    response = client.delete("/notifications/expired", headers=_auth(admin))

    assert response.status_code == 200
    assert response.json() == {"deleted": 1}
    assert client.get("/notifications/", headers=_auth(admin)).json()["total"] == 1


def test_websocket_requires_token(client) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_rejects_invalid_token(client) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws?token=not-a-jwt"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_session(client, session, make_user, publisher) -> None:
    user = make_user()
    notification_id = _dispatch(session, publisher, [user])

    with client.websocket_connect(f"/notifications/ws?token={_token(user)}") as socket:
        init = socket.receive_json()
        assert init["type"] == "init"
        assert init["data"]["unread_count"] == 1
        (pending,) = init["data"]["notifications"]
        assert pending["notification"]["id"] == notification_id

        socket.send_json({"type": "ping"})
        assert socket.receive_json() == {"type": "pong"}

        socket.send_json({"type": "get_unread_count"})
        assert socket.receive_json() == {"type": "unread_count", "data": {"unread_count": 1}}

        socket.send_json({"type": "mark_read", "notification_id": notification_id})
        pushed = socket.receive_json()
        assert pushed["type"] == "notification_read"
        assert pushed["data"]["notification_id"] == notification_id
        assert pushed["data"]["unread_count"] == 0

        socket.send_json({"type": "mark_read", "notification_id": "abc"})
        assert socket.receive_json()["type"] == "error"

        socket.send_json({"type": "subscribe"})
        assert socket.receive_json()["type"] == "error"
