"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from crm.application.use_cases.notifications import (
    PreferenceStore,
    TemplateResolver,
    broadcast_notification,
    get_notification_statistics,
    get_unread_count,
    hide_notification,
    list_user_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    purge_expired_notifications,
)
from crm.config import get_settings
from crm.domain.entities import PreferencePatch, RelatedEntity, User, UserNotification
from crm.domain.exceptions import (
    InvalidTransition,
    NotFound,
    NotificationError,
    PersistenceError,
    ValidationError,
)
from crm.infrastructure.database import SessionLocal, get_db
from crm.infrastructure.notifications import (
    notification_manager,
    serialize_user_notification,
)
from crm.infrastructure.repositories import DeliveryRepository
from crm.interfaces.api.dependencies import (
    get_current_active_user,
    require_admin,
    resolve_current_user,
)
from crm.interfaces.api.schemas import (
    BroadcastCreate,
    BroadcastResult,
    MarkAllReadResponse,
    NotificationPageRead,
    NotificationRead,
    NotificationStatisticsRead,
    PreferenceRead,
    PreferencesUpdate,
    PurgeResult,
    RelatedEntityRead,
    UnreadCountRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)

Language = Literal["en", "ar"]

_ERROR_STATUS: tuple[tuple[type[NotificationError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _to_http_error(exc: NotificationError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _to_read_model(
    item: UserNotification, language: str, resolver: TemplateResolver
) -> NotificationRead:
    notification, delivery = item.notification, item.delivery
    title, message = resolver.localize(notification, language)
    related = notification.related_entity
    return NotificationRead(
        id=notification.id,
        delivery_id=delivery.id,
        type=notification.type,
        title=title,
        message=message,
        priority=notification.priority,
        is_broadcast=notification.is_broadcast,
        related_entity=RelatedEntityRead(kind=related.kind, id=related.id) if related else None,
        metadata=notification.metadata or {},
        is_read=delivery.is_read,
        read_at=delivery.read_at,
        is_visible=delivery.is_visible,
        hidden_at=delivery.hidden_at,
        is_email_sent=delivery.is_email_sent,
        expires_at=notification.expires_at,
        created_at=notification.created_at,
    )


def _language(language: str | None) -> str:
    return language or get_settings().default_language


@router.get("/", response_model=NotificationPageRead)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    include_hidden: bool = Query(
        False, description="Include hidden notifications (full history)."
    ),
    language: Language | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationPageRead:
    """Return the authenticated user's notifications, newest first."""

    try:
        result = list_user_notifications(
            db,
            current_user.id,
            page=page,
            limit=limit,
            unread_only=unread_only,
            include_hidden=include_hidden,
        )
    except NotificationError as exc:
        raise _to_http_error(exc) from exc

    lang = _language(language)
    resolver = TemplateResolver(db)
    return NotificationPageRead(
        items=[_to_read_model(item, lang, resolver) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        has_more=result.has_more,
    )


@router.get("/unread-count", response_model=UnreadCountRead)
def read_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=get_unread_count(db, current_user.id))


@router.patch("/mark-all-read", response_model=MarkAllReadResponse)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=mark_all_notifications_read(db, current_user.id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    language: Language | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    try:
        item = mark_notification_read(db, current_user.id, notification_id)
    except NotificationError as exc:
        raise _to_http_error(exc) from exc
    return _to_read_model(item, _language(language), TemplateResolver(db))


@router.patch("/{notification_id}/hide", response_model=NotificationRead)
def hide(
    notification_id: int,
    language: Language | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    try:
        item = hide_notification(db, current_user.id, notification_id)
    except NotificationError as exc:
        raise _to_http_error(exc) from exc
    return _to_read_model(item, _language(language), TemplateResolver(db))


@router.get("/preferences", response_model=list[PreferenceRead])
def read_preferences(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[PreferenceRead]:
    """Return one preference per notification type, defaults included."""

    preferences = PreferenceStore(db).list_for_user(current_user.id)
    return [PreferenceRead.model_validate(preference) for preference in preferences]


@router.put("/preferences", response_model=list[PreferenceRead])
def update_preferences(
    payload: PreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[PreferenceRead]:
    store = PreferenceStore(db)
    updated = []
    try:
        for change in payload.preferences:
            updated.append(
                store.set(
                    current_user.id,
                    change.notification_type,
                    PreferencePatch(
                        in_app_enabled=change.in_app_enabled,
                        email_enabled=change.email_enabled,
                        threshold=change.threshold,
                        language=change.language,
                        clear_threshold=change.clear_threshold,
                    ),
                )
            )
    except NotificationError as exc:
        raise _to_http_error(exc) from exc
    return [PreferenceRead.model_validate(preference) for preference in updated]


@router.post(
    "/broadcast", response_model=BroadcastResult, status_code=status.HTTP_201_CREATED
)
def create_broadcast(
    payload: BroadcastCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> BroadcastResult:
    """Send an announcement to selected users, roles, or everyone."""

    related = None
    if payload.related_entity_type is not None:
        related = RelatedEntity(payload.related_entity_type, payload.related_entity_id)
    try:
        result = broadcast_notification(
            db,
            sender=current_user,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            title_ar=payload.title_ar,
            message_ar=payload.message_ar,
            priority=payload.priority,
            target_roles=payload.target_roles,
            user_ids=payload.user_ids,
            related_entity=related,
            metadata=payload.metadata,
            expires_at=payload.expires_at,
        )
    except NotificationError as exc:
        raise _to_http_error(exc) from exc
    return BroadcastResult(
        notification_id=result.notification_id, recipient_count=result.recipient_count
    )


@router.get("/statistics", response_model=NotificationStatisticsRead)
def read_statistics(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> NotificationStatisticsRead:
    try:
        stats = get_notification_statistics(db, start=start, end=end)
    except NotificationError as exc:
        raise _to_http_error(exc) from exc
    return NotificationStatisticsRead(**stats)


@router.delete("/expired", response_model=PurgeResult)
def purge_expired(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> PurgeResult:
    deleted = purge_expired_notifications(db)
    logger.info("Purged %d expired notifications", deleted)
    return PurgeResult(deleted=deleted)


def _handle_socket_message(user_id: int, message: dict[str, Any]) -> dict[str, Any] | None:
    """Apply a client websocket command; return a direct reply if one is due."""

    message_type = message.get("type")
    if message_type == "ping":
        return {"type": "pong"}

    session = SessionLocal()
    try:
        if message_type == "mark_read":
            notification_id = message.get("notification_id")
            if not isinstance(notification_id, int):
                return {"type": "error", "data": {"detail": "notification_id must be an integer"}}
            mark_notification_read(session, user_id, notification_id)
            return None
        if message_type == "mark_all_read":
            mark_all_notifications_read(session, user_id)
            return None
        if message_type == "get_unread_count":
            return {
                "type": "unread_count",
                "data": {"unread_count": get_unread_count(session, user_id)},
            }
    except NotificationError as exc:
        return {"type": "error", "data": {"detail": str(exc)}}
    finally:
        session.close()

    return {"type": "error", "data": {"detail": f"Unknown message type '{message_type}'"}}


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to the authenticated user."""

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    language = get_settings().default_language
    session = SessionLocal()
    try:
        user = resolve_current_user(token, session)
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
        repository = DeliveryRepository(session)
        resolver = TemplateResolver(session)
        backlog = []
        for item in repository.list_unread_for_user(user.id):
            title, message = resolver.localize(item.notification, language)
            backlog.append(serialize_user_notification(item, title=title, message=message))
        unread_count = repository.count_unread(user.id)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()

    await notification_manager.connect(user.id, websocket)
    try:
        await websocket.send_json(
            {
                "type": "init",
                "data": {
                    "notifications": backlog,
                    "unread_count": unread_count,
                },
            }
        )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                await websocket.send_json(
                    {"type": "error", "data": {"detail": "Messages must be JSON objects"}}
                )
                continue

            if not isinstance(message, dict):
                continue
            reply = _handle_socket_message(user.id, message)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        notification_manager.disconnect(user.id, websocket)
    except Exception:
        logger.exception("Notification websocket for user %s failed", user.id)
        notification_manager.disconnect(user.id, websocket)
        raise
