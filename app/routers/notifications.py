import asyncio
import contextlib
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.limiter import limiter
from app.database import get_db, get_session_factory
from app.models.profile import Profile
from app.routers.auth_deps import authenticate_token, get_current_profile
from app.schemas.notification import (
    MarkAllReadResult,
    NotificationCreate,
    NotificationList,
    NotificationResponse,
    NotificationUpdate,
    UnreadCount,
)
from app.services.notification import NotificationService
from app.services.realtime import ChangeEvent, change_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.notifications.create_rate_limit)
def create_notification(
    request: Request,
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    """Deliver a notification to any profile, the caller's own included."""
    return NotificationService(db).create(
        user_id=payload.user_id,
        type=payload.type,
        content=payload.content,
        reference_id=payload.reference_id,
        read=payload.read,
        caller_id=current_profile.id,
    )


@router.get("", response_model=NotificationList)
def get_notifications(
    unread_only: bool = False,
    include_deleted: bool = False,
    type: Optional[str] = None,
    limit: int = Query(default=settings.notifications.page_size, ge=1, le=settings.notifications.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    service = NotificationService(db)
    items = service.list_notifications(
        current_profile.id,
        unread_only=unread_only,
        include_deleted=include_deleted,
        type=type,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "unread_count": service.unread_count(current_profile.id)}


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return {"unread_count": NotificationService(db).unread_count(current_profile.id)}


@router.post("/mark-all-read", response_model=MarkAllReadResult)
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return {"updated": NotificationService(db).mark_all_read(current_profile.id)}


# Bounded per-subscriber backlog; a subscriber that falls this far behind loses events
STREAM_QUEUE_SIZE = 256


def _offer(queue: asyncio.Queue, change: ChangeEvent) -> bool:
    """Enqueue without blocking the event loop. Returns False when the backlog is full."""
    try:
        queue.put_nowait(change)
    except asyncio.QueueFull:
        logger.warning(f"Realtime backlog full, dropping change {change.key}")
        return False
    return True


async def _stop_sender(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        try:
            await task
        except Exception:
            logger.exception("Realtime sender failed")


def _authenticate(session_factory, token: str) -> uuid.UUID:
    with session_factory() as db:
        return authenticate_token(token, db).id


@router.websocket("/stream")
async def stream_notifications(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory=Depends(get_session_factory),
):
    """
    Relays committed changes to the caller's own notifications as JSON
    change events: {table, type, key, record, old_record, commit_timestamp}.
    """
    # The session is closed again before the handshake; only the id is kept
    try:
        caller_id = await run_in_threadpool(_authenticate, session_factory, token)
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)

    # Called from whichever thread committed the change
    def relay(change: ChangeEvent):
        if change.visible_to(caller_id):
            loop.call_soon_threadsafe(_offer, queue, change)

    async def pump():
        while True:
            change = await queue.get()
            await websocket.send_json(change.model_dump(mode="json"))

    # Subscribe before accepting so nothing committed after the handshake is missed
    subscription = change_feed.subscribe(relay)
    sender = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(pump())
        logger.info(f"Realtime subscriber connected for profile {caller_id}")
        while True:
            # Inbound frames are ignored; receiving is how a disconnect is noticed
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Realtime subscriber disconnected for profile {caller_id}")
    finally:
        change_feed.unsubscribe(subscription)
        if sender is not None:
            await _stop_sender(sender)


@router.get("/{notification_id}", response_model=NotificationResponse)
def get_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return NotificationService(db).get(current_profile.id, notification_id)


@router.patch("/{notification_id}", response_model=NotificationResponse)
def update_notification(
    notification_id: uuid.UUID,
    changes: NotificationUpdate,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return NotificationService(db).update(
        current_profile.id, notification_id, changes.model_dump(exclude_unset=True)
    )


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return NotificationService(db).mark_read(current_profile.id, notification_id)


@router.post("/{notification_id}/soft-delete", response_model=NotificationResponse)
def soft_delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return NotificationService(db).soft_delete(current_profile.id, notification_id)


@router.delete("/{notification_id}", response_model=NotificationResponse)
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return NotificationService(db).delete(current_profile.id, notification_id)
