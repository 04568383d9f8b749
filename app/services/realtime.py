"""
Change propagation for the notifications table.

Mapper hooks record a full before/after row image for every insert, update
and delete flushed by a session. The images are held on the session until
its transaction commits, then published to the in-process ChangeFeed.
A rollback discards them, so subscribers only ever see committed state.
"""
import enum
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session

from app.core import policies
from app.core.policies import Operation
from app.models.notification import Notification

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_change_events"


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    table: str
    type: ChangeType
    key: uuid.UUID
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None
    commit_timestamp: Optional[datetime] = None

    @property
    def owner_row(self) -> Dict[str, Any]:
        return self.record if self.record is not None else (self.old_record or {})

    def visible_to(self, caller_id: Optional[uuid.UUID]) -> bool:
        """Subscribers only receive events about rows they could read."""
        return policies.is_allowed(Operation.SELECT, caller_id, self.owner_row)


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed:
    """Thread-safe fan-out of committed change events to subscribers."""

    def __init__(self):
        self._subscribers: Dict[int, Subscriber] = {}
        self._lock = threading.Lock()
        self._next_token = 0

    def subscribe(self, callback: Subscriber) -> int:
        with self._lock:
            self._next_token += 1
            self._subscribers[self._next_token] = callback
            return self._next_token

    def unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, events: Iterable[ChangeEvent]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        for change in events:
            for callback in callbacks:
                try:
                    callback(change)
                except Exception:
                    # A failing subscriber must not affect the committed write or other subscribers
                    logger.exception("Change subscriber failed", extra={"change_key": str(change.key)})


change_feed = ChangeFeed()


def _pending(session: Session) -> List[ChangeEvent]:
    return session.info.setdefault(_PENDING_KEY, [])


def _previous_image(target: Notification) -> Dict[str, Any]:
    state = inspect(target)
    image = {}
    for attr in inspect(type(target)).column_attrs:
        history = state.attrs[attr.key].history
        image[attr.key] = history.deleted[0] if history.deleted else getattr(target, attr.key)
    return image


@event.listens_for(Notification, "after_insert")
def _capture_insert(mapper, connection, target):
    session = object_session(target)
    if session is None:
        return
    _pending(session).append(ChangeEvent(
        table=Notification.__tablename__,
        type=ChangeType.INSERT,
        key=target.id,
        record=target.to_image(),
    ))


@event.listens_for(Notification, "after_update")
def _capture_update(mapper, connection, target):
    session = object_session(target)
    if session is None:
        return
    old_image = _previous_image(target)
    new_image = target.to_image()
    # after_update also fires for rows that were dirty without a net column change
    if old_image == new_image:
        return
    _pending(session).append(ChangeEvent(
        table=Notification.__tablename__,
        type=ChangeType.UPDATE,
        key=target.id,
        record=new_image,
        old_record=old_image,
    ))


@event.listens_for(Notification, "after_delete")
def _capture_delete(mapper, connection, target):
    session = object_session(target)
    if session is None:
        return
    _pending(session).append(ChangeEvent(
        table=Notification.__tablename__,
        type=ChangeType.DELETE,
        key=target.id,
        old_record=target.to_image(),
    ))


@event.listens_for(Session, "after_commit")
def _publish_committed(session):
    events = session.info.pop(_PENDING_KEY, [])
    if not events:
        return
    committed_at = datetime.now(timezone.utc)
    for change in events:
        change.commit_timestamp = committed_at
    logger.debug(f"Publishing {len(events)} notification change(s)")
    change_feed.publish(events)


@event.listens_for(Session, "after_soft_rollback")
def _discard_uncommitted(session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)
