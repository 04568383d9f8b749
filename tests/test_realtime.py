import uuid

from app.models.notification import Notification
from app.services.notification import NotificationService
from app.services.realtime import ChangeEvent, ChangeFeed, ChangeType

ALL_COLUMNS = {"id", "user_id", "type", "content", "reference_id", "read", "deleted_at", "created_at"}


def test_insert_event_carries_full_row(db_session, alice, change_events):
    notification = NotificationService(db_session).create(alice.id, "comment", "hi", caller_id=alice.id)

    assert len(change_events) == 1
    event = change_events[0]
    assert event.type == ChangeType.INSERT
    assert event.table == "notifications"
    assert event.key == notification.id
    assert set(event.record) == ALL_COLUMNS
    assert event.old_record is None
    assert event.commit_timestamp is not None


def test_update_event_carries_full_before_and_after(db_session, alice, change_events):
    service = NotificationService(db_session)
    notification = service.create(alice.id, "comment", "hi", caller_id=alice.id)
    change_events.clear()

    service.mark_read(alice.id, notification.id)

    assert [e.type for e in change_events] == [ChangeType.UPDATE]
    event = change_events[0]
    assert set(event.old_record) == ALL_COLUMNS
    assert set(event.record) == ALL_COLUMNS
    assert event.old_record["read"] is False
    assert event.record["read"] is True
    # Unchanged columns are present on both sides
    assert event.old_record["content"] == event.record["content"] == "hi"


def test_repeated_soft_delete_emits_one_update(db_session, alice, change_events):
    service = NotificationService(db_session)
    notification = service.create(alice.id, "comment", "hi", caller_id=alice.id)
    change_events.clear()

    service.soft_delete(alice.id, notification.id)
    service.soft_delete(alice.id, notification.id)

    assert [e.type for e in change_events] == [ChangeType.UPDATE]
    assert change_events[0].old_record["deleted_at"] is None
    assert change_events[0].record["deleted_at"] is not None


def test_rolled_back_changes_are_not_published(db_session, alice, change_events):
    db_session.add(Notification(user_id=alice.id, type="comment", content="draft"))
    db_session.flush()
    db_session.rollback()

    assert change_events == []


def test_denied_operation_publishes_nothing(db_session, alice, bob, change_events):
    service = NotificationService(db_session)
    notification = service.create(alice.id, "comment", "hi", caller_id=bob.id)
    change_events.clear()

    try:
        service.mark_read(bob.id, notification.id)
    except Exception:
        db_session.rollback()

    assert change_events == []


def test_event_serializes_to_json(db_session, alice, change_events):
    NotificationService(db_session).create(alice.id, "comment", "hi", caller_id=alice.id)
    payload = change_events[0].model_dump(mode="json")
    assert payload["type"] == "INSERT"
    assert payload["record"]["user_id"] == str(alice.id)
    assert isinstance(payload["record"]["created_at"], str)


def test_visible_to_follows_read_policy():
    owner = uuid.uuid4()
    event = ChangeEvent(
        table="notifications",
        type=ChangeType.DELETE,
        key=uuid.uuid4(),
        old_record={"user_id": owner},
    )
    assert event.visible_to(owner)
    assert not event.visible_to(uuid.uuid4())
    assert not event.visible_to(None)


def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe(broken)
    feed.subscribe(received.append)
    event = ChangeEvent(table="notifications", type=ChangeType.INSERT, key=uuid.uuid4(), record={})
    feed.publish([event])

    assert received == [event]


def test_unsubscribe_stops_delivery():
    feed = ChangeFeed()
    received = []
    token = feed.subscribe(received.append)
    feed.unsubscribe(token)
    feed.publish([ChangeEvent(table="notifications", type=ChangeType.INSERT, key=uuid.uuid4(), record={})])

    assert received == []
    assert feed.subscriber_count == 0
