import uuid
import pytest
from sqlalchemy import text

from app.core.exceptions import ConstraintViolationError, NotFoundError
from app.models.notification import Notification
from app.models.profile import Profile
from app.services.notification import NotificationService
from app.services.profile import ProfileService
from app.services.realtime import ChangeType


def test_profile_defaults(db_session, alice):
    assert alice.theme_preference == "light"
    assert alice.color_theme == "green"


def test_destroy_profile_cascades_exactly_its_notifications(db_session, alice, bob):
    service = NotificationService(db_session)
    alice_id = alice.id
    owned_ids = {service.create(alice_id, "comment", f"a{i}", caller_id=bob.id).id for i in range(3)}
    service.soft_delete(alice_id, next(iter(owned_ids)))
    bob_note = service.create(bob.id, "comment", "b", caller_id=alice.id)

    removed = ProfileService(db_session).destroy_profile(alice_id)

    assert removed == 3
    assert db_session.get(Profile, alice_id) is None
    assert db_session.query(Notification).filter(Notification.id.in_(owned_ids)).count() == 0
    assert db_session.get(Notification, bob_note.id) is not None


def test_destroy_profile_publishes_delete_events(db_session, alice, change_events):
    service = NotificationService(db_session)
    created_id = service.create(alice.id, "comment", "hi", caller_id=alice.id).id
    change_events.clear()

    ProfileService(db_session).destroy_profile(alice.id)

    assert [e.type for e in change_events] == [ChangeType.DELETE]
    assert change_events[0].key == created_id
    assert change_events[0].old_record["content"] == "hi"
    assert change_events[0].record is None


def test_database_cascade_covers_raw_deletes(db_session, alice):
    alice_id = alice.id
    NotificationService(db_session).create(alice_id, "comment", "hi", caller_id=alice_id)
    db_session.execute(text("DELETE FROM profiles WHERE id = :id"), {"id": alice_id.hex})
    db_session.commit()
    db_session.expire_all()
    assert db_session.query(Notification).count() == 0


def test_destroy_unknown_profile(db_session):
    with pytest.raises(NotFoundError):
        ProfileService(db_session).destroy_profile(uuid.uuid4())


def test_update_preferences(db_session, alice):
    profile = ProfileService(db_session).update_preferences(alice, theme_preference="dark", color_theme=" blue ")
    assert profile.theme_preference == "dark"
    assert profile.color_theme == "blue"


def test_update_preferences_rejects_unknown_theme(db_session, alice):
    with pytest.raises(ConstraintViolationError):
        ProfileService(db_session).update_preferences(alice, theme_preference="neon")
