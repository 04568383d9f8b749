import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from app.core.security import create_access_token
from app.database import Base, enable_sqlite_foreign_keys, get_db, get_session_factory
from app.main import app
from app.models.profile import Profile
from app.routers.notifications import _offer, _stop_sender
from app.services.realtime import ChangeEvent, ChangeType


@pytest.fixture(scope="function")
def single_connection_client(tmp_path):
    """A client whose database pool holds exactly one connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'stream.db'}",
        connect_args={"check_same_thread": False},
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    SingleSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with SingleSession() as db:
        profile = Profile(full_name="Carol")
        db.add(profile)
        db.commit()
        profile_id = profile.id

    def override_get_db():
        db = SingleSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: SingleSession
    with TestClient(app) as c:
        yield c, profile_id
    app.dependency_overrides.clear()
    engine.dispose()


def test_subscriber_does_not_hold_a_database_connection(single_connection_client):
    client, profile_id = single_connection_client
    token = create_access_token(data={"sub": profile_id, "type": "access"})
    headers = {"Authorization": f"Bearer {token}"}

    with client.websocket_connect(f"/api/notifications/stream?token={token}"):
        response = client.get("/api/notifications/unread-count", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"unread_count": 0}


def _change():
    return ChangeEvent(table="notifications", type=ChangeType.INSERT, key=uuid.uuid4(), record={})


def test_backlog_is_bounded():
    queue = asyncio.Queue(maxsize=1)
    first, second = _change(), _change()

    assert _offer(queue, first) is True
    assert _offer(queue, second) is False
    assert queue.qsize() == 1
    assert queue.get_nowait() is first


def test_stop_sender_collects_a_failed_send():
    async def failing_send():
        raise RuntimeError("socket closed")

    async def scenario():
        task = asyncio.create_task(failing_send())
        await asyncio.sleep(0)
        await _stop_sender(task)
        return task

    task = asyncio.run(scenario())
    assert task.done()
    assert isinstance(task.exception(), RuntimeError)


def test_stop_sender_cancels_an_idle_sender():
    async def idle_send():
        await asyncio.Event().wait()

    async def scenario():
        task = asyncio.create_task(idle_send())
        await asyncio.sleep(0)
        await _stop_sender(task)
        return task

    assert asyncio.run(scenario()).cancelled()
