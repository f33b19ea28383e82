import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mentorjournal.models import JournalingSession, Message, MessageSender, SessionStatus
from mentorjournal.services.redis import RedisCrudService
from mentorjournal.services.session_store import (
    InMemorySessionStore,
    SessionStore,
    dict_to_session,
    session_to_dict,
)


@pytest.fixture
def mock_redis_crud() -> MagicMock:
    """Mock Redis CRUD with async get/set/delete."""
    m = MagicMock(spec=RedisCrudService)
    m.get = AsyncMock(return_value=None)
    m.set = AsyncMock(return_value=True)
    m.delete = AsyncMock(return_value=True)
    return m


@pytest.fixture
def store(mock_redis_crud: MagicMock) -> SessionStore:
    return SessionStore(redis_crud=mock_redis_crud, ttl_seconds=3600)


@pytest.fixture
def session() -> JournalingSession:
    return JournalingSession(
        id="s1",
        template_id="gratitude_journal",
        template_name="Gratitude Journal",
        conversation=[
            Message(content="What are you grateful for?", sender=MessageSender.MENTOR),
            Message(content="My sister", sender=MessageSender.USER),
        ],
        current_step=1,
        extracted_data={"Gratitude 1": "My sister"},
    )


def test_session_dict_preserves_fields(session: JournalingSession) -> None:
    restored = dict_to_session(json.loads(json.dumps(session_to_dict(session))))
    assert restored.id == "s1"
    assert restored.current_step == 1
    assert restored.status is SessionStatus.IN_PROGRESS
    assert [m.sender for m in restored.conversation] == [MessageSender.MENTOR, MessageSender.USER]
    assert restored.conversation[1].id == session.conversation[1].id
    assert restored.created_at == session.created_at
    assert restored.extracted_data == {"Gratitude 1": "My sister"}


@pytest.mark.asyncio
async def test_get_missing(store: SessionStore) -> None:
    """get returns None when key is not in Redis."""
    assert await store.get("session-1") is None
    store._redis.get.assert_called_once_with("journaling:session:session-1")


@pytest.mark.asyncio
async def test_get_present(store: SessionStore, session: JournalingSession) -> None:
    store._redis.get.return_value = json.dumps(session_to_dict(session))
    result = await store.get("s1")
    assert result is not None
    assert result.template_id == "gratitude_journal"
    assert result.conversation[1].content == "My sister"


@pytest.mark.asyncio
async def test_get_invalid_json(store: SessionStore) -> None:
    store._redis.get.return_value = "not json"
    assert await store.get("s1") is None


@pytest.mark.asyncio
async def test_get_incomplete_record(store: SessionStore) -> None:
    store._redis.get.return_value = json.dumps({"id": "s1"})
    assert await store.get("s1") is None


@pytest.mark.asyncio
async def test_save_uses_ttl(store: SessionStore, session: JournalingSession) -> None:
    assert await store.save(session) is True
    key, payload = store._redis.set.call_args[0]
    assert key == "journaling:session:s1"
    assert json.loads(payload)["template_id"] == "gratitude_journal"
    assert store._redis.set.call_args[1]["ttl_seconds"] == 3600


@pytest.mark.asyncio
async def test_save_reports_redis_failure(store: SessionStore, session: JournalingSession) -> None:
    store._redis.set.return_value = False
    assert await store.save(session) is False


@pytest.mark.asyncio
async def test_delete(store: SessionStore) -> None:
    assert await store.delete("session-x") is True
    store._redis.delete.assert_called_once_with("journaling:session:session-x")


@pytest.mark.asyncio
async def test_in_memory_store_returns_copies(session: JournalingSession) -> None:
    """Mutating a loaded session does not change the stored record."""
    mem = InMemorySessionStore()
    await mem.save(session)
    loaded = await mem.get("s1")
    assert loaded is not None
    loaded.current_step = 3
    again = await mem.get("s1")
    assert again is not None and again.current_step == 1
    await mem.delete("s1")
    assert await mem.get("s1") is None
