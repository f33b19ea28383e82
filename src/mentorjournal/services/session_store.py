import json
import logging
from datetime import datetime
from typing import Any, Dict

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..models import JournalingSession, Message, MessageSender, SessionStatus
from ..settings import get_settings
from .redis import RedisCrudService, get_redis_crud_service

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "journaling:session:"


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "content": message.content,
        "sender": message.sender.value,
        "timestamp": message.timestamp.isoformat(),
    }


def dict_to_message(data: Dict[str, Any]) -> Message:
    return Message(
        id=data["id"],
        content=data["content"],
        sender=MessageSender(data["sender"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


def session_to_dict(session: JournalingSession) -> Dict[str, Any]:
    """Serialize a session to a JSON-serializable dict."""
    return {
        "id": session.id,
        "template_id": session.template_id,
        "template_name": session.template_name,
        "conversation": [message_to_dict(m) for m in session.conversation],
        "current_step": session.current_step,
        "is_complete": session.is_complete,
        "extracted_data": session.extracted_data,
        "created_at": session.created_at.isoformat(),
        "last_updated": session.last_updated.isoformat(),
        "status": session.status.value,
    }


def dict_to_session(data: Dict[str, Any]) -> JournalingSession:
    """Build a session from a stored dict."""
    return JournalingSession(
        id=data["id"],
        template_id=data["template_id"],
        template_name=data.get("template_name", ""),
        conversation=[dict_to_message(m) for m in data.get("conversation", [])],
        current_step=int(data.get("current_step", 0)),
        is_complete=bool(data.get("is_complete", False)),
        extracted_data=data.get("extracted_data"),
        created_at=datetime.fromisoformat(data["created_at"]),
        last_updated=datetime.fromisoformat(data["last_updated"]),
        status=SessionStatus(data.get("status", SessionStatus.IN_PROGRESS.value)),
    )


class SessionStore:
    """In-progress journaling sessions kept in Redis with a TTL."""

    def __init__(self, redis_crud: RedisCrudService, ttl_seconds: int) -> None:
        self._redis = redis_crud
        self._ttl = ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    async def get(self, session_id: str) -> JournalingSession | None:
        """Load a session. Returns None if missing or unreadable."""
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None
        try:
            return dict_to_session(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid session data for %s: %s", session_id, e)
            return None

    async def save(self, session: JournalingSession) -> bool:
        """Create or replace a session record. Returns True on success."""
        try:
            payload = json.dumps(session_to_dict(session))
        except (TypeError, ValueError) as e:
            logger.warning("Session serialization failed for %s: %s", session.id, e)
            return False
        return await self._redis.set(self._key(session.id), payload, ttl_seconds=self._ttl)

    async def delete(self, session_id: str) -> bool:
        return await self._redis.delete(self._key(session_id))

    async def close(self) -> None:
        await self._redis.close()


class InMemorySessionStore:
    """Process-local session store used when Redis is not configured."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, Any]] = {}

    async def get(self, session_id: str) -> JournalingSession | None:
        data = self._sessions.get(session_id)
        return dict_to_session(data) if data is not None else None

    async def save(self, session: JournalingSession) -> bool:
        # Stored as dicts so callers never share a mutable session object.
        self._sessions[session.id] = session_to_dict(session)
        return True

    async def delete(self, session_id: str) -> bool:
        self._sessions.pop(session_id, None)
        return True

    async def close(self) -> None:
        self._sessions.clear()


_session_store_instance: SessionStore | InMemorySessionStore | None = None


async def get_session_store_async() -> SessionStore | InMemorySessionStore:
    """Return the session store, connecting to Redis when configured. Cached.

    Falls back to the in-memory store if Redis is not configured or unreachable.
    """
    global _session_store_instance
    if _session_store_instance is not None:
        return _session_store_instance
    redis_crud = get_redis_crud_service()
    if redis_crud is not None:
        try:
            await redis_crud.connect()
            _session_store_instance = SessionStore(
                redis_crud=redis_crud,
                ttl_seconds=get_settings().session_ttl_seconds,
            )
            return _session_store_instance
        except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
            logger.warning("Session store unavailable (Redis), using memory: %s", e)
    _session_store_instance = InMemorySessionStore()
    return _session_store_instance


async def close_session_store() -> None:
    """Close the store used by the service. Idempotent."""
    global _session_store_instance
    if _session_store_instance is not None:
        await _session_store_instance.close()
        _session_store_instance = None
        logger.debug("Session store closed")
