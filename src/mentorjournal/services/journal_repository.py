import json
import logging
from datetime import datetime
from typing import Any, Dict, List

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..models import JournalEntry
from ..settings import get_settings
from .redis import RedisCrudService, get_redis_crud_service

logger = logging.getLogger(__name__)


def entry_to_dict(entry: JournalEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.type,
        "structured_session_id": entry.structured_session_id,
        "structured_data": entry.structured_data,
        "content": entry.content,
        "created_at": entry.created_at.isoformat(),
    }


def dict_to_entry(data: Dict[str, Any]) -> JournalEntry:
    return JournalEntry(
        id=data["id"],
        type=data.get("type", "structured_journal"),
        structured_session_id=data["structured_session_id"],
        structured_data=data.get("structured_data") or {},
        content=data.get("content", ""),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


class JournalRepository:
    """Saved journal entries, appended to a Redis list in creation order."""

    def __init__(self, redis_crud: RedisCrudService, key: str) -> None:
        self._redis = redis_crud
        self._key = key

    async def add_entry(self, entry: JournalEntry) -> bool:
        return await self._redis.append(self._key, json.dumps(entry_to_dict(entry)))

    async def list_entries(self) -> List[JournalEntry]:
        """Return all readable entries; corrupt items are skipped."""
        entries: List[JournalEntry] = []
        for raw in await self._redis.list_range(self._key):
            try:
                entries.append(dict_to_entry(json.loads(raw)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid journal entry in %s: %s", self._key, e)
        return entries

    async def get_entry(self, entry_id: str) -> JournalEntry | None:
        for entry in await self.list_entries():
            if entry.id == entry_id:
                return entry
        return None

    async def close(self) -> None:
        await self._redis.close()


class InMemoryJournalRepository:
    def __init__(self) -> None:
        self._entries: List[JournalEntry] = []

    async def add_entry(self, entry: JournalEntry) -> bool:
        self._entries.append(entry)
        return True

    async def list_entries(self) -> List[JournalEntry]:
        return list(self._entries)

    async def get_entry(self, entry_id: str) -> JournalEntry | None:
        return next((e for e in self._entries if e.id == entry_id), None)

    async def close(self) -> None:
        self._entries.clear()


_repository_instance: JournalRepository | InMemoryJournalRepository | None = None


async def get_journal_repository_async() -> JournalRepository | InMemoryJournalRepository:
    """Return the journal repository, connecting to Redis when configured. Cached."""
    global _repository_instance
    if _repository_instance is not None:
        return _repository_instance
    redis_crud = get_redis_crud_service()
    if redis_crud is not None:
        try:
            await redis_crud.connect()
            _repository_instance = JournalRepository(redis_crud, key=get_settings().journal_key)
            return _repository_instance
        except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
            logger.warning("Journal repository unavailable (Redis), using memory: %s", e)
    _repository_instance = InMemoryJournalRepository()
    return _repository_instance


async def close_journal_repository() -> None:
    global _repository_instance
    if _repository_instance is not None:
        await _repository_instance.close()
        _repository_instance = None
        logger.debug("Journal repository closed")
