"""Draft persistence adapters.

Keeps an in-progress reservation across a page reload. Storage is a
convenience: every adapter degrades to a no-op when its backend is
unavailable, and a storage failure never becomes a reservation failure.
Payment details are never written out.
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache

import redis
from pydantic import ValidationError as PydanticValidationError

from venservice.config import settings
from venservice.schemas.reservation import ReservationDraft

logger = logging.getLogger(__name__)

# Card numbers and CVVs stay in process memory only.
EXCLUDED_FIELDS = {"payment"}


@lru_cache
def get_redis_client() -> redis.Redis:
    """Shared Redis client for all sessions in this process."""
    return redis.Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )


def serialize_draft(draft: ReservationDraft) -> str:
    return draft.model_dump_json(exclude=EXCLUDED_FIELDS)


def deserialize_draft(raw: str | bytes) -> ReservationDraft | None:
    """Parse a stored draft; unreadable data counts as no draft."""
    try:
        return ReservationDraft.model_validate_json(raw)
    except (PydanticValidationError, ValueError) as e:
        logger.warning(f"Discarding unreadable reservation draft: {e}")
        return None


class DraftStorage(ABC):
    """Persistence port handed to the reservation machine."""

    @abstractmethod
    def save(self, draft: ReservationDraft) -> None:
        """Persist the draft, replacing any previous one."""
        pass

    @abstractmethod
    def load(self) -> ReservationDraft | None:
        """Return the persisted draft, or None."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget the persisted draft."""
        pass


class NullDraftStorage(DraftStorage):
    """Storage that keeps nothing."""

    def save(self, draft: ReservationDraft) -> None:
        return None

    def load(self) -> ReservationDraft | None:
        return None

    def clear(self) -> None:
        return None


class InMemoryDraftStorage(DraftStorage):
    """Process-local storage, serialized the same way as Redis."""

    def __init__(self) -> None:
        self._raw: str | None = None

    @property
    def raw(self) -> str | None:
        """Serialized draft as stored."""
        return self._raw

    def save(self, draft: ReservationDraft) -> None:
        self._raw = serialize_draft(draft)

    def load(self) -> ReservationDraft | None:
        if self._raw is None:
            return None
        return deserialize_draft(self._raw)

    def clear(self) -> None:
        self._raw = None


class RedisDraftStorage(DraftStorage):
    """Redis-backed storage keyed per reservation session."""

    def __init__(
        self,
        key: str,
        client: redis.Redis | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Initialize storage.

        Args:
            key: Redis key holding this session's draft
            client: Redis client (defaults to one built from settings)
            ttl_seconds: Expiry applied on every save
        """
        self.key = key
        self.ttl_seconds = ttl_seconds or settings.draft_ttl_seconds
        self._client = client

    @property
    def client(self) -> redis.Redis:
        """Lazy-load Redis client."""
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def save(self, draft: ReservationDraft) -> None:
        try:
            self.client.set(self.key, serialize_draft(draft), ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Draft storage unavailable, not saving {self.key}: {e}")

    def load(self) -> ReservationDraft | None:
        try:
            raw = self.client.get(self.key)
        except redis.RedisError as e:
            logger.warning(f"Draft storage unavailable, not loading {self.key}: {e}")
            return None
        if raw is None:
            return None
        return deserialize_draft(raw)

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except redis.RedisError as e:
            logger.warning(f"Draft storage unavailable, not clearing {self.key}: {e}")


def get_draft_storage(session_id: str) -> DraftStorage:
    """Build the configured storage for a reservation session."""
    if settings.draft_storage_backend == "redis":
        return RedisDraftStorage(key=f"{settings.draft_storage_key_prefix}:{session_id}")
    return InMemoryDraftStorage()
