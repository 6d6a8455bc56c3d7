"""Active-policy cache: Redis in deployment, in-process TTL map otherwise."""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
from pydantic import TypeAdapter

from app.core.enums import LoanType
from app.models.domain.policy import Policy
from app.models.schemas.policy import PolicyResponse

logger = logging.getLogger(__name__)

ACTIVE_POLICIES_PREFIX = "policy:active:entities:"
DEFAULT_TTL_SECONDS = 1800

_SNAPSHOTS = TypeAdapter(List[PolicyResponse])


def active_policies_key(loan_type: LoanType) -> str:
    """Cache key for the active policies of a loan type."""
    return f"{ACTIVE_POLICIES_PREFIX}{loan_type.value}"


def dump_policies(policies: List[Policy]) -> bytes:
    """Serialize policies to the JSON snapshot stored in the cache."""
    snapshots = [PolicyResponse.model_validate(policy) for policy in policies]
    return _SNAPSHOTS.dump_json(snapshots, by_alias=True)


def load_policies(payload: bytes) -> List[Policy]:
    """Rebuild detached Policy aggregates from a cached JSON snapshot."""
    return [snapshot.to_policy() for snapshot in _SNAPSHOTS.validate_json(payload)]


class PolicyCache:
    """
    Interface for the active-policy cache.

    Implementations never raise: a failing backend is logged at WARNING and
    reported as a miss, so callers fall through to the repository.
    """

    async def start(self) -> None:
        """Open connections, if any."""

    async def stop(self) -> None:
        """Release connections, if any."""

    async def get(self, key: str) -> Optional[List[Policy]]:
        raise NotImplementedError

    async def set(self, key: str, policies: List[Policy], ttl_seconds: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, *keys: str) -> None:
        raise NotImplementedError

    async def health_check(self) -> bool:
        return True


class RedisPolicyCache(PolicyCache):
    """Redis-backed cache storing policy snapshots as JSON with a TTL."""

    def __init__(self, redis_url: str, default_ttl: int = DEFAULT_TTL_SECONDS):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.redis: Optional[redis.Redis] = None

    async def start(self) -> None:
        """Create the client and check connectivity; an unreachable server is not fatal."""
        self.redis = redis.from_url(
            self.redis_url,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await self.redis.ping()
            logger.info("Redis policy cache started")
        except redis.RedisError as e:
            logger.warning(f"Redis unreachable at startup, cache will be bypassed until it recovers: {e}")

    async def stop(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis policy cache stopped")

    async def get(self, key: str) -> Optional[List[Policy]]:
        if self.redis is None:
            return None
        try:
            payload = await self.redis.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis cache read failed for {key}: {e}")
            return None
        if payload is None:
            return None
        try:
            return load_policies(payload)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def set(self, key: str, policies: List[Policy], ttl_seconds: Optional[int] = None) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.setex(key, ttl_seconds or self.default_ttl, dump_policies(policies))
        except redis.RedisError as e:
            logger.warning(f"Failed to cache active policies for {key}: {e}")

    async def delete(self, *keys: str) -> None:
        if self.redis is None or not keys:
            return
        try:
            await self.redis.delete(*keys)
            logger.debug(f"Evicted cache keys: {', '.join(keys)}")
        except redis.RedisError as e:
            logger.warning(f"Failed to evict cache keys {', '.join(keys)}: {e}")

    async def health_check(self) -> bool:
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except redis.RedisError:
            return False


class InMemoryPolicyCache(PolicyCache):
    """
    Process-local TTL cache used when no Redis URL is configured.

    Entries hold the same JSON snapshot Redis would, so hits return
    detached copies that callers cannot mutate in place.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, bytes]] = {}

    async def get(self, key: str) -> Optional[List[Policy]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return load_policies(payload)

    async def set(self, key: str, policies: List[Policy], ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds or self.default_ttl
        self._entries[key] = (self._clock() + ttl, dump_policies(policies))

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[0]
