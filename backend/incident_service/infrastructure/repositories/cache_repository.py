"""
Active Incident Cache Repository

Redis-backed cache of active incidents used by the cache-aside read path.
Entries are JSON-encoded `IncidentRecord`s stored under
`incident:active:<id>` with a fixed TTL.
"""

import logging
from typing import Optional
from uuid import UUID

from opentelemetry import trace
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...constants import ACTIVE_INCIDENT_PREFIX
from ...domain.incidents.entities import IncidentRecord
from ..redis.exceptions import IncidentCacheException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300


def active_incident_key(incident_id: UUID) -> str:
    return f"{ACTIVE_INCIDENT_PREFIX}{incident_id}"


class RedisIncidentCache:
    """
    Redis implementation of the active incident cache.

    Commands raise `IncidentCacheException` on store errors; callers treat the cache
    as best effort and keep serving from the database.
    """

    name = "RedisCache"

    def __init__(self, client: Redis, ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS):
        self._client = client
        self.ttl_seconds = ttl_seconds

    async def set_active(self, incident: IncidentRecord) -> None:
        """Cache an active incident for `ttl_seconds`."""
        key = active_incident_key(incident.id)
        with tracer.start_as_current_span("cache.set_active") as span:
            span.set_attribute("cache.key", key)
            try:
                await self._client.set(
                    key, incident.model_dump_json(), ex=self.ttl_seconds
                )
            except RedisError as e:
                logger.error(f"Failed to cache incident {incident.id}: {e}")
                raise IncidentCacheException(
                    f"Failed to cache incident: {e}",
                    error_code="CACHE_WRITE_ERROR",
                    key=key,
                    original_error=e,
                )

    async def get_active(self, incident_id: UUID) -> Optional[IncidentRecord]:
        """Return the cached incident, or None on a miss."""
        key = active_incident_key(incident_id)
        with tracer.start_as_current_span("cache.get_active") as span:
            span.set_attribute("cache.key", key)
            try:
                raw = await self._client.get(key)
            except RedisError as e:
                logger.error(f"Failed to read cached incident {incident_id}: {e}")
                raise IncidentCacheException(
                    f"Failed to read cached incident: {e}",
                    error_code="CACHE_READ_ERROR",
                    key=key,
                    original_error=e,
                )

            span.set_attribute("cache.hit", raw is not None)
            if raw is None:
                return None

            try:
                return IncidentRecord.model_validate_json(raw)
            except ValidationError as e:
                # stale layout from an older release; treat as a miss
                logger.warning(f"Dropping undecodable cache entry {key}: {e}")
                await self.delete_active(incident_id)
                return None

    async def delete_active(self, incident_id: UUID) -> None:
        key = active_incident_key(incident_id)
        try:
            await self._client.delete(key)
        except RedisError as e:
            logger.error(f"Failed to evict cached incident {incident_id}: {e}")
            raise IncidentCacheException(
                f"Failed to evict cached incident: {e}",
                error_code="CACHE_DELETE_ERROR",
                key=key,
                original_error=e,
            )

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as e:
            raise IncidentCacheException(
                f"Redis ping failed: {e}",
                error_code="REDIS_PING_ERROR",
                original_error=e,
            )
