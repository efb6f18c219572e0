"""
Webhook Queue Repository

Redis list implementation of the webhook queue. Producers RPUSH to the
tail; the delivery worker BLPOPs from the head, so tasks are delivered in
arrival order. Retried tasks are RPUSHed again and therefore wait behind
anything that arrived in the meantime.
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...constants import WEBHOOK_QUEUE_KEY
from ...services.webhooks.tasks import WebhookTask
from ..redis.exceptions import QueueSerializationException, wrap_redis_error

logger = logging.getLogger(__name__)


class RedisWebhookQueue:
    """
    Durable FIFO of webhook tasks stored as JSON strings in one Redis list.

    The client must be created with `decode_responses=True` and a socket
    timeout longer than any dequeue wait.
    """

    name = "RedisQueue"

    def __init__(self, client: Redis, key: str = WEBHOOK_QUEUE_KEY):
        self._client = client
        self.key = key

    async def enqueue(self, task: WebhookTask) -> None:
        """Append a task to the tail of the queue."""
        payload = self._encode(task)
        try:
            await self._client.rpush(self.key, payload)
        except RedisError as e:
            raise wrap_redis_error("rpush", e, key=self.key)

        logger.debug(
            f"Enqueued webhook task {task.check_id}",
            extra={"key": self.key, "retry_count": task.retry_count},
        )

    async def requeue(self, task: WebhookTask) -> None:
        """Put a retried task back at the tail."""
        await self.enqueue(task)

    async def dequeue(self, timeout_seconds: float) -> Optional[WebhookTask]:
        """
        Pop the head of the queue, blocking up to `timeout_seconds`.

        Returns None when nothing arrived in time. A popped entry that cannot
        be decoded is already gone from the list when this raises.
        """
        try:
            item = await self._client.blpop([self.key], timeout=timeout_seconds)
        except RedisError as e:
            raise wrap_redis_error(
                "blpop", e, key=self.key, timeout_seconds=timeout_seconds
            )

        if item is None:
            return None

        _, raw = item
        return self._decode(raw)

    async def size(self) -> int:
        try:
            return int(await self._client.llen(self.key))
        except RedisError as e:
            raise wrap_redis_error("llen", e, key=self.key)

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as e:
            raise wrap_redis_error("ping", e, key=self.key)

    def _encode(self, task: WebhookTask) -> str:
        try:
            return task.to_json()
        except (ValueError, TypeError) as e:
            raise QueueSerializationException(
                message="Failed to encode webhook task", key=self.key, original_error=e
            )

    def _decode(self, raw: Union[str, bytes]) -> WebhookTask:
        try:
            return WebhookTask.from_json(raw)
        except ValidationError as e:
            logger.error(
                f"Discarding undecodable webhook task from {self.key}: {e}",
                extra={"key": self.key},
            )
            raise QueueSerializationException(
                message="Failed to decode webhook task", key=self.key, original_error=e
            )
