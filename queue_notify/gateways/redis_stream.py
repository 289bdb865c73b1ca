"""Redis Streams queue gateway.

Messages are stream entries read through a consumer group. An entry that
was delivered but never deleted stays in the group's pending list; once it
has been idle for ``visibility_timeout_ms`` it is claimed again, which
gives SQS-like visibility semantics.
"""

from __future__ import annotations

import os
from typing import Any

from instrukt_ai_logging import get_logger
from redis.exceptions import RedisError, ResponseError

from queue_notify.errors import TransportError
from queue_notify.gateway import ReceivedMessage

logger = get_logger(__name__)

BODY_FIELD = "body"
CONSUMER_GROUP = "queue-notify"


def _str(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisStreamGateway:
    def __init__(
        self,
        redis_client: Any,
        stream: str,
        *,
        group: str = CONSUMER_GROUP,
        consumer_name: str | None = None,
        count: int = 10,
        block_ms: int = 1000,
        visibility_timeout_ms: int = 30000,
        maxlen: int = 10000,
    ) -> None:
        self._redis = redis_client
        self._stream = stream
        self._group = group
        self._consumer = consumer_name or f"consumer-{os.getpid()}"
        self._count = count
        self._block_ms = block_ms
        self._visibility_timeout_ms = visibility_timeout_ms
        self._maxlen = maxlen
        self._group_ready = False

    async def send(self, body: bytes) -> None:
        try:
            await self._redis.xadd(self._stream, {BODY_FIELD: body}, maxlen=self._maxlen)
        except RedisError as exc:
            raise TransportError(f"Redis XADD to {self._stream} failed: {exc}") from exc

    async def receive_batch(self) -> list[ReceivedMessage]:
        try:
            await self._ensure_consumer_group()
            claimed = await self._redis.xautoclaim(
                self._stream,
                self._group,
                self._consumer,
                min_idle_time=self._visibility_timeout_ms,
                start_id="0-0",
                count=self._count,
            )
            messages = self._to_messages(claimed[1] if claimed else [])
            if messages:
                logger.debug("reclaimed idle stream entries", stream=self._stream, count=len(messages))
                return messages

            entries = await self._redis.xreadgroup(
                self._group,
                self._consumer,
                {self._stream: ">"},
                count=self._count,
                block=self._block_ms,
            )
        except RedisError as exc:
            raise TransportError(f"Redis read from {self._stream} failed: {exc}") from exc

        messages = []
        for _stream, stream_entries in entries or []:
            messages.extend(self._to_messages(stream_entries))
        return messages

    async def delete(self, ack_handle: str) -> None:
        try:
            await self._redis.xack(self._stream, self._group, ack_handle)
            await self._redis.xdel(self._stream, ack_handle)
        except RedisError as exc:
            raise TransportError(f"Redis delete of {ack_handle} failed: {exc}") from exc

    async def release(self, ack_handle: str) -> None:
        # Mark the entry as idle long enough to be reclaimed on the next poll.
        try:
            await self._redis.xclaim(
                self._stream,
                self._group,
                self._consumer,
                min_idle_time=0,
                message_ids=[ack_handle],
                idle=self._visibility_timeout_ms,
            )
        except RedisError as exc:
            raise TransportError(f"Redis release of {ack_handle} failed: {exc}") from exc

    async def _ensure_consumer_group(self) -> None:
        if self._group_ready:
            return
        try:
            await self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._group_ready = True

    @staticmethod
    def _to_messages(entries: Any) -> list[ReceivedMessage]:
        messages = []
        for entry_id, fields in entries:
            # Entries deleted while pending come back with no fields.
            if not fields:
                continue
            data = {_str(k): v for k, v in fields.items()}
            body = data.get(BODY_FIELD)
            if body is None:
                logger.warning("stream entry without body field skipped", entry_id=_str(entry_id))
                continue
            if isinstance(body, str):
                body = body.encode()
            messages.append(ReceivedMessage(body=body, ack_handle=_str(entry_id)))
        return messages
