"""Receive loop: poll, take the first message of a batch, decode, delete."""

from __future__ import annotations

import asyncio
from enum import Enum

from instrukt_ai_logging import get_logger

from queue_notify.codec import EnvelopeCodec
from queue_notify.envelope import Notification
from queue_notify.errors import DeleteFailedError, NotifyError, TransportError
from queue_notify.gateway import QueueGateway, ReceivedMessage, ReleasableGateway

logger = get_logger(__name__)

DEFAULT_RATE = 1.0


class BatchPolicy(str, Enum):
    """What happens to messages after the first one in a received batch."""

    LEAVE = "leave"  # untouched; the transport's visibility timeout redelivers them
    RELEASE = "release"  # handed back to the queue immediately, if the gateway supports it


class ReceiveLoop:
    """One poll-decode-delete cycle per call, at most one cycle in flight.

    Each cycle sleeps ``rate`` seconds before every poll, so an empty queue
    suspends the caller for at least one interval per attempt.
    """

    def __init__(
        self,
        gateway: QueueGateway,
        codec: EnvelopeCodec,
        *,
        rate: float = DEFAULT_RATE,
        batch_policy: BatchPolicy = BatchPolicy.LEAVE,
    ) -> None:
        self._gateway = gateway
        self._codec = codec
        self.rate = rate
        self.batch_policy = batch_policy
        self._lock = asyncio.Lock()

    async def run_cycle(self) -> Notification:
        async with self._lock:
            message, rest = await self._poll()
            if rest:
                await self._settle_unprocessed(rest)
            return await self._handle(message)

    async def _poll(self) -> tuple[ReceivedMessage, list[ReceivedMessage]]:
        while True:
            await asyncio.sleep(self.rate)
            batch = await self._gateway.receive_batch()
            if batch:
                return batch[0], batch[1:]

    async def _settle_unprocessed(self, rest: list[ReceivedMessage]) -> None:
        if self.batch_policy is not BatchPolicy.RELEASE or not isinstance(self._gateway, ReleasableGateway):
            logger.debug("leaving unprocessed messages to the queue", count=len(rest))
            return
        for message in rest:
            try:
                await self._gateway.release(message.ack_handle)
            except TransportError:
                # Not fatal: the visibility timeout brings the message back anyway.
                logger.warning("failed to release unprocessed message", ack_handle=message.ack_handle)

    async def _handle(self, message: ReceivedMessage) -> Notification:
        try:
            notification = self._codec.decode(message.body)
        except NotifyError as exc:
            logger.warning("failed to decode message, leaving it on the queue", error=str(exc))
            raise

        try:
            await self._gateway.delete(message.ack_handle)
        except TransportError as exc:
            raise DeleteFailedError(f"Decoded message could not be deleted: {exc}", notification) from exc

        logger.debug(
            "received notification",
            type=notification.type_name,
            version=notification.version,
        )
        return notification
