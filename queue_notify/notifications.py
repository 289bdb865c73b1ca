"""Notifications facade: schema registry, codec and receive loop over one queue."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from instrukt_ai_logging import get_logger

from queue_notify.codec import EnvelopeCodec
from queue_notify.envelope import Notification
from queue_notify.gateway import QueueGateway
from queue_notify.receiver import DEFAULT_RATE, BatchPolicy, ReceiveLoop
from queue_notify.schema import SchemaDescriptor, SchemaRegistry

if TYPE_CHECKING:
    from queue_notify.config import NotifyConfig

logger = get_logger(__name__)


class Notifications:
    """Send and receive schema-versioned notifications over a queue gateway.

    Every participant registers the schemas it sends or accepts; schemas are
    never exchanged over the queue. Construction performs no I/O.

    Usage:
        notifications = Notifications(gateway, "orders")
        notifications.add_schema(SchemaDescriptor("order.created", 1, OrderCreated))
        await notifications.send(Notification(type_name="order.created", version=1, data=order))
        received = await notifications.receive(timeout=30)
    """

    def __init__(
        self,
        gateway: QueueGateway,
        queue: str,
        *,
        rate: float = DEFAULT_RATE,
        batch_policy: BatchPolicy = BatchPolicy.LEAVE,
    ) -> None:
        self.gateway = gateway
        self.queue = queue
        self.schemas = SchemaRegistry()
        self.codec = EnvelopeCodec(self.schemas)
        self._receiver = ReceiveLoop(gateway, self.codec, rate=rate, batch_policy=batch_policy)

    @classmethod
    def from_config(cls, config: "NotifyConfig") -> "Notifications":
        from queue_notify.config import create_gateway

        return cls(
            create_gateway(config),
            config.queue,
            rate=config.rate,
            batch_policy=config.batch_policy,
        )

    @property
    def rate(self) -> float:
        """Seconds to wait before each poll of the queue."""
        return self._receiver.rate

    @rate.setter
    def rate(self, value: float) -> None:
        if value < 0:
            raise ValueError("rate must not be negative")
        self._receiver.rate = value

    def add_schema(self, descriptor: SchemaDescriptor) -> None:
        self.schemas.add(descriptor)
        logger.debug("schema registered", queue=self.queue, type=descriptor.type_name, version=descriptor.version)

    async def send(self, notification: Notification) -> Notification:
        """Normalize, encode and send; return the notification as it went out.

        Raises:
            SchemaNotFoundError: No schema for the notification's type and version.
            EncodingError: The payload does not fit the registered shape.
            TransportError: The gateway failed to send.
        """
        body, sent = self.codec.encode_notification(notification)
        await self.gateway.send(body)
        logger.debug("sent notification", queue=self.queue, type=sent.type_name, version=sent.version)
        return sent

    async def receive(self, *, timeout: float | None = None) -> Notification:
        """Run exactly one poll-decode-delete cycle and return its notification.

        Blocks until a message is decoded or an error occurs. With ``timeout``
        the cycle is cancelled after that many seconds and ``TimeoutError`` is
        raised. Keep ``timeout`` above ``rate`` plus the gateway's long-poll wait
        (SQS ``wait_time_seconds``, Redis ``block_ms``): a cycle cancelled while
        the gateway is mid-poll may leave the fetched message hidden until its
        visibility timeout expires. Nothing is deleted by a cancelled cycle.

        Raises:
            SchemaNotFoundError: The message's type and version are not registered.
            DecodingError: Malformed envelope, bad base64 or shape mismatch.
            DeleteFailedError: Decoded, but the delete failed (see ``.notification``).
            TransportError: The gateway failed to receive.
        """
        if timeout is None:
            return await self._receiver.run_cycle()
        return await asyncio.wait_for(self._receiver.run_cycle(), timeout=timeout)
