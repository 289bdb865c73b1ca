"""In-process queue gateway with visibility-timeout semantics."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass

from instrukt_ai_logging import get_logger

from queue_notify.errors import TransportError
from queue_notify.gateway import ReceivedMessage

logger = get_logger(__name__)


@dataclass
class _StoredMessage:
    message_id: str
    body: bytes
    visible_at: float = 0.0
    receipt: str | None = None
    receive_count: int = 0


class InMemoryQueueGateway:
    """FIFO queue held in memory.

    Received messages stay on the queue but are hidden for
    ``visibility_timeout`` seconds; each receive issues a fresh ack-handle and
    only the latest one can delete the message.
    """

    def __init__(self, *, max_messages: int = 10, visibility_timeout: float = 30.0) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._max_messages = max_messages
        self._visibility_timeout = visibility_timeout
        self._messages: dict[str, _StoredMessage] = {}
        self._receipts: dict[str, str] = {}
        self.sent_count = 0
        self.deleted_count = 0

    async def send(self, body: bytes) -> None:
        message_id = uuid.uuid4().hex
        self._messages[message_id] = _StoredMessage(message_id=message_id, body=bytes(body))
        self.sent_count += 1

    async def receive_batch(self) -> list[ReceivedMessage]:
        now = time.monotonic()
        batch: list[ReceivedMessage] = []
        for stored in self._messages.values():
            if len(batch) >= self._max_messages:
                break
            if stored.visible_at > now:
                continue
            if stored.receipt is not None:
                self._receipts.pop(stored.receipt, None)
            stored.receipt = uuid.uuid4().hex
            stored.visible_at = now + self._visibility_timeout
            stored.receive_count += 1
            self._receipts[stored.receipt] = stored.message_id
            batch.append(ReceivedMessage(body=stored.body, ack_handle=stored.receipt))
        return batch

    async def delete(self, ack_handle: str) -> None:
        message_id = self._receipts.pop(ack_handle, None)
        if message_id is None:
            raise TransportError(f"Unknown or expired ack handle: {ack_handle}")
        self._messages.pop(message_id, None)
        self.deleted_count += 1

    async def release(self, ack_handle: str) -> None:
        message_id = self._receipts.get(ack_handle)
        if message_id is None:
            logger.debug("release for unknown ack handle ignored", ack_handle=ack_handle)
            return
        self._messages[message_id].visible_at = 0.0

    def __len__(self) -> int:
        return len(self._messages)

    def receive_count(self, ack_handle: str) -> int:
        message_id = self._receipts.get(ack_handle)
        return self._messages[message_id].receive_count if message_id else 0
