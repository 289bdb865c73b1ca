"""Queue gateway contract: the transport boundary the envelope layer needs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ReceivedMessage:
    body: bytes
    ack_handle: str


@runtime_checkable
class QueueGateway(Protocol):
    """Byte-oriented queue with send / receive-batch / delete-by-handle.

    Implementations raise ``TransportError`` on any failure. A long-poll
    timeout is not a failure: ``receive_batch`` returns an empty list.
    """

    async def send(self, body: bytes) -> None: ...

    async def receive_batch(self) -> list[ReceivedMessage]: ...

    async def delete(self, ack_handle: str) -> None: ...


@runtime_checkable
class ReleasableGateway(Protocol):
    """Gateway that can hand a received, unprocessed message back to the queue."""

    async def release(self, ack_handle: str) -> None: ...
