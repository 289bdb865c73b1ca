"""Tests for NotificationConsumer."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel

from queue_notify.consumer import NotificationConsumer
from queue_notify.envelope import Notification
from queue_notify.errors import DecodingError, DeleteFailedError, TransportError
from queue_notify.gateway import ReceivedMessage
from queue_notify.gateways.memory import InMemoryQueueGateway
from queue_notify.notifications import Notifications
from queue_notify.schema import SchemaDescriptor


class ExampleData(BaseModel):
    String: str = ""
    Int: int = 0


class SlowPollGateway(InMemoryQueueGateway):
    """Memory gateway whose receive blocks like a transport long poll."""

    def __init__(self, poll_seconds: float) -> None:
        super().__init__(max_messages=1)
        self.poll_seconds = poll_seconds
        self.polls_started = 0
        self.polls_finished = 0

    async def receive_batch(self) -> list[ReceivedMessage]:
        self.polls_started += 1
        await asyncio.sleep(self.poll_seconds)
        batch = await super().receive_batch()
        self.polls_finished += 1
        return batch


def _make_notifications(gateway: InMemoryQueueGateway | None = None) -> Notifications:
    notifications = Notifications(gateway if gateway is not None else InMemoryQueueGateway(max_messages=1), "test-queue", rate=0.005)
    notifications.add_schema(SchemaDescriptor("testing", 1, ExampleData))
    return notifications


def _mock_notifications(*outcomes: object) -> MagicMock:
    """Notifications whose receive yields ``outcomes`` in order, then waits forever."""
    pending = list(outcomes)

    async def receive() -> Notification:
        if not pending:
            await asyncio.Event().wait()
        outcome = pending.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]

    notifications = MagicMock()
    notifications.queue = "test-queue"
    notifications.receive = AsyncMock(side_effect=receive)
    return notifications


async def _run_until(consumer: NotificationConsumer, condition, timeout: float = 0.5) -> int:
    shutdown_event = asyncio.Event()
    task = asyncio.create_task(consumer.start(shutdown_event))
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition() and asyncio.get_running_loop().time() < deadline:
        await asyncio.sleep(0.005)
    shutdown_event.set()
    return await asyncio.wait_for(task, timeout=0.3)


@pytest.mark.asyncio
async def test_consumer_dispatches_until_shutdown() -> None:
    notifications = _make_notifications()
    for i in range(3):
        await notifications.send(Notification(type_name="testing", version=1, data=ExampleData(Int=i)))

    seen: list[int] = []
    consumer = NotificationConsumer(notifications, lambda n: seen.append(n.data.Int))

    processed = await _run_until(consumer, lambda: len(seen) == 3)

    assert seen == [0, 1, 2]
    assert processed == 3


@pytest.mark.asyncio
async def test_consumer_awaits_async_handler() -> None:
    notifications = _make_notifications()
    await notifications.send(Notification(type_name="testing", version=1, data=ExampleData(String="async")))
    handler = AsyncMock()
    consumer = NotificationConsumer(notifications, handler)

    await _run_until(consumer, lambda: handler.await_count == 1)

    handler.assert_awaited_once()
    assert handler.await_args.args[0].data.String == "async"


@pytest.mark.asyncio
async def test_handler_failure_does_not_stop_consumer() -> None:
    notifications = _make_notifications()
    for i in range(2):
        await notifications.send(Notification(type_name="testing", version=1, data=ExampleData(Int=i)))

    calls: list[int] = []

    def handler(notification: Notification) -> None:
        calls.append(notification.data.Int)
        if notification.data.Int == 0:
            raise RuntimeError("handler bug")

    consumer = NotificationConsumer(notifications, handler)
    processed = await _run_until(consumer, lambda: len(calls) == 2)

    assert calls == [0, 1]
    assert processed == 2


@pytest.mark.asyncio
async def test_slow_long_poll_completes_and_is_delivered() -> None:
    gateway = SlowPollGateway(poll_seconds=0.15)
    notifications = _make_notifications(gateway)
    await notifications.send(Notification(type_name="testing", version=1, data=ExampleData(String="late")))
    handler = MagicMock()
    consumer = NotificationConsumer(notifications, handler)

    await _run_until(consumer, lambda: handler.call_count == 1, timeout=0.6)

    handler.assert_called_once()
    assert handler.call_args.args[0].data.String == "late"
    assert gateway.deleted_count == 1
    assert len(gateway) == 0
    assert gateway.polls_finished >= 1


@pytest.mark.asyncio
async def test_shutdown_cancels_poll_in_flight() -> None:
    gateway = SlowPollGateway(poll_seconds=10.0)
    notifications = _make_notifications(gateway)
    shutdown_event = asyncio.Event()
    task = asyncio.create_task(NotificationConsumer(notifications, MagicMock()).start(shutdown_event))

    while gateway.polls_started == 0:
        await asyncio.sleep(0.005)
    shutdown_event.set()
    processed = await asyncio.wait_for(task, timeout=0.3)

    assert processed == 0
    assert gateway.polls_finished == 0


@pytest.mark.asyncio
async def test_consumer_skips_undecodable_and_backs_off_on_transport_errors() -> None:
    ok = Notification(type_name="testing", version=1, data=ExampleData(String="ok"))
    notifications = _mock_notifications(DecodingError("bad"), TransportError("down"), ok)
    handler = MagicMock()
    consumer = NotificationConsumer(notifications, handler, error_backoff=0.01)

    processed = await _run_until(consumer, lambda: handler.call_count == 1)

    handler.assert_called_once_with(ok)
    assert processed == 1
    assert notifications.receive.await_count >= 3


@pytest.mark.asyncio
async def test_consumer_dispatches_notification_whose_delete_failed() -> None:
    kept = Notification(type_name="testing", version=1, data=ExampleData(String="kept"))
    notifications = _mock_notifications(DeleteFailedError("delete refused", kept))
    handler = MagicMock()
    consumer = NotificationConsumer(notifications, handler)

    await _run_until(consumer, lambda: handler.call_count == 1)

    handler.assert_called_once_with(kept)


@pytest.mark.asyncio
async def test_consumer_returns_immediately_when_already_shut_down() -> None:
    notifications = _mock_notifications()
    shutdown_event = asyncio.Event()
    shutdown_event.set()

    processed = await NotificationConsumer(notifications, MagicMock()).start(shutdown_event)

    assert processed == 0
    notifications.receive.assert_not_called()
