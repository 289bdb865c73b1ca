"""Notification consumer: drives receive cycles until shutdown."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable

from instrukt_ai_logging import get_logger

from queue_notify.envelope import Notification
from queue_notify.errors import DeleteFailedError, NotifyError, TransportError
from queue_notify.notifications import Notifications

logger = get_logger(__name__)

Handler = Callable[[Notification], Any]


class NotificationConsumer:
    """Calls ``receive`` repeatedly and hands each notification to ``handler``.

    The handler may be sync or async. Delivery is at-least-once: when a
    message decodes but cannot be deleted it is still dispatched, and the
    queue may deliver it again later.
    """

    def __init__(
        self,
        notifications: Notifications,
        handler: Handler,
        *,
        error_backoff: float = 1.0,
    ) -> None:
        self._notifications = notifications
        self._handler = handler
        self._error_backoff = error_backoff

    async def start(self, shutdown_event: asyncio.Event) -> int:
        """Consume until ``shutdown_event`` is set; return the number dispatched.

        A receive cycle is never cut short by a timer, so a gateway long poll
        always completes and its messages are handled. Only shutdown cancels
        the cycle in flight; a message the transport handed out during that
        cycle is redelivered after its visibility timeout.
        """
        queue = self._notifications.queue
        processed = 0
        logger.info("NotificationConsumer started", queue=queue)

        shutdown = asyncio.create_task(shutdown_event.wait())
        receiving: asyncio.Task[Notification] | None = None
        try:
            while not shutdown_event.is_set():
                receiving = asyncio.create_task(self._notifications.receive())
                await asyncio.wait({receiving, shutdown}, return_when=asyncio.FIRST_COMPLETED)
                if not receiving.done():
                    break

                try:
                    notification = receiving.result()
                except DeleteFailedError as exc:
                    logger.warning("notification not deleted, may be redelivered", queue=queue, error=str(exc))
                    notification = exc.notification
                except TransportError:
                    logger.exception("NotificationConsumer transport error; backing off", queue=queue)
                    await asyncio.sleep(self._error_backoff)
                    continue
                except NotifyError:
                    logger.exception("NotificationConsumer failed to decode message", queue=queue)
                    continue

                await self._dispatch(notification)
                processed += 1
        finally:
            for task in (receiving, shutdown):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        logger.info("NotificationConsumer stopped", queue=queue, processed=processed)
        return processed

    async def _dispatch(self, notification: Notification) -> None:
        try:
            result = self._handler(notification)
            if asyncio.iscoroutine(result):
                await result
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception(
                "notification handler failed",
                type=notification.type_name,
                version=notification.version,
            )
