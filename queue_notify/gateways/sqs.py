"""Amazon SQS queue gateway (boto3)."""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ReadTimeoutError
from instrukt_ai_logging import get_logger

from queue_notify.errors import TransportError
from queue_notify.gateway import ReceivedMessage

logger = get_logger(__name__)

# Upper bounds enforced by SQS itself.
SQS_MAX_MESSAGES = 10
SQS_MAX_WAIT_SECONDS = 20


class SqsQueueGateway:
    """Gateway over one SQS queue URL.

    boto3 is blocking, so every call runs in a worker thread. A long poll
    that hits the client read timeout yields an empty batch.
    """

    def __init__(
        self,
        queue_url: str,
        *,
        client: Any = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        max_messages: int = 1,
        wait_time_seconds: int = 0,
        visibility_timeout: int | None = None,
    ) -> None:
        if not 1 <= max_messages <= SQS_MAX_MESSAGES:
            raise ValueError(f"max_messages must be between 1 and {SQS_MAX_MESSAGES}")
        if not 0 <= wait_time_seconds <= SQS_MAX_WAIT_SECONDS:
            raise ValueError(f"wait_time_seconds must be between 0 and {SQS_MAX_WAIT_SECONDS}")
        self.queue_url = queue_url
        self._max_messages = max_messages
        self._wait_time_seconds = wait_time_seconds
        self._visibility_timeout = visibility_timeout
        self._client = client or boto3.client(
            "sqs",
            region_name=region,
            endpoint_url=endpoint_url,
            config=Config(read_timeout=wait_time_seconds + 10),
        )

    async def send(self, body: bytes) -> None:
        await self._call("send_message", QueueUrl=self.queue_url, MessageBody=body.decode("utf-8"))

    async def receive_batch(self) -> list[ReceivedMessage]:
        params: dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": self._max_messages,
            "WaitTimeSeconds": self._wait_time_seconds,
        }
        if self._visibility_timeout is not None:
            params["VisibilityTimeout"] = self._visibility_timeout
        try:
            response = await self._call("receive_message", **params)
        except TransportError as exc:
            if isinstance(exc.__cause__, ReadTimeoutError):
                logger.debug("SQS long poll timed out", queue_url=self.queue_url)
                return []
            raise
        return [
            ReceivedMessage(body=message["Body"].encode("utf-8"), ack_handle=message["ReceiptHandle"])
            for message in response.get("Messages", [])
        ]

    async def delete(self, ack_handle: str) -> None:
        await self._call("delete_message", QueueUrl=self.queue_url, ReceiptHandle=ack_handle)

    async def release(self, ack_handle: str) -> None:
        await self._call(
            "change_message_visibility",
            QueueUrl=self.queue_url,
            ReceiptHandle=ack_handle,
            VisibilityTimeout=0,
        )

    async def _call(self, operation: str, **params: Any) -> Any:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(f"SQS {operation} failed: {exc}") from exc
