"""Queue gateway implementations."""

from queue_notify.gateways.memory import InMemoryQueueGateway
from queue_notify.gateways.redis_stream import RedisStreamGateway
from queue_notify.gateways.sqs import SqsQueueGateway

__all__ = ["InMemoryQueueGateway", "RedisStreamGateway", "SqsQueueGateway"]
