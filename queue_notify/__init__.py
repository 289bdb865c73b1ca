"""queue_notify: schema-versioned notification envelopes over message queues."""

from queue_notify.codec import EnvelopeCodec
from queue_notify.config import NotifyConfig, create_gateway, load_config
from queue_notify.consumer import NotificationConsumer
from queue_notify.envelope import Envelope, Notification
from queue_notify.errors import (
    DecodingError,
    DeleteFailedError,
    DuplicateSchemaError,
    EncodingError,
    NotifyError,
    SchemaNotFoundError,
    TransportError,
)
from queue_notify.gateway import QueueGateway, ReceivedMessage, ReleasableGateway
from queue_notify.notifications import Notifications
from queue_notify.receiver import BatchPolicy, ReceiveLoop
from queue_notify.schema import SchemaDescriptor, SchemaRegistry

__all__ = [
    "Notifications",
    "Notification",
    "Envelope",
    "EnvelopeCodec",
    "SchemaDescriptor",
    "SchemaRegistry",
    "ReceiveLoop",
    "BatchPolicy",
    "NotificationConsumer",
    "QueueGateway",
    "ReleasableGateway",
    "ReceivedMessage",
    "NotifyConfig",
    "load_config",
    "create_gateway",
    "NotifyError",
    "DuplicateSchemaError",
    "SchemaNotFoundError",
    "EncodingError",
    "DecodingError",
    "TransportError",
    "DeleteFailedError",
]
