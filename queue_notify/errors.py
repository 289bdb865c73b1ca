"""Error taxonomy for the notification envelope layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from queue_notify.envelope import Notification


class NotifyError(Exception):
    """Base exception for queue_notify errors."""

    pass


class DuplicateSchemaError(NotifyError):
    """A schema with the same type and version is already registered."""

    def __init__(self, type_name: str, version: int):
        super().__init__(f"Schema already exists: {type_name}:{version}")
        self.type_name = type_name
        self.version = version


class SchemaNotFoundError(NotifyError):
    """No schema is registered for the requested type and version."""

    def __init__(self, type_name: str, version: int):
        super().__init__(f"Schema does not exist: {type_name}:{version}")
        self.type_name = type_name
        self.version = version


class EncodingError(NotifyError):
    """Payload could not be normalized or serialized for sending."""

    pass


class DecodingError(NotifyError):
    """Inbound envelope or its payload could not be decoded."""

    pass


class TransportError(NotifyError):
    """The queue gateway failed to send, receive or delete."""

    pass


class DeleteFailedError(TransportError):
    """Message decoded fine but could not be deleted from the queue.

    The decoded notification is kept on the error so callers that can
    tolerate duplicate delivery may still use it.
    """

    def __init__(self, message: str, notification: "Notification"):
        super().__init__(message)
        self.notification = notification
