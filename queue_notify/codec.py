"""Envelope codec: double-layer encoding of schema-shaped payloads.

Outbound payloads are validated and coerced into their registered shape
before they leave the process, so shape mismatches surface at send time.
The normalized payload is dumped to JSON and base64'd into the envelope's
``notification`` field; the envelope itself is JSON as well.

Inbound envelopes are only decoded when the receiving registry knows the
(type, version) pair. A receiver without the schema never guesses a shape.
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from queue_notify.envelope import Envelope, Notification
from queue_notify.errors import DecodingError, EncodingError
from queue_notify.schema import SchemaDescriptor, SchemaRegistry


class EnvelopeCodec:
    def __init__(self, registry: SchemaRegistry) -> None:
        self._registry = registry

    def normalize(self, type_name: str, version: int, payload: Any) -> Any:
        """Return ``payload`` coerced into a fresh instance of the registered shape."""
        return _normalize(self._registry.resolve(type_name, version), payload)

    def encode(self, type_name: str, version: int, payload: Any, *, sent_at: datetime | None = None) -> bytes:
        body, _, _ = self._seal(type_name, version, payload, sent_at)
        return body

    def encode_notification(self, notification: Notification) -> tuple[bytes, Notification]:
        """Encode a notification; also return it as sent (stamped time, normalized data)."""
        body, sent_at, data = self._seal(notification.type_name, notification.version, notification.data, None)
        return body, notification.model_copy(update={"time": sent_at, "data": data})

    def decode(self, body: bytes | str) -> Notification:
        try:
            envelope = Envelope.from_wire(body)
        except ValidationError as exc:
            raise DecodingError(f"Malformed envelope: {exc}") from exc

        descriptor = self._registry.resolve(envelope.type_name, envelope.version)

        try:
            raw = base64.b64decode(envelope.payload, validate=True)
        except ValueError as exc:
            raise DecodingError(
                f"Invalid payload encoding for {envelope.type_name}:{envelope.version}: {exc}"
            ) from exc

        try:
            data = descriptor.adapter.validate_json(raw)
        except ValidationError as exc:
            raise DecodingError(
                f"Payload does not match schema {envelope.type_name}:{envelope.version}: {exc}"
            ) from exc

        return Notification(
            time=envelope.time,
            type_name=envelope.type_name,
            version=envelope.version,
            data=data,
        )

    def _seal(
        self, type_name: str, version: int, payload: Any, sent_at: datetime | None
    ) -> tuple[bytes, datetime, Any]:
        descriptor = self._registry.resolve(type_name, version)
        normalized = _normalize(descriptor, payload)
        sent_at = sent_at or datetime.now(timezone.utc)
        try:
            raw = descriptor.adapter.dump_json(normalized, by_alias=True)
            envelope = Envelope(
                time=sent_at,
                type_name=type_name,
                version=version,
                payload=base64.b64encode(raw).decode("ascii"),
            )
            body = envelope.to_wire()
        except (PydanticSerializationError, ValueError) as exc:
            raise EncodingError(f"Failed to serialize {type_name}:{version}: {exc}") from exc
        return body, sent_at, normalized


def _normalize(descriptor: SchemaDescriptor, payload: Any) -> Any:
    try:
        generic = to_jsonable_python(payload, by_alias=True)
        return descriptor.adapter.validate_python(generic)
    except (PydanticSerializationError, ValueError, TypeError) as exc:
        raise EncodingError(
            f"Payload does not match schema {descriptor.type_name}:{descriptor.version}: {exc}"
        ) from exc
