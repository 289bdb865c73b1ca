"""Envelope (the wire record) and Notification, its application-facing form."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Envelope(BaseModel):
    """Outer wire record; ``payload`` is the base64 of the schema-shaped JSON."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: datetime
    type_name: str = Field(alias="type")
    version: int
    payload: str = Field(alias="notification")

    def to_wire(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_wire(cls, body: bytes | str) -> "Envelope":
        return cls.model_validate_json(body)


class Notification(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    time: datetime | None = None
    type_name: str
    version: int
    # Native value on send; a fresh instance of the registered shape after decode.
    data: Any = None
