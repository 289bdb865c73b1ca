"""Schema registry: named, versioned payload shapes."""

from __future__ import annotations

import threading
import typing
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import BeforeValidator, TypeAdapter
from typing_extensions import TypedDict

from queue_notify.errors import DuplicateSchemaError, SchemaNotFoundError


def _shape_of(shape: Any, name: str) -> Any:
    # Classes and typing constructs (list[Foo], Optional[int], ...) are shapes already;
    # anything else is an exemplar value and its type is the shape.
    if isinstance(shape, type) or typing.get_origin(shape) is not None:
        return shape
    if isinstance(shape, dict):
        return _shape_of_mapping(shape, name)
    if isinstance(shape, (list, tuple, set, frozenset)):
        raise TypeError(
            f"Cannot infer a shape from a {type(shape).__name__} exemplar for {name}; "
            "declare it as a type such as list[Item]"
        )
    return type(shape)


def _shape_of_mapping(exemplar: dict[Any, Any], name: str) -> Any:
    """Build a TypedDict shape from a dict exemplar.

    Each value's type becomes the field type and the value itself the field's
    default, filled in when a payload omits the key. Unknown keys are dropped.
    """
    fields: dict[str, Any] = {}
    for key, value in exemplar.items():
        if not isinstance(key, str):
            raise TypeError(f"Exemplar keys must be strings, got {key!r} for {name}")
        fields[key] = Any if value is None else _shape_of(value, f"{name}.{key}")

    shape = TypedDict(name.replace(".", "_"), fields, total=False)  # type: ignore[operator]
    defaults = dict(exemplar)

    def with_defaults(value: Any) -> Any:
        if isinstance(value, dict):
            return {**defaults, **value}
        return value

    return Annotated[shape, BeforeValidator(with_defaults)]


@dataclass(frozen=True)
class SchemaDescriptor:
    """A registered payload shape for one (type_name, version) pair.

    ``shape`` may be a pydantic model, a dataclass, a TypedDict or any type
    pydantic can validate. An exemplar instance is also accepted; its type
    becomes the shape. A dict exemplar becomes a TypedDict whose field types
    and defaults come from its values.
    """

    type_name: str
    version: int
    shape: Any
    adapter: TypeAdapter[Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        shape = _shape_of(self.shape, f"{self.type_name}_v{self.version}")
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "adapter", TypeAdapter(shape))

    @property
    def key(self) -> tuple[str, int]:
        return (self.type_name, self.version)


class SchemaRegistry:
    def __init__(self) -> None:
        self._schemas: dict[str, dict[int, SchemaDescriptor]] = {}
        self._lock = threading.Lock()

    def add(self, descriptor: SchemaDescriptor) -> None:
        with self._lock:
            versions = self._schemas.setdefault(descriptor.type_name, {})
            if descriptor.version in versions:
                raise DuplicateSchemaError(descriptor.type_name, descriptor.version)
            versions[descriptor.version] = descriptor

    def resolve(self, type_name: str, version: int) -> SchemaDescriptor:
        with self._lock:
            descriptor = self._schemas.get(type_name, {}).get(version)
        if descriptor is None:
            raise SchemaNotFoundError(type_name, version)
        return descriptor

    def versions(self, type_name: str) -> list[int]:
        with self._lock:
            return sorted(self._schemas.get(type_name, {}))

    def list_all(self) -> list[SchemaDescriptor]:
        with self._lock:
            descriptors = [d for versions in self._schemas.values() for d in versions.values()]
        return sorted(descriptors, key=lambda d: d.key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        type_name, version = key
        with self._lock:
            return version in self._schemas.get(type_name, {})

    def __len__(self) -> int:
        with self._lock:
            return sum(len(versions) for versions in self._schemas.values())
