"""Configuration: pydantic models loaded from YAML with ${VAR} expansion.

Example ``queue-notify.yml``::

    queue: https://sqs.eu-west-1.amazonaws.com/123456789012/orders
    rate: 1.0
    backend: sqs
    sqs:
      region: eu-west-1
      max_messages: 10
      wait_time_seconds: 20
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from instrukt_ai_logging import get_logger
from pydantic import BaseModel, ConfigDict, Field
from redis.asyncio import Redis

from queue_notify.gateway import QueueGateway
from queue_notify.gateways.memory import InMemoryQueueGateway
from queue_notify.gateways.redis_stream import RedisStreamGateway
from queue_notify.gateways.sqs import SQS_MAX_MESSAGES, SQS_MAX_WAIT_SECONDS, SqsQueueGateway
from queue_notify.receiver import DEFAULT_RATE, BatchPolicy

logger = get_logger(__name__)


class SqsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_messages: int = Field(default=1, ge=1, le=SQS_MAX_MESSAGES)
    wait_time_seconds: int = Field(default=0, ge=0, le=SQS_MAX_WAIT_SECONDS)
    visibility_timeout: Optional[int] = Field(default=None, ge=0)


class RedisConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    url: str = "redis://localhost:6379"
    group: str = "queue-notify"
    consumer: Optional[str] = None
    count: int = Field(default=10, ge=1)
    block_ms: int = Field(default=1000, ge=0)
    visibility_timeout_ms: int = Field(default=30000, ge=0)
    maxlen: int = Field(default=10000, ge=1)


class MemoryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_messages: int = Field(default=10, ge=1)
    visibility_timeout: float = Field(default=30.0, ge=0)


class NotifyConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    # SQS queue URL, Redis stream key, or a label for the memory backend.
    queue: str
    rate: float = Field(default=DEFAULT_RATE, gt=0)
    batch_policy: BatchPolicy = BatchPolicy.LEAVE
    backend: Literal["memory", "sqs", "redis"] = "sqs"
    sqs: SqsConfig = Field(default_factory=SqsConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)


def expand_env_vars(config: object) -> object:
    """Recursively replace ${VAR} patterns with environment variable values."""
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))
    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def load_config(path: Path) -> NotifyConfig:
    """Load and validate configuration from a YAML file.

    Raises:
        FileNotFoundError: The file does not exist (``queue`` has no default).
        pydantic.ValidationError: The file content is invalid.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    model = NotifyConfig.model_validate(expand_env_vars(raw))
    _warn_unknown_keys(model, "root", path)
    return model


def create_gateway(config: NotifyConfig) -> QueueGateway:
    """Build the queue gateway selected by ``config.backend``."""
    if config.backend == "sqs":
        return SqsQueueGateway(
            config.queue,
            region=config.sqs.region,
            endpoint_url=config.sqs.endpoint_url,
            max_messages=config.sqs.max_messages,
            wait_time_seconds=config.sqs.wait_time_seconds,
            visibility_timeout=config.sqs.visibility_timeout,
        )
    if config.backend == "redis":
        return RedisStreamGateway(
            Redis.from_url(config.redis.url),
            config.queue,
            group=config.redis.group,
            consumer_name=config.redis.consumer,
            count=config.redis.count,
            block_ms=config.redis.block_ms,
            visibility_timeout_ms=config.redis.visibility_timeout_ms,
            maxlen=config.redis.maxlen,
        )

    return InMemoryQueueGateway(
        max_messages=config.memory.max_messages,
        visibility_timeout=config.memory.visibility_timeout,
    )
