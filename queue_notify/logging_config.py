"""queue_notify logging configuration.

The package never configures logging on import. Its modules log through
``get_logger(__name__)`` under the ``queue_notify`` namespace with keyword
fields: ``queue`` on facade and consumer records, ``type``/``version`` on
send, receive and schema registration, ``ack_handle`` on release problems,
``queue_url`` from the SQS gateway and ``stream``/``entry_id`` from the Redis
gateway.

A process embedding queue_notify as its own service calls ``setup_logging()``
once at startup; a host application with its own logging setup skips it and
the records flow into whatever handlers the host has installed. Per-message
records (sent, received, reclaimed) are DEBUG; decode failures and
redelivery risks are WARNING; consumer loop failures are logged with
tracebacks.
"""

from __future__ import annotations

import os
from typing import Optional

from instrukt_ai_logging import configure_logging


def setup_logging(level: Optional[str] = None) -> None:
    """Configure logging for a standalone queue_notify consumer process.

    Args:
        level: Optional override for `QUEUE_NOTIFY_LOG_LEVEL`; left unset,
            the level already in the environment (or the library default)
            applies.
    """
    if level:
        os.environ["QUEUE_NOTIFY_LOG_LEVEL"] = level

    configure_logging("queue_notify")
