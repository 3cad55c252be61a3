"""JSON log lines for the API and the worker.

One object per line: timestamp, level, event name, the correlation fields
bound for the current request or task, then the caller's own fields.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from tenantguard.core import request_context

_HANDLER_NAME = "tenantguard-json"


def configure_logging(level: str = "INFO") -> None:
    """Send the ``tenantguard`` logger tree to stdout at `level`.

    Safe to call more than once; the handler is only attached the first time.
    """

    package_logger = logging.getLogger("tenantguard")
    package_logger.setLevel(level.upper())
    if any(handler.get_name() == _HANDLER_NAME for handler in package_logger.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    if not logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": logging.getLevelName(level),
        "event": event,
        **request_context.current().log_fields(),
    }
    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str))
