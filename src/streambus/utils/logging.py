"""
Logging helpers for streambus.

Buses log through one shared logger, ``streambus.bus``, and tag every
record with the bus name (``extra={"bus": ...}``). Derived buses are also
tagged with the operator that created them and their parent's name.
``setup_logging`` is for applications that want that output on a stream,
as plain text or one JSON object per line.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

BUS_LOGGER_NAME = "streambus.bus"

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """
    Formats a record as one JSON object.

    Bus context (``bus``, ``operator``, ``parent``, subscriber counts) lands
    under ``context``. Values JSON can't encode, such as a bus or a
    subscriber object, are written as their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=repr)


class _BusNameFilter(logging.Filter):
    """Gives records logged outside any bus a placeholder bus name."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "bus"):
            record.bus = "-"
        return True


class BusLoggerAdapter(logging.LoggerAdapter):
    """
    Adds the bus name to every record.

    Caller-supplied ``extra`` is kept; the bus name wins on conflict.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_bus_logger(bus_name: str) -> BusLoggerAdapter:
    """
    Get the logger a bus named ``bus_name`` logs through.

    All buses share one underlying logger, so creating short-lived buses
    does not grow the logging registry.
    """
    return BusLoggerAdapter(logging.getLogger(BUS_LOGGER_NAME), {"bus": bus_name})


def setup_logging(
    level: int = logging.INFO,
    structured: bool = False,
    stream: Optional[Any] = None,
) -> None:
    """
    Send streambus log records to ``stream``.

    Replaces any handlers previously installed on the ``streambus`` logger,
    so calling it again reconfigures rather than duplicates output.
    Subscription changes and derived-bus creation are logged at DEBUG.

    Args:
        level: Logging level (default: INFO)
        structured: One JSON object per record instead of text (default: False)
        stream: Output stream (default: sys.stdout)
    """
    package_logger = logging.getLogger("streambus")
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)

    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.addFilter(_BusNameFilter())
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - [%(bus)s] %(name)s: %(message)s")
        )

    package_logger.addHandler(handler)


def log_bus_event(
    logger: logging.Logger,
    level: int,
    message: str,
    bus: str,
    operator: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log something that happened to a bus as a whole, such as its creation.

    Args:
        logger: Logger instance
        level: Log level
        message: Log message
        bus: Bus name
        operator: Operator that created the bus, for derived buses
        **kwargs: Additional context fields, e.g. ``parent``
    """
    extra: Dict[str, Any] = {"bus": bus}
    if operator:
        extra["operator"] = operator
    extra.update(kwargs)

    logger.log(level, message, extra=extra)
