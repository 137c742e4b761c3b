"""structlog setup shared by every module.

Events are dotted names with key/value fields::

    logger.info("play.started", room_id=room_id, sound=sound.name)

Output goes to stderr so that console replies on stdout stay readable.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

_LIBRARY_LOGGERS = ("discord", "discord.gateway", "discord.voice_client")


def setup_logging(*, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    log_file = os.environ.get("SOUNDBOARD_LOG_FILE")
    stream = open(log_file, "a", encoding="utf-8") if log_file else sys.stderr  # noqa: SIM115

    logging.basicConfig(
        level=level,
        stream=stream,
        format="%(message)s",
        force=True,
    )
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(level if debug else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_run_context(**fields: Any) -> None:
    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
