"""Logging configuration for dropship.

Structured logging via loguru. Disabled by default (library behavior) and
switched on by the command line or by callers embedding the stage:

    from dropship.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="deploy.log"))
    ...
    teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger

logger.disable("dropship")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum console level.
        file: Log file path. File output captures DEBUG and up.
        console: Whether to log to stderr.
        rotation: File rotation policy (e.g., "10 MB", "1 day").
        retention: Number of rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "10 MB"
    retention: int = 5


def _dropship_records(record: Any) -> bool:
    name = record["name"] or ""
    if name != "dropship" and not name.startswith("dropship."):
        return False
    record["extra"].setdefault("component", "dropship")
    return True


def setup_logging(config: LogConfig) -> list[int]:
    """Enable dropship logging and return handler ids for teardown."""
    logger.enable("dropship")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=CONSOLE_FORMAT,
                colorize=True,
                filter=_dropship_records,
            )
        )

    if config.file:
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation=config.rotation,
                retention=config.retention,
                diagnose=False,  # tracebacks may carry tokens
                filter=_dropship_records,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("dropship")
