"""Logging configuration for clusterdock.

Modules log through loguru with ``logger.bind(component=...)`` and brace-style
messages. The ``clusterdock`` namespace is disabled on import (library
behavior); ``setup_logging`` turns it on and adds the sinks, and
``teardown_logging`` removes them again.

Every record carries a ``[component cluster session node]`` suffix built from
whatever context was bound. Records without an explicit component fall back
to their module name.

Example:
    from clusterdock.observability.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", console=True))
    try:
        await controller.verify_all()
    finally:
        teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

logger.disable("clusterdock")

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

_NAMESPACE = "clusterdock"
_CONTEXT_KEYS = ("cluster", "session_id", "node")


def _patch(record: Any) -> None:
    extra = record["extra"]
    extra.setdefault("component", record["name"].rsplit(".", 1)[-1])
    context = " ".join(f"{k}={extra[k]}" for k in _CONTEXT_KEYS if k in extra)
    extra["_ctx"] = f" [{context}]" if context else ""


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level: <7}</level> "
    "<cyan>{extra[component]: <12}</cyan>"
    "<level>{message}</level>"
    "<dim>{extra[_ctx]}</dim>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[component]: <12} | "
    "{name}:{line} - {message}{extra[_ctx]}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration (the ``[logging]`` config section).

    Attributes:
        level: Minimum level for the console sink. The file sink keeps DEBUG.
        file: Log file path. None disables file output.
        console: Whether to log to stderr.
        rotation: File rotation policy (e.g., "50 MB", "1 day").
        retention: Number of rotated files to keep.
        serialize: Write the file sink as JSON lines instead of text.
    """

    level: LogLevel = "INFO"
    file: str | None = ".clusterdock/clusterdock.log"
    console: bool = False
    rotation: str = "50 MB"
    retention: int = 10
    serialize: bool = False


def setup_logging(config: LogConfig) -> list[int]:
    """Enable clusterdock logging and return handler IDs for cleanup."""
    logger.enable(_NAMESPACE)
    logger.configure(patcher=_patch)
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            colorize=True,
            filter=_NAMESPACE,
        ))

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            filter=_NAMESPACE,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            serialize=config.serialize,
            diagnose=False,
        ))

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove the handlers added by ``setup_logging`` and disable logging again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable(_NAMESPACE)
