"""Log callback: one loguru line per event."""

from __future__ import annotations

from loguru import logger

from clusterdock.callbacks.history import describe
from clusterdock.events import ClusterdockEvent

_log = logger.bind(component="events")


def log(event: ClusterdockEvent) -> None:
    severity, title, message = describe(event)
    match severity:
        case "error":
            _log.error("{title}: {message}", title=title, message=message)
        case "warning":
            _log.warning("{title}: {message}", title=title, message=message)
        case "success":
            _log.success("{title}: {message}", title=title, message=message)
        case _:
            _log.info("{title}: {message}", title=title, message=message)
