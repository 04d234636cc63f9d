"""Built-in callbacks for clusterdock events."""

from clusterdock.callbacks.console import (
    ConsoleReporter,
    cluster_summary,
    event_log,
    node_table,
)
from clusterdock.callbacks.history import EventHistory, EventRecord, Severity, describe
from clusterdock.callbacks.log import log

__all__ = [
    "ConsoleReporter",
    "EventHistory",
    "EventRecord",
    "Severity",
    "cluster_summary",
    "describe",
    "event_log",
    "log",
    "node_table",
]
