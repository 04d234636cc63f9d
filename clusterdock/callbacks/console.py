"""Console view: node tables, cluster summary and an event stream.

Renderers are pure functions returning rich renderables; ``ConsoleReporter``
is the callback that prints one styled line per event.

Example:
    reporter = ConsoleReporter()
    with use_callback(reporter):
        await controller.verify_all()
    reporter.console.print(node_table(controller.session.nodes))
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table
from rich.text import Text

from clusterdock.api.model import CandidateNode, ClusterMetadata, VerificationStatus
from clusterdock.callbacks.history import EventHistory, Severity, describe
from clusterdock.events import ClusterdockEvent

_BADGES: dict[VerificationStatus, tuple[str, str]] = {
    "pending": ("○ pending", "bright_black"),
    "verifying": ("◌ verifying", "cyan"),
    "success": ("✓ passed", "green"),
    "failed": ("✗ failed", "red"),
}

_SEVERITY_STYLES: dict[Severity, str] = {
    "info": "bright_black",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
}


def _badge(status: VerificationStatus) -> Text:
    label, style = _BADGES[status]
    return Text(label, style=style)


def node_table(nodes: Iterable[CandidateNode], *, title: str | None = None) -> Table:
    table = Table(title=title, title_style="bold", box=None, padding=(0, 2))
    table.add_column("", width=1)
    table.add_column("Node", style="bold")
    table.add_column("Address", style="bright_black")
    table.add_column("Accelerators")
    table.add_column("CPU / Memory", justify="right")
    table.add_column("Status")
    table.add_column("Message", overflow="fold")

    for n in nodes:
        table.add_row(
            "●" if n.selected else " ",
            n.name,
            n.address,
            f"{n.accelerator_count}× {n.accelerator_model}",
            f"{n.cpu_cores} cores / {n.memory_gb} GB",
            _badge(n.verification),
            n.message or "",
        )
    return table


def cluster_summary(cluster: ClusterMetadata) -> Table:
    overview = Table(show_header=False, show_edge=False, box=None, padding=(0, 2))
    overview.add_column("key", style="bright_black", min_width=12)
    overview.add_column("value")
    overview.add_row("Cluster", Text(cluster.name, style="bold"))
    overview.add_row("Version", cluster.control_plane_version)
    overview.add_row("Endpoint", cluster.api_endpoint)
    if cluster.provider:
        overview.add_row("Provider", cluster.provider)
    overview.add_row("Nodes", str(cluster.reported_node_count))
    return overview


def event_log(history: EventHistory, *, limit: int = 20) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("time", style="dim")
    table.add_column("title", min_width=24)
    table.add_column("message")
    for entry in history.entries()[-limit:]:
        table.add_row(
            entry.time.strftime("%H:%M:%S"),
            Text(entry.title, style=_SEVERITY_STYLES[entry.severity]),
            entry.message,
        )
    return table


@dataclass
class ConsoleReporter:
    """Callback that prints every event as a styled line."""

    console: Console = field(default_factory=lambda: Console(stderr=True))

    def __call__(self, event: ClusterdockEvent) -> None:
        severity, title, message = describe(event)
        self.console.print(Text.assemble(
            (f"{title:<26}", _SEVERITY_STYLES[severity]),
            message,
        ))
