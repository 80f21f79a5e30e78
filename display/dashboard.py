"""
Rich-based terminal dashboard for measurement sessions.

All formatting helpers live in ``meter.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from meter.session import SessionState, Snapshot
from meter.stats import LatencyStats, PhaseAggregate, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart, one bar per value."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    top = len(_BARS) - 1
    return "".join(_BARS[min(int((v - lo) / span * top), top)] for v in values)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header(url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]speedcheck[/bold cyan]\n"
            f"[dim]HTTP throughput and latency against {url}[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_latency_details(stats: Optional[LatencyStats]) -> None:
    """Print latency statistics and a histogram of the ping samples."""
    if stats is None or not stats.samples:
        return

    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Min", format_latency(stats.min))
    table.add_row("Max", format_latency(stats.max))
    table.add_row("Average", format_latency(stats.average))
    table.add_row("Median", format_latency(stats.median))
    table.add_row("Jitter", f"{stats.jitter:.2f} ms")
    table.add_row("Samples", str(stats.count))
    console.print(table)

    console.print(
        Panel(
            f"[cyan]{create_histogram(stats.samples)}[/cyan]\n"
            f"[dim]Min: {stats.min:.1f} ms  Max: {stats.max:.1f} ms[/dim]",
            title="Ping Histogram",
        )
    )


def print_phase_result(
    result: Optional[PhaseAggregate],
    speed_mbps: Optional[float],
    title: str,
    color: str = "green",
) -> None:
    """Print a download or upload phase panel."""
    if result is None:
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Speed", f"[bold {color}]{format_speed(speed_mbps)}[/bold {color}]")
    table.add_row("Data Transferred", f"{result.total_bytes / 1_000_000:.1f} MB")
    table.add_row("Duration", f"{result.max_elapsed_ms / 1000:.2f} s")
    table.add_row("Connections", str(len(result.results)))
    console.print(table)


def print_final_results(snapshot: Snapshot) -> None:
    if snapshot.state is SessionState.FAILED:
        console.print(f"\n[red]{snapshot.status}[/red]")

    jitter = format_latency(snapshot.jitter_ms)
    console.print()
    console.print(
        Panel.fit(
            f"[bold white]   Ping:[/bold white]  [bold yellow]{format_latency(snapshot.average_latency_ms)}"
            f"[/bold yellow]  [dim](jitter: {jitter})[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(snapshot.download_mbps)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(snapshot.upload_mbps)}[/bold blue]",
            title="[bold]Results[/bold]",
            border_style="cyan" if snapshot.state is SessionState.COMPLETED else "red",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Drives a ``rich`` progress bar from session snapshots."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self, description: str = "Starting...") -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100)

    def update(self, snapshot: Snapshot) -> None:
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            completed=snapshot.progress_percent,
            description=snapshot.status,
        )

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None
