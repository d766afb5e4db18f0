"""
Rich-based terminal dashboard for connection test results.

All statistics live in ``conntest.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

import math
import re
from typing import Iterable, List, Optional

from rich import box
from rich.color import Color, ColorParseError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from conntest.api import Server
from conntest.results import Result, Status, rank_results
from conntest.stats import format_latency
from conntest.thresholds import Thresholds

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"
_CSS_RGB = re.compile(r"rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})")


def create_histogram(values: List[float], width: int = 40, height: int = 5) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    norm = [(v - lo) / span * height for v in values[:width]]
    return "".join(_BARS[min(int(n * (len(_BARS) - 1) / height), len(_BARS) - 1)] for n in norm)


def rich_color(token: Optional[str]) -> str:
    """
    Map a threshold colour token onto a Rich colour.  CSS ``rgb()`` /
    ``rgba()`` values lose their alpha; unknown tokens fall back to white.
    """
    if not token:
        return "white"

    m = _CSS_RGB.match(token.strip())
    if m:
        r, g, b = (min(255, int(c)) for c in m.groups())
        return f"rgb({r},{g},{b})"

    try:
        Color.parse(token.strip())
    except ColorParseError:
        return "white"
    return token.strip()


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Connection Tester[/bold cyan]\n"
            "[dim]Round-trip latency to every available server[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_results(results: Iterable[Result], thresholds: Optional[Thresholds] = None) -> None:
    """Print all results, best first, followed by a legend for *thresholds*."""
    table = Table(title="Servers", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("", width=2)
    table.add_column("Server", style="bold")
    table.add_column("Country")
    table.add_column("Median", justify="right")
    table.add_column("MAD", justify="right")
    table.add_column("Samples", justify="right")

    for i, result in enumerate(rank_results(results)):
        stats = result.round_trip_statistics
        swatch = f"[on {rich_color(result.color)}]  [/]"
        table.add_row(
            str(i + 1),
            swatch,
            result.name,
            result.server.country or "",
            format_latency(stats.median) if stats else "[red]Unreachable[/red]",
            f"±{stats.median_absolute_deviation:.1f} ms" if stats else "",
            str(stats.count) if stats else "",
            style=None if stats else "dim",
        )

    console.print(table)

    if thresholds is not None:
        console.print(_legend(thresholds))


def _legend(thresholds: Thresholds) -> str:
    parts = []
    for threshold in thresholds:
        label = "unreachable" if threshold.min == math.inf else f">= {threshold.min:g} ms"
        parts.append(f"[on {rich_color(threshold.color)}]  [/] {label}")
    return "   ".join(parts)


def print_statistics(result: Result) -> None:
    """Print detailed round-trip statistics and a histogram for one result."""
    stats = result.round_trip_statistics
    if stats is None or not stats.samples:
        console.print(f"[red]{result.name}: unreachable[/red]")
        return

    table = Table(title=f"{result.name} Round Trip", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Median", format_latency(stats.median))
    table.add_row("Mean", format_latency(stats.mean))
    table.add_row("Std. deviation", f"{stats.standard_deviation:.2f} ms")
    table.add_row("Mean abs. deviation", f"{stats.mean_absolute_deviation:.2f} ms")
    table.add_row("Median abs. deviation", f"{stats.median_absolute_deviation:.2f} ms")
    table.add_row("Samples", str(stats.count))
    console.print(table)

    console.print(
        Panel(
            f"[cyan]{create_histogram(list(stats.samples))}[/cyan]\n"
            f"[dim]Min: {stats.samples[0]:.1f} ms  Max: {stats.samples[-1]:.1f} ms[/dim]",
            title="Samples",
        )
    )


def print_recommendation(server: Server, name: Optional[str] = None) -> None:
    label = f"{name} ({server.url})" if name else server.url
    console.print(
        Panel.fit(
            f"[bold green]A faster server is available:[/bold green] {label}",
            border_style="green",
        )
    )


def print_permalink(link: str) -> None:
    console.print(f"\n[bold]Permalink:[/bold] [cyan]{link}[/cyan]")


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar driven by connection test ``Status``."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self, description: str = "Testing servers") -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=None)

    def update(self, status: Status) -> None:
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            total=status.total,
            completed=status.total - status.remaining,
        )

    def stop(self) -> None:
        self.progress.stop()
