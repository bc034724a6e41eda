"""
Rich-based terminal dashboard for probe results, live samples and history.

All formatting helpers live in ``speedprobe.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from speedprobe.buffer import MeasurementBuffer, Phase
from speedprobe.endpoints import Endpoint
from speedprobe.stats import Statistics, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float], scale: Optional[float] = None) -> str:
    """Return a single-line Unicode bar-chart.

    With *scale* the bars are drawn against ``0..scale`` instead of the
    data's own range.
    """
    if not values:
        return "No data"

    lo, hi = (0.0, scale) if scale else (min(values), max(values))
    span = hi - lo if hi > lo else 1.0
    top = len(_BARS) - 1
    return "".join(_BARS[max(0, min(int((v - lo) / span * top), top))] for v in values)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Speedprobe[/bold cyan]\n"
            "[dim]Endpoint probing and speed-test history[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_probe_results(results: list, chosen: Optional[Endpoint] = None) -> None:
    """Table of probe results; the chosen endpoint is marked."""
    table = Table(title="Server Selection", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("Server", style="bold")
    table.add_column("URL")
    table.add_column("Status", justify="right")
    table.add_column("Latency", justify="right")

    for i, result in enumerate(results):
        picked = chosen is not None and result.endpoint is chosen
        marker = ">" if picked else " "
        if result.reachable:
            status = str(result.status_code)
            latency = format_latency(result.latency_ms)
        else:
            status = "[red]down[/red]"
            latency = f"[dim]{result.error or 'N/A'}[/dim]"
        table.add_row(
            f"{marker}{i + 1}",
            result.endpoint.name,
            result.endpoint.url,
            status,
            latency,
            style="green" if picked else None,
        )

    console.print(table)


def print_selected(endpoint: Endpoint, reachable: bool) -> None:
    if reachable:
        console.print(f"\n[green]Selected server:[/green] {endpoint.name} ({endpoint.url})")
    else:
        console.print(
            f"\n[yellow]No server reachable, defaulting to:[/yellow] {endpoint.name} ({endpoint.url})"
        )


def print_statistics(stats: Statistics) -> None:
    if stats.total_tests == 0:
        console.print("[dim]No test results available[/dim]")
        return

    table = Table(title="Statistics", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Tests", str(stats.total_tests))
    table.add_row("Avg Download", format_speed(stats.average_download))
    table.add_row("Avg Upload", format_speed(stats.average_upload))
    table.add_row("Avg Ping", format_latency(stats.average_ping))
    table.add_row("Avg Jitter", format_latency(stats.average_jitter))
    table.add_row("Best Download", format_speed(stats.max_download))
    table.add_row("Best Upload", format_speed(stats.max_upload))
    table.add_row("Best Ping", format_latency(stats.min_ping))
    if stats.date_range:
        first, last = stats.date_range
        table.add_row("From", first.strftime("%Y-%m-%d %H:%M"))
        table.add_row("To", last.strftime("%Y-%m-%d %H:%M"))
    console.print(table)

    breakdown = Table(box=box.SIMPLE, show_header=True)
    breakdown.add_column("Connection Type")
    breakdown.add_column("Tests", justify="right")
    for conn_type, n in sorted(stats.connection_type_breakdown.items()):
        breakdown.add_row(conn_type, str(n))
    for quality, n in stats.quality_breakdown.items():
        breakdown.add_row(f"[{quality.color}]{quality.value}[/{quality.color}]", str(n))
    console.print(breakdown)


def print_history(results: list) -> None:
    """Table of stored results, newest first."""
    if not results:
        console.print("[dim]No history yet. Completed tests are stored automatically.[/dim]")
        return

    table = Table(title="Test History", box=box.ROUNDED)
    table.add_column("Date", style="dim")
    table.add_column("Download", justify="right", style="green")
    table.add_column("Upload", justify="right", style="blue")
    table.add_column("Ping", justify="right", style="yellow")
    table.add_column("Jitter", justify="right")
    table.add_column("Type")
    table.add_column("Quality")
    table.add_column("ID", style="dim")

    for r in results:
        q = r.connection_quality
        table.add_row(
            r.timestamp.strftime("%Y-%m-%d %H:%M"),
            format_speed(r.download_speed),
            format_speed(r.upload_speed),
            format_latency(r.ping),
            format_latency(r.jitter),
            r.connection_type,
            f"[{q.color}]{q.value}[/{q.color}]",
            r.id[:8],
        )
    console.print(table)

    downloads = [r.download_speed for r in reversed(results)]
    console.print(f"  Download trend: [green]{create_histogram(downloads)}[/green]")


def print_live_samples(buffer: MeasurementBuffer) -> None:
    """One sparkline per phase, scaled to the phase maximum."""
    colors = {Phase.DOWNLOAD: "green", Phase.UPLOAD: "blue", Phase.PING: "yellow"}
    lines = []
    for phase in Phase:
        values = buffer.values(phase)
        top = buffer.max_value(phase)
        unit = "ms" if phase is Phase.PING else "Mbps"
        color = colors[phase]
        lines.append(
            f"[bold]{phase.value:<8}[/bold] [{color}]{create_histogram(values, scale=top)}[/{color}]"
            f"  [dim]max {top:.1f} {unit}[/dim]"
        )
    state = "recording" if buffer.is_active else "stopped"
    console.print(Panel("\n".join(lines), title=f"Live ({state}, {buffer.elapsed:.1f}s)"))


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class ConsoleNotifier:
    """Delivers alerts as a panel on the terminal."""

    def notify(self, title: str, body: str) -> None:
        console.print(Panel(body, title=f"[bold red]{title}[/bold red]", border_style="red"))
