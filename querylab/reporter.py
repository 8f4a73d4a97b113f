from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _median(value: Any) -> Optional[float]:
    """Single runs carry plain numbers, aggregated runs a stats dict."""
    if isinstance(value, dict):
        return value.get("median")
    return value


def _format_memory(value: Any) -> str:
    mem_bytes = _median(value)
    if not mem_bytes:
        return "N/A"
    return f"{mem_bytes / (1024 * 1024):.2f}"


def _format_equivalence(equivalent: Optional[bool]) -> str:
    if equivalent is None:
        return "[dim]-[/dim]"
    return "[green]yes[/green]" if equivalent else "[bold red]NO[/bold red]"


def print_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render comparison results as a rich table, one row per variant.

    Handles both single-run results and aggregated multi-run results (median
    values are shown for the latter).
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    is_aggregated = any(
        isinstance(entry.get("runs"), int) and entry["runs"] > 1
        for res in results
        for entry in res.get("variants", [])
    )
    suffix = "\n[dim](Median)[/dim]" if is_aggregated else ""

    table = Table(
        title="Query Strategy Lab Results",
        box=box.ROUNDED,
        caption="Round trips counted per request; equivalence checked for paired use cases",
    )
    table.add_column("Use case", style="cyan", no_wrap=True)
    table.add_column("Variant", style="blue")
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column(f"Duration (ms){suffix}", justify="right", style="green")
    table.add_column("Round trips", justify="right", style="bold green")
    table.add_column(f"Peak Memory (MB){suffix}", justify="right", style="yellow")
    table.add_column(f"CPU %{suffix}", justify="right", style="red")
    table.add_column("Equivalent", justify="center")
    table.add_column("Warning / Error", style="dim")

    for res in results:
        use_case = res.get("use_case", "Unknown")
        for index, entry in enumerate(res.get("variants", [])):
            duration = _median(entry.get("duration_seconds")) or 0.0
            cpu = _median(entry.get("cpu_percent"))
            note = entry.get("error") or entry.get("warning") or ""
            if entry.get("error"):
                note = f"[red]{note}[/red]"
            table.add_row(
                use_case if index == 0 else "",
                entry.get("variant", "?"),
                f"{entry.get('rows', 0):,}",
                f"{duration * 1000:.1f}",
                f"{entry.get('queries', 0):,}",
                _format_memory(entry.get("peak_rss_bytes")),
                f"{cpu:.1f}" if cpu is not None else "N/A",
                _format_equivalence(res.get("equivalent")) if index == 0 else "",
                note,
            )
        table.add_section()

    console.print(table)


__all__ = ["print_results"]
