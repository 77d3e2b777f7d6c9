#!/usr/bin/env python3
"""
Metrics CLI - Console view of invocation statistics.

Reads the record store configured in the environment (use
RECORD_STORE_BACKEND=sqlite to inspect a running server's database).

Usage:
  python scripts/metrics_cli.py                      # System summary (24h)
  python scripts/metrics_cli.py system --range 7d    # System summary
  python scripts/metrics_cli.py function <id>        # One function
  python scripts/metrics_cli.py functions            # Registered functions
  python scripts/metrics_cli.py watch                # Auto-refresh summary
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box

from fnexec.models.errors import FunctionNotFoundError
from fnexec.models.metrics import TimeRange
from fnexec.services.interfaces import RecordStoreInterface
from fnexec.services.metrics import MetricsService
from fnexec.services.store import create_record_store

console = Console()

TIME_RANGE_CHOICES = [r.value for r in TimeRange]


def format_duration(ms: float) -> str:
    """Format milliseconds to human readable."""
    if ms < 1000:
        return f"{ms:.0f}ms"
    elif ms < 60000:
        return f"{ms/1000:.2f}s"
    else:
        return f"{ms/60000:.1f}m"


def format_bytes(value: float) -> str:
    if value < 1024:
        return f"{value:.0f}B"
    elif value < 1024 * 1024:
        return f"{value/1024:.1f}KB"
    return f"{value/(1024*1024):.1f}MB"


def format_rate(rate: float, good_threshold: float = 95, bad_threshold: float = 80) -> Text:
    """Format a success percentage with color coding."""
    text = f"{rate:.1f}%"
    if rate >= good_threshold:
        return Text(text, style="green")
    elif rate >= bad_threshold:
        return Text(text, style="yellow")
    else:
        return Text(text, style="red")


def _stats_table(stats: Dict[str, Any]) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Invocations", str(stats.get("total_invocations", 0)))
    table.add_row("Success Rate", format_rate(stats.get("success_rate", 0)))
    table.add_row("Avg Exec Time", format_duration(stats.get("avg_execution_time", 0)))
    table.add_row("Avg Memory", format_bytes(stats.get("avg_memory_usage", 0)))
    table.add_row("Avg CPU", f"{stats.get('avg_cpu_usage', 0):.1f}%")
    return table


def build_system_panel(report: Dict[str, Any]) -> Panel:
    stats = report["statistics"]
    table = _stats_table(stats)
    table.add_row("Functions", str(report.get("functions_count", 0)))
    for backend, count in stats.get("backend_breakdown", {}).items():
        table.add_row(f"Backend: {backend}", str(count))
    for status, count in stats.get("status_breakdown", {}).items():
        table.add_row(
            f"Status: {status}",
            Text(str(count), style="green" if status == "success" else "red"),
        )
    return Panel(
        table,
        title=f"[bold]System[/bold] (last {report['time_range']})",
        border_style="blue",
    )


def build_recent_table(report: Dict[str, Any]) -> Table:
    table = Table(title="Recent Invocations", box=box.ROUNDED)
    table.add_column("Time", style="dim")
    table.add_column("Function", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Cold", justify="center")

    for metric in report.get("recent_invocations", []):
        status = metric["status"]
        table.add_row(
            metric["timestamp"][:19].replace("T", " "),
            metric["function_id"][:12],
            Text(status, style="green" if status == "success" else "red"),
            format_duration(metric["execution_time"]),
            "yes" if metric["cold_start"] else "",
        )

    if not report.get("recent_invocations"):
        table.add_row("[dim]No data[/dim]", "", "", "", "")
    return table


async def cmd_system(store: RecordStoreInterface, args):
    report = await MetricsService(store).get_system_statistics(TimeRange.parse(args.range))
    console.print()
    console.print(build_system_panel(report))
    console.print(build_recent_table(report))
    console.print()


async def cmd_function(store: RecordStoreInterface, args):
    try:
        function = await store.get_function(args.function_id)
    except FunctionNotFoundError:
        console.print(f"[red]Function {args.function_id} not found[/red]")
        return

    report = await MetricsService(store).get_function_statistics(
        function.id, TimeRange.parse(args.range)
    )
    stats = report["statistics"]
    table = _stats_table(stats)
    table.add_row("Cold Starts", str(stats["cold_starts"]))
    table.add_row("Errors", Text(str(stats["errors_count"]), style="red" if stats["errors_count"] else "green"))
    table.add_row("Fastest", format_duration(stats["fastest_execution"]))
    table.add_row("Slowest", format_duration(stats["slowest_execution"]))

    console.print()
    console.print(Panel(
        table,
        title=f"[bold]{function.name}[/bold] (last {report['time_range']})",
        border_style="magenta",
    ))
    console.print()


async def cmd_functions(store: RecordStoreInterface, args):
    table = Table(title="Functions", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Language")
    table.add_column("Backend")
    table.add_column("Status", justify="center")
    table.add_column("Deploys", justify="right")
    table.add_column("Last Invoked", style="dim")

    status_styles = {"ready": "green", "creating": "yellow", "error": "red"}
    functions = await store.list_functions()
    for function in functions:
        table.add_row(
            function.id[:12],
            function.name,
            function.language.value,
            function.isolation_backend.value,
            Text(function.status.value, style=status_styles.get(function.status.value, "white")),
            str(function.deployment_count),
            function.last_invoked.strftime("%Y-%m-%d %H:%M:%S") if function.last_invoked else "never",
        )

    if not functions:
        table.add_row("[dim]No functions[/dim]", "", "", "", "", "", "")

    console.print()
    console.print(table)
    console.print()


async def cmd_watch(store: RecordStoreInterface, args):
    """Auto-refresh the system summary."""
    service = MetricsService(store)
    try:
        while True:
            report = await service.get_system_statistics(TimeRange.parse(args.range))
            console.clear()
            console.print(Panel.fit(
                "[bold cyan]Function Platform Metrics[/bold cyan]\n"
                f"[dim]Last updated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]",
                border_style="cyan"
            ))
            console.print(build_system_panel(report))
            console.print(build_recent_table(report))
            console.print(f"[dim]Refreshing in {args.interval}s... (Ctrl+C to exit)[/dim]")
            await asyncio.sleep(args.interval)
    except KeyboardInterrupt:
        console.print("\n[yellow]Dashboard stopped.[/yellow]")


async def run(args):
    store = create_record_store()
    await store.start()
    try:
        await HANDLERS[args.command](store, args)
    finally:
        await store.stop()


HANDLERS = {
    "system": cmd_system,
    "function": cmd_function,
    "functions": cmd_functions,
    "watch": cmd_watch,
}


def main():
    parser = argparse.ArgumentParser(
        description="Metrics CLI - Invocation statistics from the record store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    system_p = subparsers.add_parser("system", help="System-wide statistics")
    system_p.add_argument("--range", choices=TIME_RANGE_CHOICES, default="24h")

    function_p = subparsers.add_parser("function", help="Statistics for one function")
    function_p.add_argument("function_id")
    function_p.add_argument("--range", choices=TIME_RANGE_CHOICES, default="24h")

    subparsers.add_parser("functions", help="List registered functions")

    watch_p = subparsers.add_parser("watch", help="Auto-refresh system statistics")
    watch_p.add_argument("--range", choices=TIME_RANGE_CHOICES, default="24h")
    watch_p.add_argument("--interval", type=int, default=5, help="Refresh interval in seconds")

    args = parser.parse_args()
    if args.command is None:
        args.command = "system"
        args.range = "24h"

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
