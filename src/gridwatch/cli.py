"""Command-line interface for grid monitoring and outage history."""

import asyncio
import json
import logging
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import db
from .analysis import summary
from .cache import DayCache, FileDayStore
from .collectors.luxpower import LuxpowerClient, fetch_history_range
from .collectors.session import AuthenticationError
from .config import Settings, get_credentials, get_serial_num, load_settings
from .monitor import GridMonitor
from .status import load_status

console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def make_cache(settings: Settings) -> DayCache:
    return DayCache(FileDayStore(settings.cache_dir), tz=settings.tz)


def make_client(settings: Settings, cache: DayCache | None = None) -> LuxpowerClient:
    username, password = get_credentials(settings)
    return LuxpowerClient(
        username,
        password,
        api_endpoint=settings.api_endpoint,
        cache=cache if cache is not None else make_cache(settings),
        tz=settings.tz,
        page_size=settings.page_size,
        parallel_days=settings.parallel_days,
        cache_max_age=settings.cache_max_age,
        timeout=settings.request_timeout,
    )


async def _fetch_history(settings: Settings, hours: int):
    serial_num = get_serial_num(settings)
    async with make_client(settings) as client:
        return await fetch_history_range(client, serial_num, hours)


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to gridwatch.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """Grid monitor - track electricity outages from a Luxpower inverter."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    settings = load_settings(Path(config_path) if config_path else None)
    if db_path:
        settings.db_path = Path(db_path)
    ctx.obj["settings"] = settings
    ctx.obj["db_path"] = settings.db_path


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    db.init_db(ctx.obj["db_path"])
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    events = stats["grid_events"]
    table.add_row(
        "Grid transitions",
        str(events["count"]),
        f"{events['earliest'] or 'N/A'} → {events['latest'] or 'N/A'}",
    )
    table.add_row("  └ outages", str(stats["outages"]["count"]), "")

    current = stats["status"]["current"]
    state = "N/A" if current is None else ("ON" if current else "OFF")
    table.add_row("Current status", state, f"since {stats['status']['since'] or 'N/A'}")

    console.print(table)


# History commands
@cli.command()
@click.option("--hours", default=24, help="Number of hours to fetch (default: 24)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def history(ctx, hours, as_json):
    """Show grid on/off change points for the last N hours."""
    settings = ctx.obj["settings"]
    try:
        timeline = asyncio.run(_fetch_history(settings, hours))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    except AuthenticationError as e:
        console.print(f"[red]Authentication failed: {e}[/red]")
        return

    if as_json:
        console.print(json.dumps([s.to_dict() for s in timeline], indent=2))
        return

    if not timeline:
        console.print("[yellow]No grid data available for this period[/yellow]")
        return

    table = Table(title=f"Grid Timeline (last {hours} hours)")
    table.add_column("Time", style="cyan")
    table.add_column("Electricity", justify="center")

    for sample in timeline:
        state = "[green]ON[/green]" if sample.has_electricity else "[red]OFF[/red]"
        table.add_row(sample.timestamp.astimezone(settings.tz).strftime("%Y-%m-%d %H:%M:%S"), state)

    console.print(table)


@cli.command()
@click.option("--hours", default=24, help="Number of hours to include (default: 24)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx, hours, as_json):
    """Summarise grid availability for the last N hours."""
    settings = ctx.obj["settings"]
    try:
        timeline = asyncio.run(_fetch_history(settings, hours))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    except AuthenticationError as e:
        console.print(f"[red]Authentication failed: {e}[/red]")
        return

    data = summary.build_window_summary(timeline, tz=settings.tz)

    if as_json:
        console.print(json.dumps(data, indent=2))
    else:
        console.print(summary.format_window_summary_text(data))


# Live status commands
@cli.command()
@click.pass_context
def status(ctx):
    """Check the current grid status."""
    settings = ctx.obj["settings"]

    async def check():
        serial_num = get_serial_num(settings)
        async with make_client(settings) as client:
            return await client.check_electricity_status(serial_num)

    try:
        grid = asyncio.run(check())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    except (AuthenticationError, httpx.HTTPError) as e:
        console.print(f"[red]Failed to check status: {e}[/red]")
        return

    record = load_status(ctx.obj["db_path"])

    table = Table(title="Grid Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Electricity", "[green]ON[/green]" if grid.has_electricity else "[red]OFF[/red]")
    table.add_row("Grid voltage", f"{grid.grid_voltage:.1f} V")
    table.add_row("Grid frequency", f"{grid.grid_frequency:.2f} Hz")
    table.add_row("Grid power", f"{grid.grid_power:.0f} W")
    if record.status_change_time:
        table.add_row("Last change", record.status_change_time.astimezone(settings.tz).strftime("%Y-%m-%d %H:%M"))
    table.add_row("Total on (monitored)", summary.format_duration(record.total_on_time))
    table.add_row("Total off (monitored)", summary.format_duration(record.total_off_time))

    console.print(table)


@cli.command()
@click.option("--interval", type=float, help="Seconds between polls (default from config)")
@click.pass_context
def monitor(ctx, interval):
    """Poll the inverter and record grid transitions until stopped."""
    settings = ctx.obj["settings"]

    async def run():
        serial_num = get_serial_num(settings)
        cache = make_cache(settings)
        async with make_client(settings, cache) as client:
            grid_monitor = GridMonitor(
                client,
                serial_num,
                db_path=ctx.obj["db_path"],
                cache=cache,
                cache_retention_days=settings.cache_retention_days,
            )
            await grid_monitor.run(interval or settings.poll_interval)

    try:
        asyncio.run(run())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
    except KeyboardInterrupt:
        console.print("\n[cyan]Shutting down monitoring service...[/cyan]")


# Cache commands
@cli.group()
def cache():
    """History cache commands."""
    pass


@cache.command("evict")
@click.option("--days", type=int, help="Keep this many days (default from config)")
@click.pass_context
def cache_evict(ctx, days):
    """Delete cached history days older than the retention horizon."""
    settings = ctx.obj["settings"]
    removed = make_cache(settings).evict_older_than(days if days is not None else settings.cache_retention_days)
    console.print(f"[green]Removed {removed} cached day(s)[/green]")


if __name__ == "__main__":
    cli()
