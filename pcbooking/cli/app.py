"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Awaitable, Callable, List, Optional, TypeVar

import pendulum
import typer
from pydantic import TypeAdapter
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.sql_store import SqlReservationStore
from ..config import AppConfig, get_default_config_path
from ..domain.board import DayBoard
from ..domain.exceptions import BookingError, StorageUnavailableError
from ..domain.models import Reservation
from ..domain.time_grid import TimeGrid
from ..schemas import AllReservationsOut, ReservationCreate, ReservationOut, ReservationUpdate
from ..services.reservations import ReservationService

T = TypeVar("T")

app = typer.Typer(
    name="pcbooking",
    help="Book the shared lab PCs in 10-minute slots",
    add_completion=False
)

console = Console()
_reservation_list_adapter = TypeAdapter(List[ReservationOut])

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", "-d", help="Day (YYYY-MM-DD). Defaults to today."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Print JSON instead of a table.")]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load an explicit config file, or the default one when present."""
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)
    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _run(config: AppConfig, action: Callable[[ReservationService], Awaitable[T]]) -> T:
    """
    Open the store, register configured resources and run one action.

    Booking errors are reported and turned into exit code 1.
    """
    try:
        store = SqlReservationStore.from_url(config.database_url)
        store.create_schema()
    except StorageUnavailableError as e:
        console.print(f"[bold red]{e.kind}:[/bold red] {e.reason}")
        raise typer.Exit(1)

    service = ReservationService(store, grid=config.build_grid())

    async def main() -> T:
        await service.ensure_resources(r.to_domain() for r in config.resources)
        return await action(service)

    try:
        return asyncio.run(main())
    except BookingError as e:
        console.print(f"[bold red]{e.kind}:[/bold red] {e.reason}")
        raise typer.Exit(1)
    finally:
        store.dispose()


def _setup(config_file: Optional[Path]) -> AppConfig:
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    _configure_logging(config.log_level)
    return config


def _parse_day(value: Optional[str], grid: TimeGrid) -> date:
    if not value:
        return grid.today()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=grid.timezone).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _parse_time(grid: TimeGrid, day: date, label: str):
    """Parse ``HH:mm`` on ``day``; ``24:00`` means the following midnight."""
    if label.strip() == "24:00":
        return grid.day_range(day).end
    try:
        return grid.instant_at(day, label)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _resolve_resource(config: AppConfig, identifier: str) -> str:
    try:
        return config.resolve_resource(identifier)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _reservation_table(title: str, reservations: List[Reservation], grid: TimeGrid) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Date", style="dim")
    table.add_column("Time", style="bold")
    table.add_column("PC", style="bold yellow")
    table.add_column("Name")
    table.add_column("Note", style="dim")
    table.add_column("ID", style="dim")
    for reservation in reservations:
        table.add_row(
            grid.local_date(reservation.start).isoformat(),
            f"{grid.format_time(reservation.start)}～{grid.format_time(reservation.end)}",
            reservation.resource_name or reservation.resource_id,
            reservation.holder_name,
            reservation.note or "",
            reservation.id,
        )
    return table


def _print_reservation(prefix: str, reservation: Reservation, grid: TimeGrid) -> None:
    console.print(
        f"[bold green]✓ {prefix}:[/bold green] "
        f"{reservation.resource_name or reservation.resource_id} "
        f"{grid.local_date(reservation.start).isoformat()} "
        f"{grid.format_time(reservation.start)}～{grid.format_time(reservation.end)} "
        f"({reservation.holder_name}) [dim]{reservation.id}[/dim]"
    )


@app.command()
def resources(config_file: ConfigOption = None):
    """
    List all bookable PCs.
    """
    config = _setup(config_file)
    items = _run(config, lambda service: service.list_resources())

    table = Table(title="PCs", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    for resource in items:
        table.add_row(resource.id, resource.name)

    console.print()
    console.print(table)
    console.print()


@app.command()
def day(
    date_option: DateOption = None,
    resource: Annotated[Optional[str], typer.Option("--resource", "-r", help="Only this PC (id or name)")] = None,
    as_json: JsonOption = False,
    config_file: ConfigOption = None,
):
    """
    Show the reservations starting on one day.
    """
    config = _setup(config_file)
    grid = config.build_grid()
    target = _parse_day(date_option, grid)
    resource_id = _resolve_resource(config, resource) if resource else None

    items = _run(
        config,
        lambda service: service.list_reservations_for_day(target, resource_id=resource_id),
    )

    if as_json:
        payload = [ReservationOut.from_domain(r) for r in items]
        typer.echo(_reservation_list_adapter.dump_json(payload, indent=2).decode())
        return

    if not items:
        console.print(f"[yellow]No reservations on {target.isoformat()}.[/yellow]")
        return
    console.print(_reservation_table(f"Reservations on {target.isoformat()}", items, grid))


@app.command()
def grid(
    date_option: DateOption = None,
    from_hour: Annotated[int, typer.Option("--from-hour", min=0, max=23, help="First hour shown")] = 8,
    to_hour: Annotated[int, typer.Option("--to-hour", min=0, max=23, help="Last hour shown")] = 20,
    config_file: ConfigOption = None,
):
    """
    Draw the day's occupancy grid, one cell per slot.
    """
    config = _setup(config_file)
    time_grid = config.build_grid()
    target = _parse_day(date_option, time_grid)
    if to_hour < from_hour:
        console.print("[red]Error: --to-hour must not be before --from-hour.[/red]")
        raise typer.Exit(1)

    async def load(service: ReservationService):
        return await service.list_resources(), await service.list_occupancy_for_day(target)

    machines, items = _run(config, load)
    board = DayBoard(time_grid, target, items)
    slots_per_hour = 60 // time_grid.slot_minutes

    table = Table(title=f"{target.isoformat()} ({time_grid.timezone})", show_header=True, header_style="bold cyan")
    table.add_column("PC", style="bold yellow", no_wrap=True)
    hours = [h for h in time_grid.hour_boundaries() if from_hour <= h <= to_hour]
    for hour in hours:
        table.add_column(f"{hour:02d}", no_wrap=True)

    for machine in machines:
        cells = []
        for hour in hours:
            marks = []
            for offset in range(slots_per_hour):
                index = hour * slots_per_hour + offset
                if board.is_reservation_start(machine.id, index):
                    marks.append("[bold red]▐[/bold red]")
                elif board.is_cell_reserved(machine.id, index):
                    marks.append("[red]█[/red]")
                else:
                    marks.append("[dim]·[/dim]")
            cells.append("".join(marks))
        table.add_row(machine.name, *cells)

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    resource: Annotated[str, typer.Argument(help="PC id or name")],
    start: Annotated[str, typer.Option("--start", "-s", help="Start time (HH:mm)")],
    end: Annotated[str, typer.Option("--end", "-e", help="End time (HH:mm, 24:00 for midnight)")],
    name: Annotated[str, typer.Option("--name", "-n", help="Your name")],
    note: Annotated[Optional[str], typer.Option("--note", help="Optional note")] = None,
    date_option: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Reserve a PC.

    Examples:

        pcbooking book 1 --start 10:00 --end 10:30 --name Alice

        pcbooking book "2号機（黒）ダイナブック" -d 2024-01-10 -s 13:00 -e 15:00 -n Bob --note "CAD"
    """
    config = _setup(config_file)
    time_grid = config.build_grid()
    target = _parse_day(date_option, time_grid)
    request = ReservationCreate(
        resource_id=_resolve_resource(config, resource),
        start=_parse_time(time_grid, target, start),
        end=_parse_time(time_grid, target, end),
        holder_name=name,
        note=note,
    )

    created = _run(config, lambda service: service.create_reservation(**request.model_dump()))
    _print_reservation("Reserved", created, time_grid)


@app.command()
def update(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    name: Annotated[str, typer.Option("--name", "-n", help="Name on the reservation")],
    start: Annotated[Optional[str], typer.Option("--start", "-s", help="New start time (HH:mm)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", "-e", help="New end time (HH:mm)")] = None,
    note: Annotated[Optional[str], typer.Option("--note", help="New note; empty string clears it")] = None,
    date_option: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Change the name, note or time of a reservation.

    Times are read on --date, or on the reservation's own day when omitted.
    """
    config = _setup(config_file)
    time_grid = config.build_grid()

    async def edit(service: ReservationService):
        current = await service.get_reservation(reservation_id)
        target = (
            _parse_day(date_option, time_grid) if date_option
            else time_grid.local_date(current.start)
        )
        request = ReservationUpdate(
            holder_name=name,
            start=_parse_time(time_grid, target, start) if start else None,
            end=_parse_time(time_grid, target, end) if end else None,
            note=note,
        )
        return await service.update_reservation(reservation_id, **request.model_dump())

    updated = _run(config, edit)
    _print_reservation("Updated", updated, time_grid)


@app.command()
def cancel(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    config_file: ConfigOption = None,
):
    """
    Delete a reservation.
    """
    config = _setup(config_file)
    if not yes:
        typer.confirm(f"Really delete reservation {reservation_id}?", abort=True)

    _run(config, lambda service: service.delete_reservation(reservation_id))
    console.print(f"[green]✓ Reservation {reservation_id} deleted.[/green]")


@app.command()
def purge(config_file: ConfigOption = None):
    """
    Delete every reservation that ended before today.
    """
    config = _setup(config_file)
    removed = _run(config, lambda service: service.purge_stale())
    console.print(f"[green]✓ {removed} past reservation(s) removed.[/green]")


@app.command(name="all")
def all_reservations(
    limit: Annotated[Optional[int], typer.Option("--limit", min=1, help="Show at most N reservations")] = None,
    as_json: JsonOption = False,
    config_file: ConfigOption = None,
):
    """
    Show every upcoming reservation, newest first. Past days are purged first.
    """
    config = _setup(config_file)
    time_grid = config.build_grid()
    listing = _run(config, lambda service: service.list_all(limit=limit))

    if as_json:
        typer.echo(AllReservationsOut.from_domain(listing).model_dump_json(indent=2))
        return

    if not listing.reservations:
        console.print("[yellow]No reservations.[/yellow]")
        return
    console.print(_reservation_table(f"All reservations ({listing.total_count})", listing.reservations, time_grid))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]pcbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
