"""
Command-line interface for the Grid Calendar Engine.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from calendar_engine.adapter import normalize
from calendar_engine.adapter import normalize_all
from calendar_engine.colors import color_bucket
from calendar_engine.colors import string_hash
from calendar_engine.config import load_config
from calendar_engine.drag import DragController
from calendar_engine.filters import apply_filters
from calendar_engine.filters import custom_range
from calendar_engine.models import DEFAULT_CONFIG
from calendar_engine.models import CalendarEngineError
from calendar_engine.models import CustomRange
from calendar_engine.models import DatePreset
from calendar_engine.models import DragMode
from calendar_engine.models import EngineConfig
from calendar_engine.models import FilterState
from calendar_engine.models import Granularity
from calendar_engine.models import Kind
from calendar_engine.models import NormalizedEntity
from calendar_engine.models import Priority
from calendar_engine.models import VisibleWindow
from calendar_engine.models import kind_of
from calendar_engine.occupancy import OccupancyIndex
from calendar_engine.occupancy import month_grid
from calendar_engine.occupancy import month_window
from calendar_engine.occupancy import week_days
from calendar_engine.occupancy import week_window
from calendar_engine.store import JsonEntityStore
from calendar_engine.store import commit_fields
from calendar_engine.store import persist_commit

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Calendar occupancy and drag-interaction engine for tasks, sprints and projects.",
)

console = Console()

# Rich styles standing in for the UI palette; buckets wrap onto this list.
_PALETTE = (
    "blue",
    "green",
    "magenta",
    "cyan",
    "yellow",
    "red",
    "bright_blue",
    "bright_green",
    "bright_magenta",
    "bright_cyan",
    "orange3",
    "purple",
)


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    entities: Path | None = None
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    entities: Annotated[
        Path | None,
        typer.Option("--entities", "-e", help="Entity JSON file (overrides config)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.entities = entities
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/] {message}")
    return typer.Exit(1)


def _config() -> EngineConfig:
    try:
        cfg = load_config(state.config_path)
    except CalendarEngineError as e:
        raise _fail(str(e)) from None
    if state.entities is not None:
        cfg.entities_file = state.entities
    return cfg


def _load_entities(cfg: EngineConfig) -> list[NormalizedEntity]:
    path = cfg.entities_file
    try:
        with JsonEntityStore(path) as store:
            return normalize_all(store.entities(), cfg.invalid_range_policy)
    except CalendarEngineError as e:
        raise _fail(f"{e}\n       Run [cyan]grid-calendar-engine check[/] for details.") from None


def _parse_date(value: str | None, option: str, default: date | None = None) -> date | None:
    if value is None:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise _fail(f"Invalid date for {option}: {value!r}") from None


def _style_for(entity_id: str, cfg: EngineConfig) -> str:
    return _PALETTE[color_bucket(entity_id, cfg.palette_size) % len(_PALETTE)]


def _entity_label(entity: NormalizedEntity, cfg: EngineConfig, with_time: bool = False) -> Text:
    label = Text()
    label.append("■ ", style=_style_for(entity.id, cfg))
    if with_time and entity.start_at is not None:
        label.append(entity.start_at.strftime("%H:%M "), style="dim")
    label.append(entity.title or entity.id)
    if entity.completed:
        label.stylize("strike dim")
    return label


def _cell_text(
    index: OccupancyIndex, day: date, cfg: EngineConfig, hour: int | None = None
) -> Text:
    cell = index.cell(day, hour)
    text = Text()
    for i, entity in enumerate(cell.visible):
        if i:
            text.append("\n")
        text.append_text(_entity_label(entity, cfg, with_time=hour is None))
    if cell.overflow:
        text.append(f"\n+{cell.overflow} more", style="dim italic")
    return text


def _build_index(cfg: EngineConfig, window: VisibleWindow) -> OccupancyIndex:
    return OccupancyIndex(
        _load_entities(cfg),
        window,
        max_per_slot=cfg.max_per_slot,
        indicator_hours=cfg.indicator_hours,
    )


_DATE_OPT = Annotated[
    str | None,
    typer.Option("--date", "-d", help="Any day of the period, YYYY-MM-DD (default: today)"),
]


# ---------------------------------------------------------------------------
# Subcommands: grids
# ---------------------------------------------------------------------------


@app.command()
def week(anchor: _DATE_OPT = None) -> None:
    """Show the week grid holding [cyan]--date[/]."""
    cfg = _config()
    day = _parse_date(anchor, "--date", date.today())
    window = week_window(day, cfg.week_start)
    index = _build_index(cfg, window)

    table = Table(show_header=True, header_style="bold cyan", show_lines=True, expand=True)
    for d in index.days():
        header = d.strftime("%a %m-%d")
        table.add_column(f"[reverse]{header}[/reverse]" if d == date.today() else header)
    table.add_row(*[_cell_text(index, d, cfg) for d in index.days()])

    console.print(
        Panel(table, title=f"[bold]Week of {window.first_day} → {window.last_day}[/bold]")
    )


@app.command()
def month(
    year: Annotated[int | None, typer.Option("--year", help="Year (default: current)")] = None,
    month_number: Annotated[
        int | None, typer.Option("--month", min=1, max=12, help="Month 1-12 (default: current)")
    ] = None,
) -> None:
    """Show the month grid with a [dim]+N more[/dim] marker on crowded days."""
    cfg = _config()
    today = date.today()
    year = year or today.year
    month_number = month_number or today.month
    index = _build_index(cfg, month_window(year, month_number))

    rows = month_grid(year, month_number, cfg.week_start)
    table = Table(show_header=True, header_style="bold cyan", show_lines=True, expand=True)
    for d in week_days(date(year, month_number, 1), cfg.week_start):
        table.add_column(d.strftime("%a"))

    for row in rows:
        cells = []
        for d in row:
            if d is None:
                cells.append(Text(""))
                continue
            cell = Text(str(d.day), style="bold reverse" if d == today else "bold")
            body = _cell_text(index, d, cfg)
            if body:
                cell.append("\n")
                cell.append_text(body)
            cells.append(cell)
        table.add_row(*cells)

    title = date(year, month_number, 1).strftime("%B %Y")
    console.print(Panel(table, title=f"[bold]{title}[/bold]"))


@app.command()
def day(anchor: _DATE_OPT = None) -> None:
    """Show hour-by-hour occupancy of one day."""
    cfg = _config()
    the_day = _parse_date(anchor, "--date", date.today())
    index = _build_index(cfg, VisibleWindow(the_day, the_day, Granularity.HOUR))

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Hour", style="bold", justify="right")
    table.add_column("Occupants")
    for hour in range(24):
        table.add_row(f"{hour:02d}:00", _cell_text(index, the_day, cfg, hour))

    console.print(Panel(table, title=f"[bold]{the_day:%A %Y-%m-%d}[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Subcommand: filter
# ---------------------------------------------------------------------------


@app.command("filter")
def filter_entities(
    kind: Annotated[
        list[Kind] | None, typer.Option("--kind", "-k", help="Keep only these kinds")
    ] = None,
    priority: Annotated[
        list[Priority] | None,
        typer.Option("--priority", "-p", help="Keep only tasks of these priorities"),
    ] = None,
    include_completed: Annotated[
        bool,
        typer.Option("--include-completed/--hide-completed", help="Show completed items"),
    ] = True,
    date_range: Annotated[
        DatePreset | None, typer.Option("--range", "-r", help="Named date window")
    ] = None,
    from_date: Annotated[
        str | None, typer.Option("--from", help="Custom range start YYYY-MM-DD (open if omitted)")
    ] = None,
    to_date: Annotated[
        str | None, typer.Option("--to", help="Custom range end YYYY-MM-DD (open if omitted)")
    ] = None,
    overdue: Annotated[
        bool, typer.Option("--overdue", help="Only tasks past due and not completed")
    ] = False,
    today: Annotated[
        str | None, typer.Option("--today", help="Anchor for date presets (default: today)")
    ] = None,
) -> None:
    """List entities matching the given filters."""
    cfg = _config()
    if date_range is not None and (from_date or to_date):
        raise _fail("--range and --from/--to are mutually exclusive")

    date_filter = date_range
    if from_date or to_date:
        date_filter = CustomRange(
            _parse_date(from_date, "--from"), _parse_date(to_date, "--to")
        )
        try:
            custom_range(date_filter)
        except ValueError as e:
            raise _fail(str(e)) from None

    filters = FilterState(
        kinds=frozenset(kind or ()),
        priorities=frozenset(priority or ()),
        include_completed=include_completed,
        date_range=date_filter,
        only_overdue=overdue,
    )
    anchor = _parse_date(today, "--today", date.today())

    matched = apply_filters(_load_entities(cfg), filters, anchor, cfg.week_start)

    if not matched:
        console.print("[yellow]No entities match the filters.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind")
    table.add_column("Id", style="dim")
    table.add_column("Title")
    table.add_column("Start")
    table.add_column("End")
    for entity in sorted(matched, key=NormalizedEntity.sort_key):
        table.add_row(
            entity.kind.value,
            entity.id,
            _entity_label(entity, cfg),
            str(entity.start),
            str(entity.end),
        )
    console.print(table)
    console.print(f"[bold]{len(matched)}[/bold] match(es)")


# ---------------------------------------------------------------------------
# Subcommand: color
# ---------------------------------------------------------------------------


@app.command()
def color(
    entity_id: Annotated[str, typer.Argument(help="Entity id to hash")],
    palette_size: Annotated[
        int | None, typer.Option("--palette-size", min=1, help="Palette size (default: config)")
    ] = None,
) -> None:
    """Print the color bucket assigned to an entity id."""
    cfg = _config()
    size = palette_size or cfg.palette_size
    bucket = color_bucket(entity_id, size)

    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Hash", str(string_hash(entity_id)))
    results.add_row("Palette size", str(size))
    results.add_row("Bucket", Text(str(bucket), style=_PALETTE[bucket % len(_PALETTE)]))
    console.print(Panel(results, title=f"[bold]{entity_id}[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Subcommand: drag
# ---------------------------------------------------------------------------


@app.command()
def drag(
    kind: Annotated[Kind, typer.Argument(help="Entity kind")],
    entity_id: Annotated[str, typer.Argument(help="Entity id")],
    mode: Annotated[DragMode, typer.Argument(help="Gesture: move, resize-start or resize-end")],
    pointer: Annotated[
        list[str],
        typer.Argument(help="Pointer dates: where the drag starts, then each position it visits"),
    ],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Preview without saving")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Replay a drag gesture on an entity and save the resulting dates.

    The first pointer date anchors the gesture; each following date is one
    pointer update.  Updates that would push an edge past the other edge are
    ignored, exactly as on the grid.
    """
    cfg = _config()
    if len(pointer) < 2:
        raise _fail("Give at least two pointer dates (start and end of the drag)")
    dates = [_parse_date(p, "pointer") for p in pointer]

    path = cfg.entities_file
    try:
        with JsonEntityStore(path) as store:
            matches = [
                e for e in store.entities() if e.id == entity_id and kind_of(e) == kind
            ]
            if not matches:
                raise _fail(f"No {kind.value} with id {entity_id!r} in {path}")
            entity = normalize(matches[0], cfg.invalid_range_policy)

            controller = DragController(cfg.invalid_range_policy)
            controller.begin(entity, mode, dates[0])
            for d in dates[1:]:
                controller.update(d)
            result = controller.commit()

            info = Text()
            info.append("  Entity:    ", style="bold")
            info.append(f"{kind.value} {entity_id} ")
            info.append(entity.title, style="dim")
            info.append("\n  Gesture:   ", style="bold")
            info.append(f"{mode.value} {dates[0]} → {dates[-1]}")
            info.append("\n  Original:  ", style="bold")
            info.append(f"{entity.start} → {entity.end}")
            info.append("\n  Result:    ", style="bold")
            if result is None:
                info.append("unchanged (no-op)", style="yellow")
            else:
                info.append(f"{result.new_start} → {result.new_end}", style="green")
            if dry_run:
                info.append("\n  Mode:      ")
                info.append("DRY RUN", style="bold magenta")
            console.print(Panel(info, title="[bold]Drag[/bold]"))

            if result is None:
                return
            if dry_run:
                console.print(f"[dim]Would update: {commit_fields(result)}[/dim]")
                return
            if not yes:
                typer.confirm("Save?", abort=True)
            persist_commit(store, result)
    except CalendarEngineError as e:
        raise _fail(str(e)) from None

    console.print(f"[green]Saved[/] {kind.value} {entity_id} to {path}")


# ---------------------------------------------------------------------------
# Subcommand: check
# ---------------------------------------------------------------------------


@app.command()
def check() -> None:
    """Audit the entity file for records that cannot be placed as-is.

    Exits with code 1 if any issues are found.
    """
    from calendar_engine.audit import run_audit

    cfg = _config()
    try:
        ok = run_audit(cfg.entities_file, console)
    except CalendarEngineError as e:
        raise _fail(str(e)) from None
    if not ok:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
