"""
Pure data models — no file, config or CLI imports.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from datetime import time
from enum import Enum
from pathlib import Path
from typing import Union

DEFAULT_CONFIG = Path.home() / ".config/grid-calendar-engine.conf"
DEFAULT_ENTITIES = Path.home() / ".local/share/grid-calendar-engine/entities.json"


class CalendarEngineError(Exception):
    """Base exception for calendar engine errors."""

    pass


class InvalidRangeError(CalendarEngineError):
    """An entity's date range cannot be placed on the grid."""

    pass


class EntityFormatError(CalendarEngineError):
    """A raw entity record is missing fields or has unparseable values."""

    pass


class EntityNotFoundError(CalendarEngineError):
    """The persistence collaborator has no entity with the requested id."""

    pass


class NoActiveDragError(CalendarEngineError):
    """A drag operation was called while no drag session is active."""

    pass


class ConfigError(CalendarEngineError):
    """The configuration file holds an invalid value."""

    pass


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Kind(str, Enum):
    EVENT = "event"
    TASK = "task"
    SPRINT = "sprint"
    PROJECT = "project"


# Rendering precedence inside one grid cell: lower sorts first.
KIND_RANK = {
    Kind.EVENT: 0,
    Kind.TASK: 1,
    Kind.SPRINT: 2,
    Kind.PROJECT: 3,
}


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class SprintStatus(str, Enum):
    PLANNED = "Planned"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class Granularity(str, Enum):
    DAY = "day"
    HOUR = "hour"


class DragMode(str, Enum):
    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


class InvalidRangePolicy(str, Enum):
    COLLAPSE = "collapse"  # degenerate same-day range at the anchor
    REJECT = "reject"  # raise InvalidRangeError


class DatePreset(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    NEXT_7_DAYS = "next-7-days"


class WeekStart(str, Enum):
    SUNDAY = "sunday"
    MONDAY = "monday"


# ---------------------------------------------------------------------------
# Schedule entities
# ---------------------------------------------------------------------------


@dataclass
class Event:
    """Calendar event; a point in time when start == end."""

    id: str
    title: str
    start: datetime
    end: datetime
    location: str | None = None


@dataclass
class Sprint:
    id: str
    title: str
    start: date
    end: date
    status: SprintStatus = SprintStatus.PLANNED


@dataclass
class Task:
    """Task anchored on its due date; effective range is [start or due, due]."""

    id: str
    title: str
    due: date
    start: date | None = None
    priority: Priority = Priority.MEDIUM
    completed: bool = False


@dataclass
class Project:
    id: str
    title: str
    start: date | None = None
    end: date | None = None


ScheduleEntity = Union[Event, Sprint, Task, Project]

ENTITY_KIND: dict[type, Kind] = {
    Event: Kind.EVENT,
    Sprint: Kind.SPRINT,
    Task: Kind.TASK,
    Project: Kind.PROJECT,
}


def kind_of(entity: ScheduleEntity) -> Kind:
    """Return the Kind of a typed schedule entity."""
    try:
        return ENTITY_KIND[type(entity)]
    except KeyError:
        raise EntityFormatError(f"Not a schedule entity: {entity!r}") from None


# ---------------------------------------------------------------------------
# Ranges, windows, normalized records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-day interval."""

    start: date
    end: date


@dataclass(frozen=True)
class VisibleWindow:
    """Days currently shown on the grid (inclusive)."""

    first_day: date
    last_day: date
    granularity: Granularity = Granularity.DAY

    @property
    def range(self) -> DateRange:
        return DateRange(self.first_day, self.last_day)


@dataclass(frozen=True)
class NormalizedEntity:
    """Uniform {id, kind, start, end} record used by every engine component.

    ``start_at``/``end_at`` keep the full date-time of events for hour-grid
    placement; they are None for date-only kinds.
    """

    id: str
    kind: Kind
    start: date
    end: date
    start_at: datetime | None = None
    end_at: datetime | None = None
    source: ScheduleEntity | None = field(default=None, compare=False, repr=False)

    @property
    def range(self) -> DateRange:
        return DateRange(self.start, self.end)

    @property
    def title(self) -> str:
        return self.source.title if self.source is not None else self.id

    @property
    def completed(self) -> bool:
        if isinstance(self.source, Task):
            return self.source.completed
        if isinstance(self.source, Sprint):
            return self.source.status == SprintStatus.COMPLETED
        return False

    @property
    def priority(self) -> Priority | None:
        if isinstance(self.source, Task):
            return self.source.priority
        return None

    def sort_key(self) -> tuple:
        """Deterministic cell ordering: kind rank, start date, start time, id."""
        start_time = self.start_at.time() if self.start_at is not None else time.min
        return (KIND_RANK[self.kind], self.start, start_time, self.id)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomRange:
    """Caller-supplied date bounds; either side may be open (None)."""

    from_date: date | None = None
    to_date: date | None = None


DateFilter = Union[None, DatePreset, CustomRange]  # None means "All"


@dataclass(frozen=True)
class FilterState:
    """Immutable filter value; empty kind/priority sets mean no restriction."""

    kinds: frozenset[Kind] = frozenset()
    priorities: frozenset[Priority] = frozenset()
    include_completed: bool = True
    date_range: DateFilter = None
    only_overdue: bool = False


# ---------------------------------------------------------------------------
# Drag interaction
# ---------------------------------------------------------------------------


@dataclass
class DragSession:
    """State of the one in-progress move/resize gesture."""

    entity_id: str
    kind: Kind
    mode: DragMode
    anchor_date: date
    original_range: DateRange
    current_range: DateRange
    entity: NormalizedEntity | None = field(default=None, repr=False)


@dataclass(frozen=True)
class DragCommit:
    """Validated result of a drag, to be sent to the persistence collaborator."""

    entity_id: str
    kind: Kind
    new_start: date
    new_end: date
    original_range: DateRange
    entity: NormalizedEntity | None = field(default=None, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Configuration for the engine and CLI."""

    palette_size: int = 8
    max_per_slot: int = 2
    week_start: WeekStart = WeekStart.SUNDAY
    invalid_range_policy: InvalidRangePolicy = InvalidRangePolicy.COLLAPSE
    sprint_hour: int = 1
    project_hour: int = 8
    task_hour: int = 9
    entities_file: Path = field(default_factory=lambda: DEFAULT_ENTITIES)

    @property
    def indicator_hours(self) -> dict[Kind, int]:
        return {
            Kind.SPRINT: self.sprint_hour,
            Kind.PROJECT: self.project_hour,
            Kind.TASK: self.task_hour,
        }
