"""
Occupancy index — which entities occupy a given day / hour cell of the grid.
"""

import calendar
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timedelta

from calendar_engine.models import Granularity
from calendar_engine.models import Kind
from calendar_engine.models import NormalizedEntity
from calendar_engine.models import VisibleWindow
from calendar_engine.models import WeekStart
from calendar_engine.ranges import contains_day
from calendar_engine.ranges import overlaps

_logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_SLOT = 2

# Non-event kinds get a single indicator row per day in the hour grid instead
# of being repeated in every hour.
DEFAULT_INDICATOR_HOURS = {
    Kind.SPRINT: 1,
    Kind.PROJECT: 8,
    Kind.TASK: 9,
}

_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class Cell:
    """One rendered grid cell: the capped occupant list plus the hidden count."""

    day: date
    hour: int | None
    visible: list[NormalizedEntity] = field(default_factory=list)
    overflow: int = 0


class OccupancyIndex:
    """Answers per-cell occupancy for the entities intersecting a window.

    The index is a pure function of its inputs: callers rebuild it whenever
    the entity set or the window changes.
    """

    def __init__(
        self,
        entities: Iterable[NormalizedEntity],
        window: VisibleWindow,
        max_per_slot: int = DEFAULT_MAX_PER_SLOT,
        indicator_hours: dict[Kind, int] | None = None,
    ):
        if max_per_slot < 1:
            raise ValueError(f"max_per_slot must be at least 1, got {max_per_slot}")
        self.window = window
        self.max_per_slot = max_per_slot
        self.indicator_hours = dict(DEFAULT_INDICATOR_HOURS)
        if indicator_hours:
            self.indicator_hours.update(indicator_hours)
        for kind, hour in self.indicator_hours.items():
            if not 0 <= hour <= 23:
                raise ValueError(f"Indicator hour for {kind.value} out of range: {hour}")

        in_view = [e for e in entities if overlaps(e.range, window.range)]
        # Sorted once here; every per-cell query is a stable filter of this list.
        self.entities = sorted(in_view, key=NormalizedEntity.sort_key)
        _logger.debug(
            "Occupancy index: %d entities in view %s..%s",
            len(self.entities),
            window.first_day,
            window.last_day,
        )

    def _in_hour(self, entity: NormalizedEntity, day: date, hour: int) -> bool:
        if entity.kind != Kind.EVENT:
            return self.indicator_hours.get(entity.kind) == hour
        slot_start = datetime.combine(day, time(hour))
        slot_end = slot_start + _HOUR
        start_at = entity.start_at or datetime.combine(entity.start, time.min)
        end_at = entity.end_at or start_at
        if end_at <= start_at:
            return slot_start <= start_at < slot_end
        return start_at < slot_end and end_at > slot_start

    def all_occupants_for(self, day: date, hour: int | None = None) -> list[NormalizedEntity]:
        """Every entity occupying the cell, in rendering order (uncapped)."""
        if not contains_day(self.window.range, day):
            return []
        if hour is not None and not 0 <= hour <= 23:
            raise ValueError(f"Hour out of range: {hour}")
        occupants = [e for e in self.entities if contains_day(e.range, day)]
        if hour is not None:
            occupants = [e for e in occupants if self._in_hour(e, day, hour)]
        return occupants

    def occupants_for(self, day: date, hour: int | None = None) -> list[NormalizedEntity]:
        """The occupants to draw in the cell, capped at max_per_slot."""
        return self.all_occupants_for(day, hour)[: self.max_per_slot]

    def overflow_for(self, day: date, hour: int | None = None) -> int:
        """How many occupants the cap hides (the "+N more" count)."""
        return max(0, len(self.all_occupants_for(day, hour)) - self.max_per_slot)

    def cell(self, day: date, hour: int | None = None) -> Cell:
        occupants = self.all_occupants_for(day, hour)
        return Cell(
            day=day,
            hour=hour,
            visible=occupants[: self.max_per_slot],
            overflow=max(0, len(occupants) - self.max_per_slot),
        )

    def days(self) -> list[date]:
        """Every day of the window, in order."""
        span = (self.window.last_day - self.window.first_day).days
        return [self.window.first_day + timedelta(days=i) for i in range(span + 1)]


# ---------------------------------------------------------------------------
# Grid helpers
# ---------------------------------------------------------------------------


def _first_weekday(week_start: WeekStart) -> int:
    return calendar.SUNDAY if week_start == WeekStart.SUNDAY else calendar.MONDAY


def week_bounds(anchor: date, week_start: WeekStart = WeekStart.SUNDAY) -> tuple[date, date]:
    """First and last day of the 7-day week holding anchor."""
    offset = (anchor.weekday() - _first_weekday(week_start)) % 7
    first = anchor - timedelta(days=offset)
    return first, first + timedelta(days=6)


def week_days(anchor: date, week_start: WeekStart = WeekStart.SUNDAY) -> list[date]:
    first, _ = week_bounds(anchor, week_start)
    return [first + timedelta(days=i) for i in range(7)]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    _, last = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, last)


def month_grid(
    year: int, month: int, week_start: WeekStart = WeekStart.SUNDAY
) -> list[list[date | None]]:
    """Month as rows of 7 cells, padded with None outside the month."""
    cal = calendar.Calendar(firstweekday=_first_weekday(week_start))
    rows = []
    for week in cal.monthdays2calendar(year, month):
        rows.append([date(year, month, day) if day else None for day, _ in week])
    return rows


def week_window(
    anchor: date,
    week_start: WeekStart = WeekStart.SUNDAY,
    granularity: Granularity = Granularity.DAY,
) -> VisibleWindow:
    first, last = week_bounds(anchor, week_start)
    return VisibleWindow(first, last, granularity)


def month_window(year: int, month: int) -> VisibleWindow:
    first, last = month_bounds(year, month)
    return VisibleWindow(first, last)
