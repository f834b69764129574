"""
Filter predicates over normalized entities.

Each predicate is a side-effect-free boolean test, so ``matches`` may
evaluate them in any order; it short-circuits on the first failure.
"""

import logging
from collections.abc import Iterable
from datetime import date
from datetime import timedelta

from calendar_engine.models import CustomRange
from calendar_engine.models import DatePreset
from calendar_engine.models import DateRange
from calendar_engine.models import FilterState
from calendar_engine.models import Kind
from calendar_engine.models import NormalizedEntity
from calendar_engine.models import WeekStart
from calendar_engine.occupancy import month_bounds
from calendar_engine.occupancy import week_bounds
from calendar_engine.ranges import overlaps

_logger = logging.getLogger(__name__)


def preset_range(
    preset: DatePreset,
    today: date,
    week_start: WeekStart = WeekStart.SUNDAY,
) -> DateRange:
    """Resolve a named preset to concrete inclusive bounds anchored at today."""
    if preset == DatePreset.TODAY:
        return DateRange(today, today)
    if preset == DatePreset.THIS_WEEK:
        return DateRange(*week_bounds(today, week_start))
    if preset == DatePreset.THIS_MONTH:
        return DateRange(*month_bounds(today.year, today.month))
    if preset == DatePreset.NEXT_7_DAYS:
        return DateRange(today, today + timedelta(days=7))
    raise ValueError(f"Unknown date preset: {preset!r}")


def _inverted(bounds: CustomRange) -> bool:
    return bool(bounds.from_date and bounds.to_date and bounds.from_date > bounds.to_date)


def custom_range(bounds: CustomRange) -> DateRange:
    """Turn open custom bounds into a closed range spanning the whole calendar side."""
    if _inverted(bounds):
        raise ValueError(
            f"Custom range starts after it ends: {bounds.from_date} > {bounds.to_date}"
        )
    return DateRange(bounds.from_date or date.min, bounds.to_date or date.max)


def _kind_ok(entity: NormalizedEntity, filters: FilterState) -> bool:
    return not filters.kinds or entity.kind in filters.kinds


def _priority_ok(entity: NormalizedEntity, filters: FilterState) -> bool:
    if not filters.priorities or entity.kind != Kind.TASK:
        return True
    return entity.priority in filters.priorities


def _completion_ok(entity: NormalizedEntity, filters: FilterState) -> bool:
    return filters.include_completed or not entity.completed


def _date_ok(
    entity: NormalizedEntity, filters: FilterState, today: date, week_start: WeekStart
) -> bool:
    if filters.date_range is None:
        return True
    if isinstance(filters.date_range, CustomRange):
        if _inverted(filters.date_range):
            return False
        bounds = custom_range(filters.date_range)
    else:
        bounds = preset_range(filters.date_range, today, week_start)
    return overlaps(entity.range, bounds)


def _overdue_ok(entity: NormalizedEntity, filters: FilterState, today: date) -> bool:
    if not filters.only_overdue:
        return True
    return entity.kind == Kind.TASK and entity.end < today and not entity.completed


def matches(
    entity: NormalizedEntity,
    filters: FilterState,
    today: date | None = None,
    week_start: WeekStart = WeekStart.SUNDAY,
) -> bool:
    """Return True when the entity passes every active filter."""
    today = today or date.today()
    return (
        _kind_ok(entity, filters)
        and _priority_ok(entity, filters)
        and _completion_ok(entity, filters)
        and _date_ok(entity, filters, today, week_start)
        and _overdue_ok(entity, filters, today)
    )


def apply_filters(
    entities: Iterable[NormalizedEntity],
    filters: FilterState,
    today: date | None = None,
    week_start: WeekStart = WeekStart.SUNDAY,
) -> list[NormalizedEntity]:
    """Keep the matching entities, preserving input order.

    An inverted custom range matches nothing.
    """
    today = today or date.today()
    if isinstance(filters.date_range, CustomRange) and _inverted(filters.date_range):
        _logger.warning(
            "Ignoring inverted custom range %s > %s",
            filters.date_range.from_date,
            filters.date_range.to_date,
        )
        return []
    return [e for e in entities if matches(e, filters, today, week_start)]
