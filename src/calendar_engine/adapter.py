"""
Entity normalization — turns the four schedule kinds into one canonical shape.

Everything downstream (occupancy, filters, drag) only ever sees
NormalizedEntity records produced here.
"""

import logging
from collections.abc import Iterable
from collections.abc import Mapping
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timedelta
from typing import Any

from calendar_engine.models import EntityFormatError
from calendar_engine.models import Event
from calendar_engine.models import InvalidRangeError
from calendar_engine.models import InvalidRangePolicy
from calendar_engine.models import Kind
from calendar_engine.models import NormalizedEntity
from calendar_engine.models import Priority
from calendar_engine.models import Project
from calendar_engine.models import ScheduleEntity
from calendar_engine.models import Sprint
from calendar_engine.models import SprintStatus
from calendar_engine.models import Task
from calendar_engine.models import kind_of

_logger = logging.getLogger(__name__)

# Field name variants seen in backend records, tried in order.
FIELD_ALIASES = {
    "id": ("id", "sprint_id", "sprintId", "project_id", "projectId", "task_id", "taskId"),
    "title": ("title", "name", "summary"),
    "start": ("start", "start_date", "startDate", "start_at", "startAt"),
    "end": ("end", "end_date", "endDate", "end_at", "endAt"),
    "due": ("due", "due_date", "dueDate"),
    "status": ("status", "sprint_status", "sprintStatus"),
    "priority": ("priority",),
    "completed": ("completed", "is_completed", "isCompleted", "done"),
    "location": ("location",),
}


def _naive(value: datetime) -> datetime:
    """Drop tzinfo; events are placed by their wall-clock time."""
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def normalize(
    entity: ScheduleEntity,
    policy: InvalidRangePolicy = InvalidRangePolicy.COLLAPSE,
) -> NormalizedEntity:
    """Return the canonical {id, kind, start, end} record for an entity.

    The result always satisfies start <= end.  An inverted range is either
    collapsed onto the entity's anchor day (COLLAPSE) or rejected with
    InvalidRangeError (REJECT).
    """
    kind = kind_of(entity)
    start_at = end_at = None

    if isinstance(entity, Event):
        start_at = _naive(entity.start)
        end_at = _naive(entity.end)
        start, end = start_at.date(), end_at.date()
        if end_at > start_at and end_at.time() == time.min:
            # ends at midnight: the last occupied day is the one before
            end -= timedelta(days=1)
        anchor = start
        lower, upper = start_at, end_at
    elif isinstance(entity, Task):
        start = entity.start if entity.start is not None else entity.due
        end = entity.due
        anchor = entity.due
        lower, upper = start, end
    else:
        start, end = entity.start, entity.end
        if start is None and end is None:
            raise InvalidRangeError(f"{kind.value} {entity.id!r} has neither start nor end date")
        start = start if start is not None else end
        end = end if end is not None else start
        anchor = end
        lower, upper = start, end

    if lower > upper:
        if policy == InvalidRangePolicy.REJECT:
            raise InvalidRangeError(
                f"{kind.value} {entity.id!r} starts after it ends ({lower} > {upper})"
            )
        _logger.warning(
            "Collapsing inverted range of %s %s (%s > %s) onto %s",
            kind.value,
            entity.id,
            lower,
            upper,
            anchor,
        )
        start = end = anchor
        if start_at is not None:
            end_at = start_at

    return NormalizedEntity(
        id=entity.id,
        kind=kind,
        start=start,
        end=end,
        start_at=start_at,
        end_at=end_at,
        source=entity,
    )


def normalize_all(
    entities: Iterable[ScheduleEntity],
    policy: InvalidRangePolicy = InvalidRangePolicy.COLLAPSE,
) -> list[NormalizedEntity]:
    """Normalize a collection, dropping entities that cannot be placed at all.

    Under REJECT every InvalidRangeError propagates; under COLLAPSE only
    entities with no date at all are skipped (with a warning).
    """
    result = []
    for entity in entities:
        try:
            result.append(normalize(entity, policy))
        except InvalidRangeError as e:
            if policy == InvalidRangePolicy.REJECT:
                raise
            _logger.warning("Skipping unplaceable entity: %s", e)
    return result


# ---------------------------------------------------------------------------
# Raw record parsing
# ---------------------------------------------------------------------------


def get_field(record: Mapping[str, Any], name: str) -> Any:
    """First non-empty value among the aliases of a canonical field name."""
    for key in FIELD_ALIASES[name]:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str):
        raise EntityFormatError(f"Not a date-time: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise EntityFormatError(f"Invalid date-time: {value!r}") from None


def parse_date(value: Any) -> date | None:
    """Parse a date field; date-times are truncated to their calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise EntityFormatError(f"Not a date: {value!r}")
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise EntityFormatError(f"Invalid date: {value!r}") from None


def _parse_priority(value: Any) -> Priority:
    if value is None:
        return Priority.MEDIUM
    text = str(value).strip().lower()
    for priority in Priority:
        if priority.value.lower() == text:
            return priority
    raise EntityFormatError(f"Unknown priority: {value!r}")


def _parse_sprint_status(value: Any) -> SprintStatus:
    if value is None:
        return SprintStatus.PLANNED
    text = str(value).strip().lower()
    for status in SprintStatus:
        if status.value.lower() == text:
            return status
    raise EntityFormatError(f"Unknown sprint status: {value!r}")


def _parse_completed(record: Mapping[str, Any]) -> bool:
    flag = get_field(record, "completed")
    if flag is not None:
        if isinstance(flag, str):
            return flag.strip().lower() in ("true", "yes", "1")
        return bool(flag)
    status = get_field(record, "status")
    return isinstance(status, str) and status.strip().lower() in ("completed", "done")


def parse_kind(value: Any) -> Kind:
    text = str(value).strip().lower().rstrip("s")
    try:
        return Kind(text)
    except ValueError:
        raise EntityFormatError(f"Unknown entity kind: {value!r}") from None


def from_record(kind: Kind | str, record: Mapping[str, Any]) -> ScheduleEntity:
    """Build a typed entity from a loosely-typed backend record.

    Accepts both snake_case and camelCase field names (``start_date`` and
    ``startDate``) so the rest of the engine never has to.
    """
    if not isinstance(kind, Kind):
        kind = parse_kind(kind)

    entity_id = get_field(record, "id")
    if entity_id is None:
        raise EntityFormatError(f"{kind.value} record has no id: {dict(record)!r}")
    entity_id = str(entity_id)
    title = str(get_field(record, "title") or "")

    if kind == Kind.EVENT:
        raw_start = get_field(record, "start")
        if raw_start is None:
            raise EntityFormatError(f"event {entity_id!r} has no start")
        start = parse_datetime(raw_start)
        raw_end = get_field(record, "end")
        end = parse_datetime(raw_end) if raw_end is not None else start
        return Event(entity_id, title, start, end, location=get_field(record, "location"))

    if kind == Kind.SPRINT:
        start = parse_date(get_field(record, "start"))
        end = parse_date(get_field(record, "end"))
        if start is None and end is None:
            raise EntityFormatError(f"sprint {entity_id!r} has no dates")
        return Sprint(
            entity_id,
            title,
            start if start is not None else end,
            end if end is not None else start,
            status=_parse_sprint_status(get_field(record, "status")),
        )

    if kind == Kind.TASK:
        due = parse_date(get_field(record, "due"))
        if due is None:
            raise EntityFormatError(f"task {entity_id!r} has no due date")
        return Task(
            entity_id,
            title,
            due,
            start=parse_date(get_field(record, "start")),
            priority=_parse_priority(get_field(record, "priority")),
            completed=_parse_completed(record),
        )

    return Project(
        entity_id,
        title,
        start=parse_date(get_field(record, "start")),
        end=parse_date(get_field(record, "end")),
    )


def to_record(entity: ScheduleEntity) -> dict[str, Any]:
    """Serialise a typed entity back to a canonical snake_case record."""
    if isinstance(entity, Event):
        record = {
            "id": entity.id,
            "title": entity.title,
            "start": entity.start.isoformat(),
            "end": entity.end.isoformat(),
        }
        if entity.location:
            record["location"] = entity.location
        return record
    if isinstance(entity, Sprint):
        return {
            "id": entity.id,
            "title": entity.title,
            "start_date": entity.start.isoformat(),
            "end_date": entity.end.isoformat(),
            "status": entity.status.value,
        }
    if isinstance(entity, Task):
        record = {
            "id": entity.id,
            "title": entity.title,
            "due_date": entity.due.isoformat(),
            "priority": entity.priority.value,
            "completed": entity.completed,
        }
        if entity.start is not None:
            record["start_date"] = entity.start.isoformat()
        return record
    record = {"id": entity.id, "title": entity.title}
    if entity.start is not None:
        record["start_date"] = entity.start.isoformat()
    if entity.end is not None:
        record["end_date"] = entity.end.isoformat()
    return record
