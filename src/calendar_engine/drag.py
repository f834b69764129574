"""
Drag-interaction state machine for moving and resizing entities on the grid.

    Idle --begin--> Dragging --commit/cancel--> Idle

The host UI converts pointer coordinates to calendar dates before calling in;
this module never sees pixels.  One controller owns at most one session.
"""

import logging
from dataclasses import replace
from datetime import date
from datetime import timedelta

from calendar_engine.adapter import normalize
from calendar_engine.models import DateRange
from calendar_engine.models import DragCommit
from calendar_engine.models import DragMode
from calendar_engine.models import DragSession
from calendar_engine.models import InvalidRangePolicy
from calendar_engine.models import NoActiveDragError
from calendar_engine.models import NormalizedEntity
from calendar_engine.models import ScheduleEntity
from calendar_engine.ranges import day_delta
from calendar_engine.ranges import shift_days

_logger = logging.getLogger(__name__)


def apply_delta(original: DateRange, mode: DragMode, delta: int) -> DateRange | None:
    """Range produced by moving one edge (or both) by delta days, or None if rejected.

    A resized edge must stay strictly on its side of the opposite edge; the
    opposite edge never moves.
    """
    if mode == DragMode.MOVE:
        return shift_days(original, delta)
    if mode == DragMode.RESIZE_START:
        candidate = original.start + timedelta(days=delta)
        if candidate < original.end:
            return DateRange(candidate, original.end)
        return None
    if mode == DragMode.RESIZE_END:
        candidate = original.end + timedelta(days=delta)
        if candidate > original.start:
            return DateRange(original.start, candidate)
        return None
    raise ValueError(f"Unknown drag mode: {mode!r}")


class DragController:
    """Owns the single active DragSession, if any."""

    def __init__(self, policy: InvalidRangePolicy = InvalidRangePolicy.COLLAPSE):
        self.policy = policy
        self._session: DragSession | None = None

    @property
    def active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> DragSession | None:
        return self._session

    def begin(
        self,
        entity: NormalizedEntity | ScheduleEntity,
        mode: DragMode,
        pointer_date: date,
    ) -> DragSession | None:
        """Start a gesture; returns None when another session is still active."""
        if self._session is not None:
            _logger.debug(
                "Drag begin ignored for %s: session for %s still active",
                getattr(entity, "id", entity),
                self._session.entity_id,
            )
            return None

        if not isinstance(entity, NormalizedEntity):
            entity = normalize(entity, self.policy)

        self._session = DragSession(
            entity_id=entity.id,
            kind=entity.kind,
            mode=DragMode(mode),
            anchor_date=pointer_date,
            original_range=entity.range,
            current_range=entity.range,
            entity=entity,
        )
        _logger.debug(
            "Drag begin: %s %s mode=%s range=%s..%s",
            entity.kind.value,
            entity.id,
            self._session.mode.value,
            entity.start,
            entity.end,
        )
        return self._session

    def _require_session(self) -> DragSession:
        if self._session is None:
            raise NoActiveDragError("No drag session is active")
        return self._session

    def update(self, pointer_date: date) -> DateRange:
        """Recompute the preview range from the pointer; returns the current range.

        Deltas that would make a resized edge cross the other edge are
        ignored, leaving the last valid range in place.
        """
        session = self._require_session()
        delta = day_delta(session.anchor_date, pointer_date)
        candidate = apply_delta(session.original_range, session.mode, delta)
        if candidate is None:
            _logger.debug(
                "Drag update rejected for %s: delta %+d crosses the opposite edge",
                session.entity_id,
                delta,
            )
        else:
            session.current_range = candidate
        return session.current_range

    def commit(self) -> DragCommit | None:
        """End the gesture; returns the range to persist, or None when nothing moved."""
        session = self._require_session()
        self._session = None
        if session.current_range == session.original_range:
            _logger.debug("Drag commit for %s is a no-op", session.entity_id)
            return None
        _logger.debug(
            "Drag commit: %s %s -> %s..%s",
            session.kind.value,
            session.entity_id,
            session.current_range.start,
            session.current_range.end,
        )
        return DragCommit(
            entity_id=session.entity_id,
            kind=session.kind,
            new_start=session.current_range.start,
            new_end=session.current_range.end,
            original_range=session.original_range,
            entity=session.entity,
        )

    def cancel(self) -> None:
        """Discard the active gesture; safe to call when idle."""
        if self._session is not None:
            _logger.debug("Drag cancelled for %s", self._session.entity_id)
        self._session = None

    def preview(self) -> NormalizedEntity | None:
        """The dragged entity as it would render with the current range."""
        if self._session is None or self._session.entity is None:
            return None
        entity = self._session.entity
        rng = self._session.current_range
        start_at = end_at = None
        if entity.start_at is not None:
            start_at = entity.start_at + (rng.start - entity.start)
        if entity.end_at is not None:
            end_at = entity.end_at + (rng.end - entity.end)
        return replace(entity, start=rng.start, end=rng.end, start_at=start_at, end_at=end_at)
