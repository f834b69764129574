"""
Entity source and persistence collaborator.

The engine only needs a generic "update by id" operation; JsonEntityStore
implements it over a JSON document so the CLI has something to read and
write.  A remote REST backend would satisfy the same EntityStore protocol.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any
from typing import Protocol

from calendar_engine.adapter import FIELD_ALIASES
from calendar_engine.adapter import from_record
from calendar_engine.models import DragCommit
from calendar_engine.models import EntityFormatError
from calendar_engine.models import EntityNotFoundError
from calendar_engine.models import Event
from calendar_engine.models import Kind
from calendar_engine.models import ScheduleEntity
from calendar_engine.models import Task

_logger = logging.getLogger(__name__)

SECTIONS = {
    Kind.EVENT: "events",
    Kind.SPRINT: "sprints",
    Kind.TASK: "tasks",
    Kind.PROJECT: "projects",
}

# Key written when a record does not already carry one of the aliases.
_DEFAULT_KEYS = {
    Kind.EVENT: {"start": "start", "end": "end"},
    Kind.SPRINT: {"start": "start_date", "end": "end_date"},
    Kind.TASK: {"start": "start_date", "due": "due_date"},
    Kind.PROJECT: {"start": "start_date", "end": "end_date"},
}


class EntityStore(Protocol):
    """What the engine requires of a persistence backend."""

    def update_by_id(self, kind: Kind, entity_id: str, fields: dict[str, Any]) -> None: ...


def commit_fields(commit: DragCommit) -> dict[str, Any]:
    """Map a drag result onto the fields of the entity's own kind.

    Events keep their time of day (and timezone); tasks store the end as
    ``due`` and only carry an explicit ``start`` when it differs or already
    existed.
    """
    source = commit.entity.source if commit.entity is not None else None

    if isinstance(source, Event) and commit.entity.start_at is not None:
        # clock times move by whole days; the source tz is reattached
        entity = commit.entity
        start = entity.start_at.replace(tzinfo=source.start.tzinfo) + (
            commit.new_start - commit.original_range.start
        )
        end = entity.end_at.replace(tzinfo=source.end.tzinfo) + (
            commit.new_end - commit.original_range.end
        )
        return {"start": start.isoformat(), "end": end.isoformat()}

    if commit.kind == Kind.EVENT:
        return {
            "start": datetime.combine(commit.new_start, datetime.min.time()).isoformat(),
            "end": datetime.combine(commit.new_end, datetime.min.time()).isoformat(),
        }

    if commit.kind == Kind.TASK:
        fields = {"due": commit.new_end.isoformat()}
        had_start = isinstance(source, Task) and source.start is not None
        if had_start or commit.new_start != commit.new_end:
            fields["start"] = commit.new_start.isoformat()
        return fields

    return {"start": commit.new_start.isoformat(), "end": commit.new_end.isoformat()}


def persist_commit(store: EntityStore, commit: DragCommit | None) -> bool:
    """Send a committed drag to the store; a no-op commit (None) sends nothing.

    Returns True when an update was issued.
    """
    if commit is None:
        return False
    fields = commit_fields(commit)
    _logger.info("Persisting %s %s: %s", commit.kind.value, commit.entity_id, fields)
    store.update_by_id(commit.kind, commit.entity_id, fields)
    return True


class JsonEntityStore:
    """File-backed entity collection: {"events": [...], "sprints": [...], ...}."""

    def __init__(self, path: Path):
        self.path = path
        self.document: dict[str, list[dict[str, Any]]] = {}
        self.dirty = False

    def __enter__(self):
        self.load()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None and self.dirty:
            self.save()

    def load(self) -> None:
        """Read the document; a missing file is an empty collection."""
        if not self.path.exists():
            _logger.debug("Entity file %s not found, starting empty", self.path)
            self.document = {section: [] for section in SECTIONS.values()}
            return
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as e:
            raise EntityFormatError(f"{self.path}: invalid JSON ({e})") from e
        if not isinstance(data, dict):
            raise EntityFormatError(f"{self.path}: top level must be an object")
        for section in SECTIONS.values():
            records = data.setdefault(section, [])
            if not isinstance(records, list):
                raise EntityFormatError(f"{self.path}: '{section}' must be a list")
        self.document = data
        self.dirty = False

    def save(self) -> None:
        """Write the document atomically (temp file + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".entities-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.document, fh, indent=2)
                fh.write("\n")
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self.dirty = False
        _logger.debug("Saved entity file %s", self.path)

    def records(self, kind: Kind) -> list[dict[str, Any]]:
        return self.document.get(SECTIONS[kind], [])

    def entities(self) -> list[ScheduleEntity]:
        """Every record as a typed entity, kind by kind in file order."""
        result = []
        for kind in SECTIONS:
            for record in self.records(kind):
                result.append(from_record(kind, record))
        return result

    def get_record(self, kind: Kind, entity_id: str) -> dict[str, Any]:
        for record in self.records(kind):
            ids = {str(record[key]) for key in FIELD_ALIASES["id"] if key in record}
            if entity_id in ids:
                return record
        raise EntityNotFoundError(f"No {kind.value} with id {entity_id!r}")

    def update_by_id(self, kind: Kind, entity_id: str, fields: dict[str, Any]) -> None:
        """Overwrite the given canonical fields, keeping the record's own key spelling."""
        record = self.get_record(kind, entity_id)
        for name, value in fields.items():
            key = next((k for k in FIELD_ALIASES.get(name, ()) if k in record), None)
            if key is None:
                key = _DEFAULT_KEYS[kind].get(name, name)
            record[key] = value
        self.dirty = True

    def add(self, kind: Kind, record: dict[str, Any]) -> None:
        self.document.setdefault(SECTIONS[kind], []).append(record)
        self.dirty = True
