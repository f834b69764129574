"""
Shared pytest fixtures and entity builders.
"""

import json
from datetime import date
from datetime import datetime

import pytest

from calendar_engine.adapter import normalize
from calendar_engine.drag import DragController
from calendar_engine.models import Event
from calendar_engine.models import Priority
from calendar_engine.models import Project
from calendar_engine.models import Sprint
from calendar_engine.models import SprintStatus
from calendar_engine.models import Task
from calendar_engine.models import VisibleWindow

# Sunday 2024-06-02 .. Saturday 2024-06-08
WEEK_FIRST = date(2024, 6, 2)
WEEK_LAST = date(2024, 6, 8)


def make_sprint(
    sprint_id: str = "S1",
    start: date = date(2024, 6, 3),
    end: date = date(2024, 6, 7),
    status: SprintStatus = SprintStatus.ACTIVE,
) -> Sprint:
    return Sprint(sprint_id, f"Sprint {sprint_id}", start, end, status=status)


def make_task(
    task_id: str = "T1",
    due: date = date(2024, 6, 10),
    start: date | None = None,
    priority: Priority = Priority.MEDIUM,
    completed: bool = False,
) -> Task:
    return Task(
        task_id, f"Task {task_id}", due, start=start, priority=priority, completed=completed
    )


def make_event(
    event_id: str = "E1",
    start: datetime = datetime(2024, 6, 4, 10, 0),
    end: datetime | None = None,
) -> Event:
    """Return an event; a missing end makes it a point event."""
    return Event(event_id, f"Event {event_id}", start, end if end is not None else start)


def make_project(
    project_id: str = "P1",
    start: date | None = date(2024, 6, 1),
    end: date | None = date(2024, 6, 30),
) -> Project:
    return Project(project_id, f"Project {project_id}", start=start, end=end)


def write_entities(path, events=(), sprints=(), tasks=(), projects=()):
    """Write an entity JSON document with the given raw records."""
    path.write_text(
        json.dumps(
            {
                "events": list(events),
                "sprints": list(sprints),
                "tasks": list(tasks),
                "projects": list(projects),
            },
            indent=2,
        )
    )
    return path


@pytest.fixture
def june_week():
    return VisibleWindow(WEEK_FIRST, WEEK_LAST)


@pytest.fixture
def sprint():
    return normalize(make_sprint())


@pytest.fixture
def controller():
    return DragController()


@pytest.fixture
def entities_path(tmp_path):
    return write_entities(
        tmp_path / "entities.json",
        events=[
            {
                "id": "E1",
                "title": "Planning",
                "start": "2024-06-04T10:00:00",
                "end": "2024-06-04T11:00:00",
            }
        ],
        sprints=[
            {
                "id": "S1",
                "name": "Sprint 1",
                "start_date": "2024-06-03",
                "end_date": "2024-06-07",
                "status": "active",
            }
        ],
        tasks=[
            {"id": "T1", "title": "Write docs", "dueDate": "2024-06-05", "priority": "High"},
            {
                "id": "T2",
                "title": "Fix bug",
                "dueDate": "2024-06-01",
                "priority": "Low",
                "status": "To Do",
            },
        ],
        projects=[
            {"id": "P1", "name": "Website", "startDate": "2024-05-01", "endDate": "2024-07-31"}
        ],
    )


@pytest.fixture
def config_path(tmp_path):
    """A config path that does not exist, so every setting takes its default."""
    return tmp_path / "missing.conf"
