"""
Tests for the persistence collaborator: commit field mapping and the JSON store.
"""

import json
from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from calendar_engine.adapter import normalize
from calendar_engine.drag import DragController
from calendar_engine.models import DragMode
from calendar_engine.models import EntityFormatError
from calendar_engine.models import EntityNotFoundError
from calendar_engine.models import Kind
from calendar_engine.store import JsonEntityStore
from calendar_engine.store import commit_fields
from calendar_engine.store import persist_commit
from tests.conftest import make_event
from tests.conftest import make_sprint
from tests.conftest import make_task
from tests.conftest import write_entities
from tests.fake_store import FakeEntityStore


def _drag(entity, mode, days):
    controller = DragController()
    anchor = date(2024, 6, 1)
    controller.begin(entity, mode, anchor)
    controller.update(anchor + timedelta(days=days))
    return controller.commit()


class TestCommitFields:
    def test_sprint_move(self):
        commit = _drag(make_sprint(), DragMode.MOVE, 3)
        assert commit_fields(commit) == {"start": "2024-06-06", "end": "2024-06-10"}

    def test_event_keeps_time_of_day(self):
        event = make_event(start=datetime(2024, 6, 4, 10), end=datetime(2024, 6, 4, 11, 30))
        commit = _drag(event, DragMode.MOVE, 2)
        assert commit_fields(commit) == {
            "start": "2024-06-06T10:00:00",
            "end": "2024-06-06T11:30:00",
        }

    def test_event_keeps_timezone(self):
        tz = timezone(timedelta(hours=2))
        event = make_event(start=datetime(2024, 6, 4, 10, tzinfo=tz),
                           end=datetime(2024, 6, 4, 11, tzinfo=tz))
        fields = commit_fields(_drag(event, DragMode.MOVE, 1))
        assert fields["start"] == "2024-06-05T10:00:00+02:00"

    def test_event_ending_at_midnight_moves_whole_days(self):
        event = make_event(start=datetime(2024, 6, 3, 22), end=datetime(2024, 6, 4, 0, 0))
        commit = _drag(event, DragMode.MOVE, 2)
        assert commit_fields(commit) == {
            "start": "2024-06-05T22:00:00",
            "end": "2024-06-06T00:00:00",
        }

    def test_collapsed_event_is_written_ordered(self):
        event = make_event(start=datetime(2024, 6, 4, 10), end=datetime(2024, 6, 4, 9))
        commit = _drag(event, DragMode.MOVE, 1)
        assert commit_fields(commit) == {
            "start": "2024-06-05T10:00:00",
            "end": "2024-06-05T10:00:00",
        }

    def test_single_day_task_move_writes_only_due(self):
        commit = _drag(make_task(due=date(2024, 6, 10)), DragMode.MOVE, 2)
        assert commit_fields(commit) == {"due": "2024-06-12"}

    def test_task_resize_writes_start(self):
        commit = _drag(make_task(due=date(2024, 6, 10)), DragMode.RESIZE_END, 2)
        assert commit_fields(commit) == {"due": "2024-06-12", "start": "2024-06-10"}

    def test_task_with_existing_start_keeps_it_in_sync(self):
        task = make_task(start=date(2024, 6, 8), due=date(2024, 6, 10))
        commit = _drag(task, DragMode.MOVE, 1)
        assert commit_fields(commit) == {"due": "2024-06-11", "start": "2024-06-09"}


class TestPersistCommit:
    def test_sends_one_update(self):
        store = FakeEntityStore({(Kind.SPRINT, "S1"): {"id": "S1"}})
        assert persist_commit(store, _drag(make_sprint(), DragMode.MOVE, 3))
        assert store.updates == [
            (Kind.SPRINT, "S1", {"start": "2024-06-06", "end": "2024-06-10"})
        ]

    def test_noop_commit_sends_nothing(self):
        store = FakeEntityStore()
        assert not persist_commit(store, _drag(make_sprint(), DragMode.MOVE, 0))
        assert store.update_count == 0

    def test_unknown_entity(self):
        store = FakeEntityStore()
        with pytest.raises(EntityNotFoundError):
            persist_commit(store, _drag(make_sprint(), DragMode.MOVE, 1))


class TestJsonEntityStore:
    def test_missing_file_is_empty(self, tmp_path):
        with JsonEntityStore(tmp_path / "none.json") as store:
            assert store.entities() == []
        assert not (tmp_path / "none.json").exists()

    def test_loads_mixed_spellings(self, entities_path):
        with JsonEntityStore(entities_path) as store:
            ids = [(e.__class__.__name__, e.id) for e in store.entities()]
        assert ids == [
            ("Event", "E1"),
            ("Sprint", "S1"),
            ("Task", "T1"),
            ("Task", "T2"),
            ("Project", "P1"),
        ]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(EntityFormatError):
            JsonEntityStore(path).load()

    def test_section_must_be_list(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"tasks": {}}))
        with pytest.raises(EntityFormatError):
            JsonEntityStore(path).load()

    def test_update_keeps_key_spelling(self, entities_path):
        with JsonEntityStore(entities_path) as store:
            store.update_by_id(Kind.TASK, "T1", {"due": "2024-06-07"})
            store.update_by_id(Kind.PROJECT, "P1", {"end": "2024-08-31"})
        data = json.loads(entities_path.read_text())
        assert data["tasks"][0]["dueDate"] == "2024-06-07"
        assert "due_date" not in data["tasks"][0]
        assert data["projects"][0]["endDate"] == "2024-08-31"

    def test_update_adds_default_key(self, entities_path):
        with JsonEntityStore(entities_path) as store:
            store.update_by_id(Kind.TASK, "T1", {"start": "2024-06-03"})
        assert json.loads(entities_path.read_text())["tasks"][0]["start_date"] == "2024-06-03"

    def test_unknown_id(self, entities_path):
        with JsonEntityStore(entities_path) as store:
            with pytest.raises(EntityNotFoundError):
                store.update_by_id(Kind.SPRINT, "nope", {"start": "2024-06-01"})

    def test_not_saved_on_error(self, entities_path):
        before = entities_path.read_text()
        with pytest.raises(RuntimeError):
            with JsonEntityStore(entities_path) as store:
                store.update_by_id(Kind.SPRINT, "S1", {"start": "2024-06-01"})
                raise RuntimeError("boom")
        assert entities_path.read_text() == before

    def test_drag_round_trip_through_file(self, entities_path):
        with JsonEntityStore(entities_path) as store:
            sprint = next(e for e in store.entities() if e.id == "S1")
            assert persist_commit(store, _drag(sprint, DragMode.MOVE, 3))
        with JsonEntityStore(entities_path) as store:
            moved = normalize(next(e for e in store.entities() if e.id == "S1"))
        assert (moved.start, moved.end) == (date(2024, 6, 6), date(2024, 6, 10))

    def test_add_and_save(self, tmp_path):
        path = write_entities(tmp_path / "e.json")
        with JsonEntityStore(path) as store:
            store.add(Kind.SPRINT, {"id": "S9", "start": "2024-06-01", "end": "2024-06-02"})
        assert json.loads(path.read_text())["sprints"][0]["id"] == "S9"
