"""
Command-line tests driven through typer's CliRunner.
"""

import json

import pytest
from typer.testing import CliRunner

from calendar_engine.cli import app
from tests.conftest import write_entities

runner = CliRunner()


@pytest.fixture
def invoke(config_path, entities_path):
    def _invoke(*args, entities=None):
        return runner.invoke(
            app,
            ["-c", str(config_path), "-e", str(entities or entities_path), *args],
        )

    return _invoke


class TestColor:
    def test_prints_hash_and_bucket(self, invoke):
        result = invoke("color", "abc")
        assert result.exit_code == 0, result.output
        assert "96354" in result.output
        assert "Bucket" in result.output

    def test_palette_size_must_be_positive(self, invoke):
        result = invoke("color", "abc", "--palette-size", "0")
        assert result.exit_code != 0


class TestGrids:
    def test_week(self, invoke):
        result = invoke("week", "--date", "2024-06-05")
        assert result.exit_code == 0, result.output
        assert "2024-06-02" in result.output

    def test_month(self, invoke):
        result = invoke("month", "--year", "2024", "--month", "6")
        assert result.exit_code == 0, result.output
        assert "June 2024" in result.output

    def test_day_shows_event_in_its_hour(self, invoke):
        result = invoke("day", "--date", "2024-06-04")
        assert result.exit_code == 0, result.output
        hour_line = next(line for line in result.output.splitlines() if "10:00" in line)
        assert "Planning" in hour_line

    def test_invalid_date(self, invoke):
        result = invoke("week", "--date", "next tuesday")
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_broken_entity_file(self, invoke, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2")
        result = invoke("week", "--date", "2024-06-05", entities=bad)
        assert result.exit_code == 1


class TestFilter:
    def test_high_priority_tasks(self, invoke):
        result = invoke("filter", "--kind", "task", "--priority", "High")
        assert result.exit_code == 0, result.output
        assert "Write docs" in result.output
        assert "Fix bug" not in result.output
        assert "1 match(es)" in result.output

    def test_overdue(self, invoke):
        result = invoke("filter", "--overdue", "--today", "2024-06-12")
        assert result.exit_code == 0, result.output
        assert "2 match(es)" in result.output

    def test_no_matches(self, invoke):
        result = invoke("filter", "--from", "2030-01-01")
        assert result.exit_code == 0, result.output
        assert "No entities match" in result.output

    def test_inverted_custom_range(self, invoke):
        result = invoke("filter", "--from", "2024-06-10", "--to", "2024-06-01")
        assert result.exit_code == 1

    def test_range_and_custom_bounds_conflict(self, invoke):
        result = invoke("filter", "--range", "today", "--from", "2024-06-01")
        assert result.exit_code == 1


class TestDrag:
    def test_move_sprint_saves(self, invoke, entities_path):
        result = invoke("drag", "sprint", "S1", "move", "2024-06-03", "2024-06-06", "--yes")
        assert result.exit_code == 0, result.output
        sprint = json.loads(entities_path.read_text())["sprints"][0]
        assert sprint["start_date"] == "2024-06-06"
        assert sprint["end_date"] == "2024-06-10"

    def test_dry_run_leaves_file(self, invoke, entities_path):
        before = entities_path.read_text()
        result = invoke("drag", "sprint", "S1", "move", "2024-06-03", "2024-06-06", "-n")
        assert result.exit_code == 0, result.output
        assert "DRY RUN" in result.output
        assert entities_path.read_text() == before

    def test_rejected_resize_is_noop(self, invoke, entities_path):
        before = entities_path.read_text()
        result = invoke(
            "drag", "sprint", "S1", "resize-start", "2024-06-03", "2024-06-09", "--yes"
        )
        assert result.exit_code == 0, result.output
        assert "no-op" in result.output
        assert entities_path.read_text() == before

    def test_declined_confirmation(self, entities_path, config_path):
        before = entities_path.read_text()
        result = runner.invoke(
            app,
            ["-c", str(config_path), "-e", str(entities_path),
             "drag", "task", "T1", "move", "2024-06-05", "2024-06-06"],
            input="n\n",
        )
        assert result.exit_code != 0
        assert entities_path.read_text() == before

    def test_unknown_entity(self, invoke):
        result = invoke("drag", "task", "T9", "move", "2024-06-05", "2024-06-06", "--yes")
        assert result.exit_code == 1

    def test_needs_two_pointer_dates(self, invoke):
        result = invoke("drag", "task", "T1", "move", "2024-06-05", "--yes")
        assert result.exit_code == 1


class TestCheck:
    def test_clean_file(self, invoke):
        result = invoke("check")
        assert result.exit_code == 0, result.output

    def test_inverted_file_fails(self, invoke, tmp_path):
        path = write_entities(
            tmp_path / "inverted.json",
            sprints=[{"id": "S1", "start": "2024-06-09", "end": "2024-06-07"}],
        )
        result = invoke("check", entities=path)
        assert result.exit_code == 1
        assert "INVERTED" in result.output
