"""
Entity-file audit: report records the grid cannot place as-is.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from calendar_engine.adapter import from_record
from calendar_engine.adapter import get_field
from calendar_engine.adapter import normalize
from calendar_engine.models import EntityFormatError
from calendar_engine.models import InvalidRangeError
from calendar_engine.models import InvalidRangePolicy
from calendar_engine.models import Kind
from calendar_engine.models import Project
from calendar_engine.store import SECTIONS
from calendar_engine.store import JsonEntityStore

_logger = logging.getLogger(__name__)

UNREADABLE = "UNREADABLE"
DUPLICATE = "DUPLICATE"
INVERTED = "INVERTED"
UNPLACEABLE = "UNPLACEABLE"

_TITLES = {
    UNREADABLE: "[bold red]UNREADABLE[/] — record could not be parsed",
    DUPLICATE: "[bold yellow]DUPLICATE[/] — id used by more than one record of a kind",
    INVERTED: "[bold cyan]INVERTED[/] — start date after end date",
    UNPLACEABLE: "[bold magenta]UNPLACEABLE[/] — no date to anchor the entity on",
}


@dataclass(frozen=True)
class AuditIssue:
    category: str
    kind: Kind
    entity_id: str
    detail: str


def _record_id(record: dict) -> str:
    entity_id = get_field(record, "id")
    return "?" if entity_id is None else str(entity_id)


def find_issues(store: JsonEntityStore) -> list[AuditIssue]:
    """Check every record of a loaded store; returns issues in file order."""
    issues: list[AuditIssue] = []
    for kind in SECTIONS:
        seen: set[str] = set()
        for record in store.records(kind):
            entity_id = _record_id(record)
            if entity_id in seen:
                issues.append(AuditIssue(DUPLICATE, kind, entity_id, "id already used"))
            seen.add(entity_id)

            try:
                entity = from_record(kind, record)
            except EntityFormatError as e:
                issues.append(AuditIssue(UNREADABLE, kind, entity_id, str(e)))
                continue

            if isinstance(entity, Project) and entity.start is None and entity.end is None:
                issues.append(AuditIssue(UNPLACEABLE, kind, entity_id, "no start or end date"))
                continue

            try:
                normalize(entity, InvalidRangePolicy.REJECT)
            except InvalidRangeError as e:
                issues.append(AuditIssue(INVERTED, kind, entity_id, str(e)))

    _logger.debug("Audit found %d issue(s)", len(issues))
    return issues


def run_audit(entities_path: Path, console: Console) -> bool:
    """Print an audit report for the entity file; True when it is clean."""
    with JsonEntityStore(entities_path) as store:
        issues = find_issues(store)
        total = sum(len(store.records(kind)) for kind in SECTIONS)

    info = Text()
    info.append("  File:     ", style="bold")
    info.append(f"{entities_path}\n")
    info.append("  Records:  ", style="bold")
    info.append(str(total))
    console.print(Panel(info, title="[bold]Grid Calendar Engine — Check[/bold]"))

    if not issues:
        console.print(
            f"[bold green]✓[/] All [bold]{total}[/bold] record(s) can be placed on the grid."
        )
        return True

    for category, title in _TITLES.items():
        rows = [issue for issue in issues if issue.category == category]
        if not rows:
            continue
        t = Table(title=title, show_header=True, header_style="bold")
        t.add_column("Kind", width=8)
        t.add_column("Id", overflow="fold")
        t.add_column("Detail", overflow="fold", min_width=30)
        for issue in rows:
            t.add_row(issue.kind.value, issue.entity_id, issue.detail)
        console.print(t)

    console.print(f"\n[bold red]{len(issues)}[/bold red] issue(s) found.")
    return False
