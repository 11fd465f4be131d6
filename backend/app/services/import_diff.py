"""Diff parsed CSV rows against the current taxonomy snapshot.

``calculate_changes`` counts creates and updates per entity kind;
``find_tasks_to_delete`` lists existing tasks the import no longer mentions.
Import files are complete snapshots, so a task missing from the file is a
deletion candidate. Callers must get explicit confirmation before acting on it.
"""
import logging
from collections.abc import Sequence

from app.schemas.imports import ImportChanges, ParsedRow, RowKind, TaskToDelete
from app.schemas.taxonomy import TaskRecord, TaxonomySnapshot

logger = logging.getLogger(__name__)


def _name(value: str | None) -> str:
    # Imported cells arrive trimmed, so stored values are compared trimmed too.
    return (value or "").strip()


def calculate_changes(rows: Sequence[ParsedRow], snapshot: TaxonomySnapshot) -> ImportChanges:
    """Classify every row as create, update or no-op against ``snapshot``.

    Matching is purely key based: a row whose key is unknown is a create, a
    row whose key exists is an update only when a tracked field differs.
    Deletions are not computed here.
    """
    changes = ImportChanges()

    universes = {u.code: u for u in snapshot.universes}
    phyla = {(p.universe_code, p.code): p for p in snapshot.phyla}
    families = {(f.universe_code, f.phylum_code, f.code): f for f in snapshot.families}
    groups = {
        (g.universe_code, g.phylum_code, g.family_code or "", g.group_num): g
        for g in snapshot.groups
    }
    tasks = {t.base_code: t for t in snapshot.tasks}

    for row in rows:
        if row.type == RowKind.universe:
            existing = universes.get(row.universe_code)
            if existing is None:
                changes.creates.universes += 1
            elif _name(existing.name) != row.universe_name:
                changes.updates.universes += 1

        elif row.type == RowKind.phylum:
            existing = phyla.get((row.universe_code, row.phylum_code))
            if existing is None:
                changes.creates.phyla += 1
            elif _name(existing.name) != row.phylum_name:
                changes.updates.phyla += 1

        elif row.type == RowKind.family:
            existing = families.get((row.universe_code, row.phylum_code, row.family_code))
            if existing is None:
                changes.creates.families += 1
            elif _name(existing.name) != row.family_name:
                changes.updates.families += 1

        elif row.type == RowKind.group:
            existing = groups.get(
                (row.universe_code, row.phylum_code, row.family_code, row.group_num)
            )
            if existing is None:
                changes.creates.groups += 1
            elif _name(existing.name) != row.group_name:
                changes.updates.groups += 1

        elif row.type == RowKind.task:
            existing = tasks.get(row.base_code)
            if existing is None:
                changes.creates.tasks += 1
            elif _task_differs(existing, row):
                changes.updates.tasks += 1

    logger.debug(
        "calculate_changes: creates=%d updates=%d",
        changes.creates.total, changes.updates.total,
    )
    return changes


def _task_differs(existing: TaskRecord, row: ParsedRow) -> bool:
    priority = "" if existing.priority is None else existing.priority
    return (
        _name(existing.title) != row.task_title
        or _name(existing.effective_status) != row.task_status
        or priority != row.task_priority
    )


def find_tasks_to_delete(
    rows: Sequence[ParsedRow], existing_tasks: Sequence[TaskRecord]
) -> list[TaskToDelete]:
    """Existing tasks whose base_code does not appear on any task row."""
    import_codes = {row.base_code for row in rows if row.type == RowKind.task}

    return [
        TaskToDelete(
            id=task.id,
            base_code=task.base_code,
            title=task.title,
            current_status=task.effective_status,
            universe_name=task.universe_name or "Unknown",
        )
        for task in existing_tasks
        if task.base_code not in import_codes
    ]
