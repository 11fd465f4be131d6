"""Business rule validation for parsed CSV imports.

Deterministic, side-effect free checks over the whole row set. Validation runs
as five ordered passes (universes, phyla, families, groups, tasks). A pass only
references identifier sets built by the passes before it, so foreign-key checks
do not depend on the order rows appear in the file.

Every violation is collected; nothing short-circuits. Errors block the import,
warnings are informational.
"""
import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from app.schemas.imports import ImportIssue, ParsedRow, RowKind
from app.services.task_codes import (
    MAX_GROUP_NUM,
    MAX_TASK_NUM,
    MIN_NUM,
    derive_base_code,
    is_valid_base_code,
)

logger = logging.getLogger(__name__)


# ─── Domain constants ───

VALID_STATUSES = ("R", "P", "D", "F", "C", "X")
MIN_PRIORITY = 1
MAX_PRIORITY = 5


# ─── Pass context ───

@dataclass
class _RuleContext:
    issues: list[ImportIssue] = field(default_factory=list)
    universe_codes: set[str] = field(default_factory=set)
    phylum_keys: set[tuple[str, str]] = field(default_factory=set)

    def error(self, row: ParsedRow, message: str, field_name: str) -> None:
        self.issues.append(
            ImportIssue(severity="error", message=message, row=row.row_number, field=field_name)
        )

    def warning(self, row: ParsedRow, message: str, field_name: str) -> None:
        self.issues.append(
            ImportIssue(severity="warning", message=message, row=row.row_number, field=field_name)
        )


def _as_int(value: int | str) -> int | None:
    # The codec already turned every well-formed integer cell into an int;
    # a str here is a value it refused ("1.5", "0_3", non-ASCII digits).
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _in_range(value: int | None, low: int, high: int) -> bool:
    return value is not None and low <= value <= high


# ─── Passes ───

def _check_universes(rows: list[ParsedRow], ctx: _RuleContext) -> None:
    for row in rows:
        if len(row.universe_code) != 1:
            ctx.error(
                row,
                f'Universe code must be single character: "{row.universe_code}"',
                "universe_code",
            )

        if row.universe_code in ctx.universe_codes:
            ctx.error(row, f'Duplicate universe code: "{row.universe_code}"', "universe_code")
        else:
            ctx.universe_codes.add(row.universe_code)

        if not row.universe_name.strip():
            ctx.error(row, "Universe name is required", "universe_name")


def _check_phyla(rows: list[ParsedRow], ctx: _RuleContext) -> None:
    for row in rows:
        if len(row.phylum_code) != 1:
            ctx.error(
                row,
                f'Phylum code must be single character: "{row.phylum_code}"',
                "phylum_code",
            )

        if row.universe_code not in ctx.universe_codes:
            ctx.error(
                row,
                f'Phylum references non-existent universe: "{row.universe_code}"',
                "universe_code",
            )

        if not row.phylum_name.strip():
            ctx.error(row, "Phylum name is required", "phylum_name")

    # Families may reference any phylum row, including ones with their own errors.
    ctx.phylum_keys.update((row.universe_code, row.phylum_code) for row in rows)


def _check_families(rows: list[ParsedRow], ctx: _RuleContext) -> None:
    for row in rows:
        if len(row.family_code) != 1:
            ctx.error(
                row,
                f'Family code must be single character: "{row.family_code}"',
                "family_code",
            )

        if (row.universe_code, row.phylum_code) not in ctx.phylum_keys:
            ctx.error(
                row,
                f'Family references non-existent phylum: "{row.universe_code}/{row.phylum_code}"',
                "phylum_code",
            )

        if not row.family_name.strip():
            ctx.error(row, "Family name is required", "family_name")


def _check_groups(rows: list[ParsedRow], ctx: _RuleContext) -> None:
    for row in rows:
        if not _in_range(_as_int(row.group_num), MIN_NUM, MAX_GROUP_NUM):
            ctx.error(
                row,
                f'Group number must be between {MIN_NUM}-{MAX_GROUP_NUM}: "{row.group_num}"',
                "group_num",
            )

        if not row.group_name.strip():
            ctx.error(row, "Group name is required", "group_name")

        if (row.universe_code, row.phylum_code) not in ctx.phylum_keys:
            ctx.warning(
                row,
                f'Group references a phylum not present in the file: '
                f'"{row.universe_code}/{row.phylum_code}"',
                "phylum_code",
            )


def _check_tasks(rows: list[ParsedRow], ctx: _RuleContext) -> None:
    seen = Counter(row.base_code for row in rows if row.base_code)

    for row in rows:
        task_num = _as_int(row.task_num)
        if not _in_range(task_num, MIN_NUM, MAX_TASK_NUM):
            ctx.error(
                row,
                f'Task number must be between {MIN_NUM}-{MAX_TASK_NUM}: "{row.task_num}"',
                "task_num",
            )

        if not row.task_title.strip():
            ctx.error(row, "Task title is required", "task_title")

        if row.task_status not in VALID_STATUSES:
            ctx.error(
                row,
                f'Invalid task status: "{row.task_status}". Must be {"/".join(VALID_STATUSES)}',
                "task_status",
            )

        if not _in_range(_as_int(row.task_priority), MIN_PRIORITY, MAX_PRIORITY):
            ctx.error(
                row,
                f'Task priority must be between {MIN_PRIORITY}-{MAX_PRIORITY}: "{row.task_priority}"',
                "task_priority",
            )

        if not is_valid_base_code(row.base_code):
            ctx.error(
                row,
                f'Invalid base_code format: "{row.base_code}". Expected: ABC-01.01',
                "base_code",
            )
            continue

        if seen[row.base_code] > 1:
            ctx.warning(row, f'Duplicate task base_code: "{row.base_code}"', "base_code")

        group_num = _as_int(row.group_num)
        if group_num is not None and task_num is not None:
            expected = derive_base_code(
                row.universe_code, row.phylum_code, row.family_code, group_num, task_num
            )
            if expected != row.base_code:
                ctx.warning(
                    row,
                    f'base_code "{row.base_code}" does not match its columns (expected "{expected}")',
                    "base_code",
                )


_PASSES: tuple[tuple[RowKind, Callable[[list[ParsedRow], _RuleContext], None]], ...] = (
    (RowKind.universe, _check_universes),
    (RowKind.phylum, _check_phyla),
    (RowKind.family, _check_families),
    (RowKind.group, _check_groups),
    (RowKind.task, _check_tasks),
)


# ─── Public API ───

def validate_business_rules(rows: Sequence[ParsedRow]) -> list[ImportIssue]:
    """Run every rule pass over ``rows`` and return all issues found."""
    by_kind: dict[RowKind, list[ParsedRow]] = {kind: [] for kind in RowKind}
    for row in rows:
        by_kind[row.type].append(row)

    ctx = _RuleContext()
    for kind, check in _PASSES:
        check(by_kind[kind], ctx)

    errors, warnings = split_issues(ctx.issues)
    logger.info(
        "validate_business_rules: %d rows, %d errors, %d warnings",
        len(rows), len(errors), len(warnings),
    )
    return ctx.issues


def split_issues(issues: Sequence[ImportIssue]) -> tuple[list[ImportIssue], list[ImportIssue]]:
    """Partition issues into (errors, warnings)."""
    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]
    return errors, warnings
