"""CSV import orchestration: preview, confirm deletions, apply.

An ``ImportSession`` keeps one validated preview between the upload and the
apply request, so a failed apply can be retried without re-uploading the
file. Sessions live in process memory and expire after
``IMPORT_SESSION_TTL_MINUTES``.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.core.config import settings
from app.rules.import_rules import split_issues, validate_business_rules
from app.schemas.imports import (
    ImportApplyResult,
    ImportChanges,
    ImportIssue,
    ImportPreview,
    ParsedRow,
    TaskToDelete,
)
from app.services.csv_codec import parse_csv
from app.services.import_diff import calculate_changes, find_tasks_to_delete
from app.services.taxonomy_repo import TaxonomyRepository

logger = logging.getLogger(__name__)


# ─── Errors ───

class ImportBlockedError(Exception):
    """The preview has validation errors; apply is not allowed."""


class DeletionNotConfirmedError(Exception):
    """The import implies task deletions the user has not confirmed."""


class ImportInProgressError(Exception):
    """An apply call for this session is still running."""


# ─── Session ───

@dataclass
class ImportSession:
    rows: list[ParsedRow]
    errors: list[ImportIssue]
    warnings: list[ImportIssue]
    changes: ImportChanges
    tasks_to_delete: list[TaskToDelete]
    filename: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    applying: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_preview(self) -> ImportPreview:
        return ImportPreview(
            session_id=self.id,
            filename=self.filename,
            is_valid=self.is_valid,
            row_count=len(self.rows),
            errors=self.errors,
            warnings=self.warnings,
            changes=self.changes,
            tasks_to_delete=self.tasks_to_delete,
        )


class ImportSessionStore:
    """In-memory sessions keyed by id; expired ones are pruned lazily."""

    def __init__(self, ttl: timedelta):
        self.ttl = ttl
        self._sessions: dict[uuid.UUID, ImportSession] = {}

    def add(self, session: ImportSession) -> None:
        self._prune()
        self._sessions[session.id] = session

    def get(self, session_id: uuid.UUID) -> ImportSession | None:
        self._prune()
        return self._sessions.get(session_id)

    def discard(self, session_id: uuid.UUID) -> None:
        self._sessions.pop(session_id, None)

    def cancel(self, session_id: uuid.UUID) -> bool:
        """Drop a session unless an apply is in flight. Returns False if unknown."""
        session = self.get(session_id)
        if session is None:
            return False
        if session.applying:
            raise ImportInProgressError("Cannot cancel while the import is being applied")
        self.discard(session_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.ttl
        expired = [
            sid for sid, s in self._sessions.items()
            if s.created_at < cutoff and not s.applying
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Pruned %d expired import sessions", len(expired))


import_sessions = ImportSessionStore(ttl=timedelta(minutes=settings.IMPORT_SESSION_TTL_MINUTES))


# ─── Pipeline ───

async def prepare_import(
    text: str,
    repository: TaxonomyRepository,
    filename: str | None = None,
) -> ImportSession:
    """Parse, validate, snapshot, diff and find deletions for one upload.

    Raises:
        CSVParseError: the file is structurally malformed. Nothing else runs.
    """
    rows = parse_csv(text)
    errors, warnings = split_issues(validate_business_rules(rows))

    snapshot = await repository.load_snapshot()
    changes = calculate_changes(rows, snapshot)
    tasks_to_delete = find_tasks_to_delete(rows, snapshot.tasks)
    changes.deletes.tasks = len(tasks_to_delete)

    session = ImportSession(
        rows=rows,
        errors=errors,
        warnings=warnings,
        changes=changes,
        tasks_to_delete=tasks_to_delete,
        filename=filename,
    )
    logger.info(
        "Import %s prepared: %d rows, %d errors, %d warnings, %d creates, %d updates, %d deletions",
        session.id, len(rows), len(errors), len(warnings),
        changes.creates.total, changes.updates.total, len(tasks_to_delete),
    )
    return session


async def apply_import(
    session: ImportSession,
    repository: TaxonomyRepository,
    confirm_deletion: bool,
) -> ImportApplyResult:
    """Forward a validated session to the bulk-import procedure.

    Raises:
        ImportBlockedError: the session has validation errors.
        DeletionNotConfirmedError: deletions are pending and not confirmed.
        ImportInProgressError: another apply for this session is running.
        BulkImportError: the database rejected the import; the session is
            left as it was so the caller can retry.
    """
    if not session.is_valid:
        raise ImportBlockedError(
            f"Import has {len(session.errors)} validation error(s); "
            "fix the file and upload it again"
        )
    if session.tasks_to_delete and not confirm_deletion:
        raise DeletionNotConfirmedError(
            "Please confirm deletion of existing tasks before proceeding"
        )
    if session.applying:
        raise ImportInProgressError("This import is already being applied")

    session.applying = True
    try:
        await repository.bulk_import(session.rows, delete_missing_tasks=confirm_deletion)
    finally:
        session.applying = False

    changes = session.changes.model_copy(deep=True)
    deleted = len(session.tasks_to_delete) if confirm_deletion else 0
    changes.deletes.tasks = deleted

    logger.info("Import %s applied (deleted_tasks=%d)", session.id, deleted)
    return ImportApplyResult(changes=changes, deleted_tasks=deleted)
