"""Pydantic schemas for the CSV import/export pipeline."""
import enum
import uuid
from typing import Literal

from pydantic import BaseModel, Field


CSV_COLUMNS = [
    "type", "universe_code", "universe_name", "phylum_code", "phylum_name",
    "family_code", "family_name", "group_num", "group_name", "task_num",
    "task_title", "task_status", "task_priority", "base_code", "id", "display_order",
]

NUMERIC_COLUMNS = ("group_num", "task_num", "task_priority", "display_order")


class RowKind(str, enum.Enum):
    universe = "universe"
    phylum = "phylum"
    family = "family"
    group = "group"
    task = "task"


# ─── Parsed CSV row ───

class ParsedRow(BaseModel):
    """One CSV record; ``type`` decides which columns are meaningful.

    Numeric columns hold an ``int`` when the cell parsed cleanly and the raw
    string otherwise, so rule validation can quote the bad value back.
    """

    type: RowKind
    universe_code: str = ""
    universe_name: str = ""
    phylum_code: str = ""
    phylum_name: str = ""
    family_code: str = ""
    family_name: str = ""
    group_num: int | str = ""
    group_name: str = ""
    task_num: int | str = ""
    task_title: str = ""
    task_status: str = ""
    task_priority: int | str = ""
    base_code: str = ""
    id: str = ""
    display_order: int | str = ""

    row_number: int = Field(default=0, exclude=True)

    def to_payload(self) -> dict:
        """Row as sent to ``bulk_import_system_data`` (one JSON object per row)."""
        return self.model_dump(mode="json")


# ─── Validation results ───

class ImportIssue(BaseModel):
    severity: Literal["error", "warning"]
    message: str
    row: int | None = None
    field: str | None = None


class KindCounts(BaseModel):
    universes: int = 0
    phyla: int = 0
    families: int = 0
    groups: int = 0
    tasks: int = 0

    @property
    def total(self) -> int:
        return self.universes + self.phyla + self.families + self.groups + self.tasks


class ImportChanges(BaseModel):
    creates: KindCounts = Field(default_factory=KindCounts)
    updates: KindCounts = Field(default_factory=KindCounts)
    deletes: KindCounts = Field(default_factory=KindCounts)


class TaskToDelete(BaseModel):
    id: str
    base_code: str
    title: str
    current_status: str | None = None
    universe_name: str = "Unknown"


# ─── API payloads ───

class ImportPreview(BaseModel):
    session_id: uuid.UUID
    filename: str | None = None
    is_valid: bool
    row_count: int
    errors: list[ImportIssue]
    warnings: list[ImportIssue]
    changes: ImportChanges
    tasks_to_delete: list[TaskToDelete]


class ImportApplyRequest(BaseModel):
    confirm_deletion: bool = False


class ImportApplyResult(BaseModel):
    status: Literal["applied"] = "applied"
    changes: ImportChanges
    deleted_tasks: int = 0
