"""Pydantic schemas for taxonomy snapshots and the drill-down tree."""
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Snapshot records (current database state) ───

class UniverseRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = ""
    code: str
    name: str
    display_order: int | None = None


class PhylumRecord(BaseModel):
    id: str = ""
    universe_code: str
    universe_name: str = ""
    code: str
    name: str
    display_order: int | None = None


class FamilyRecord(BaseModel):
    id: str = ""
    universe_code: str
    universe_name: str = ""
    phylum_code: str
    phylum_name: str = ""
    code: str
    name: str
    display_order: int | None = None


class GroupRecord(BaseModel):
    id: str = ""
    universe_code: str
    phylum_code: str
    family_code: str = ""
    group_num: int
    name: str | None = None
    task_count: int = 0


class TaskRecord(BaseModel):
    id: str
    base_code: str
    title: str
    status: str | None = None
    current_status: str | None = None
    priority: int | None = None
    universe_code: str = ""
    universe_name: str | None = None
    phylum_code: str = ""
    phylum_name: str | None = None
    family_code: str = ""
    family_name: str | None = None
    group_num: int | None = None
    task_num: int | None = None
    group_name: str | None = None

    @property
    def effective_status(self) -> str | None:
        return self.current_status or self.status


class TaxonomySnapshot(BaseModel):
    universes: list[UniverseRecord] = []
    phyla: list[PhylumRecord] = []
    families: list[FamilyRecord] = []
    groups: list[GroupRecord] = []
    tasks: list[TaskRecord] = []


# ─── Drill-down tree ───

class TaskNode(BaseModel):
    id: str
    base_code: str
    title: str
    status: str | None
    priority: int | None


class GroupNode(BaseModel):
    group_num: int
    name: str | None
    task_count: int
    tasks: list[TaskNode] = []


class FamilyNode(BaseModel):
    code: str
    name: str
    groups: list[GroupNode] = []


class PhylumNode(BaseModel):
    code: str
    name: str
    families: list[FamilyNode] = []
    groups: list[GroupNode] = []


class UniverseNode(BaseModel):
    code: str
    name: str
    phyla: list[PhylumNode] = []


class TaxonomyTree(BaseModel):
    universes: list[UniverseNode]


class NextTaskCode(BaseModel):
    universe_code: str
    phylum_code: str
    family_code: str = ""
    group_num: int
    task_num: int
    base_code: str


# ─── Management payloads ───

def _clean_code(value: str | None, kind: str) -> str | None:
    if value is None:
        return value
    value = value.strip().upper()
    if len(value) != 1:
        raise ValueError(f"{kind} code must be single character")
    return value


def _clean_name(value: str | None, kind: str) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError(f"{kind} name is required")
    return value


class UniverseCreate(BaseModel):
    code: str
    name: str
    description: str | None = None
    color: str | None = Field(default=None, max_length=20)
    display_order: int | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Universe")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Universe")


class UniverseUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    color: str | None = Field(default=None, max_length=20)
    display_order: int | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Universe")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Universe")


class PhylumCreate(BaseModel):
    universe_code: str
    code: str
    name: str
    description: str | None = None
    display_order: int | None = None

    @field_validator("universe_code")
    @classmethod
    def validate_universe_code(cls, v):
        return _clean_code(v, "Universe")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Phylum")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Phylum")


class PhylumUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    display_order: int | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Phylum")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Phylum")


class FamilyCreate(BaseModel):
    universe_code: str
    phylum_code: str
    code: str
    name: str
    description: str | None = None
    display_order: int | None = None

    @field_validator("universe_code")
    @classmethod
    def validate_universe_code(cls, v):
        return _clean_code(v, "Universe")

    @field_validator("phylum_code")
    @classmethod
    def validate_phylum_code(cls, v):
        return _clean_code(v, "Phylum")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Family")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Family")


class FamilyUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    display_order: int | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _clean_code(v, "Family")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Family")


class GroupCreate(BaseModel):
    universe_code: str
    phylum_code: str
    family_code: str = ""
    group_num: int = Field(ge=1, le=99)
    name: str

    @field_validator("universe_code")
    @classmethod
    def validate_universe_code(cls, v):
        return _clean_code(v, "Universe")

    @field_validator("phylum_code")
    @classmethod
    def validate_phylum_code(cls, v):
        return _clean_code(v, "Phylum")

    @field_validator("family_code")
    @classmethod
    def validate_family_code(cls, v):
        # Blank means the group hangs directly off its phylum.
        if not v.strip():
            return ""
        return _clean_code(v, "Family")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Group")


class GroupUpdate(BaseModel):
    """Groups are identified by their number; only the name can change."""
    name: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v, "Group")
