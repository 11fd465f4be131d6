"""Taxonomy data access: snapshot reads, the bulk-import procedure, and
single-record management.

Routes and the import orchestrator depend on the ``TaxonomyRepository``
protocol, injected per request, never on a module-level client. The
SQLAlchemy implementation reads the taxonomy tables plus the ``task_details``
view and delegates imports to the ``bulk_import_system_data`` database
function, which applies the whole import in one transaction. Universes,
phyla, families and groups can also be created and edited one at a time.
"""
import json
import logging
import secrets
import uuid
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import and_, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.taxonomy import Family, Group, Phylum, Task, TaskDetail, Universe
from app.schemas.imports import ParsedRow
from app.schemas.taxonomy import (
    FamilyCreate,
    FamilyRecord,
    FamilyUpdate,
    GroupCreate,
    GroupRecord,
    GroupUpdate,
    PhylumCreate,
    PhylumRecord,
    PhylumUpdate,
    TaskRecord,
    TaxonomySnapshot,
    UniverseCreate,
    UniverseRecord,
    UniverseUpdate,
)

logger = logging.getLogger(__name__)


class BulkImportError(Exception):
    """The bulk-import procedure failed; ``str(exc)`` is the database message."""


class TaxonomyNotFoundError(LookupError):
    pass


class TaxonomyConflictError(Exception):
    """A code (or group number) is already taken at that level."""


class TaxonomyRepository(Protocol):
    async def load_snapshot(self) -> TaxonomySnapshot: ...

    async def bulk_import(self, rows: Sequence[ParsedRow], delete_missing_tasks: bool) -> None: ...

    async def find_phylum(self, universe_code: str, phylum_code: str) -> PhylumRecord | None: ...

    async def last_task_numbers(
        self, universe_code: str, phylum_code: str
    ) -> tuple[int, int] | None: ...

    async def create_universe(self, body: UniverseCreate) -> UniverseRecord: ...

    async def update_universe(self, universe_id: uuid.UUID, body: UniverseUpdate) -> UniverseRecord: ...

    async def create_phylum(self, body: PhylumCreate) -> PhylumRecord: ...

    async def update_phylum(self, phylum_id: uuid.UUID, body: PhylumUpdate) -> PhylumRecord: ...

    async def create_family(self, body: FamilyCreate) -> FamilyRecord: ...

    async def update_family(self, family_id: uuid.UUID, body: FamilyUpdate) -> FamilyRecord: ...

    async def create_group(self, body: GroupCreate) -> GroupRecord: ...

    async def update_group(self, group_id: uuid.UUID, body: GroupUpdate) -> GroupRecord: ...


class SqlTaxonomyRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ───

    async def load_snapshot(self) -> TaxonomySnapshot:
        universes = (await self.db.execute(select(Universe))).scalars().all()

        phyla = (
            await self.db.execute(
                select(Phylum, Universe.code.label("u_code"), Universe.name.label("u_name"))
                .join(Universe, Phylum.universe_id == Universe.id)
            )
        ).all()

        families = (
            await self.db.execute(
                select(
                    Family,
                    Phylum.code.label("p_code"),
                    Phylum.name.label("p_name"),
                    Universe.code.label("u_code"),
                    Universe.name.label("u_name"),
                )
                .join(Phylum, Family.phylum_id == Phylum.id)
                .join(Universe, Phylum.universe_id == Universe.id)
            )
        ).all()

        task_count_sq = (
            select(
                Task.universe_id,
                Task.phylum_id,
                Task.family_id,
                Task.group_num,
                func.count(Task.id).label("task_count"),
            )
            .group_by(Task.universe_id, Task.phylum_id, Task.family_id, Task.group_num)
            .subquery()
        )
        groups = (
            await self.db.execute(
                select(
                    Group,
                    Universe.code.label("u_code"),
                    Phylum.code.label("p_code"),
                    Family.code.label("f_code"),
                    func.coalesce(task_count_sq.c.task_count, 0).label("task_count"),
                )
                .join(Universe, Group.universe_id == Universe.id)
                .join(Phylum, Group.phylum_id == Phylum.id)
                .outerjoin(Family, Group.family_id == Family.id)
                .outerjoin(
                    task_count_sq,
                    and_(
                        task_count_sq.c.universe_id == Group.universe_id,
                        task_count_sq.c.phylum_id == Group.phylum_id,
                        task_count_sq.c.family_id.is_not_distinct_from(Group.family_id),
                        task_count_sq.c.group_num == Group.group_num,
                    ),
                )
            )
        ).all()

        tasks = (await self.db.execute(select(TaskDetail))).scalars().all()

        snapshot = TaxonomySnapshot(
            universes=[
                UniverseRecord(id=str(u.id), code=u.code, name=u.name, display_order=u.display_order)
                for u in universes
            ],
            phyla=[
                PhylumRecord(
                    id=str(p.id),
                    universe_code=u_code,
                    universe_name=u_name,
                    code=p.code,
                    name=p.name,
                    display_order=p.display_order,
                )
                for p, u_code, u_name in phyla
            ],
            families=[
                FamilyRecord(
                    id=str(f.id),
                    universe_code=u_code,
                    universe_name=u_name,
                    phylum_code=p_code,
                    phylum_name=p_name,
                    code=f.code,
                    name=f.name,
                    display_order=f.display_order,
                )
                for f, p_code, p_name, u_code, u_name in families
            ],
            groups=[
                GroupRecord(
                    id=str(g.id),
                    universe_code=u_code,
                    phylum_code=p_code,
                    family_code=f_code or "",
                    group_num=g.group_num,
                    name=g.name,
                    task_count=int(task_count),
                )
                for g, u_code, p_code, f_code, task_count in groups
            ],
            tasks=[
                TaskRecord(
                    id=str(t.id),
                    base_code=t.base_code or "",
                    title=t.title,
                    status=t.status,
                    current_status=t.current_status,
                    priority=t.priority,
                    universe_code=t.universe_code or "",
                    universe_name=t.universe_name,
                    phylum_code=t.phylum_code or "",
                    phylum_name=t.phylum_name,
                    family_code=t.family_code or "",
                    family_name=t.family_name,
                    group_num=t.group_num,
                    task_num=t.task_num,
                    group_name=t.group_name,
                )
                for t in tasks
            ],
        )
        logger.info(
            "load_snapshot: %d universes, %d phyla, %d families, %d groups, %d tasks",
            len(snapshot.universes), len(snapshot.phyla), len(snapshot.families),
            len(snapshot.groups), len(snapshot.tasks),
        )
        return snapshot

    async def find_phylum(self, universe_code: str, phylum_code: str) -> PhylumRecord | None:
        row = (
            await self.db.execute(
                select(Phylum, Universe.name)
                .join(Universe, Phylum.universe_id == Universe.id)
                .where(Universe.code == universe_code, Phylum.code == phylum_code)
            )
        ).first()
        if row is None:
            return None
        phylum, universe_name = row
        return PhylumRecord(
            id=str(phylum.id),
            universe_code=universe_code,
            universe_name=universe_name,
            code=phylum.code,
            name=phylum.name,
            display_order=phylum.display_order,
        )

    async def last_task_numbers(
        self, universe_code: str, phylum_code: str
    ) -> tuple[int, int] | None:
        """Highest (group_num, task_num) already used in a universe/phylum."""
        row = (
            await self.db.execute(
                select(Task.group_num, Task.task_num)
                .join(Universe, Task.universe_id == Universe.id)
                .join(Phylum, Task.phylum_id == Phylum.id)
                .where(Universe.code == universe_code, Phylum.code == phylum_code)
                .order_by(Task.group_num.desc(), Task.task_num.desc())
                .limit(1)
            )
        ).first()
        if row is None:
            return None
        return int(row[0]), int(row[1])

    # ─── Writes ───

    async def bulk_import(self, rows: Sequence[ParsedRow], delete_missing_tasks: bool) -> None:
        """Hand the validated rows to ``bulk_import_system_data``.

        The procedure is atomic; on failure the session is rolled back and
        the database message is raised unchanged as ``BulkImportError``.
        """
        payload = json.dumps([row.to_payload() for row in rows])
        try:
            await self.db.execute(
                text(
                    "SELECT bulk_import_system_data("
                    "CAST(:import_data AS jsonb), :delete_missing_tasks)"
                ),
                {"import_data": payload, "delete_missing_tasks": delete_missing_tasks},
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            message = str(getattr(exc, "orig", None) or exc)
            logger.error("bulk_import failed (%d rows): %s", len(rows), message)
            raise BulkImportError(message) from exc

        logger.info(
            "bulk_import applied %d rows (delete_missing_tasks=%s)", len(rows), delete_missing_tasks
        )

    # ─── Taxonomy management ───

    async def create_universe(self, body: UniverseCreate) -> UniverseRecord:
        await self._ensure_free(
            select(Universe.id).where(Universe.code == body.code),
            f'Universe code "{body.code}" already exists',
        )
        universe = Universe(
            id=uuid.uuid4(),
            code=body.code,
            name=body.name,
            description=body.description,
            color=body.color or _random_color(),
            display_order=body.display_order,
        )
        self.db.add(universe)
        await self._commit()
        logger.info("Universe %s created", universe.code)
        return _universe_record(universe)

    async def update_universe(self, universe_id: uuid.UUID, body: UniverseUpdate) -> UniverseRecord:
        universe = (
            await self.db.execute(select(Universe).where(Universe.id == universe_id))
        ).scalar_one_or_none()
        if universe is None:
            raise TaxonomyNotFoundError("Universe not found.")

        updates = _updates(body)
        if updates.get("code", universe.code) != universe.code:
            await self._ensure_free(
                select(Universe.id).where(Universe.code == updates["code"]),
                f'Universe code "{updates["code"]}" already exists',
            )
        for field, value in updates.items():
            setattr(universe, field, value)
        await self._commit()
        return _universe_record(universe)

    async def create_phylum(self, body: PhylumCreate) -> PhylumRecord:
        universe = (
            await self.db.execute(select(Universe).where(Universe.code == body.universe_code))
        ).scalar_one_or_none()
        if universe is None:
            raise TaxonomyNotFoundError(f'Universe "{body.universe_code}" not found.')

        await self._ensure_free(
            select(Phylum.id).where(Phylum.universe_id == universe.id, Phylum.code == body.code),
            f'Phylum code "{body.universe_code}{body.code}" already exists',
        )
        phylum = Phylum(
            id=uuid.uuid4(),
            universe_id=universe.id,
            code=body.code,
            name=body.name,
            description=body.description,
            display_order=body.display_order,
        )
        self.db.add(phylum)
        await self._commit()
        logger.info("Phylum %s%s created", universe.code, phylum.code)
        return _phylum_record(phylum, universe)

    async def update_phylum(self, phylum_id: uuid.UUID, body: PhylumUpdate) -> PhylumRecord:
        row = (
            await self.db.execute(
                select(Phylum, Universe)
                .join(Universe, Phylum.universe_id == Universe.id)
                .where(Phylum.id == phylum_id)
            )
        ).first()
        if row is None:
            raise TaxonomyNotFoundError("Phylum not found.")
        phylum, universe = row

        updates = _updates(body)
        if updates.get("code", phylum.code) != phylum.code:
            await self._ensure_free(
                select(Phylum.id).where(
                    Phylum.universe_id == phylum.universe_id, Phylum.code == updates["code"]
                ),
                f'Phylum code "{universe.code}{updates["code"]}" already exists',
            )
        for field, value in updates.items():
            setattr(phylum, field, value)
        await self._commit()
        return _phylum_record(phylum, universe)

    async def create_family(self, body: FamilyCreate) -> FamilyRecord:
        row = (
            await self.db.execute(
                select(Phylum, Universe)
                .join(Universe, Phylum.universe_id == Universe.id)
                .where(Universe.code == body.universe_code, Phylum.code == body.phylum_code)
            )
        ).first()
        if row is None:
            raise TaxonomyNotFoundError(
                f'Phylum "{body.universe_code}{body.phylum_code}" not found.'
            )
        phylum, universe = row

        await self._ensure_free(
            select(Family.id).where(Family.phylum_id == phylum.id, Family.code == body.code),
            f'Family code "{universe.code}{phylum.code}{body.code}" already exists',
        )
        family = Family(
            id=uuid.uuid4(),
            phylum_id=phylum.id,
            code=body.code,
            name=body.name,
            description=body.description,
            display_order=body.display_order,
        )
        self.db.add(family)
        await self._commit()
        logger.info("Family %s%s%s created", universe.code, phylum.code, family.code)
        return _family_record(family, phylum, universe)

    async def update_family(self, family_id: uuid.UUID, body: FamilyUpdate) -> FamilyRecord:
        row = (
            await self.db.execute(
                select(Family, Phylum, Universe)
                .join(Phylum, Family.phylum_id == Phylum.id)
                .join(Universe, Phylum.universe_id == Universe.id)
                .where(Family.id == family_id)
            )
        ).first()
        if row is None:
            raise TaxonomyNotFoundError("Family not found.")
        family, phylum, universe = row

        updates = _updates(body)
        if updates.get("code", family.code) != family.code:
            await self._ensure_free(
                select(Family.id).where(
                    Family.phylum_id == family.phylum_id, Family.code == updates["code"]
                ),
                f'Family code "{universe.code}{phylum.code}{updates["code"]}" already exists',
            )
        for field, value in updates.items():
            setattr(family, field, value)
        await self._commit()
        return _family_record(family, phylum, universe)

    async def create_group(self, body: GroupCreate) -> GroupRecord:
        row = (
            await self.db.execute(
                select(Phylum, Universe)
                .join(Universe, Phylum.universe_id == Universe.id)
                .where(Universe.code == body.universe_code, Phylum.code == body.phylum_code)
            )
        ).first()
        if row is None:
            raise TaxonomyNotFoundError(
                f'Phylum "{body.universe_code}{body.phylum_code}" not found.'
            )
        phylum, universe = row

        family_id = None
        if body.family_code:
            family_id = (
                await self.db.execute(
                    select(Family.id).where(
                        Family.phylum_id == phylum.id, Family.code == body.family_code
                    )
                )
            ).scalar_one_or_none()
            if family_id is None:
                raise TaxonomyNotFoundError(
                    f'Family "{universe.code}{phylum.code}{body.family_code}" not found.'
                )

        await self._ensure_free(
            select(Group.id).where(
                Group.universe_id == universe.id,
                Group.phylum_id == phylum.id,
                Group.family_id.is_not_distinct_from(family_id),
                Group.group_num == body.group_num,
            ),
            f"Group {body.group_num} already exists in "
            f'"{universe.code}{phylum.code}{body.family_code}"',
        )
        group = Group(
            id=uuid.uuid4(),
            universe_id=universe.id,
            phylum_id=phylum.id,
            family_id=family_id,
            group_num=body.group_num,
            name=body.name,
        )
        self.db.add(group)
        await self._commit()
        logger.info(
            "Group %s%s%s-%02d created", universe.code, phylum.code, body.family_code, group.group_num
        )
        return GroupRecord(
            id=str(group.id),
            universe_code=universe.code,
            phylum_code=phylum.code,
            family_code=body.family_code,
            group_num=group.group_num,
            name=group.name,
            task_count=await self._count_group_tasks(group),
        )

    async def update_group(self, group_id: uuid.UUID, body: GroupUpdate) -> GroupRecord:
        row = (
            await self.db.execute(
                select(Group, Universe.code, Phylum.code, Family.code)
                .join(Universe, Group.universe_id == Universe.id)
                .join(Phylum, Group.phylum_id == Phylum.id)
                .outerjoin(Family, Group.family_id == Family.id)
                .where(Group.id == group_id)
            )
        ).first()
        if row is None:
            raise TaxonomyNotFoundError("Group not found.")
        group, u_code, p_code, f_code = row

        for field, value in _updates(body).items():
            setattr(group, field, value)
        await self._commit()
        return GroupRecord(
            id=str(group.id),
            universe_code=u_code,
            phylum_code=p_code,
            family_code=f_code or "",
            group_num=group.group_num,
            name=group.name,
            task_count=await self._count_group_tasks(group),
        )

    # ─── Helpers ───

    async def _ensure_free(self, stmt, message: str) -> None:
        if (await self.db.execute(stmt)).first() is not None:
            raise TaxonomyConflictError(message)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            # A concurrent writer took the same code between check and insert.
            await self.db.rollback()
            raise TaxonomyConflictError(str(exc.orig or exc)) from exc

    async def _count_group_tasks(self, group: Group) -> int:
        count = (
            await self.db.execute(
                select(func.count(Task.id)).where(
                    Task.universe_id == group.universe_id,
                    Task.phylum_id == group.phylum_id,
                    Task.family_id.is_not_distinct_from(group.family_id),
                    Task.group_num == group.group_num,
                )
            )
        ).scalar_one()
        return int(count)


# Columns that cannot be cleared through a PATCH.
_REQUIRED_FIELDS = ("code", "name")


def _updates(body) -> dict:
    return {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field not in _REQUIRED_FIELDS
    }


def _random_color() -> str:
    return f"#{secrets.token_hex(3)}"


def _universe_record(universe: Universe) -> UniverseRecord:
    return UniverseRecord(
        id=str(universe.id),
        code=universe.code,
        name=universe.name,
        display_order=universe.display_order,
    )


def _phylum_record(phylum: Phylum, universe: Universe) -> PhylumRecord:
    return PhylumRecord(
        id=str(phylum.id),
        universe_code=universe.code,
        universe_name=universe.name,
        code=phylum.code,
        name=phylum.name,
        display_order=phylum.display_order,
    )


def _family_record(family: Family, phylum: Phylum, universe: Universe) -> FamilyRecord:
    return FamilyRecord(
        id=str(family.id),
        universe_code=universe.code,
        universe_name=universe.name,
        phylum_code=phylum.code,
        phylum_name=phylum.name,
        code=family.code,
        name=family.name,
        display_order=family.display_order,
    )
