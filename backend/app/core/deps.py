from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.services.calendar_repo import CalendarRepository, SqlCalendarRepository
from app.services.import_session import ImportSessionStore, import_sessions
from app.services.taxonomy_repo import SqlTaxonomyRepository, TaxonomyRepository


async def get_taxonomy_repository(
    db: Annotated[AsyncSession, Depends(get_session)],
) -> TaxonomyRepository:
    """Per-request data access over the request's DB session."""
    return SqlTaxonomyRepository(db)


async def get_calendar_repository(
    db: Annotated[AsyncSession, Depends(get_session)],
) -> CalendarRepository:
    return SqlCalendarRepository(db)


def get_import_sessions() -> ImportSessionStore:
    return import_sessions
