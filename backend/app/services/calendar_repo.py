"""Calendar activity log: time blocks of work logged against task codes."""
import datetime as dt
import logging
import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.calendar import CalendarEntry
from app.schemas.calendar import CalendarEntryCreate, CalendarEntryOut

logger = logging.getLogger(__name__)


class CalendarRepository(Protocol):
    async def list_entries(self, start: dt.date, end: dt.date) -> list[CalendarEntryOut]: ...

    async def add_entry(self, body: CalendarEntryCreate) -> CalendarEntryOut: ...


class SqlCalendarRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_entries(self, start: dt.date, end: dt.date) -> list[CalendarEntryOut]:
        """Entries dated within [start, end], earliest first."""
        entries = (
            await self.db.execute(
                select(CalendarEntry)
                .where(CalendarEntry.date >= start, CalendarEntry.date <= end)
                .order_by(CalendarEntry.date, CalendarEntry.start_time, CalendarEntry.track_number)
            )
        ).scalars().all()
        return [_entry_out(e) for e in entries]

    async def add_entry(self, body: CalendarEntryCreate) -> CalendarEntryOut:
        entry = CalendarEntry(id=uuid.uuid4(), **body.model_dump())
        self.db.add(entry)
        await self.db.commit()
        logger.info("Calendar entry logged for %s on %s", entry.task_code, entry.date)
        return _entry_out(entry)


def _entry_out(entry: CalendarEntry) -> CalendarEntryOut:
    return CalendarEntryOut(
        id=str(entry.id),
        task_code=entry.task_code,
        status_code=entry.status_code,
        work_description=entry.work_description or "",
        date=entry.date,
        start_time=entry.start_time,
        end_time=entry.end_time,
        is_parallel=bool(entry.is_parallel),
        track_number=entry.track_number,
    )
