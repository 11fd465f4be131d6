"""Calendar activity log."""
import datetime as dt
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.deps import get_calendar_repository
from app.schemas.calendar import CalendarEntryCreate, CalendarEntryOut
from app.services.calendar_repo import CalendarRepository

router = APIRouter()


# ─── GET /calendar/entries ───

@router.get("/entries", response_model=list[CalendarEntryOut], summary="Logged work between two dates")
async def list_calendar_entries(
    repository: Annotated[CalendarRepository, Depends(get_calendar_repository)],
    start: dt.date = Query(..., description="First day, inclusive"),
    end: dt.date | None = Query(default=None, description="Last day, inclusive; defaults to start"),
):
    end = end or start
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end must not be before start.",
        )
    return await repository.list_entries(start, end)


# ─── POST /calendar/entries ───

@router.post(
    "/entries",
    response_model=CalendarEntryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Log a block of work against a task code",
)
async def add_calendar_entry(
    body: CalendarEntryCreate,
    repository: Annotated[CalendarRepository, Depends(get_calendar_repository)],
):
    return await repository.add_entry(body)
