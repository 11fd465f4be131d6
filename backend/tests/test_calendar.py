"""Calendar activity log: endpoints over the in-memory repository, SQL repository over a mocked session."""
import datetime as dt
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.deps import get_calendar_repository
from app.main import app
from app.schemas.calendar import CalendarEntryCreate
from app.services.calendar_repo import SqlCalendarRepository

from fakes import FakeCalendarRepository

BASE = "/api/v1/calendar/entries"


@pytest.fixture
def calendar():
    repository = FakeCalendarRepository()
    app.dependency_overrides[get_calendar_repository] = lambda: repository
    yield repository
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _entry(**overrides) -> dict:
    entry = {
        "task_code": "wra-01.01",
        "status_code": "R",
        "work_description": "Draft outline",
        "date": "2026-03-02",
        "start_time": "09:00",
        "end_time": "10:30",
    }
    entry.update(overrides)
    return entry


# ─── POST /calendar/entries ───

@pytest.mark.asyncio
async def test_log_entry(calendar):
    async with _client() as client:
        response = await client.post(BASE, json=_entry())

    assert response.status_code == 201
    body = response.json()
    assert body["task_code"] == "WRA-01.01"
    assert body["end_time"] == "10:30:00"
    assert body["is_parallel"] is False
    assert body["track_number"] == 1
    assert len(calendar.entries) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"status_code": "Q"},
    {"task_code": "  "},
    {"end_time": "08:00"},
    {"track_number": 0},
    {"date": "not-a-date"},
])
async def test_invalid_entry_is_422(calendar, overrides):
    async with _client() as client:
        response = await client.post(BASE, json=_entry(**overrides))

    assert response.status_code == 422
    assert calendar.entries == []


@pytest.mark.asyncio
async def test_open_ended_entry_is_allowed(calendar):
    async with _client() as client:
        response = await client.post(BASE, json=_entry(end_time=None))

    assert response.status_code == 201
    assert response.json()["end_time"] is None


# ─── GET /calendar/entries ───

@pytest.mark.asyncio
async def test_list_entries_for_a_day_in_time_order(calendar):
    async with _client() as client:
        await client.post(BASE, json=_entry(start_time="14:00", end_time="15:00"))
        await client.post(BASE, json=_entry(start_time="09:00", end_time="10:00"))
        await client.post(BASE, json=_entry(date="2026-03-03"))
        response = await client.get(BASE, params={"start": "2026-03-02"})

    assert response.status_code == 200
    assert [e["start_time"] for e in response.json()] == ["09:00:00", "14:00:00"]


@pytest.mark.asyncio
async def test_list_entries_over_a_range(calendar):
    async with _client() as client:
        for day in ("2026-03-01", "2026-03-02", "2026-03-05"):
            await client.post(BASE, json=_entry(date=day))
        response = await client.get(BASE, params={"start": "2026-03-02", "end": "2026-03-05"})

    assert [e["date"] for e in response.json()] == ["2026-03-02", "2026-03-05"]


@pytest.mark.asyncio
async def test_reversed_range_is_422(calendar):
    async with _client() as client:
        response = await client.get(BASE, params={"start": "2026-03-05", "end": "2026-03-01"})

    assert response.status_code == 422
    assert response.json()["detail"] == "end must not be before start."


# ─── SqlCalendarRepository ───

@pytest.mark.asyncio
async def test_add_entry_commits_and_returns_out_model():
    db = AsyncMock()
    db.add = MagicMock()
    body = CalendarEntryCreate(
        task_code="WR-02.01", date=dt.date(2026, 3, 2), start_time=dt.time(9), is_parallel=True,
        track_number=2,
    )

    entry = await SqlCalendarRepository(db).add_entry(body)

    db.add.assert_called_once()
    db.commit.assert_awaited_once()
    assert entry.task_code == "WR-02.01"
    assert entry.status_code == "P"
    assert entry.is_parallel is True
    assert entry.track_number == 2
    assert entry.id == str(db.add.call_args.args[0].id)


@pytest.mark.asyncio
async def test_list_entries_filters_by_date_range():
    stored = MagicMock(
        id="e-1", task_code="WR-02.01", status_code="D", work_description=None,
        date=dt.date(2026, 3, 2), start_time=dt.time(9), end_time=None,
        is_parallel=False, track_number=1,
    )
    result = MagicMock()
    result.scalars.return_value.all.return_value = [stored]
    db = AsyncMock()
    db.execute = AsyncMock(return_value=result)

    entries = await SqlCalendarRepository(db).list_entries(dt.date(2026, 3, 1), dt.date(2026, 3, 31))

    statement = str(db.execute.call_args.args[0])
    assert "calendar_entries.date >=" in statement
    assert "ORDER BY calendar_entries.date, calendar_entries.start_time" in statement
    assert entries[0].id == "e-1"
    assert entries[0].work_description == ""
