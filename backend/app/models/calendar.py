import datetime as dt

from sqlalchemy import Boolean, Date, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin


class CalendarEntry(Base, UUIDMixin, TimestampMixin):
    """One block of logged work against a task code."""

    __tablename__ = "calendar_entries"

    task_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status_code: Mapped[str] = mapped_column(String(1), nullable=False, default="P")  # R, P, D, F, C, X
    work_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    is_parallel: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    track_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
