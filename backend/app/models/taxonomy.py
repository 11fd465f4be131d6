import uuid

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class Universe(Base, UUIDMixin, TimestampMixin):
    """Top level of the taxonomy (single-letter code, e.g. W = Work)."""

    __tablename__ = "universes"

    code: Mapped[str] = mapped_column(String(1), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    display_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    phyla: Mapped[list["Phylum"]] = relationship("Phylum", back_populates="universe")


class Phylum(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "phyla"

    universe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("universes.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(1), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    universe: Mapped["Universe"] = relationship("Universe", back_populates="phyla")
    families: Mapped[list["Family"]] = relationship("Family", back_populates="phylum")


class Family(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "families"

    phylum_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("phyla.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(1), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    phylum: Mapped["Phylum"] = relationship("Phylum", back_populates="families")


class Group(Base, UUIDMixin, TimestampMixin):
    """Numbered bucket (1-99) of tasks inside a phylum, optionally a family."""

    __tablename__ = "groups"

    universe_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("universes.id"), nullable=False
    )
    phylum_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("phyla.id"), nullable=False, index=True
    )
    family_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("families.id"), nullable=True
    )
    group_num: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Task(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tasks"

    code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    base_code: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    universe_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("universes.id"), nullable=True
    )
    phylum_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("phyla.id"), nullable=True
    )
    family_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("families.id"), nullable=True
    )
    group_num: Mapped[int] = mapped_column(Integer, nullable=False)
    task_num: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active, completed, archived
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)


class TaskDetail(Base):
    """Read-only mapping of the ``task_details`` view (tasks with parents denormalized)."""

    __tablename__ = "task_details"
    __table_args__ = {"info": {"is_view": True}}

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    code: Mapped[str | None] = mapped_column(String(20))
    base_code: Mapped[str | None] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(500))
    status: Mapped[str | None] = mapped_column(String(20))
    current_status: Mapped[str | None] = mapped_column(String(1))  # R, P, D, F, C, X
    priority: Mapped[int | None] = mapped_column(Integer)
    group_num: Mapped[int | None] = mapped_column(Integer)
    task_num: Mapped[int | None] = mapped_column(Integer)

    universe_code: Mapped[str | None] = mapped_column(String(1))
    universe_name: Mapped[str | None] = mapped_column(String(255))
    phylum_code: Mapped[str | None] = mapped_column(String(1))
    phylum_name: Mapped[str | None] = mapped_column(String(255))
    family_code: Mapped[str | None] = mapped_column(String(1))
    family_name: Mapped[str | None] = mapped_column(String(255))
    group_name: Mapped[str | None] = mapped_column(String(255))
