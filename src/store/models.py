"""SQLAlchemy 2.0 async models for links, snapshots and the change log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.constants import DB_SCHEMA


class Base(DeclarativeBase):
    pass


class ProjectLinkRecord(Base):
    __tablename__ = "project_links"
    __table_args__ = (
        UniqueConstraint(
            "source_container_id",
            "target_container_id",
            name="uq_project_links_containers",
        ),
        {"schema": DB_SCHEMA},
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_container_id: Mapped[str] = mapped_column(String(128))
    source_container_name: Mapped[str] = mapped_column(Text, default="")
    target_container_id: Mapped[str] = mapped_column(String(128))
    target_container_name: Mapped[str] = mapped_column(Text, default="")
    target_section_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class TaskLinkRecord(Base):
    """One linked pair. Either side may be NULL while the pair is one-sided."""

    __tablename__ = "task_links"
    __table_args__ = {"schema": DB_SCHEMA}

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(f"{DB_SCHEMA}.project_links.id", ondelete="CASCADE"), index=True
    )
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    source_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    target_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    match_method: Mapped[str | None] = mapped_column(String(16), nullable=True)
    match_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    sync_status: Mapped[str] = mapped_column(String(16), default="UNMATCHED")
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    snapshot: Mapped[TaskSnapshotRecord | None] = relationship(
        back_populates="task_link", cascade="all, delete-orphan", passive_deletes=True
    )


class TaskSnapshotRecord(Base):
    """Last observed field values of a linked pair (diff baseline)."""

    __tablename__ = "task_snapshots"
    __table_args__ = {"schema": DB_SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_link_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey(f"{DB_SCHEMA}.task_links.id", ondelete="CASCADE"),
        unique=True,
    )
    source_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_description: Mapped[str] = mapped_column(Text, default="")
    source_state: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    source_comments_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_description: Mapped[str] = mapped_column(Text, default="")
    target_completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    target_modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    target_comments_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    taken_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    task_link: Mapped[TaskLinkRecord] = relationship(back_populates="snapshot")


class ChangeLogRecord(Base):
    """Append-only detected change."""

    __tablename__ = "change_log"
    __table_args__ = (
        Index("idx_change_log_project", "project_id"),
        Index("idx_change_log_task_link", "task_link_id"),
        Index("idx_change_log_detected_at", "detected_at"),
        {"schema": DB_SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(f"{DB_SCHEMA}.project_links.id", ondelete="CASCADE")
    )
    task_link_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey(f"{DB_SCHEMA}.task_links.id", ondelete="SET NULL"),
        nullable=True,
    )
    source_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    side: Mapped[str] = mapped_column(String(8))  # source | target
    field: Mapped[str] = mapped_column(String(32))
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class LinkHistoryRecord(Base):
    __tablename__ = "link_history"
    __table_args__ = {"schema": DB_SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_link_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey(f"{DB_SCHEMA}.task_links.id", ondelete="CASCADE"),
        index=True,
    )
    action: Mapped[str] = mapped_column(String(32))  # manual_link | auto_link
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
