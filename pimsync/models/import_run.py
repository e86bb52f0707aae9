from __future__ import annotations
from datetime import datetime
from pimsync.core.ids import new_run_id
from sqlalchemy import Boolean, String, DateTime, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from pimsync.models.base import Base


class ImportRun(Base):
    """
    One historical or nightly import run.

    ``state`` is the engine's checkpoint (camelCase snapshot), rewritten after
    every unit of work and handed back verbatim when the run is resumed.
    """
    __tablename__ = "import_runs"
    # created_at/updated_at come back from the INSERT/UPDATE (async sessions cannot lazy-load them)
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_run_id)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # historical|nightly
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|running|completed|failed|cancelled

    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_step: Mapped[str | None] = mapped_column(String(32), nullable=True)

    cancel_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # executor ownership: set by the atomic claim, renewed on every checkpoint
    lease_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    lease_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False,)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
