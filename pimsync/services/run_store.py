from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pimsync.models.import_run import ImportRun
from pimsync.services.import_engine import ImportJobStatus, ImportRunState, ImportStep
from pimsync.services.retry import RUN_KINDS


TERMINAL_STATUSES = ("completed", "failed")
# running runs are recovered through lease expiry, never resumed by hand
RESUMABLE_STATUSES = ("pending", "cancelled")


class RunStoreError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


async def create_run(
    db: AsyncSession,
    *,
    kind: str,
    entity_types: list[str] | None,
    actor_id: str,
) -> ImportRun:
    if kind not in RUN_KINDS:
        raise RunStoreError(422, f"unknown import kind: {kind}")

    run = ImportRun(
        kind=kind,
        status="pending",
        params={"entity_types": list(entity_types)} if entity_types else {},
        state=None,
        complete=False,
        cancel_requested=False,
        created_by=actor_id,
    )
    db.add(run)
    await db.flush()
    return run


async def get_run(db: AsyncSession, run_id: str) -> ImportRun | None:
    return (await db.execute(select(ImportRun).where(ImportRun.id == run_id))).scalar_one_or_none()


async def list_runs(db: AsyncSession, *, kind: str | None = None, limit: int = 50) -> list[ImportRun]:
    stmt = select(ImportRun).order_by(ImportRun.created_at.desc()).limit(limit)
    if kind:
        stmt = stmt.where(ImportRun.kind == kind)
    return list((await db.execute(stmt)).scalars().all())


def load_status(run: ImportRun) -> ImportJobStatus | None:
    """
    Saved engine status, or None for a run that never got past prepare.
    """
    if run.state is None:
        return None
    return ImportJobStatus(
        state=ImportRunState.from_snapshot(run.state),
        complete=run.complete,
        last_step=ImportStep(run.last_step) if run.last_step else None,
    )


async def save_status(db: AsyncSession, run: ImportRun, status: ImportJobStatus) -> None:
    run.state = status.state.to_snapshot()
    run.complete = status.complete
    run.last_step = status.last_step.value if status.last_step else None
    if status.complete:
        run.status = "failed" if status.failed else "completed"
        run.finished_at = datetime.now(timezone.utc)
        if status.failed:
            run.error = f"retry ceiling reached on {status.state.current_entity_type} page {status.state.current_page}"
        _release_lease(run)
    await db.flush()


def _lease_expiry(lease_minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=lease_minutes)


def _release_lease(run: ImportRun) -> None:
    run.lease_id = None
    run.lease_expires_at = None


async def claim_run(db: AsyncSession, run_id: str, *, lease_minutes: int) -> str | None:
    """
    Move a pending run to running under a fresh lease, in one UPDATE.

    Returns the lease id, or None when the run is missing, finished or already
    owned by another executor. Only the caller holding the lease may drive the run.
    """
    lease_id = uuid.uuid4().hex
    result = await db.execute(
        update(ImportRun)
        .where(ImportRun.id == run_id, ImportRun.status == "pending")
        .values(status="running", lease_id=lease_id, lease_expires_at=_lease_expiry(lease_minutes))
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return lease_id if result.rowcount else None


def renew_lease(run: ImportRun, lease_minutes: int) -> None:
    run.lease_expires_at = _lease_expiry(lease_minutes)


async def requeue_expired_leases(db: AsyncSession) -> list[str]:
    """
    Running runs whose executor stopped renewing its lease (the worker died).
    They go back to pending so the next claim resumes them from the checkpoint.
    """
    now = datetime.now(timezone.utc)
    expired = (
        ImportRun.status == "running",
        ImportRun.lease_expires_at.is_not(None),
        ImportRun.lease_expires_at < now,
    )
    ids = list(
        (await db.execute(select(ImportRun.id).where(*expired).order_by(ImportRun.lease_expires_at.asc())))
        .scalars()
        .all()
    )
    if not ids:
        return []

    await db.execute(
        update(ImportRun)
        .where(ImportRun.id.in_(ids), *expired)
        .values(status="pending", lease_id=None, lease_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return ids


async def mark_cancelled(db: AsyncSession, run: ImportRun) -> None:
    run.status = "cancelled"
    _release_lease(run)
    await db.flush()


async def mark_failed(db: AsyncSession, run: ImportRun, error: str) -> None:
    run.status = "failed"
    run.error = error
    run.finished_at = datetime.now(timezone.utc)
    _release_lease(run)
    await db.flush()


async def request_cancel(db: AsyncSession, run_id: str) -> ImportRun:
    run = await get_run(db, run_id)
    if not run:
        raise RunStoreError(404, "import run not found")
    if run.status in TERMINAL_STATUSES:
        raise RunStoreError(409, f"import run already {run.status}")

    await db.execute(update(ImportRun).where(ImportRun.id == run_id).values(cancel_requested=True))
    await db.flush()
    await db.refresh(run)
    return run


async def reopen_for_resume(db: AsyncSession, run_id: str) -> ImportRun:
    run = await get_run(db, run_id)
    if not run:
        raise RunStoreError(404, "import run not found")
    if run.status not in RESUMABLE_STATUSES:
        raise RunStoreError(409, f"import run is {run.status}; only pending or cancelled runs resume")

    # the next executor claims it from pending
    run.status = "pending"
    run.cancel_requested = False
    await db.flush()
    return run


async def is_cancel_requested(db: AsyncSession, run_id: str) -> bool:
    flag = (await db.execute(select(ImportRun.cancel_requested).where(ImportRun.id == run_id))).scalar_one_or_none()
    return bool(flag)


async def find_active_run(db: AsyncSession, *, kind: str) -> ImportRun | None:
    stmt = (
        select(ImportRun)
        .where(ImportRun.kind == kind, ImportRun.status.in_(["pending", "running"]))
        .order_by(ImportRun.created_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()
