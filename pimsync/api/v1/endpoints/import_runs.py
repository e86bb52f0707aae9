from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pimsync.core.db import get_db
from pimsync.schemas.import_run import ImportRunCreateRequest, ImportRunResponse
from pimsync.services import run_store
from pimsync.services.auth import require_internal_admin
from pimsync.services.run_store import RunStoreError

router = APIRouter()


def get_enqueuer() -> Callable[[str], None]:
    from pimsync.services.dispatch import enqueue_import
    return enqueue_import


@router.post(
    "/admin/import-runs",
    response_model=ImportRunResponse,
    status_code=201,
    dependencies=[Depends(require_internal_admin)],
)
async def create_import_run(
    body: ImportRunCreateRequest,
    db: AsyncSession = Depends(get_db),
    enqueue: Callable[[str], None] = Depends(get_enqueuer),
):
    try:
        run = await run_store.create_run(db, kind=body.kind, entity_types=body.entity_types, actor_id="internal")
    except RunStoreError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    # Commit before enqueue so the worker can read the row
    await db.commit()
    enqueue(run.id)
    return ImportRunResponse.model_validate(run)


@router.get(
    "/admin/import-runs",
    response_model=list[ImportRunResponse],
    dependencies=[Depends(require_internal_admin)],
)
async def list_import_runs(
    kind: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    rows = await run_store.list_runs(db, kind=kind)
    return [ImportRunResponse.model_validate(r) for r in rows]


@router.get(
    "/admin/import-runs/{run_id}",
    response_model=ImportRunResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def get_import_run(run_id: str, db: AsyncSession = Depends(get_db)):
    run = await run_store.get_run(db, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="import run not found")
    return ImportRunResponse.model_validate(run)


@router.post(
    "/admin/import-runs/{run_id}:cancel",
    response_model=ImportRunResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def cancel_import_run(run_id: str, db: AsyncSession = Depends(get_db)):
    try:
        run = await run_store.request_cancel(db, run_id)
    except RunStoreError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    await db.commit()
    return ImportRunResponse.model_validate(run)


@router.post(
    "/admin/import-runs/{run_id}:resume",
    response_model=ImportRunResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def resume_import_run(
    run_id: str,
    db: AsyncSession = Depends(get_db),
    enqueue: Callable[[str], None] = Depends(get_enqueuer),
):
    try:
        run = await run_store.reopen_for_resume(db, run_id)
    except RunStoreError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    await db.commit()
    enqueue(run.id)
    return ImportRunResponse.model_validate(run)
