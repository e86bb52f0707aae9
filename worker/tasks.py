import asyncio
import logging

from celery.signals import worker_process_init
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from worker.celery_app import celery
from pimsync.core.config import settings
from pimsync.core.telemetry import setup_worker_telemetry
import pimsync.models  # noqa: F401  # ensures Models are registered
from pimsync.services import run_store
from pimsync.services.dispatch import enqueue_import
from pimsync.services.import_runner import run_import


log = logging.getLogger(__name__)


@worker_process_init.connect
def _init_telemetry(**_kwargs) -> None:
    setup_worker_telemetry()


async def _run_import(run_id: str) -> str | None:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        return await run_import(run_id, session_factory=Session, settings=settings)
    finally:
        await engine.dispose()


async def _schedule_nightly_import() -> str | None:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        active = await run_store.find_active_run(db, kind="nightly")
        if active:
            log.warning("nightly import skipped: run %s is still %s", active.id, active.status)
            await engine.dispose()
            return None

        run = await run_store.create_run(db, kind="nightly", entity_types=None, actor_id="scheduler")
        await db.commit()

    await engine.dispose()
    enqueue_import(run.id)
    return run.id


@celery.task(name="worker.tasks.run_import", bind=True)
def run_import_task(self, run_id: str) -> str | None:
    # The engine owns retries; a Celery retry would double up the backoff
    return asyncio.run(_run_import(run_id))


@celery.task(name="worker.tasks.schedule_nightly_import")
def schedule_nightly_import() -> str | None:
    return asyncio.run(_schedule_nightly_import())
