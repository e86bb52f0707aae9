import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from pimsync.core.config import settings
from pimsync.services import run_store
from pimsync.services.dispatch import enqueue_import
from worker.celery_app import celery


log = logging.getLogger(__name__)


async def requeue_stale_imports() -> int:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        # reclaim expired leases; commit before enqueue so the worker can claim
        ids = await run_store.requeue_expired_leases(db)
        await db.commit()

    await engine.dispose()

    for run_id in ids:
        log.info("requeue: lease expired, resuming import %s", run_id)
        enqueue_import(run_id)
    return len(ids)


@celery.task(name="worker.dispatcher.requeue_stale_imports")
def requeue_stale_imports_task() -> int:
    return asyncio.run(requeue_stale_imports())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    log.info("requeued %d stale imports", asyncio.run(requeue_stale_imports()))
