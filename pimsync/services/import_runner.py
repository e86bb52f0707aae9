from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pimsync.core.config import Settings
from pimsync.destinations.registry import build_sink
from pimsync.notifications.base import build_notifier
from pimsync.services.import_engine import ImportConfig, ImportEngine
from pimsync.services import run_store


log = logging.getLogger(__name__)

EngineFactory = Callable[[ImportConfig], ImportEngine]


def default_engine_factory(settings: Settings) -> EngineFactory:
    def _build(config: ImportConfig) -> ImportEngine:
        return ImportEngine(
            config=config,
            sink=build_sink(settings),
            notifier=build_notifier(settings),
        )
    return _build


async def _close_engine(engine: ImportEngine) -> None:
    for resource in (engine.client, engine.sink, engine.notifier):
        aclose = getattr(resource, "aclose", None)
        if aclose is None:
            continue
        try:
            await aclose()
        except Exception:
            log.exception("failed to close %s", type(resource).__name__)


async def _watch_cancel(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: str,
    cancel: asyncio.Event,
    poll_seconds: float,
) -> None:
    # Runs beside the engine loop; own session, the loop's session is busy
    while not cancel.is_set():
        try:
            async with session_factory() as db:
                requested = await run_store.is_cancel_requested(db, run_id)
        except Exception:
            log.exception("import %s: cancel poll failed", run_id)
            requested = False
        if requested:
            log.info("import %s: cancel requested", run_id)
            cancel.set()
            return
        await asyncio.sleep(poll_seconds)


async def run_import(
    run_id: str,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    engine_factory: EngineFactory | None = None,
) -> str | None:
    """
    Drive one import run until it completes, fails or is cancelled.

    The run is claimed first; a copy of the task that loses the claim exits
    without touching the run. The checkpoint is committed and the lease renewed
    after every unit of work. Returns the run's final status, or None when the
    run is missing, finished or owned by another executor.
    """
    async with session_factory() as db:
        lease_id = await run_store.claim_run(db, run_id, lease_minutes=settings.import_lease_minutes)
        await db.commit()

        run = await run_store.get_run(db, run_id)
        if not run:
            log.warning("import %s: run not found", run_id)
            return None
        if lease_id is None:
            log.info("import %s: not claimable (%s), skipping", run_id, run.status)
            return None
        if run.cancel_requested:
            await run_store.mark_cancelled(db, run)
            await db.commit()
            log.info("import %s: cancelled before start", run_id)
            return run.status

        try:
            saved = run_store.load_status(run)
        except ValueError as e:
            await run_store.mark_failed(db, run, str(e))
            await db.commit()
            log.error("import %s: unusable checkpoint: %s", run_id, e)
            return run.status

        config = ImportConfig.from_settings(
            settings,
            kind=run.kind,
            entity_types=(run.params or {}).get("entity_types"),
        )
        engine = (engine_factory or default_engine_factory(settings))(config)

        status = engine.prepare(saved)
        await run_store.save_status(db, run, status)
        await db.commit()

        cancel = asyncio.Event()
        watcher = asyncio.create_task(
            _watch_cancel(session_factory, run_id, cancel, settings.cancel_poll_seconds)
        )
        try:
            while not status.complete and not cancel.is_set():
                status = await engine.perform(status, cancel)
                run_store.renew_lease(run, settings.import_lease_minutes)
                await run_store.save_status(db, run, status)
                await db.commit()

            if not status.complete:
                await run_store.mark_cancelled(db, run)
                await db.commit()
                log.info("import %s: cancelled at %s", run_id, status.state.to_snapshot())
        except asyncio.CancelledError:
            # Hard stop from the host: keep the last consistent checkpoint, stay resumable
            await run_store.save_status(db, run, status)
            await run_store.mark_cancelled(db, run)
            await db.commit()
            raise
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
            await _close_engine(engine)

        log.info(
            "import %s finished: status=%s total=%d",
            run_id, run.status, status.state.total_imported,
        )
        return run.status
