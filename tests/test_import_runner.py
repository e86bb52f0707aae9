import asyncio

import pytest
from sqlalchemy import update

from pimsync.core.config import Settings
from pimsync.models.import_run import ImportRun
from pimsync.services import run_store
from pimsync.services.import_engine import ImportEngine
from pimsync.services.import_runner import run_import
from pimsync.services.run_store import RunStoreError

from tests.fakes import FakeInriver, FakeNotifier, FakeSink


CATALOG = {"Product": list(range(1, 251)), "Item": list(range(1001, 1051))}


def make_settings(**overrides):
    values = dict(
        inriver_channel_id="6614",
        inriver_entity_types=["Product", "Item"],
        historical_backoff_seconds=0.0,
        nightly_backoff_seconds=0.0,
        cancel_poll_seconds=0.01,
    )
    values.update(overrides)
    return Settings(**values)


class EngineRecorder:
    """engine_factory that wires fakes in and remembers what it built."""

    def __init__(self, inriver):
        self.inriver = inriver
        self.engines = []

    def __call__(self, config):
        engine = ImportEngine(config=config, sink=FakeSink(), notifier=FakeNotifier(), client=self.inriver.client())
        self.engines.append(engine)
        return engine


async def create(session_factory, **kwargs):
    async with session_factory() as db:
        run = await run_store.create_run(db, actor_id="test", **{"kind": "historical", "entity_types": None, **kwargs})
        await db.commit()
        return run.id


async def fetch(session_factory, run_id):
    async with session_factory() as db:
        return await run_store.get_run(db, run_id)


@pytest.mark.asyncio
async def test_create_run_rejects_unknown_kind(db_session):
    with pytest.raises(RunStoreError) as exc:
        await run_store.create_run(db_session, kind="weekly", entity_types=None, actor_id="test")
    assert exc.value.status_code == 422


@pytest.mark.asyncio
async def test_run_completes_and_checkpoints(session_factory):
    run_id = await create(session_factory)
    recorder = EngineRecorder(FakeInriver(CATALOG))

    final = await run_import(run_id, session_factory=session_factory, settings=make_settings(), engine_factory=recorder)

    assert final == "completed"
    run = await fetch(session_factory, run_id)
    assert run.complete is True
    assert run.last_step == "complete"
    assert run.finished_at is not None
    assert run.state == {
        "currentPage": 0,
        "totalImported": 300,
        "currentEntityTypeIndex": 2,
        "retryCount": 0,
        "entityTypes": ["Product", "Item"],
    }
    engine = recorder.engines[0]
    assert engine.sink.closed
    assert engine.notifier.sent[0][0] == "success"


@pytest.mark.asyncio
async def test_entity_type_override_from_run_params(session_factory):
    run_id = await create(session_factory, entity_types=["Item"])
    recorder = EngineRecorder(FakeInriver(CATALOG))

    await run_import(run_id, session_factory=session_factory, settings=make_settings(), engine_factory=recorder)

    run = await fetch(session_factory, run_id)
    assert run.state["entityTypes"] == ["Item"]
    assert run.state["totalImported"] == 50


@pytest.mark.asyncio
async def test_resume_continues_from_saved_state(session_factory):
    run_id = await create(session_factory)
    async with session_factory() as db:
        await db.execute(
            update(ImportRun)
            .where(ImportRun.id == run_id)
            .values(
                status="cancelled",
                state={
                    "currentPage": 2,
                    "totalImported": 200,
                    "currentEntityTypeIndex": 0,
                    "retryCount": 0,
                    "entityTypes": ["Product", "Item"],
                },
            )
        )
        await db.commit()
        await run_store.reopen_for_resume(db, run_id)
        await db.commit()

    inriver = FakeInriver(CATALOG)
    final = await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )

    assert final == "completed"
    assert inriver.fetched_pages[0] == list(range(201, 251))
    run = await fetch(session_factory, run_id)
    assert run.state["totalImported"] == 300


@pytest.mark.asyncio
async def test_failed_run_is_terminal(session_factory):
    run_id = await create(session_factory, kind="nightly")
    inriver = FakeInriver(CATALOG)
    inriver.fail_next = 1000

    final = await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )

    assert final == "failed"
    run = await fetch(session_factory, run_id)
    assert run.last_step == "failed"
    assert run.state["retryCount"] == 3
    assert run.error == "retry ceiling reached on Product page 0"

    # finished runs are not picked up again
    assert await run_import(run_id, session_factory=session_factory, settings=make_settings()) is None


@pytest.mark.asyncio
async def test_cancel_requested_before_start(session_factory):
    run_id = await create(session_factory)
    async with session_factory() as db:
        await run_store.request_cancel(db, run_id)
        await db.commit()

    inriver = FakeInriver(CATALOG)
    final = await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )

    assert final == "cancelled"
    assert inriver.requests == []


@pytest.mark.asyncio
async def test_cancel_during_backoff_stops_run_and_keeps_state(session_factory):
    run_id = await create(session_factory)
    inriver = FakeInriver(CATALOG)
    inriver.fail_next = 1000
    settings = make_settings(historical_backoff_seconds=30.0)

    task = asyncio.create_task(
        run_import(run_id, session_factory=session_factory, settings=settings, engine_factory=EngineRecorder(inriver))
    )
    await asyncio.sleep(0.2)
    async with session_factory() as db:
        await run_store.request_cancel(db, run_id)
        await db.commit()

    final = await asyncio.wait_for(task, timeout=5)

    assert final == "cancelled"
    run = await fetch(session_factory, run_id)
    assert run.complete is False
    assert run.state["retryCount"] == 1
    assert run.state["totalImported"] == 0

    # resume clears the flag and the run stays resumable
    async with session_factory() as db:
        reopened = await run_store.reopen_for_resume(db, run_id)
        await db.commit()
    assert reopened.cancel_requested is False
    assert reopened.status == "pending"


@pytest.mark.asyncio
async def test_cancel_and_resume_rules(db_session):
    run = await run_store.create_run(db_session, kind="historical", entity_types=None, actor_id="test")
    run.status = "completed"
    await db_session.flush()

    with pytest.raises(RunStoreError) as exc:
        await run_store.request_cancel(db_session, run.id)
    assert exc.value.status_code == 409

    with pytest.raises(RunStoreError) as exc:
        await run_store.reopen_for_resume(db_session, run.id)
    assert exc.value.status_code == 409

    with pytest.raises(RunStoreError) as exc:
        await run_store.request_cancel(db_session, "imp_missing")
    assert exc.value.status_code == 404

    running = await run_store.create_run(db_session, kind="historical", entity_types=None, actor_id="test")
    running.status = "running"
    await db_session.flush()
    with pytest.raises(RunStoreError) as exc:
        await run_store.reopen_for_resume(db_session, running.id)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_find_active_run(db_session):
    assert await run_store.find_active_run(db_session, kind="nightly") is None
    run = await run_store.create_run(db_session, kind="nightly", entity_types=None, actor_id="schedule")
    assert (await run_store.find_active_run(db_session, kind="nightly")).id == run.id
    assert await run_store.find_active_run(db_session, kind="historical") is None


@pytest.mark.asyncio
async def test_unusable_checkpoint_fails_run(session_factory):
    run_id = await create(session_factory)
    async with session_factory() as db:
        await db.execute(update(ImportRun).where(ImportRun.id == run_id).values(state={"currentPage": -3}))
        await db.commit()

    inriver = FakeInriver(CATALOG)
    final = await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )

    assert final == "failed"
    run = await fetch(session_factory, run_id)
    assert "currentPage" in run.error
    assert inriver.requests == []


@pytest.mark.asyncio
async def test_claimed_run_is_not_driven_twice(session_factory):
    run_id = await create(session_factory)
    async with session_factory() as db:
        lease_id = await run_store.claim_run(db, run_id, lease_minutes=15)
        await db.commit()
    assert lease_id is not None

    inriver = FakeInriver(CATALOG)
    final = await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )

    assert final is None
    assert inriver.requests == []
    run = await fetch(session_factory, run_id)
    assert run.status == "running"
    assert run.lease_id == lease_id
    assert run.state is None


@pytest.mark.asyncio
async def test_claim_is_exclusive(db_session):
    run = await run_store.create_run(db_session, kind="historical", entity_types=None, actor_id="test")
    await db_session.commit()

    first = await run_store.claim_run(db_session, run.id, lease_minutes=15)
    second = await run_store.claim_run(db_session, run.id, lease_minutes=15)

    assert first is not None
    assert second is None


@pytest.mark.asyncio
async def test_lease_released_when_run_finishes(session_factory):
    run_id = await create(session_factory)

    await run_import(
        run_id, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(FakeInriver(CATALOG)),
    )

    run = await fetch(session_factory, run_id)
    assert run.status == "completed"
    assert run.lease_id is None
    assert run.lease_expires_at is None


@pytest.mark.asyncio
async def test_expired_lease_is_requeued_once(session_factory):
    dead = await create(session_factory)
    live = await create(session_factory)
    async with session_factory() as db:
        await run_store.claim_run(db, dead, lease_minutes=-5)
        await run_store.claim_run(db, live, lease_minutes=15)
        await db.commit()

    async with session_factory() as db:
        assert await run_store.requeue_expired_leases(db) == [dead]
        await db.commit()
    async with session_factory() as db:
        # already back in pending, not picked up again
        assert await run_store.requeue_expired_leases(db) == []

    assert (await fetch(session_factory, dead)).status == "pending"
    assert (await fetch(session_factory, live)).status == "running"

    inriver = FakeInriver(CATALOG)
    final = await run_import(
        dead, session_factory=session_factory, settings=make_settings(), engine_factory=EngineRecorder(inriver),
    )
    assert final == "completed"
