"""
Resumable inriver -> destination import.

One ``perform`` call is one unit of work: fetch a page, advance to the next
entity type, back off after a failure, or finish. The caller loops until
``status.complete`` and persists ``status.state`` after every call; a run
restored from any saved snapshot continues with exactly the page that was
next, because the page index lives only in the state.

Progress counters move only after the sink confirmed the write, so the
in-memory state is consistent at every await point.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pimsync.core.config import Settings
from pimsync.destinations.base import DestinationSink
from pimsync.notifications.base import Notifier
from pimsync.services.catalog_client import DEFAULT_PAGE_SIZE, CatalogClient, CatalogConfig
from pimsync.services.retry import RetryPolicy, compute_backoff_seconds, policy_for
from pimsync.services.transform import transform_summary_to_payload


log = logging.getLogger(__name__)


class ImportStep(str, Enum):
    FETCHING_TYPE = "fetching_type"
    AWAITING_RETRY = "awaiting_retry"
    ADVANCING_TYPE = "advancing_type"
    COMPLETE = "complete"
    FAILED = "failed"


_SNAPSHOT_KEYS = {
    "current_page": "currentPage",
    "total_imported": "totalImported",
    "current_entity_type_index": "currentEntityTypeIndex",
    "retry_count": "retryCount",
}


@dataclass
class ImportRunState:
    current_page: int = 0
    total_imported: int = 0
    current_entity_type_index: int = 0
    entity_types: list[str] = field(default_factory=list)
    retry_count: int = 0

    def to_snapshot(self) -> dict[str, Any]:
        snap: dict[str, Any] = {wire: getattr(self, attr) for attr, wire in _SNAPSHOT_KEYS.items()}
        snap["entityTypes"] = list(self.entity_types)
        return snap

    @classmethod
    def from_snapshot(cls, snap: dict[str, Any]) -> "ImportRunState":
        values: dict[str, Any] = {}
        for attr, wire in _SNAPSHOT_KEYS.items():
            v = snap.get(wire, 0)
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise ValueError(f"invalid {wire} in run state snapshot: {v!r}")
            values[attr] = v
        entity_types = snap.get("entityTypes") or []
        if not isinstance(entity_types, list) or not all(isinstance(t, str) for t in entity_types):
            raise ValueError("invalid entityTypes in run state snapshot")
        return cls(entity_types=list(entity_types), **values)

    @property
    def current_entity_type(self) -> str | None:
        if self.current_entity_type_index >= len(self.entity_types):
            return None
        return self.entity_types[self.current_entity_type_index]


@dataclass
class ImportJobStatus:
    state: ImportRunState
    complete: bool = False
    last_step: ImportStep | None = None
    # backoff cut short by the cancel token
    interrupted: bool = False

    @property
    def failed(self) -> bool:
        return self.last_step is ImportStep.FAILED


@dataclass(frozen=True)
class ImportConfig:
    """
    Everything a run needs, resolved once before the first unit of work.
    """
    catalog: CatalogConfig
    entity_types: tuple[str, ...]
    policy: RetryPolicy
    object_type: str
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def channel_id(self) -> str:
        return self.catalog.channel_id

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        kind: str,
        entity_types: list[str] | None = None,
    ) -> "ImportConfig":
        return cls(
            catalog=CatalogConfig.from_settings(settings),
            entity_types=tuple(entity_types or settings.inriver_entity_types or ["Product"]),
            policy=policy_for(kind, settings),
            object_type=settings.odp_object_type,
        )


class ImportEngine:
    def __init__(
        self,
        *,
        config: ImportConfig,
        sink: DestinationSink,
        notifier: Notifier,
        client: CatalogClient | None = None,
    ):
        self.config = config
        self.sink = sink
        self.notifier = notifier
        self.client = client or CatalogClient(config.catalog)

    def prepare(self, status: ImportJobStatus | None = None) -> ImportJobStatus:
        """
        Fresh status for a new run, or the saved one verbatim when resuming.
        """
        label = self.config.policy.run_label
        if status is not None:
            log.info("Resuming %s import at %s", label, status.state.to_snapshot())
            return status

        entity_types = list(self.config.entity_types)
        log.info("Starting %s import for entity types: %s", label, ", ".join(entity_types))
        return ImportJobStatus(state=ImportRunState(entity_types=entity_types))

    async def perform(self, status: ImportJobStatus, cancel: asyncio.Event | None = None) -> ImportJobStatus:
        state = status.state
        policy = self.config.policy
        status.interrupted = False
        encountered_error = False

        entity_type = state.current_entity_type
        if entity_type is None:
            await self._notify_success(state)
            status.complete = True
            status.last_step = ImportStep.COMPLETE
            return status

        status.last_step = ImportStep.FETCHING_TYPE

        try:
            log.info(
                "Fetching %s page %d (%d imported so far)",
                entity_type, state.current_page, state.total_imported,
            )
            entities = await self.client.get_channel_entities(
                entity_type,
                self.config.page_size,
                state.current_page,
            )

            if entities:
                payloads = [transform_summary_to_payload(e, self.config.channel_id) for e in entities]
                await self.sink.write_objects(self.config.object_type, payloads)

                state.total_imported += len(entities)
                state.current_page += 1
                state.retry_count = 0
                log.info(
                    "Imported page %d of %s (%d entities), total: %d",
                    state.current_page, entity_type, len(entities), state.total_imported,
                )
            else:
                log.info("Completed %s import. Moving to next entity type.", entity_type)
                state.current_entity_type_index += 1
                state.current_page = 0
                state.retry_count = 0
                status.last_step = ImportStep.ADVANCING_TYPE
        except Exception:
            log.exception("%s import error on %s page %d", policy.run_label, entity_type, state.current_page)
            encountered_error = True

        if not encountered_error:
            return status

        if state.retry_count >= policy.retry_ceiling:
            await self._notify_failure(state)
            status.complete = True
            status.last_step = ImportStep.FAILED
            return status

        # State is final for this unit of work before the wait starts
        state.retry_count += 1
        status.last_step = ImportStep.AWAITING_RETRY
        delay = compute_backoff_seconds(state.retry_count, policy.backoff_unit_seconds)
        log.info("Retrying in %.1fs (attempt %d/%d)", delay, state.retry_count, policy.retry_ceiling)
        status.interrupted = await _interruptible_sleep(delay, cancel)
        return status

    async def _notify_success(self, state: ImportRunState) -> None:
        p = self.config.policy
        message = p.success_message.format(total=state.total_imported, entity_types=len(state.entity_types))
        try:
            await self.notifier.success(p.title, p.success_subject, message)
        except Exception:
            log.exception("success notification failed")

    async def _notify_failure(self, state: ImportRunState) -> None:
        p = self.config.policy
        message = p.failure_message.format(total=state.total_imported, entity_types=len(state.entity_types))
        try:
            await self.notifier.error(p.title, p.failure_subject, message)
        except Exception:
            log.exception("failure notification failed")


async def _interruptible_sleep(seconds: float, cancel: asyncio.Event | None) -> bool:
    """
    Sleep up to ``seconds``; True if the cancel token fired first.
    """
    if cancel is None:
        await asyncio.sleep(seconds)
        return False
    if cancel.is_set():
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
