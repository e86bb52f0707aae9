from __future__ import annotations

from dataclasses import dataclass, replace

from pimsync.core.config import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """
    Per run-type knobs. The engine's state machine is the same for every policy.
    Message templates may use {total} and {entity_types}.
    """
    run_label: str
    retry_ceiling: int
    backoff_unit_seconds: float

    title: str
    success_subject: str
    success_message: str
    failure_subject: str
    failure_message: str


HISTORICAL = RetryPolicy(
    run_label="historical",
    retry_ceiling=5,
    backoff_unit_seconds=5.0,
    title="inriver Historical Import",
    success_subject="Completed Historical Import",
    success_message="Imported {total} total entities from inriver across {entity_types} entity types.",
    failure_subject="Failed to complete historical import",
    failure_message="Maximum retries exceeded. Imported {total} entities before failure.",
)

NIGHTLY = RetryPolicy(
    run_label="nightly",
    retry_ceiling=3,
    backoff_unit_seconds=3.0,
    title="inriver Nightly Import",
    success_subject="Completed Nightly Sync",
    success_message="Synced {total} entities from inriver.",
    failure_subject="Nightly sync failed",
    failure_message="Maximum retries exceeded. Synced {total} entities before failure.",
)

RUN_KINDS = {p.run_label: p for p in (HISTORICAL, NIGHTLY)}


def policy_for(kind: str, settings: Settings | None = None) -> RetryPolicy:
    base = RUN_KINDS[kind]
    if settings is None:
        return base
    if kind == HISTORICAL.run_label:
        return replace(
            base,
            retry_ceiling=settings.historical_retry_ceiling,
            backoff_unit_seconds=settings.historical_backoff_seconds,
        )
    return replace(
        base,
        retry_ceiling=settings.nightly_retry_ceiling,
        backoff_unit_seconds=settings.nightly_backoff_seconds,
    )


def compute_backoff_seconds(retry_count: int, unit: float) -> float:
    # linear: 1x, 2x, 3x ... the unit
    return max(0, retry_count) * unit
