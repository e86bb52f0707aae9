from __future__ import annotations

import json
import logging

from pimsync.destinations.base import Payloads, as_list


log = logging.getLogger(__name__)


class LogOnlySink:
    # Local testing: log what would be written, write nothing.
    name = "log_only"

    def __init__(self, sample_size: int = 2):
        self.sample_size = sample_size
        self.written = 0

    async def aclose(self) -> None:
        return None

    async def write_objects(self, object_type: str, payloads: Payloads) -> None:
        rows = as_list(payloads)
        self.written += len(rows)
        log.info("[LOCAL TEST MODE] Would send %d records to %s", len(rows), object_type)
        if rows:
            log.info(
                "[LOCAL TEST MODE] Sample records: %s",
                json.dumps(rows[: self.sample_size], indent=2, default=str),
            )
