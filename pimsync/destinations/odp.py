from __future__ import annotations

import logging

import httpx

from pimsync.destinations.base import Payloads, as_list
from pimsync.services.errors import SinkWriteError
from pimsync.services.http_client import PimHttpClient


log = logging.getLogger(__name__)


class OdpSink:
    """
    Push transport to the ODP objects API (upsert by the object's primary key).
    """

    name = "odp"

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = PimHttpClient(
            base_url=api_url.rstrip("/"),
            timeout_seconds=timeout_seconds,
            default_headers={"x-api-key": api_key, "Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def write_objects(self, object_type: str, payloads: Payloads) -> None:
        rows = as_list(payloads)
        if not rows:
            return

        result = await self._http.post_json(url=f"/v3/objects/{object_type}", json_body=rows)
        if not result.ok:
            log.error(
                "ODP write error for %s (%d rows): %s %s",
                object_type, len(rows), result.status_code, result.error_message,
            )
            body = result.text if result.status_code is not None else (result.error_message or "")
            raise SinkWriteError(result.status_code, body)

        log.info("Successfully sent %d records to ODP (%s, %sms)", len(rows), object_type, result.elapsed_ms)
