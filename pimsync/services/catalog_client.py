from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from pimsync.core.config import Settings
from pimsync.schemas.catalog import Channel, EntityData, EntityListResponse, EntityRecord
from pimsync.services.errors import UpstreamError
from pimsync.services.http_client import HttpResult, PimHttpClient


log = logging.getLogger(__name__)

API_KEY_HEADER = "X-inRiver-APIKey"
DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class CatalogConfig:
    api_key: str
    api_url: str
    channel_id: str
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogConfig":
        return cls(
            api_key=settings.inriver_api_key.get_secret_value(),
            api_url=settings.inriver_api_url,
            channel_id=settings.inriver_channel_id,
            timeout_seconds=settings.inriver_timeout_seconds,
        )


def _raise_for_result(result: HttpResult) -> None:
    if result.ok:
        return
    if result.status_code is None:
        raise UpstreamError(None, result.error_message or result.error_code or "request failed")
    raise UpstreamError(result.status_code, result.text)


class CatalogClient:
    """
    inriver REST client.

    The channel entity list has no native paging, so pages are sliced locally
    from one full id list and each page costs exactly one fetchdata call.
    Nothing here retries; callers own backoff.
    """

    def __init__(self, config: CatalogConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._http = PimHttpClient(
            base_url=config.api_url.rstrip("/"),
            timeout_seconds=config.timeout_seconds,
            default_headers={
                API_KEY_HEADER: config.api_key,
                "Accept": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogClient":
        return cls(CatalogConfig.from_settings(settings))

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        result = await self._http.get(url=url, params=params)
        _raise_for_result(result)
        return result.json()

    async def list_entity_ids(self, entity_type_id: str, channel_id: str | None = None) -> list[int]:
        cid = channel_id or self.config.channel_id
        log.info("Fetching %s entity IDs from channel %s", entity_type_id, cid)
        body = await self._get_json(
            f"/api/v1.0.0/channels/{cid}/entitylist",
            params={"entityTypeId": entity_type_id},
        )
        return EntityListResponse.model_validate(body or {}).entity_ids

    async def fetch_entity_summaries(self, entity_ids: list[int]) -> list[EntityData]:
        """
        Batch-fetch EntitySummary objects. Response order is not tied to ``entity_ids``.
        """
        log.info("Fetching data for %d entities", len(entity_ids))
        result = await self._http.post_json(
            url="/api/v1.0.1/entities:fetchdata",
            headers={"Content-Type": "application/json"},
            json_body={"entityIds": list(entity_ids), "objects": "EntitySummary"},
        )
        _raise_for_result(result)
        return [EntityData.model_validate(row) for row in (result.json() or [])]

    async def get_channel_entities(
        self,
        entity_type_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_index: int = 0,
    ) -> list[EntityData]:
        """
        One page of summaries for an entity type. An empty list means the type is exhausted.
        """
        entity_ids = await self.list_entity_ids(entity_type_id)
        if not entity_ids:
            return []

        start = page_index * page_size
        page_ids = entity_ids[start:start + page_size]
        if not page_ids:
            return []

        return await self.fetch_entity_summaries(page_ids)

    async def get_entity(self, entity_id: int) -> EntityRecord:
        log.info("Fetching entity %s", entity_id)
        body = await self._get_json(f"/api/v1.0.0/entities/{entity_id}")
        return EntityRecord.model_validate(body)

    async def get_resource_url(self, resource_id: int) -> str | None:
        """
        Media URL for a Resource entity, or None. Best effort: failures are logged, not raised.
        """
        result = await self._http.get(url=f"/api/v1.0.0/entities/{resource_id}/resourceurl")
        if not result.ok:
            log.warning(
                "Could not fetch resource URL for %s: %s",
                resource_id, result.error_message or result.status_code,
            )
            return None
        return result.text.strip().strip('"') or None

    async def get_channel(self, channel_id: str | None = None) -> Channel:
        cid = channel_id or self.config.channel_id
        body = await self._get_json(f"/api/v1.0.0/channels/{cid}")
        return Channel.model_validate(body)

    async def get_entity_links(self, entity_id: int, link_type_id: str | None = None) -> list[dict[str, Any]]:
        params = {"linkTypeId": link_type_id} if link_type_id else None
        body = await self._get_json(f"/api/v1.0.0/entities/{entity_id}/links", params=params)
        return list(body or [])
