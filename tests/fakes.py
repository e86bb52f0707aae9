from __future__ import annotations

import json
from typing import Any

import httpx

from pimsync.services.catalog_client import CatalogClient, CatalogConfig
from pimsync.services.errors import SinkWriteError


CATALOG_CONFIG = CatalogConfig(api_key="test-key", api_url="https://inriver.test", channel_id="6614")

ENTITY = {
    "id": 12345,
    "entityTypeId": "Product",
    "fieldValues": [
        {"fieldTypeId": "ProductNumber", "value": "SKU-123"},
        {"fieldTypeId": "ProductName", "value": "Test Product"},
        {"fieldTypeId": "ProductDescription", "value": "A test product description"},
        {"fieldTypeId": "Price", "value": 99.99},
        {"fieldTypeId": "Brand", "value": "TestBrand"},
    ],
    "completeness": 85,
}


def summary_row(entity_id: int, entity_type: str) -> dict[str, Any]:
    return {
        "entityId": entity_id,
        "summary": {
            "id": entity_id,
            "displayName": f"{entity_type} {entity_id}",
            "displayDescription": "",
            "version": "1",
            "modifiedDate": "2023-06-28T10:00:00.0000000",
            "resourceUrl": None,
            "entityTypeId": entity_type,
            "completeness": 50,
        },
    }


class FakeInriver:
    """
    In-memory inriver behind httpx.MockTransport.
    ``fail_next`` makes the next N requests answer 503.
    """

    def __init__(self, catalog: dict[str, list[int]]):
        self.catalog = catalog
        self.type_of = {i: t for t, ids in catalog.items() for i in ids}
        self.fail_next = 0
        self.requests: list[httpx.Request] = []
        self.fetched_pages: list[list[int]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next:
            self.fail_next -= 1
            return httpx.Response(503, text="Service Unavailable")

        path = request.url.path
        if path.endswith("/entitylist"):
            ids = self.catalog.get(request.url.params["entityTypeId"], [])
            return httpx.Response(200, json={"count": len(ids), "entityIds": ids})
        if path.endswith("/entities:fetchdata"):
            ids = json.loads(request.content)["entityIds"]
            self.fetched_pages.append(ids)
            # upstream does not keep input order
            return httpx.Response(200, json=[summary_row(i, self.type_of[i]) for i in reversed(ids)])
        return httpx.Response(404, text=f"no route for {path}")

    def client(self) -> CatalogClient:
        return CatalogClient(CATALOG_CONFIG, transport=httpx.MockTransport(self.handler))


class FakeSink:
    name = "fake"

    def __init__(self, fail_next: int = 0):
        self.fail_next = fail_next
        self.writes: list[tuple[str, Any]] = []
        self.closed = False

    async def write_objects(self, object_type: str, payloads: Any) -> None:
        if self.fail_next:
            self.fail_next -= 1
            raise SinkWriteError(500, "destination unavailable")
        self.writes.append((object_type, payloads))

    async def aclose(self) -> None:
        self.closed = True


class FakeNotifier:
    def __init__(self, raise_on_send: bool = False):
        self.raise_on_send = raise_on_send
        self.sent: list[tuple[str, str, str, str]] = []

    async def success(self, title: str, subject: str, message: str) -> None:
        self.sent.append(("success", title, subject, message))
        if self.raise_on_send:
            raise RuntimeError("notification channel down")

    async def error(self, title: str, subject: str, message: str) -> None:
        self.sent.append(("error", title, subject, message))
        if self.raise_on_send:
            raise RuntimeError("notification channel down")
