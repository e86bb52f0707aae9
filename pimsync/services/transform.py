from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any

from pimsync.schemas.catalog import EntityData, EntityRecord, EntitySummary
from pimsync.services.field_extractor import get_field_value


DestinationPayload = dict[str, Any]

# payload key -> inriver field type ids, first non-empty wins.
# Adjust per customer model; other entity kinds reuse the same table.
FIELD_FALLBACKS: dict[str, tuple[str, ...]] = {
    "sku": ("ProductNumber", "SKU", "ItemNumber"),
    "product_name": ("ProductName", "DisplayName", "Name"),
    "description": ("ProductDescription", "Description", "ShortDescription"),
    "price": ("Price", "ListPrice"),
    "brand": ("Brand", "Manufacturer"),
    "category": ("Category", "ProductCategory"),
}

# inriver emits 7 fractional digits ("2023-06-28T10:00:00.0000000")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_modified_ms(value: str | None) -> int:
    """
    Epoch milliseconds for an inriver timestamp; current time if absent/unparseable.
    Naive timestamps are read as UTC.
    """
    if not value:
        return _now_ms()
    s = _FRACTION_RE.sub(r"\1", value.strip())
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return _now_ms()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def resolve_field(entity: EntityRecord, key: str) -> Any:
    for field_type_id in FIELD_FALLBACKS[key]:
        value = get_field_value(entity, field_type_id)
        if value is not None:
            return value
    return None


def transform_summary_to_payload(
    entity_data: EntityData | EntitySummary,
    channel_id: str | None = None,
) -> DestinationPayload:
    """
    Destination payload from a fetchdata row (or its bare summary).
    """
    summary = entity_data.summary if isinstance(entity_data, EntityData) else entity_data

    payload: DestinationPayload = {
        "product_id": str(summary.id),
        "entity_type": summary.entity_type_id,
        # summary has no SKU field; the entity id stands in
        "sku": str(summary.id),
        "product_name": summary.display_name or f"Product {summary.id}",
        "last_modified": parse_modified_ms(summary.modified_date),
    }
    if payload["entity_type"] is None:
        del payload["entity_type"]

    if summary.display_description and summary.display_description.strip():
        payload["description"] = summary.display_description

    if summary.resource_url:
        payload["image_url"] = summary.resource_url

    if channel_id:
        payload["channel_id"] = channel_id

    if summary.completeness is not None:
        payload["completeness"] = summary.completeness

    return payload


def transform_entity_to_payload(
    entity: EntityRecord,
    image_url: str | None = None,
    channel_id: str | None = None,
) -> DestinationPayload:
    """
    Destination payload from a full entity record (webhook / single fetch).

    last_modified is always "now": the full record carries no authoritative
    modification time, unlike the summary path.
    """
    payload: DestinationPayload = {
        "product_id": str(entity.id),
    }
    if entity.entity_type_id:
        payload["entity_type"] = entity.entity_type_id

    for key in FIELD_FALLBACKS:
        value = resolve_field(entity, key)
        if value is not None:
            payload[key] = value

    if image_url:
        payload["image_url"] = image_url
    if channel_id:
        payload["channel_id"] = channel_id
    if entity.completeness is not None:
        payload["completeness"] = entity.completeness

    payload["last_modified"] = datetime.now(timezone.utc).isoformat()
    return payload
