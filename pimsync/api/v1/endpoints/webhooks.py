import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pimsync.core.config import settings
from pimsync.destinations.base import DestinationSink
from pimsync.destinations.registry import build_sink
from pimsync.schemas.catalog import EntityRecord
from pimsync.schemas.webhook import WebhookAcceptedResponse
from pimsync.services.auth import require_webhook_secret
from pimsync.services.errors import ValidationError
from pimsync.services.transform import transform_entity_to_payload

log = logging.getLogger(__name__)

router = APIRouter()


async def get_sink() -> AsyncIterator[DestinationSink]:
    sink = build_sink(settings)
    try:
        yield sink
    finally:
        await sink.aclose()


def parse_entity(body: Any) -> EntityRecord:
    # Only a missing id is a client error; a malformed record with an id is a 500
    if not isinstance(body, dict) or not body.get("id"):
        raise ValidationError("Missing required entity data")
    return EntityRecord.model_validate(body)


@router.post(
    "/webhooks/inriver/entities",
    response_model=WebhookAcceptedResponse,
    dependencies=[Depends(require_webhook_secret)],
)
async def handle_incoming_entity(request: Request, sink: DestinationSink = Depends(get_sink)):
    """
    inriver entity webhook: one entity in, one destination object out.
    No retries here; inriver redelivers on non-2xx.
    """
    try:
        try:
            body = await request.json()
        except ValueError:
            body = None

        entity = parse_entity(body)
        log.info("Processing inriver entity %s of type %s", entity.id, entity.entity_type_id)

        payload = transform_entity_to_payload(entity, channel_id=settings.inriver_channel_id or None)
        await sink.write_objects(settings.odp_object_type, payload)

        log.info("Successfully processed entity %s", entity.id)
        return WebhookAcceptedResponse(entity_id=entity.id)

    except ValidationError as e:
        log.warning("Invalid entity data received: %s", e)
        return JSONResponse(status_code=400, content={"detail": str(e)})
    except Exception as e:
        log.exception("Error processing inriver webhook")
        return JSONResponse(status_code=500, content={"detail": f"An unexpected error occurred: {e}"})
