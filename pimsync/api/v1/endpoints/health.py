from fastapi import APIRouter

from pimsync.core.config import settings

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "env": settings.env, "sink_mode": settings.resolved_sink_mode()}
