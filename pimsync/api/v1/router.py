from fastapi import APIRouter

from pimsync.api.v1.endpoints.health import router as health_router
from pimsync.api.v1.endpoints.webhooks import router as webhooks_router
from pimsync.api.v1.endpoints.import_runs import router as import_runs_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(webhooks_router, tags=["webhooks"])
router.include_router(import_runs_router, tags=["import-runs"])
