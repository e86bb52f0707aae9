import logging

from fastapi import FastAPI

from pimsync.api.v1.router import router as v1_router
from pimsync.core.telemetry import setup_telemetry

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="PIM Sync API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)
