from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ImportRunCreateRequest(BaseModel):
    kind: Literal["historical", "nightly"] = "historical"
    # Overrides the configured inriver_entity_types for this run only
    entity_types: list[str] | None = Field(default=None, min_length=1)


class ImportRunResponse(BaseModel):
    id: str
    kind: str
    status: str
    complete: bool
    last_step: str | None = None
    cancel_requested: bool
    lease_expires_at: datetime | None = None
    state: dict[str, Any] | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    finished_at: datetime | None = None

    model_config = {"from_attributes": True}
