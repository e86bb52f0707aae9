from pydantic import BaseModel, Field


class WebhookAcceptedResponse(BaseModel):
    success: bool = True
    entity_id: int = Field(serialization_alias="entityId")
