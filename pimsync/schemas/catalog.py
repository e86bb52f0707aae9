"""
inriver wire models.

Upstream JSON is camelCase; attributes are snake_case with camelCase aliases so
responses validate as-is and ``model_dump(by_alias=True)`` gives the wire shape back.
"""
from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Closed set of value kinds observed in inriver field values
FieldScalar = Union[str, int, float, bool, dict[str, Any], list[Any], None]


class _InriverModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class FieldValue(_InriverModel):
    field_type_id: str
    value: FieldScalar = None
    language_id: str | None = None
    data: Any = None


class EntityRecord(_InriverModel):
    id: int = Field(gt=0)
    entity_type_id: str | None = None
    field_values: list[FieldValue] = Field(default_factory=list)
    completeness: int | float | None = None
    segment_id: int | None = None


class EntitySummary(_InriverModel):
    id: int
    display_name: str | None = None
    display_description: str | None = None
    modified_date: str | None = None
    resource_id: int | None = None
    resource_url: str | None = None
    entity_type_id: str | None = None
    completeness: int | float | None = None


class EntityData(_InriverModel):
    """Row of the entities:fetchdata response."""
    entity_id: int
    summary: EntitySummary


class EntityListResponse(_InriverModel):
    count: int = 0
    entity_ids: list[int] = Field(default_factory=list)


class Channel(_InriverModel):
    id: int
    display_name: str | None = None
    entity_type_ids: list[str] = Field(default_factory=list)
