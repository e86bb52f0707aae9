from __future__ import annotations

from pimsync.schemas.catalog import EntityRecord, FieldScalar


def get_field_value(entity: EntityRecord, field_type_id: str, locale: str | None = None) -> FieldScalar:
    """
    First value of ``field_type_id`` (optionally restricted to one language).

    Falsy values (0, "", False, empty containers) come back as None, so a
    legitimate zero price is indistinguishable from a missing one.
    """
    for fv in entity.field_values:
        if fv.field_type_id != field_type_id:
            continue
        if locale and fv.language_id != locale:
            continue
        return fv.value or None
    return None
