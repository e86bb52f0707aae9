from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


Payloads = dict[str, Any] | list[dict[str, Any]]


@runtime_checkable
class DestinationSink(Protocol):
    """
    Writes transformed objects to the destination object store.
    Raises SinkWriteError on failure; return value carries nothing.
    """

    name: str

    async def write_objects(self, object_type: str, payloads: Payloads) -> None:
        ...

    async def aclose(self) -> None:
        ...


def as_list(payloads: Payloads) -> list[dict[str, Any]]:
    return payloads if isinstance(payloads, list) else [payloads]
