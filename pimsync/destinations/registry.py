from __future__ import annotations
from typing import Callable

from pimsync.core.config import Settings
from pimsync.destinations.base import DestinationSink
from pimsync.destinations.log_only import LogOnlySink
from pimsync.destinations.odp import OdpSink


def _odp(settings: Settings) -> DestinationSink:
    return OdpSink(api_url=settings.odp_api_url, api_key=settings.odp_api_key.get_secret_value())


def _log_only(settings: Settings) -> DestinationSink:
    return LogOnlySink()


_SINKS: dict[str, Callable[[Settings], DestinationSink]] = {
    OdpSink.name: _odp,
    LogOnlySink.name: _log_only,
}


def build_sink(settings: Settings, name: str | None = None) -> DestinationSink:
    key = (name or settings.resolved_sink_mode()).lower().strip()
    if key not in _SINKS:
        raise KeyError(f"No destination sink registered for sink_mode={key}")
    return _SINKS[key](settings)
