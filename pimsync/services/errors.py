from __future__ import annotations


class PimSyncError(Exception):
    pass


class ValidationError(PimSyncError):
    """Required input missing; surfaced immediately, never retried."""


class UpstreamError(PimSyncError):
    def __init__(self, status: int | None, body: str):
        super().__init__(f"inriver API error: {status} {body}")
        self.status = status
        self.body = body


class SinkWriteError(PimSyncError):
    def __init__(self, status: int | None, body: str):
        super().__init__(f"destination write error: {status} {body}")
        self.status = status
        self.body = body
