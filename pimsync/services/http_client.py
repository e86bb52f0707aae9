from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Literal

import httpx


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    status_code: int | None
    text: str

    error_code: str | None = None
    error_message: str | None = None

    elapsed_ms: int | None = None

    def json(self) -> Any:
        return json.loads(self.text) if self.text else None


def _cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class PimHttpClient:
    """
    Shared HTTP client wrapper for the inriver client, destination sink and notifier.

    - Uses one AsyncClient instance (connection pooling).
    - Does NOT retry; the import engine owns backoff.
    - Never raises for HTTP status or transport failures; callers map results to their own errors.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = 20.0,
        max_error_body_chars: int = 20_000,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_body = max_error_body_chars
        self._default_headers = dict(default_headers or {})
        self._client = httpx.AsyncClient(base_url=base_url, timeout=self._timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        *,
        method: HttpMethod,
        url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> HttpResult:
        # Merge headers (caller wins)
        h = dict(self._default_headers)
        if headers:
            h.update(dict(headers))

        try:
            resp = await self._client.request(
                method=method,
                url=url,
                headers=h,
                params=dict(params or {}),
                json=json_body,
            )
        except httpx.TimeoutException as e:
            return HttpResult(
                ok=False,
                status_code=None,
                text="",
                error_code="TIMEOUT",
                error_message=str(e) or "timeout",
            )
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return HttpResult(
                ok=False,
                status_code=None,
                text="",
                error_code="REQUEST_ERROR",
                error_message=str(e) or type(e).__name__,
            )

        try:
            elapsed_ms = int(resp.elapsed.total_seconds() * 1000)
        except RuntimeError:
            # .elapsed is only set once the response was read through a real transport
            elapsed_ms = None

        if 200 <= resp.status_code < 300:
            return HttpResult(ok=True, status_code=resp.status_code, text=resp.text, elapsed_ms=elapsed_ms)

        return HttpResult(
            ok=False,
            status_code=resp.status_code,
            text=_cap_text(resp.text, max_chars=self._max_body),
            error_code=f"HTTP_{resp.status_code}",
            error_message=f"HTTP {resp.status_code}",
            elapsed_ms=elapsed_ms,
        )

    # helpers
    async def get(self, *, url: str, headers: Mapping[str, str] | None = None, params: Mapping[str, str] | None = None) -> HttpResult:
        return await self.request(method="GET", url=url, headers=headers, params=params)

    async def post_json(self, *, url: str, headers: Mapping[str, str] | None = None, params: Mapping[str, str] | None = None, json_body: Any = None) -> HttpResult:
        return await self.request(method="POST", url=url, headers=headers, params=params, json_body=json_body)
