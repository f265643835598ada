"""
Minimal async HTTP transport for the venue's auth and trading hosts.

Every call carries the same timeout ceiling. Request failures become
NetworkError. Non-2xx answers (redirects included) and explicit
``success: false`` bodies become VenueError with the venue payload attached
verbatim. Nothing is retried here; retry policy belongs to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from perpbot.core.errors import NetworkError, VenueError

log = logging.getLogger("perpbot")

DEFAULT_TIMEOUT = 30.0


def dumps_body(payload: Any) -> str:
    """Compact JSON, the exact bytes that are both signed and sent."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class VenueHttp:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        # If a shared client is passed in, we won't close it in close(); otherwise we own the client.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(
                http2=True,
                timeout=timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        stage: str = "query",
    ) -> Any:
        return await self._request("GET", url, stage, params=params, headers=headers)

    async def post(
        self,
        url: str,
        body: Any,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        stage: str = "submit",
    ) -> Any:
        hdrs = {"Content-Type": "application/json"}
        hdrs.update(headers or {})
        return await self._request("POST", url, stage, params=params, headers=hdrs, content=dumps_body(body))

    async def _request(self, method: str, url: str, stage: str, **kwargs: Any) -> Any:
        try:
            resp = await self.client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as exc:
            log.warning(json.dumps({"event": "http_timeout", "stage": stage, "url": url}))
            raise NetworkError(f"Request timed out after {self.timeout}s", stage=stage) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Request failed: {exc}", stage=stage) from exc

        data = _decode(resp)
        if not resp.is_success:
            raise VenueError(
                _error_message(data, resp),
                stage=stage,
                status_code=resp.status_code,
                detail=data,
            )
        if isinstance(data, dict) and data.get("success") is False:
            raise VenueError(
                _error_message(data, resp),
                stage=stage,
                status_code=resp.status_code,
                detail=data,
            )
        return data


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(data: Any, resp: httpx.Response) -> str:
    if isinstance(data, dict):
        for key in ("message", "msg", "error"):
            if data.get(key):
                return str(data[key])
    if isinstance(data, str) and data:
        return data[:200]
    return f"HTTP {resp.status_code}"
