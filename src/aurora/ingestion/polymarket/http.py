"""Shared async JSON transport for the Polymarket REST hosts."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)


class UpstreamError(Exception):
    """Transport, status or decode failure talking to a Polymarket host."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        url: str,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status = status
        self.body = body

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class ApiClient:
    """Async GET-only JSON client bound to one base URL.

    Returns decoded JSON unmodified. Failures are logged with the full request URL and
    response body, then raised as UpstreamError. No retries at this layer.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, headers={"Accept": "application/json"}
        )

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        full_url = str(httpx.URL(url, params=params or {}))
        try:
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            body = e.response.text
            log.error(
                "polymarket_api_error",
                method="GET",
                url=full_url,
                status=e.response.status_code,
                body=body[:2000],
            )
            raise UpstreamError(
                str(e), method="GET", url=full_url, status=e.response.status_code, body=body
            ) from e
        except httpx.HTTPError as e:
            log.error("polymarket_api_error", method="GET", url=full_url, error=str(e))
            raise UpstreamError(str(e) or type(e).__name__, method="GET", url=full_url) from e
        except json.JSONDecodeError as e:
            body = resp.text
            log.error("polymarket_api_bad_json", method="GET", url=full_url, body=body[:2000])
            raise UpstreamError(
                f"invalid JSON: {e}", method="GET", url=full_url, status=resp.status_code, body=body
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
