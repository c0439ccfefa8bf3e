"""Polymarket Data API client - wallet positions and activity."""

from __future__ import annotations

from typing import Any

import httpx

from aurora.ingestion.polymarket.http import ApiClient

DATA_API_BASE = "https://data-api.polymarket.com"


class DataClient(ApiClient):
    def __init__(
        self,
        base_url: str = DATA_API_BASE,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    async def get_user_positions(self, address: str) -> list[dict[str, Any]]:
        data = await self.get_json("/positions", params={"user": address.lower()})
        return data if isinstance(data, list) else []

    async def get_user_activity(self, address: str, limit: int = 20) -> list[dict[str, Any]]:
        data = await self.get_json("/activity", params={"user": address.lower(), "limit": limit})
        return data if isinstance(data, list) else []
