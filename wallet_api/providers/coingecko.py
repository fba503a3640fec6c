import asyncio
from typing import Any, Dict, Optional, Sequence

import httpx

from ..config import settings
from ..errors import ProviderUnavailable
from .base import MarketDataProvider


class CoingeckoProvider(MarketDataProvider):
    """Coingecko API provider for token prices"""

    name = "coingecko"
    timeout_s = 10

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = settings.coingecko_api_key if api_key is None else api_key
        self.base_url = "https://api.coingecko.com/api/v3"

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def ready(self) -> bool:
        return settings.enable_coingecko  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {
                "status": "unavailable",
                "reason": "Provider disabled"
            }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/ping",
                    headers=self._build_headers(),
                    timeout=self.timeout_s
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        if not await self.ready():
            raise ProviderUnavailable(self.name, "provider disabled")

        async with httpx.AsyncClient() as client:
            for attempt in range(2):
                try:
                    response = await client.get(
                        f"{self.base_url}{path}",
                        headers=self._build_headers(),
                        params=params,
                        timeout=self.timeout_s,
                    )
                    response.raise_for_status()
                    return response.json()
                except httpx.HTTPStatusError as exc:
                    if exc.response.status_code == 429 and attempt == 0:
                        await asyncio.sleep(1)
                        continue
                    raise
        return {}

    async def get_simple_prices(self, ids: Sequence[str]) -> Dict[str, float]:
        """Current USD prices keyed by Coingecko coin id"""
        if not ids:
            return {}

        data = await self._get(
            "/simple/price",
            {"ids": ",".join(ids), "vs_currencies": "usd"},
        )

        prices: Dict[str, float] = {}
        for coin_id, price_data in (data or {}).items():
            usd = (price_data or {}).get("usd")
            if isinstance(usd, (int, float)) and usd > 0:
                prices[coin_id] = float(usd)
        return prices

    async def get_token_prices(self, platform: str, contract_addresses: Sequence[str]) -> Dict[str, float]:
        """Current USD prices keyed by lowercased contract address"""
        if not contract_addresses:
            return {}

        data = await self._get(
            f"/simple/token_price/{platform}",
            {
                "contract_addresses": ",".join(contract_addresses),
                "vs_currencies": "usd",
            },
        )

        prices: Dict[str, float] = {}
        for address, price_data in (data or {}).items():
            usd = (price_data or {}).get("usd")
            if isinstance(usd, (int, float)) and usd > 0:
                prices[address.lower()] = float(usd)
        return prices
