from typing import Any, Dict, List

import httpx

from ..config import settings
from ..errors import ProviderUnavailable
from ..types.providers import DexPair
from .base import DexPairProvider


class DexScreenerProvider(DexPairProvider):
    """DexScreener pair index; no API key required"""

    name = "dexscreener"
    timeout_s = 5

    def __init__(self):
        self.base_url = "https://api.dexscreener.com/latest/dex"

    async def ready(self) -> bool:
        return settings.enable_dexscreener

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Provider disabled"}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/search",
                    params={"q": "WETH"},
                    timeout=self.timeout_s,
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_pairs(self, token_address: str) -> List[DexPair]:
        if not await self.ready():
            raise ProviderUnavailable(self.name, "provider disabled")

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.base_url}/tokens/{token_address}",
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            payload = response.json()

        pairs: List[DexPair] = []
        for raw in (payload or {}).get("pairs") or []:
            if isinstance(raw, dict):
                pairs.append(DexPair.model_validate(raw))
        return pairs
