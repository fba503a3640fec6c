"""Etherscan V2 multichain API client for transaction history."""

from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import ProviderError, ProviderUnavailable
from ..types.providers import ExplorerTransaction
from .base import ExplorerProvider

ETHERSCAN_API_V2_URL = "https://api.etherscan.io/v2/api"


class EtherscanProvider(ExplorerProvider):
    name = "etherscan"
    timeout_s = 10

    def __init__(self, chain_id: int = 1, api_key: Optional[str] = None):
        self.chain_id = chain_id
        self.api_key = settings.etherscan_api_key if api_key is None else api_key

    async def ready(self) -> bool:
        return bool(self.api_key) and settings.enable_etherscan

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "API key not configured or provider disabled"}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    ETHERSCAN_API_V2_URL,
                    params={
                        "chainid": self.chain_id,
                        "module": "proxy",
                        "action": "eth_blockNumber",
                        "apikey": self.api_key,
                    },
                    timeout=self.timeout_s,
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_transactions(self, address: str, limit: int) -> List[ExplorerTransaction]:
        if not await self.ready():
            raise ProviderUnavailable(self.name, "API key not configured")

        params = {
            "chainid": self.chain_id,
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": limit,
            "sort": "desc",
            "apikey": self.api_key,
        }

        async with httpx.AsyncClient() as client:
            response = await client.get(ETHERSCAN_API_V2_URL, params=params, timeout=self.timeout_s)
            response.raise_for_status()
            payload = response.json()

        result = payload.get("result")
        if payload.get("status") != "1":
            # "No transactions found" comes back as status 0 with an empty list
            if isinstance(result, list):
                return []
            raise ProviderError(self.name, str(result or payload.get("message")))

        return [ExplorerTransaction.model_validate(tx) for tx in result[:limit]]
