import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import ChainConfig, settings
from ..errors import ProviderError, ProviderUnavailable
from ..types.providers import FloorPriceQuote, OwnedNft, TokenBalanceEntry, TokenMetadata
from .base import BalanceProvider, NFTProvider

logger = logging.getLogger(__name__)

# Marketplaces reported by getFloorPrice, in preference order
_FLOOR_MARKETPLACES = ("openSea", "looksRare")


class AlchemyProvider(BalanceProvider, NFTProvider):
    """Alchemy JSON-RPC, token and NFT APIs for one chain"""

    name = "alchemy"
    timeout_s = 15

    def __init__(self, chain: ChainConfig, api_key: Optional[str] = None, *, page_size: int = 100, max_pages: int = 1, token_max_pages: int = 3):
        self.chain = chain
        self.api_key = settings.alchemy_api_key if api_key is None else api_key
        self.base_url = chain.rpc_url(self.api_key)
        self.nft_url = chain.nft_url(self.api_key)
        self.page_size = page_size
        self.max_pages = max_pages
        self.token_max_pages = token_max_pages

    async def ready(self) -> bool:
        return bool(self.api_key) and settings.enable_alchemy

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {
                "status": "unavailable",
                "reason": "API key not configured or provider disabled"
            }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.base_url,
                    json={"jsonrpc": "2.0", "method": "eth_chainId", "params": [], "id": 1},
                    timeout=self.timeout_s
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        if not await self.ready():
            raise ProviderUnavailable(self.name, f"not configured for {self.chain.key}")

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": 1
        }

        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.base_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s
            )
            response.raise_for_status()
            data = response.json()

        if "error" in data:
            raise ProviderError(self.name, f"{method} failed: {data['error']}")
        return data.get("result")

    async def get_native_balance(self, address: str) -> int:
        """Native balance in wei"""
        result = await self._rpc("eth_getBalance", [address, "latest"])
        if not isinstance(result, str):
            raise ProviderError(self.name, "eth_getBalance returned no result")
        return int(result, 16)

    async def get_token_balances(self, address: str) -> List[TokenBalanceEntry]:
        """Non-zero ERC-20 balances, following pageKey up to the page cap"""
        entries: List[TokenBalanceEntry] = []
        page_key: Optional[str] = None

        for _ in range(self.token_max_pages):
            params: List[Any] = [address, "erc20"]
            if page_key:
                params.append({"pageKey": page_key})
            result = await self._rpc("alchemy_getTokenBalances", params) or {}

            for raw in result.get("tokenBalances") or []:
                if raw.get("error"):
                    continue
                entry = TokenBalanceEntry.model_validate(raw)
                if entry.raw_balance > 0:  # Only include non-zero balances
                    entries.append(entry)

            page_key = result.get("pageKey")
            if not page_key:
                break

        return entries

    async def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        result = await self._rpc("alchemy_getTokenMetadata", [contract_address])
        if not isinstance(result, dict):
            raise ProviderError(self.name, f"no metadata for {contract_address}")
        return TokenMetadata.model_validate(result)

    async def _nft_get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not await self.ready() or not self.nft_url:
            raise ProviderUnavailable(self.name, f"NFT API not available on {self.chain.key}")

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.nft_url}/{path}",
                params=params,
                timeout=self.timeout_s
            )
            response.raise_for_status()
            return response.json()

    async def get_owned_nfts(self, address: str) -> List[OwnedNft]:
        nfts: List[OwnedNft] = []
        page_key: Optional[str] = None

        for _ in range(self.max_pages):
            params: Dict[str, Any] = {
                "owner": address,
                "withMetadata": "true",
                "pageSize": self.page_size,
                "orderBy": "transferTime",
            }
            if page_key:
                params["pageKey"] = page_key
            data = await self._nft_get("getNFTsForOwner", params)

            for raw in data.get("ownedNfts") or []:
                try:
                    nfts.append(OwnedNft.model_validate(raw))
                except ValueError as exc:
                    logger.debug("Skipping malformed NFT on %s: %s", self.chain.key, exc)

            page_key = data.get("pageKey")
            if not page_key:
                break

        return nfts

    async def get_floor_price(self, contract_address: str) -> Optional[FloorPriceQuote]:
        """First marketplace reporting a numeric floor wins"""
        if not self.chain.supports_floor_price:
            return None

        data = await self._nft_get("getFloorPrice", {"contractAddress": contract_address})
        for marketplace in _FLOOR_MARKETPLACES:
            quote = data.get(marketplace) or {}
            floor = quote.get("floorPrice")
            if isinstance(floor, (int, float)) and floor > 0:
                return FloorPriceQuote(
                    source=marketplace,
                    floor_price=float(floor),
                    currency=str(quote.get("priceCurrency") or self.chain.native_symbol),
                )
        return None
