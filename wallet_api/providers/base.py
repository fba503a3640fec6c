from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..types.providers import (
    DexPair,
    ExplorerTransaction,
    FloorPriceQuote,
    OwnedNft,
    TokenBalanceEntry,
    TokenMetadata,
)


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class NameResolverProvider(Provider):
    """Name-service lookups (e.g. ENS)"""

    @abstractmethod
    async def resolve_name(self, name: str) -> Optional[str]:
        """Return the address a name points at, or None when it has no record"""
        pass


class BalanceProvider(Provider):
    """Per-chain RPC and token-balance indexing"""

    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """Native currency balance in wei"""
        pass

    @abstractmethod
    async def get_token_balances(self, address: str) -> List[TokenBalanceEntry]:
        """All non-zero fungible token balances"""
        pass

    @abstractmethod
    async def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        """Symbol, name, decimals and logo for one token contract"""
        pass


class NFTProvider(Provider):
    """NFT ownership indexing and floor prices"""

    @abstractmethod
    async def get_owned_nfts(self, address: str) -> List[OwnedNft]:
        pass

    @abstractmethod
    async def get_floor_price(self, contract_address: str) -> Optional[FloorPriceQuote]:
        pass


class ExplorerProvider(Provider):
    """Block-explorer transaction history"""

    @abstractmethod
    async def get_transactions(self, address: str, limit: int) -> List[ExplorerTransaction]:
        """Most recent transactions first"""
        pass


class MarketDataProvider(Provider):
    """Aggregated market prices"""

    @abstractmethod
    async def get_simple_prices(self, ids: Sequence[str]) -> Dict[str, float]:
        """Map market-data id -> USD price"""
        pass

    @abstractmethod
    async def get_token_prices(self, platform: str, contract_addresses: Sequence[str]) -> Dict[str, float]:
        """Map lowercased contract address -> USD price"""
        pass


class DexPairProvider(Provider):
    """DEX pair indexing used as the last-resort price source"""

    @abstractmethod
    async def get_pairs(self, token_address: str) -> List[DexPair]:
        pass
