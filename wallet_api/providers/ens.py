from typing import Any, Dict, Optional

from web3 import AsyncWeb3

from ..config import CHAIN_REGISTRY, settings
from ..errors import ProviderUnavailable
from .base import NameResolverProvider


class EnsProvider(NameResolverProvider):
    """ENS resolution against an Ethereum mainnet RPC endpoint"""

    name = "ens"
    timeout_s = 5

    def __init__(self, rpc_url: Optional[str] = None):
        self.rpc_url = rpc_url or settings.ethereum_rpc_url or (
            CHAIN_REGISTRY["ethereum"].rpc_url(settings.alchemy_api_key) if settings.alchemy_api_key else ""
        )
        self._w3: Optional[AsyncWeb3] = None

    def _web3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout_s})
            )
        return self._w3

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "No Ethereum RPC endpoint configured"}
        try:
            connected = await self._web3().is_connected()
        except Exception as e:
            return {"status": "error", "reason": str(e)}
        return {"status": "healthy" if connected else "error"}

    async def resolve_name(self, name: str) -> Optional[str]:
        if not await self.ready():
            raise ProviderUnavailable(self.name, "no Ethereum RPC endpoint configured")
        address = await self._web3().ens.address(name)
        return str(address) if address else None
