from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from ..services.degradation import SourceStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenHolding(_CamelModel):
    chain: str = Field(description="Chain key the balance lives on")
    contract_address: Optional[str] = Field(default=None, description="Token contract (None for the native currency)")
    symbol: str = Field(description="Token symbol (e.g. ETH, USDC)")
    name: str = Field(description="Full token name")
    decimals: int = Field(description="Token decimal places")
    raw_balance: str = Field(description="Raw balance in smallest unit, as an integer string")
    balance: Decimal = Field(description="Balance scaled by decimals")
    display_balance: str = Field(default="0", description="Compact human readable balance")
    price: float = Field(default=0.0, description="Unit price in USD, 0 when unknown")
    usd_value: float = Field(default=0.0, description="balance * price")
    priced: bool = Field(default=False, description="Whether any price source valued this token")
    price_source: Optional[str] = Field(default=None, description="Price source that priced the token")
    is_native: bool = Field(default=False, description="True for the chain's native currency")
    logo: Optional[str] = Field(default=None, description="Logo URI")

    def with_price(self, price: float, source: str) -> "TokenHolding":
        """Return a priced copy; usd_value is always derived here."""
        return self.model_copy(
            update={
                "price": float(price),
                "usd_value": float(self.balance) * float(price),
                "priced": True,
                "price_source": source,
            }
        )


class NFTItem(_CamelModel):
    token_id: str = Field(description="Token id as a decimal string")
    name: str = Field(description="Display name")
    image: Optional[str] = Field(default=None, description="HTTP(S) image URI")
    description: Optional[str] = None
    has_image: bool = False
    token_type: Optional[str] = Field(default=None, description="ERC721 or ERC1155")
    balance: int = Field(default=1, description="Units held (ERC1155)")
    attributes: List[Dict[str, Any]] = Field(default_factory=list)


class NFTCollection(_CamelModel):
    contract_address: str
    name: str
    symbol: Optional[str] = None
    chain: str
    items: List[NFTItem] = Field(default_factory=list, alias="nfts")
    floor_price: float = Field(default=0.0, description="Floor price in USD, 0 when unknown")
    floor_price_native: Optional[float] = None
    floor_price_source: Optional[str] = None
    total_value: float = Field(default=0.0, description="floor_price * item_count")

    @computed_field  # type: ignore[misc]
    @property
    def item_count(self) -> int:
        return len(self.items)

    def with_floor_price(self, usd: float, native: Optional[float], source: Optional[str]) -> "NFTCollection":
        return self.model_copy(
            update={
                "floor_price": usd,
                "floor_price_native": native,
                "floor_price_source": source,
                "total_value": usd * len(self.items) if usd > 0 else 0.0,
            }
        )


class ActivityRecord(_CamelModel):
    hash: str
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    value: Decimal = Field(default=Decimal("0"), description="Native currency amount")
    timestamp: datetime
    method: Optional[str] = None
    status: Optional[str] = None
    chain: str = "ethereum"


class PortfolioResult(_CamelModel):
    address: str = Field(description="Resolved wallet address")
    ens_name: Optional[str] = Field(default=None, description="Name-service name used, if any")
    total_value: float = Field(description="Sum of token USD values")
    tokens: List[TokenHolding] = Field(default_factory=list)
    tokens_by_chain: Dict[str, List[TokenHolding]] = Field(default_factory=dict)
    nfts: List[NFTCollection] = Field(default_factory=list)
    activity: List[ActivityRecord] = Field(default_factory=list)
    token_count: int = 0
    nft_count: int = 0
    unpriced_count: int = 0
    chains_with_balance: List[str] = Field(default_factory=list)
    sources: Dict[str, SourceStatus] = Field(default_factory=dict)
    fetched_at: datetime
    response_time: int = Field(default=0, description="Milliseconds spent serving the request")
