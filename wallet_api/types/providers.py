"""Typed views of upstream provider payloads.

Provider JSON is parsed into these models at the provider boundary and
converted into the portfolio types by the fetchers; nothing shaped like a
provider response travels further than that.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _parse_quantity(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text in ("0x", "0x0"):
        return 0
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


# --- Alchemy token API ------------------------------------------------------


class TokenBalanceEntry(_WireModel):
    contract_address: str = Field(alias="contractAddress")
    raw_balance: int = Field(default=0, alias="tokenBalance")

    @field_validator("raw_balance", mode="before")
    @classmethod
    def _hex_balance(cls, value: Any) -> int:
        try:
            return _parse_quantity(value)
        except (TypeError, ValueError):
            return 0


class TokenMetadata(_WireModel):
    symbol: Optional[str] = None
    name: Optional[str] = None
    decimals: Optional[int] = None
    logo: Optional[str] = None

    @field_validator("symbol", "name", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("decimals", mode="before")
    @classmethod
    def _decimals(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return _parse_quantity(value)
        except (TypeError, ValueError):
            return None


# --- Alchemy NFT API --------------------------------------------------------


class NftContractInfo(_WireModel):
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    token_type: Optional[str] = Field(default=None, alias="tokenType")
    open_sea_metadata: Dict[str, Any] = Field(default_factory=dict, alias="openSeaMetadata")

    @field_validator("open_sea_metadata", mode="before")
    @classmethod
    def _mapping(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.open_sea_metadata.get("collectionName")


class NftImage(_WireModel):
    cached_url: Optional[str] = Field(default=None, alias="cachedUrl")
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    png_url: Optional[str] = Field(default=None, alias="pngUrl")
    original_url: Optional[str] = Field(default=None, alias="originalUrl")


class OwnedNft(_WireModel):
    contract: NftContractInfo
    token_id: str = Field(alias="tokenId")
    token_type: Optional[str] = Field(default=None, alias="tokenType")
    name: Optional[str] = None
    description: Optional[str] = None
    image: NftImage = Field(default_factory=NftImage)
    raw: Dict[str, Any] = Field(default_factory=dict)
    balance: int = 1

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id(cls, value: Any) -> str:
        try:
            return str(_parse_quantity(value))
        except (TypeError, ValueError):
            return str(value)

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("raw", mode="before")
    @classmethod
    def _raw(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("balance", mode="before")
    @classmethod
    def _balance(cls, value: Any) -> int:
        try:
            return max(1, _parse_quantity(value))
        except (TypeError, ValueError):
            return 1

    @property
    def raw_metadata(self) -> Dict[str, Any]:
        metadata = self.raw.get("metadata")
        return metadata if isinstance(metadata, dict) else {}

    def image_candidates(self) -> List[Optional[str]]:
        """Image fields in preference order."""
        metadata = self.raw_metadata
        return [
            self.image.thumbnail_url,
            self.image.cached_url,
            self.image.png_url,
            self.image.original_url,
            metadata.get("image"),
            metadata.get("image_url"),
        ]


class FloorPriceQuote(_WireModel):
    source: str
    floor_price: float
    currency: str = "ETH"


# --- Market data -------------------------------------------------------------


class DexPair(_WireModel):
    chain_id: str = Field(default="", alias="chainId")
    dex_id: Optional[str] = Field(default=None, alias="dexId")
    pair_address: Optional[str] = Field(default=None, alias="pairAddress")
    base_token_address: Optional[str] = Field(default=None, alias="baseToken")
    price_usd: Optional[float] = Field(default=None, alias="priceUsd")
    liquidity_usd: float = Field(default=0.0, alias="liquidity")

    @field_validator("base_token_address", mode="before")
    @classmethod
    def _base_token(cls, value: Any) -> Optional[str]:
        if isinstance(value, dict):
            value = value.get("address")
        return str(value).lower() if value else None

    @field_validator("price_usd", mode="before")
    @classmethod
    def _price(cls, value: Any) -> Optional[float]:
        if value in (None, ""):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("liquidity_usd", mode="before")
    @classmethod
    def _liquidity(cls, value: Any) -> float:
        if isinstance(value, dict):
            value = value.get("usd")
        try:
            return float(value or 0)
        except (TypeError, ValueError):
            return 0.0


# --- Block explorer ------------------------------------------------------------


class ExplorerTransaction(_WireModel):
    hash: str
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    value: str = "0"
    time_stamp: int = Field(default=0, alias="timeStamp")
    function_name: Optional[str] = Field(default=None, alias="functionName")
    method_id: Optional[str] = Field(default=None, alias="methodId")
    input: Optional[str] = None
    is_error: Optional[str] = Field(default=None, alias="isError")
    receipt_status: Optional[str] = Field(default=None, alias="txreceipt_status")

    @property
    def method_label(self) -> str:
        if self.function_name:
            return self.function_name.split("(", 1)[0] or "Contract Call"
        if not self.input or self.input == "0x":
            return "Transfer"
        return self.method_id or self.input[:10]

    @property
    def status(self) -> str:
        if self.is_error == "1" or self.receipt_status == "0":
            return "failed"
        return "success"
