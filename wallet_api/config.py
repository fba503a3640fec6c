from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

NAME_SERVICE_SUFFIX = ".eth"


@dataclass(frozen=True)
class ChainConfig:
    """Static description of one chain the service knows how to query."""

    key: str
    chain_id: int
    display_name: str
    native_symbol: str
    native_name: str
    native_logo: str
    rpc_url_template: str
    nft_url_template: Optional[str]
    explorer_url: str
    trustwallet_slug: str
    coingecko_platform: Optional[str] = None
    supports_floor_price: bool = False

    @property
    def supports_nfts(self) -> bool:
        return self.nft_url_template is not None

    def rpc_url(self, api_key: str) -> str:
        return self.rpc_url_template.format(api_key=api_key)

    def nft_url(self, api_key: str) -> Optional[str]:
        if self.nft_url_template is None:
            return None
        return self.nft_url_template.format(api_key=api_key)


_ETH_LOGO = "https://cryptologos.cc/logos/ethereum-eth-logo.png"

CHAIN_REGISTRY: Dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        key="ethereum",
        chain_id=1,
        display_name="Ethereum Mainnet",
        native_symbol="ETH",
        native_name="Ethereum",
        native_logo=_ETH_LOGO,
        rpc_url_template="https://eth-mainnet.g.alchemy.com/v2/{api_key}",
        nft_url_template="https://eth-mainnet.g.alchemy.com/nft/v3/{api_key}",
        explorer_url="https://etherscan.io",
        trustwallet_slug="ethereum",
        coingecko_platform="ethereum",
        supports_floor_price=True,
    ),
    "base": ChainConfig(
        key="base",
        chain_id=8453,
        display_name="Base L2",
        native_symbol="ETH",
        native_name="Ethereum",
        native_logo=_ETH_LOGO,
        rpc_url_template="https://base-mainnet.g.alchemy.com/v2/{api_key}",
        nft_url_template="https://base-mainnet.g.alchemy.com/nft/v3/{api_key}",
        explorer_url="https://basescan.org",
        trustwallet_slug="base",
        coingecko_platform="base",
    ),
    "polygon": ChainConfig(
        key="polygon",
        chain_id=137,
        display_name="Polygon PoS",
        native_symbol="POL",
        native_name="Polygon",
        native_logo="https://cryptologos.cc/logos/polygon-matic-logo.png",
        rpc_url_template="https://polygon-mainnet.g.alchemy.com/v2/{api_key}",
        nft_url_template="https://polygon-mainnet.g.alchemy.com/nft/v3/{api_key}",
        explorer_url="https://polygonscan.com",
        trustwallet_slug="polygon",
        coingecko_platform="polygon-pos",
    ),
    "arbitrum": ChainConfig(
        key="arbitrum",
        chain_id=42161,
        display_name="Arbitrum One",
        native_symbol="ETH",
        native_name="Ethereum",
        native_logo=_ETH_LOGO,
        rpc_url_template="https://arb-mainnet.g.alchemy.com/v2/{api_key}",
        nft_url_template="https://arb-mainnet.g.alchemy.com/nft/v3/{api_key}",
        explorer_url="https://arbiscan.io",
        trustwallet_slug="arbitrum",
        coingecko_platform="arbitrum-one",
    ),
    "optimism": ChainConfig(
        key="optimism",
        chain_id=10,
        display_name="OP Mainnet",
        native_symbol="ETH",
        native_name="Ethereum",
        native_logo=_ETH_LOGO,
        rpc_url_template="https://opt-mainnet.g.alchemy.com/v2/{api_key}",
        nft_url_template="https://opt-mainnet.g.alchemy.com/nft/v3/{api_key}",
        explorer_url="https://optimistic.etherscan.io",
        trustwallet_slug="optimism",
        coingecko_platform="optimistic-ethereum",
    ),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # External API Keys
    alchemy_api_key: str = Field(default="", description="Alchemy API key")
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    etherscan_api_key: str = Field(default="", description="Etherscan API key")
    ethereum_rpc_url: str = Field(
        default="",
        description="Override RPC endpoint used for ENS resolution",
    )

    # Provider Toggles
    enable_alchemy: bool = Field(default=True, description="Enable Alchemy provider")
    enable_coingecko: bool = Field(default=True, description="Enable Coingecko provider")
    enable_dexscreener: bool = Field(default=True, description="Enable DexScreener pair lookups")
    enable_etherscan: bool = Field(default=True, description="Enable Etherscan activity lookups")

    enabled_chains: List[str] = Field(
        default_factory=lambda: ["ethereum", "base"],
        description="Chains queried for every portfolio request",
    )

    # Cache Settings
    portfolio_cache_ttl_seconds: int = Field(default=300, description="Portfolio response cache TTL")
    price_cache_ttl_seconds: int = Field(default=60, description="Price cache TTL")
    max_cache_size: int = Field(default=1000, description="Maximum entries per cache")

    # Timeouts (seconds)
    ens_timeout_seconds: float = Field(default=4.0, gt=0)
    native_balance_timeout_seconds: float = Field(default=3.0, gt=0)
    token_balances_timeout_seconds: float = Field(default=6.0, gt=0)
    token_metadata_timeout_seconds: float = Field(default=3.0, gt=0)
    chain_timeout_seconds: float = Field(default=12.0, gt=0, description="Budget for one chain fetch")
    nft_timeout_seconds: float = Field(default=10.0, gt=0)
    floor_price_timeout_seconds: float = Field(default=2.0, gt=0)
    floor_price_budget_seconds: float = Field(default=3.0, gt=0)
    activity_timeout_seconds: float = Field(default=5.0, gt=0)
    dex_quote_timeout_seconds: float = Field(default=3.0, gt=0)
    pricing_budget_seconds: float = Field(default=4.0, gt=0)
    major_price_timeout_seconds: float = Field(default=2.5, gt=0, description="Major price table fetch; capped below the pricing budget")

    # Fetch tuning
    metadata_concurrency: int = Field(default=8, ge=1, le=50)
    token_balance_max_pages: int = Field(default=3, ge=1)
    nft_page_size: int = Field(default=100, ge=1, le=100)
    nft_max_pages: int = Field(default=1, ge=1)
    activity_limit: int = Field(default=15, ge=1, le=100)

    # Thresholds
    native_dust_threshold: float = Field(default=1e-6, ge=0)
    token_dust_threshold: float = Field(default=1e-9, ge=0)
    min_display_value_usd: float = Field(default=0.01, ge=0)
    spam_strictness: Literal["lenient", "standard", "strict"] = Field(default="standard")
    nft_legit_item_threshold: int = Field(default=5, ge=1)

    # Pricing
    price_sources: List[str] = Field(
        default_factory=lambda: ["major", "stablecoin", "coingecko_contract", "dexscreener"],
        description="Ordered price sources; first source to price a token wins",
    )
    static_price_fallback: bool = Field(
        default=False,
        description="Use built-in reference prices when the market-data provider is down",
    )

    # Content gateways
    ipfs_gateway: str = Field(default="https://ipfs.io/ipfs/")
    arweave_gateway: str = Field(default="https://arweave.net/")

    @field_validator("enabled_chains")
    @classmethod
    def _known_chains(cls, value: List[str]) -> List[str]:
        normalized = [chain.strip().lower() for chain in value if chain and chain.strip()]
        unknown = [chain for chain in normalized if chain not in CHAIN_REGISTRY]
        if unknown:
            raise ValueError(f"Unknown chains: {', '.join(unknown)}")
        if not normalized:
            raise ValueError("At least one chain must be enabled")
        return normalized

    @field_validator("price_sources")
    @classmethod
    def _known_price_sources(cls, value: List[str]) -> List[str]:
        allowed = {"major", "stablecoin", "coingecko_contract", "dexscreener"}
        normalized = [source.strip().lower() for source in value if source.strip()]
        unknown = [source for source in normalized if source not in allowed]
        if unknown:
            raise ValueError(f"Unknown price sources: {', '.join(unknown)}")
        return normalized


_MATERIALITY_BY_STRICTNESS = {
    "lenient": 0.01,
    "standard": 1.0,
    "strict": 10.0,
}


@dataclass(frozen=True)
class PortfolioConfig:
    """Immutable snapshot of everything the aggregation pipeline needs.

    Built once at startup from :class:`Settings` and handed to every component.
    """

    chains: Tuple[ChainConfig, ...]
    portfolio_cache_ttl: int = 300
    price_cache_ttl: int = 60
    ens_timeout: float = 4.0
    native_balance_timeout: float = 3.0
    token_balances_timeout: float = 6.0
    token_metadata_timeout: float = 3.0
    chain_timeout: float = 12.0
    nft_timeout: float = 10.0
    floor_price_timeout: float = 2.0
    floor_price_budget: float = 3.0
    activity_timeout: float = 5.0
    dex_quote_timeout: float = 3.0
    pricing_budget: float = 4.0
    major_price_timeout: float = 2.5
    metadata_concurrency: int = 8
    token_balance_max_pages: int = 3
    nft_page_size: int = 100
    nft_max_pages: int = 1
    activity_limit: int = 15
    native_dust_threshold: float = 1e-6
    token_dust_threshold: float = 1e-9
    min_display_value_usd: float = 0.01
    spam_materiality_usd: float = 1.0
    nft_legit_item_threshold: int = 5
    price_sources: Tuple[str, ...] = ("major", "stablecoin", "coingecko_contract", "dexscreener")
    static_price_fallback: bool = False
    ipfs_gateway: str = "https://ipfs.io/ipfs/"
    arweave_gateway: str = "https://arweave.net/"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PortfolioConfig":
        return cls(
            chains=tuple(CHAIN_REGISTRY[key] for key in settings.enabled_chains),
            portfolio_cache_ttl=settings.portfolio_cache_ttl_seconds,
            price_cache_ttl=settings.price_cache_ttl_seconds,
            ens_timeout=settings.ens_timeout_seconds,
            native_balance_timeout=settings.native_balance_timeout_seconds,
            token_balances_timeout=settings.token_balances_timeout_seconds,
            token_metadata_timeout=settings.token_metadata_timeout_seconds,
            chain_timeout=settings.chain_timeout_seconds,
            nft_timeout=settings.nft_timeout_seconds,
            floor_price_timeout=settings.floor_price_timeout_seconds,
            floor_price_budget=settings.floor_price_budget_seconds,
            activity_timeout=settings.activity_timeout_seconds,
            dex_quote_timeout=settings.dex_quote_timeout_seconds,
            pricing_budget=settings.pricing_budget_seconds,
            major_price_timeout=settings.major_price_timeout_seconds,
            metadata_concurrency=settings.metadata_concurrency,
            token_balance_max_pages=settings.token_balance_max_pages,
            nft_page_size=settings.nft_page_size,
            nft_max_pages=settings.nft_max_pages,
            activity_limit=settings.activity_limit,
            native_dust_threshold=settings.native_dust_threshold,
            token_dust_threshold=settings.token_dust_threshold,
            min_display_value_usd=settings.min_display_value_usd,
            spam_materiality_usd=_MATERIALITY_BY_STRICTNESS[settings.spam_strictness],
            nft_legit_item_threshold=settings.nft_legit_item_threshold,
            price_sources=tuple(settings.price_sources),
            static_price_fallback=settings.static_price_fallback,
            ipfs_gateway=settings.ipfs_gateway,
            arweave_gateway=settings.arweave_gateway,
        )

    @property
    def primary_chain(self) -> ChainConfig:
        return self.chains[0]

    def chain(self, key: str) -> ChainConfig:
        for chain in self.chains:
            if chain.key == key:
                return chain
        return CHAIN_REGISTRY[key]

    def describe(self) -> Dict[str, Any]:
        return {
            "chains": [chain.key for chain in self.chains],
            "priceSources": list(self.price_sources),
            "spamMaterialityUsd": self.spam_materiality_usd,
        }


# Global settings instance
settings = Settings()
