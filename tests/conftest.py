from typing import Any, Dict, Optional

import pytest

from wallet_api.cache import TTLCache
from wallet_api.config import PortfolioConfig
from wallet_api.services.activity import ActivityFetcher
from wallet_api.services.address import AddressResolver
from wallet_api.services.nfts import NFTFetcher
from wallet_api.services.portfolio import PortfolioService
from wallet_api.services.pricing import PriceResolver
from wallet_api.services.spam import SpamClassifier
from wallet_api.services.tokens import ChainTokenFetcher
from wallet_api.types.providers import TokenMetadata

from fakes import (
    USDC,
    WETH,
    FakeBalanceProvider,
    FakeDex,
    FakeExplorer,
    FakeMarket,
    FakeNameResolver,
    FakeNFTProvider,
    make_config,
)


@pytest.fixture
def config() -> PortfolioConfig:
    return make_config()


@pytest.fixture
def eth_metadata() -> Dict[str, Any]:
    return {
        USDC: TokenMetadata(symbol="USDC", name="USD Coin", decimals=6),
        WETH: TokenMetadata(symbol="WETH", name="Wrapped Ether", decimals=18),
    }


@pytest.fixture
def market() -> FakeMarket:
    return FakeMarket(prices={"ethereum": 2000.0, "usd-coin": 1.0})


@pytest.fixture
def build_service(market):
    """Assemble a PortfolioService over fake providers.

    Returns a factory so each test can swap in the providers it needs.
    """

    def _build(
        *,
        config: Optional[PortfolioConfig] = None,
        resolver: Optional[FakeNameResolver] = None,
        balances: Optional[Dict[str, FakeBalanceProvider]] = None,
        nfts: Optional[Dict[str, FakeNFTProvider]] = None,
        explorer: Optional[FakeExplorer] = None,
        market_provider: Optional[FakeMarket] = None,
        dex: Optional[FakeDex] = None,
    ) -> PortfolioService:
        config = config or make_config()
        resolver = resolver or FakeNameResolver()
        balances = balances or {}
        price_cache = TTLCache(default_ttl=config.price_cache_ttl, name="prices")
        pricing = PriceResolver(market_provider or market, dex or FakeDex(), price_cache, config)

        token_fetchers = [
            ChainTokenFetcher(chain, balances.get(chain.key) or FakeBalanceProvider(), config)
            for chain in config.chains
        ]
        return PortfolioService(
            config=config,
            resolver=AddressResolver(resolver, timeout=config.ens_timeout),
            token_fetchers=token_fetchers,
            nft_fetcher=NFTFetcher(nfts or {}, pricing, config),
            activity_fetcher=ActivityFetcher(explorer or FakeExplorer(), config.primary_chain, config),
            pricing=pricing,
            spam=SpamClassifier(config.spam_materiality_usd, config.nft_legit_item_threshold),
            cache=TTLCache(default_ttl=config.portfolio_cache_ttl, name="portfolio"),
            providers={"ens": resolver},
        )

    return _build
