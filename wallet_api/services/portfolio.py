"""
Portfolio aggregation orchestrator.

One request moves through RESOLVING -> FETCHING -> FILTERING -> PRICING -> DONE.
Only resolution can fail the request; every fetch after it degrades to an
empty result for that source and is reported in ``PortfolioResult.sources``.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..cache import TTLCache, portfolio_cache, price_cache
from ..config import PortfolioConfig, settings
from ..errors import AddressError
from ..providers.alchemy import AlchemyProvider
from ..providers.base import Provider
from ..providers.coingecko import CoingeckoProvider
from ..providers.dexscreener import DexScreenerProvider
from ..providers.ens import EnsProvider
from ..providers.etherscan import EtherscanProvider
from ..types.portfolio import NFTCollection, PortfolioResult, TokenHolding
from .activity import ActivityFetcher
from .address import AddressResolver, cache_key_for
from .degradation import SourceResult, SourceStatus, run_source
from .nfts import NFTFetcher
from .pricing import PriceResolver
from .spam import SpamClassifier
from .tokens import ChainTokenFetcher

logger = structlog.stdlib.get_logger(__name__)


class RequestStage(str, Enum):
    RESOLVING = "resolving"
    FETCHING = "fetching"
    FILTERING = "filtering"
    PRICING = "pricing"
    DONE = "done"
    ERROR = "error"


def token_sort_key(token: TokenHolding) -> Tuple[float, Decimal, str, str, str]:
    return (-token.usd_value, -token.balance, token.chain, token.symbol, token.contract_address or "")


class PortfolioService:
    def __init__(
        self,
        config: PortfolioConfig,
        resolver: AddressResolver,
        token_fetchers: Sequence[ChainTokenFetcher],
        nft_fetcher: NFTFetcher,
        activity_fetcher: ActivityFetcher,
        pricing: PriceResolver,
        spam: SpamClassifier,
        cache: TTLCache,
        providers: Optional[Dict[str, Provider]] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.token_fetchers = list(token_fetchers)
        self.nft_fetcher = nft_fetcher
        self.activity_fetcher = activity_fetcher
        self.pricing = pricing
        self.spam = spam
        self.cache = cache
        self.providers = providers or {}

    @classmethod
    def from_config(cls, config: PortfolioConfig) -> "PortfolioService":
        """Wire the production providers for every enabled chain."""

        alchemy = {
            chain.key: AlchemyProvider(
                chain,
                page_size=config.nft_page_size,
                max_pages=config.nft_max_pages,
                token_max_pages=config.token_balance_max_pages,
            )
            for chain in config.chains
        }
        ens = EnsProvider()
        coingecko = CoingeckoProvider()
        dexscreener = DexScreenerProvider()
        etherscan = EtherscanProvider(chain_id=config.primary_chain.chain_id)

        pricing = PriceResolver(coingecko, dexscreener, price_cache, config)
        providers: Dict[str, Provider] = {
            "ens": ens,
            "coingecko": coingecko,
            "dexscreener": dexscreener,
            "etherscan": etherscan,
        }
        providers.update({f"alchemy:{key}": provider for key, provider in alchemy.items()})

        return cls(
            config=config,
            resolver=AddressResolver(ens, timeout=config.ens_timeout),
            token_fetchers=[ChainTokenFetcher(chain, alchemy[chain.key], config) for chain in config.chains],
            nft_fetcher=NFTFetcher(alchemy, pricing, config),
            activity_fetcher=ActivityFetcher(etherscan, config.primary_chain, config),
            pricing=pricing,
            spam=SpamClassifier(config.spam_materiality_usd, config.nft_legit_item_threshold),
            cache=portfolio_cache,
            providers=providers,
        )

    async def get_portfolio(self, value: str) -> PortfolioResult:
        result, _ = await self.lookup(value)
        return result

    async def lookup(self, value: str) -> Tuple[PortfolioResult, bool]:
        """Return the portfolio for an address or name and whether it came from cache."""

        started = time.perf_counter()
        key = cache_key_for(value)

        cached: Optional[PortfolioResult] = await self.cache.get(key)
        if cached is not None:
            logger.info("portfolio_cache_hit", key=key)
            return cached.model_copy(update={"response_time": _elapsed_ms(started)}), True

        stage = RequestStage.RESOLVING
        try:
            resolved = await self.resolver.resolve(value)
        except AddressError as exc:
            logger.warning("portfolio_failed", stage=RequestStage.ERROR.value, failed_stage=stage.value, reason=exc.message, input=value)
            raise

        address = resolved.address
        stage = RequestStage.FETCHING
        logger.debug("portfolio_stage", stage=stage.value, address=address)

        token_results, nft_result, activity_result = await self._fetch_all(address)

        sources: Dict[str, SourceStatus] = {}
        for name, outcome in self._named_results(token_results, nft_result, activity_result):
            sources[name] = outcome.status
            if outcome.degraded:
                logger.warning("source_degraded", source=name, status=outcome.status.value, reason=outcome.reason, address=address)

        stage = RequestStage.FILTERING
        logger.debug("portfolio_stage", stage=stage.value, address=address)
        fetched_tokens = [token for outcome in token_results for token in outcome.value]
        tokens = [token for token in fetched_tokens if not self.spam.is_spam_token(token)]
        collections = [c for c in nft_result.value if not self.spam.is_spam_nft_collection(c)]

        stage = RequestStage.PRICING
        logger.debug("portfolio_stage", stage=stage.value, address=address, tokens=len(tokens))
        priced = await self.pricing.resolve(tokens, budget=self.config.pricing_budget)

        result = self._build_result(
            address=address,
            ens_name=resolved.ens_name,
            tokens=priced,
            collections=collections,
            activity_result=activity_result,
            sources=sources,
            started=started,
        )
        await self.cache.set(key, result, ttl=self.config.portfolio_cache_ttl)

        stage = RequestStage.DONE
        logger.info(
            "portfolio_built",
            stage=stage.value,
            address=address,
            tokens=result.token_count,
            spam_tokens=len(fetched_tokens) - len(tokens),
            collections=len(result.nfts),
            total_value=round(result.total_value, 2),
            response_time_ms=result.response_time,
        )
        return result, False

    async def _fetch_all(self, address: str):
        token_tasks = [
            run_source(fetcher.fetch(address), self.config.chain_timeout, [], source=fetcher.source_name)
            for fetcher in self.token_fetchers
        ]
        nft_task = run_source(
            self.nft_fetcher.fetch(address),
            self.config.nft_timeout + self.config.floor_price_budget,
            [],
            source="nfts",
        )
        activity_task = run_source(
            self.activity_fetcher.fetch(address),
            self.config.activity_timeout,
            [],
            source="activity",
        )

        *token_results, nft_result, activity_result = await asyncio.gather(*token_tasks, nft_task, activity_task)
        return token_results, nft_result, activity_result

    def _named_results(self, token_results, nft_result, activity_result):
        for fetcher, outcome in zip(self.token_fetchers, token_results):
            yield fetcher.source_name, outcome
        yield "nfts", nft_result
        yield "activity", activity_result

    def _is_significant(self, token: TokenHolding) -> bool:
        return (
            token.balance > Decimal(str(self.config.native_dust_threshold))
            or token.usd_value > self.config.min_display_value_usd
        )

    def _build_result(
        self,
        *,
        address: str,
        ens_name: Optional[str],
        tokens: List[TokenHolding],
        collections: List[NFTCollection],
        activity_result: SourceResult,
        sources: Dict[str, SourceStatus],
        started: float,
    ) -> PortfolioResult:
        significant = sorted((t for t in tokens if self._is_significant(t)), key=token_sort_key)

        tokens_by_chain: Dict[str, List[TokenHolding]] = {chain.key: [] for chain in self.config.chains}
        for token in significant:
            tokens_by_chain.setdefault(token.chain, []).append(token)

        return PortfolioResult(
            address=address,
            ens_name=ens_name,
            total_value=sum(token.usd_value for token in significant),
            tokens=significant,
            tokens_by_chain=tokens_by_chain,
            nfts=collections,
            activity=activity_result.value,
            token_count=len(significant),
            nft_count=sum(collection.item_count for collection in collections),
            unpriced_count=sum(1 for token in significant if not token.priced),
            chains_with_balance=[key for key, held in tokens_by_chain.items() if held],
            sources=sources,
            fetched_at=datetime.now(timezone.utc),
            response_time=_elapsed_ms(started),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


_default_service: Optional[PortfolioService] = None


def get_portfolio_service() -> PortfolioService:
    global _default_service
    if _default_service is None:
        _default_service = PortfolioService.from_config(PortfolioConfig.from_settings(settings))
    return _default_service


__all__ = ["PortfolioService", "RequestStage", "get_portfolio_service", "token_sort_key"]
