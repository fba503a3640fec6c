"""
USD price resolution for fungible holdings.

Sources are tried in the configured order and the first one to price a token
wins. The whole pass runs under a wall-clock budget; whatever was priced when
the budget expires is kept. Tokens still unpriced after the pass get the
no-I/O sources (stablecoin peg, static reference table when enabled) and
everything else stays at price 0.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..cache import TTLCache
from ..config import ChainConfig, PortfolioConfig
from ..providers.base import DexPairProvider, MarketDataProvider
from ..types.portfolio import TokenHolding
from .degradation import with_timeout

logger = logging.getLogger(__name__)

# Symbol -> Coingecko coin id for native, wrapped-native and widely held assets
MAJOR_ASSET_IDS: Dict[str, str] = {
    # Native & major
    "ETH": "ethereum",
    "WETH": "ethereum",
    "WBTC": "wrapped-bitcoin",
    "CBBTC": "wrapped-bitcoin",
    "BTC": "bitcoin",
    "BNB": "binancecoin",
    "POL": "polygon-ecosystem-token",
    "MATIC": "matic-network",
    "STETH": "staked-ether",
    "WSTETH": "wrapped-steth",
    "RETH": "rocket-pool-eth",
    "CBETH": "coinbase-wrapped-staked-eth",
    # Stablecoins
    "USDT": "tether",
    "USDC": "usd-coin",
    "DAI": "dai",
    "BUSD": "binance-usd",
    "FRAX": "frax",
    "TUSD": "true-usd",
    "SUSD": "nusd",
    # DeFi
    "LINK": "chainlink",
    "UNI": "uniswap",
    "AAVE": "aave",
    "CRV": "curve-dao-token",
    "MKR": "maker",
    "COMP": "compound-governance-token",
    "SUSHI": "sushi",
    "GRT": "the-graph",
    "1INCH": "1inch",
    "YFI": "yearn-finance",
    "BAL": "balancer",
    "LDO": "lido-dao",
    "RPL": "rocket-pool",
    "FXS": "frax-share",
    "CVX": "convex-finance",
    "SNX": "havven",
    "ENS": "ethereum-name-service",
    # Layer 2
    "ARB": "arbitrum",
    "OP": "optimism",
    # Gaming & metaverse
    "APE": "apecoin",
    "SAND": "the-sandbox",
    "MANA": "decentraland",
    "AXS": "axie-infinity",
    "IMX": "immutable-x",
    "GALA": "gala",
    "ENJ": "enjincoin",
    "RNDR": "render-token",
    # Meme
    "SHIB": "shiba-inu",
    "PEPE": "pepe",
    "FLOKI": "floki",
    "BONE": "bone-shibaswap",
    "ELON": "dogelon-mars",
    # Other
    "WLD": "worldcoin-wld",
    "BLUR": "blur",
    "CAKE": "pancakeswap-token",
}

STABLECOINS = frozenset({
    "USDT", "USDC", "USDC.E", "USDBC", "DAI", "BUSD", "FRAX", "TUSD", "SUSD",
    "LUSD", "GUSD", "USDP", "PYUSD", "USDE", "GHO", "CRVUSD", "USDS",
})

# Reference prices used only when static_price_fallback is enabled and the
# market-data provider cannot be reached.
FALLBACK_PRICES: Dict[str, float] = {
    "ETH": 2000.0,
    "WETH": 2000.0,
    "WBTC": 45000.0,
    "USDC": 1.0,
    "USDT": 1.0,
    "DAI": 1.0,
    "LINK": 10.0,
    "UNI": 5.0,
}

MAJOR_CACHE_KEY = "prices:major"

Quote = Tuple[float, str]
SourceHandler = Callable[[Sequence[TokenHolding], List[int], Dict[int, Quote]], Awaitable[None]]


def token_cache_key(token: TokenHolding) -> str:
    return f"price:{token.chain}:{(token.contract_address or 'native').lower()}"


class PriceResolver:
    def __init__(
        self,
        market: MarketDataProvider,
        dex: DexPairProvider,
        cache: TTLCache,
        config: PortfolioConfig,
    ):
        self.market = market
        self.dex = dex
        self.cache = cache
        self.config = config
        self._handlers: Dict[str, SourceHandler] = {
            "major": self._price_from_major_table,
            "stablecoin": self._price_stablecoins,
            "coingecko_contract": self._price_from_contract_lookup,
            "dexscreener": self._price_from_dex_pairs,
        }

    async def major_prices(self) -> Dict[str, float]:
        """Symbol -> USD for the major-asset table, shared across requests."""

        cached = await self.cache.get(MAJOR_CACHE_KEY)
        if cached is not None:
            return cached

        ids = sorted(set(MAJOR_ASSET_IDS.values()))
        result = await with_timeout(
            self.market.get_simple_prices(ids),
            self._major_timeout(),
            {},
            source="prices:major",
        )
        by_id = result.value or {}
        prices = {
            symbol: by_id[coin_id]
            for symbol, coin_id in MAJOR_ASSET_IDS.items()
            if coin_id in by_id
        }

        if prices:
            logger.info("Loaded major prices for %d symbols", len(prices))
            await self.cache.set(MAJOR_CACHE_KEY, prices, ttl=self.config.price_cache_ttl)
            return prices

        logger.warning("Major price table unavailable: %s", result.reason or "empty response")
        if self.config.static_price_fallback:
            return dict(FALLBACK_PRICES)
        return {}

    def _major_timeout(self) -> float:
        # Must expire before the pricing budget so the fallback table is reachable
        return min(self.config.major_price_timeout, self.config.pricing_budget / 2)

    async def native_usd_price(self, chain: ChainConfig) -> Optional[float]:
        prices = await self.major_prices()
        return prices.get(chain.native_symbol.upper())

    async def resolve(self, tokens: Sequence[TokenHolding], budget: Optional[float] = None) -> List[TokenHolding]:
        """Return priced copies of ``tokens`` in the same order.

        The input holdings are never mutated.
        """

        if not tokens:
            return []

        budget = self.config.pricing_budget if budget is None else budget
        quotes: Dict[int, Quote] = {}

        try:
            await asyncio.wait_for(self._price_all(tokens, quotes), timeout=budget)
        except asyncio.TimeoutError:
            logger.warning(
                "Pricing budget of %.1fs exhausted; %d/%d tokens priced",
                budget,
                len(quotes),
                len(tokens),
            )

        self._price_offline(tokens, quotes)

        priced: List[TokenHolding] = []
        for index, token in enumerate(tokens):
            quote = quotes.get(index)
            if quote is None:
                priced.append(token.model_copy(update={"price": 0.0, "usd_value": 0.0, "priced": False, "price_source": None}))
            else:
                priced.append(token.with_price(*quote))
        return priced

    async def _price_all(self, tokens: Sequence[TokenHolding], quotes: Dict[int, Quote]) -> None:
        remaining = list(range(len(tokens)))
        for source in self.config.price_sources:
            if not remaining:
                break
            await self._handlers[source](tokens, remaining, quotes)
            remaining = [index for index in remaining if index not in quotes]

    async def _price_from_major_table(self, tokens: Sequence[TokenHolding], remaining: List[int], quotes: Dict[int, Quote]) -> None:
        prices = await self.major_prices()
        for index in remaining:
            price = prices.get(tokens[index].symbol.upper())
            if price:
                quotes[index] = (price, "major")

    async def _price_stablecoins(self, tokens: Sequence[TokenHolding], remaining: List[int], quotes: Dict[int, Quote]) -> None:
        for index in remaining:
            if tokens[index].symbol.upper() in STABLECOINS:
                quotes[index] = (1.0, "stablecoin")

    def _price_offline(self, tokens: Sequence[TokenHolding], quotes: Dict[int, Quote]) -> None:
        """Fill gaps left by a slow or unreachable market with sources that need no I/O."""

        for index, token in enumerate(tokens):
            if index in quotes:
                continue
            symbol = token.symbol.upper()
            if "stablecoin" in self.config.price_sources and symbol in STABLECOINS:
                quotes[index] = (1.0, "stablecoin")
            elif self.config.static_price_fallback and symbol in FALLBACK_PRICES:
                quotes[index] = (FALLBACK_PRICES[symbol], "fallback")

    async def _cached_quotes(self, tokens: Sequence[TokenHolding], indices: List[int], quotes: Dict[int, Quote]) -> List[int]:
        """Fill quotes from the per-token cache; return indices still unpriced."""

        missing: List[int] = []
        for index in indices:
            cached = await self.cache.get(token_cache_key(tokens[index]))
            if cached is not None:
                quotes[index] = tuple(cached)  # type: ignore[assignment]
            else:
                missing.append(index)
        return missing

    async def _price_from_contract_lookup(self, tokens: Sequence[TokenHolding], remaining: List[int], quotes: Dict[int, Quote]) -> None:
        candidates = [index for index in remaining if tokens[index].contract_address]
        missing = await self._cached_quotes(tokens, candidates, quotes)

        by_chain: Dict[str, List[int]] = defaultdict(list)
        for index in missing:
            by_chain[tokens[index].chain].append(index)

        async def _lookup(chain_key: str, indices: List[int]) -> None:
            platform = self.config.chain(chain_key).coingecko_platform
            if not platform:
                return
            addresses = sorted({tokens[index].contract_address for index in indices if tokens[index].contract_address})
            result = await with_timeout(
                self.market.get_token_prices(platform, addresses),
                self.config.dex_quote_timeout,
                {},
                source=f"prices:coingecko:{chain_key}",
            )
            for index in indices:
                price = (result.value or {}).get((tokens[index].contract_address or "").lower())
                if price:
                    quotes[index] = (price, "coingecko")
                    await self.cache.set(token_cache_key(tokens[index]), quotes[index], ttl=self.config.price_cache_ttl)

        await asyncio.gather(*(_lookup(chain_key, indices) for chain_key, indices in by_chain.items()))

    async def _price_from_dex_pairs(self, tokens: Sequence[TokenHolding], remaining: List[int], quotes: Dict[int, Quote]) -> None:
        candidates = [index for index in remaining if tokens[index].contract_address]
        missing = await self._cached_quotes(tokens, candidates, quotes)
        semaphore = asyncio.Semaphore(self.config.metadata_concurrency)

        async def _lookup(index: int) -> None:
            token = tokens[index]
            async with semaphore:
                result = await with_timeout(
                    self.dex.get_pairs(token.contract_address or ""),
                    self.config.dex_quote_timeout,
                    [],
                    source=f"prices:dexscreener:{token.chain}",
                )
            price = best_pair_price(result.value or [], token)
            if price:
                quotes[index] = (price, "dexscreener")
                await self.cache.set(token_cache_key(token), quotes[index], ttl=self.config.price_cache_ttl)

        await asyncio.gather(*(_lookup(index) for index in missing))


def best_pair_price(pairs, token: TokenHolding) -> Optional[float]:
    """Price from the deepest pair on the token's chain where it is the base asset."""

    contract = (token.contract_address or "").lower()
    eligible = [
        pair for pair in pairs
        if pair.chain_id == token.chain
        and pair.price_usd
        and (pair.base_token_address is None or pair.base_token_address == contract)
    ]
    if not eligible:
        return None
    best = max(eligible, key=lambda pair: pair.liquidity_usd)
    return best.price_usd


__all__ = [
    "FALLBACK_PRICES",
    "MAJOR_ASSET_IDS",
    "STABLECOINS",
    "PriceResolver",
    "best_pair_price",
]
