"""
Spam heuristics for airdropped tokens and NFT collections.

Hiding a real asset is worse than showing a spam one, so the allow-lists and
the value escape hatch are consulted before any pattern rule.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Pattern, Tuple

from ..types.portfolio import NFTCollection, TokenHolding

KNOWN_TOKEN_SYMBOLS: FrozenSet[str] = frozenset({
    # Native & major
    "ETH", "WETH", "POL", "MATIC", "WBTC", "BTC", "CBBTC", "TBTC", "BNB",
    # Stablecoins
    "USDT", "USDC", "USDC.E", "USDBC", "DAI", "BUSD", "FRAX", "TUSD", "SUSD",
    "LUSD", "GUSD", "USDP", "PYUSD", "USDE", "GHO", "CRVUSD", "EURC",
    # Liquid staking
    "STETH", "WSTETH", "RETH", "CBETH", "WEETH", "EZETH", "SFRXETH",
    # DeFi
    "LINK", "UNI", "AAVE", "CRV", "MKR", "COMP", "SUSHI", "GRT", "1INCH",
    "YFI", "BAL", "LDO", "RPL", "FXS", "CVX", "SNX", "ENS", "AERO",
    # L2 / chain tokens
    "ARB", "OP",
    # Gaming & metaverse
    "APE", "SAND", "MANA", "AXS", "IMX", "GALA", "ENJ", "RNDR",
    # Meme
    "SHIB", "PEPE", "FLOKI", "BONE", "DOGE", "ELON", "DEGEN", "BRETT",
    # Other
    "WLD", "BLUR", "CAKE",
})

KNOWN_NFT_COLLECTIONS: FrozenSet[str] = frozenset({
    "cryptopunks",
    "bored ape yacht club",
    "boredapeyachtclub",
    "mutant ape yacht club",
    "mutantapeyachtclub",
    "azuki",
    "pudgy penguins",
    "pudgypenguins",
    "doodles",
    "moonbirds",
    "clonex",
    "nouns",
    "milady",
    "art blocks",
    "art blocks curated",
    "autoglyphs",
    "chromie squiggle",
    "ens: ethereum name service",
    "ethereum name service",
    "namewrapper",
    "uniswap v3 positions",
    "basenames",
})

_URL_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"https?://", re.IGNORECASE),
    re.compile(r"\bwww\.", re.IGNORECASE),
    re.compile(r"\.(?:com|io|net|org|xyz|app|site|top|club|live|gift|vip|lol|claim)\b", re.IGNORECASE),
    re.compile(r"\bt\.me/", re.IGNORECASE),
)

_PROMO_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b(?:visit|claim|claimable|redeem|airdrops?|rewards?|bonus|gift|voucher)\b", re.IGNORECASE),
    re.compile(r"\bfree\b", re.IGNORECASE),
    re.compile(r"\$\s?\d", re.IGNORECASE),
    re.compile(r"\bget\s+\d", re.IGNORECASE),
)

_RAW_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

MAX_NAME_LENGTH = 50
MAX_SYMBOL_LENGTH = 20


def _matches_any(text: str, patterns: Tuple[Pattern[str], ...]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def has_promotional_text(text: str) -> bool:
    if not text:
        return False
    return _matches_any(text, _URL_PATTERNS) or _matches_any(text, _PROMO_PATTERNS)


class SpamClassifier:
    """Pure, deterministic spam rules; no I/O."""

    def __init__(self, materiality_usd: float = 1.0, nft_legit_item_threshold: int = 5):
        self.materiality_usd = materiality_usd
        self.nft_legit_item_threshold = nft_legit_item_threshold

    def is_spam_token(self, token: TokenHolding) -> bool:
        """Classify a holding.

        The value escape only helps holdings that already carry a price; the
        portfolio pipeline filters before pricing, so freshly fetched tokens
        rely on the allow-list and native checks instead.
        """

        if token.is_native or token.symbol.upper() in KNOWN_TOKEN_SYMBOLS:
            return False

        if token.usd_value > self.materiality_usd:
            return False

        name = token.name or ""
        symbol = token.symbol or ""
        if has_promotional_text(name) or has_promotional_text(symbol):
            return True
        if _RAW_ADDRESS_RE.fullmatch(name.strip()) or _RAW_ADDRESS_RE.fullmatch(symbol.strip()):
            return True
        if len(name) > MAX_NAME_LENGTH or len(symbol) > MAX_SYMBOL_LENGTH:
            return True

        return False

    def is_spam_nft_collection(self, collection: NFTCollection) -> bool:
        if collection.floor_price > 0:
            return False
        if collection.item_count >= self.nft_legit_item_threshold:
            return False
        if collection.name.strip().lower() in KNOWN_NFT_COLLECTIONS:
            return False

        return has_promotional_text(collection.name)


__all__ = [
    "KNOWN_NFT_COLLECTIONS",
    "KNOWN_TOKEN_SYMBOLS",
    "SpamClassifier",
    "has_promotional_text",
]
