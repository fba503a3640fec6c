"""Per-chain fungible balance fetching."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional

from web3 import Web3

from ..config import ChainConfig, PortfolioConfig
from ..providers.base import BalanceProvider
from ..types.portfolio import TokenHolding
from ..types.providers import TokenBalanceEntry, TokenMetadata
from .degradation import SourceResult, SourceStatus, with_timeout
from .formatting import format_token_balance, scale_units

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18
DEFAULT_TOKEN_DECIMALS = 18
TRUSTWALLET_LOGO_URL = "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains/{slug}/assets/{address}/logo.png"


def trustwallet_logo(chain: ChainConfig, contract_address: str) -> str:
    try:
        checksummed = Web3.to_checksum_address(contract_address)
    except ValueError:
        checksummed = contract_address
    return TRUSTWALLET_LOGO_URL.format(slug=chain.trustwallet_slug, address=checksummed)


class ChainTokenFetcher:
    """Native and ERC-20 holdings for one chain.

    Never raises: sub-call failures shrink the result and are reported through
    the returned :class:`SourceResult` status.
    """

    def __init__(self, chain: ChainConfig, provider: BalanceProvider, config: PortfolioConfig):
        self.chain = chain
        self.provider = provider
        self.config = config

    @property
    def source_name(self) -> str:
        return f"tokens:{self.chain.key}"

    async def fetch(self, address: str) -> SourceResult[List[TokenHolding]]:
        native_result, balances_result = await asyncio.gather(
            with_timeout(
                self.provider.get_native_balance(address),
                self.config.native_balance_timeout,
                None,
                source=f"native:{self.chain.key}",
            ),
            with_timeout(
                self.provider.get_token_balances(address),
                self.config.token_balances_timeout,
                [],
                source=f"balances:{self.chain.key}",
            ),
        )

        holdings: List[TokenHolding] = []
        native = self._native_holding(native_result.value)
        if native is not None:
            holdings.append(native)

        entries: List[TokenBalanceEntry] = balances_result.value or []
        if entries:
            logger.info("Found %d token balances on %s", len(entries), self.chain.key)
            holdings.extend(await self._with_metadata(entries))

        return self._outcome(holdings, native_result, balances_result)

    def _native_holding(self, wei: Optional[int]) -> Optional[TokenHolding]:
        if wei is None:
            return None
        balance = scale_units(wei, NATIVE_DECIMALS)
        if balance < Decimal(str(self.config.native_dust_threshold)):
            return None
        return TokenHolding(
            chain=self.chain.key,
            contract_address=None,
            symbol=self.chain.native_symbol,
            name=self.chain.native_name,
            decimals=NATIVE_DECIMALS,
            raw_balance=str(wei),
            balance=balance,
            display_balance=format_token_balance(balance),
            is_native=True,
            logo=self.chain.native_logo,
        )

    async def _with_metadata(self, entries: List[TokenBalanceEntry]) -> List[TokenHolding]:
        semaphore = asyncio.Semaphore(self.config.metadata_concurrency)

        async def _lookup(entry: TokenBalanceEntry) -> SourceResult[Optional[TokenMetadata]]:
            async with semaphore:
                return await with_timeout(
                    self.provider.get_token_metadata(entry.contract_address),
                    self.config.token_metadata_timeout,
                    None,
                    source=f"metadata:{self.chain.key}",
                )

        results = await asyncio.gather(*(_lookup(entry) for entry in entries))

        holdings: List[TokenHolding] = []
        dropped = 0
        for entry, result in zip(entries, results):
            holding = self._token_holding(entry, result.value)
            if holding is None:
                dropped += 1
                continue
            holdings.append(holding)

        if dropped:
            logger.debug("Dropped %d tokens without usable metadata or balance on %s", dropped, self.chain.key)
        return holdings

    def _token_holding(self, entry: TokenBalanceEntry, metadata: Optional[TokenMetadata]) -> Optional[TokenHolding]:
        if metadata is None or not metadata.symbol:
            return None

        decimals = metadata.decimals if metadata.decimals is not None else DEFAULT_TOKEN_DECIMALS
        balance = scale_units(entry.raw_balance, decimals)
        if balance < Decimal(str(self.config.token_dust_threshold)):
            return None

        return TokenHolding(
            chain=self.chain.key,
            contract_address=entry.contract_address.lower(),
            symbol=metadata.symbol,
            name=metadata.name or metadata.symbol,
            decimals=decimals,
            raw_balance=str(entry.raw_balance),
            balance=balance,
            display_balance=format_token_balance(balance),
            is_native=False,
            logo=metadata.logo or trustwallet_logo(self.chain, entry.contract_address),
        )

    def _outcome(
        self,
        holdings: List[TokenHolding],
        native_result: SourceResult,
        balances_result: SourceResult,
    ) -> SourceResult[List[TokenHolding]]:
        if native_result.ok and balances_result.ok:
            return SourceResult.success(holdings)

        failures = [
            f"{label}: {result.reason}"
            for label, result in (("native", native_result), ("tokens", balances_result))
            if result.degraded
        ]
        reason = "; ".join(failures)

        if native_result.degraded and balances_result.degraded:
            if native_result.status is SourceStatus.DISABLED and balances_result.status is SourceStatus.DISABLED:
                return SourceResult.failed(holdings, SourceStatus.DISABLED, reason)
            return SourceResult.failed(holdings, balances_result.status, reason)
        return SourceResult.failed(holdings, SourceStatus.PARTIAL, reason)


__all__ = ["ChainTokenFetcher", "trustwallet_logo"]
