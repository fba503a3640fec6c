"""Recent wallet transactions from the block explorer."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from ..config import ChainConfig, PortfolioConfig
from ..providers.base import ExplorerProvider
from ..types.portfolio import ActivityRecord
from ..types.providers import ExplorerTransaction
from .degradation import SourceResult, with_timeout
from .formatting import scale_units


def _native_value(raw: str, decimals: int = 18) -> Decimal:
    try:
        return scale_units(int(raw or "0"), decimals)
    except (ValueError, InvalidOperation):
        return Decimal("0")


def to_activity_record(tx: ExplorerTransaction, chain: ChainConfig) -> ActivityRecord:
    return ActivityRecord(
        hash=tx.hash,
        from_address=tx.from_address,
        to_address=tx.to_address or None,
        value=_native_value(tx.value),
        timestamp=datetime.fromtimestamp(tx.time_stamp, tz=timezone.utc),
        method=tx.method_label,
        status=tx.status,
        chain=chain.key,
    )


class ActivityFetcher:
    """Always optional: any failure yields an empty list."""

    def __init__(self, provider: Optional[ExplorerProvider], chain: ChainConfig, config: PortfolioConfig):
        self.provider = provider
        self.chain = chain
        self.config = config

    async def fetch(self, address: str) -> SourceResult[List[ActivityRecord]]:
        if self.provider is None:
            return SourceResult.success([])

        limit = self.config.activity_limit
        result = await with_timeout(
            self.provider.get_transactions(address, limit),
            self.config.activity_timeout,
            [],
            source="activity",
        )
        records = [to_activity_record(tx, self.chain) for tx in (result.value or [])[:limit]]
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return SourceResult(value=records, status=result.status, reason=result.reason)


__all__ = ["ActivityFetcher", "to_activity_record"]
