"""NFT holdings grouped into collections, with best-effort floor prices."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Tuple

from ..config import ChainConfig, PortfolioConfig
from ..providers.base import NFTProvider
from ..types.portfolio import NFTCollection, NFTItem
from ..types.providers import FloorPriceQuote, OwnedNft
from .degradation import SourceResult, SourceStatus, with_timeout
from .formatting import gateway_uri
from .pricing import PriceResolver

logger = logging.getLogger(__name__)

USD_CURRENCIES = frozenset({"USD", "USDC", "USDT"})


def collection_sort_key(collection: NFTCollection) -> Tuple[int, float]:
    """Priced collections first by total value, then the rest by size."""

    if collection.floor_price > 0:
        return (0, -collection.total_value)
    return (1, -float(collection.item_count))


class NFTFetcher:
    def __init__(
        self,
        providers: Mapping[str, NFTProvider],
        pricing: PriceResolver,
        config: PortfolioConfig,
    ):
        self.providers = providers
        self.pricing = pricing
        self.config = config

    def _chains(self) -> List[ChainConfig]:
        return [chain for chain in self.config.chains if chain.supports_nfts and chain.key in self.providers]

    async def fetch(self, address: str) -> SourceResult[List[NFTCollection]]:
        chains = self._chains()
        if not chains:
            return SourceResult.success([])

        results = await asyncio.gather(*(
            with_timeout(
                self.providers[chain.key].get_owned_nfts(address),
                self.config.nft_timeout,
                [],
                source=f"nfts:{chain.key}",
            )
            for chain in chains
        ))

        collections: List[NFTCollection] = []
        for chain, result in zip(chains, results):
            collections.extend(self._group(chain, result.value or []))

        if collections:
            collections = await self._with_floor_prices(collections)
        collections.sort(key=collection_sort_key)

        logger.info("Found %d NFT collections", len(collections))
        return self._outcome(collections, chains, results)

    def _group(self, chain: ChainConfig, owned: List[OwnedNft]) -> List[NFTCollection]:
        grouped: Dict[str, NFTCollection] = {}
        for nft in owned:
            contract = nft.contract.address.lower()
            collection = grouped.get(contract)
            if collection is None:
                collection = NFTCollection(
                    contract_address=contract,
                    name=nft.contract.display_name or "Unknown Collection",
                    symbol=nft.contract.symbol,
                    chain=chain.key,
                )
                grouped[contract] = collection
            collection.items.append(self._item(nft, collection))
        return list(grouped.values())

    def _item(self, nft: OwnedNft, collection: NFTCollection) -> NFTItem:
        image = None
        for candidate in nft.image_candidates():
            if isinstance(candidate, str):
                image = gateway_uri(candidate, self.config.ipfs_gateway, self.config.arweave_gateway)
                if image:
                    break

        metadata = nft.raw_metadata
        name = nft.name or metadata.get("name") or f"{collection.symbol or collection.name} #{nft.token_id}"
        attributes = metadata.get("attributes")

        return NFTItem(
            token_id=nft.token_id,
            name=str(name),
            image=image,
            description=nft.description or metadata.get("description"),
            has_image=bool(image),
            token_type=nft.token_type or nft.contract.token_type,
            balance=nft.balance,
            attributes=[attr for attr in attributes if isinstance(attr, dict)] if isinstance(attributes, list) else [],
        )

    async def _with_floor_prices(self, collections: List[NFTCollection]) -> List[NFTCollection]:
        """Floor lookups race a shared budget; unfinished ones keep floor 0."""

        lookups: Dict[asyncio.Task, int] = {}
        for index, collection in enumerate(collections):
            chain = self.config.chain(collection.chain)
            if not chain.supports_floor_price:
                continue
            task = asyncio.create_task(with_timeout(
                self.providers[chain.key].get_floor_price(collection.contract_address),
                self.config.floor_price_timeout,
                None,
                source=f"floor:{chain.key}",
            ))
            lookups[task] = index

        if not lookups:
            return collections

        native_prices: Dict[str, asyncio.Task] = {
            key: asyncio.create_task(self.pricing.native_usd_price(self.config.chain(key)))
            for key in {collections[index].chain for index in lookups.values()}
        }

        pending_all = set(lookups) | set(native_prices.values())
        done, pending = await asyncio.wait(pending_all, timeout=self.config.floor_price_budget)
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Floor price budget hit with %d lookups outstanding", len(pending))

        enriched = list(collections)
        for task, index in lookups.items():
            if task not in done:
                continue
            quote: Optional[FloorPriceQuote] = task.result().value
            if quote is None:
                continue
            native_task = native_prices[collections[index].chain]
            native_usd = native_task.result() if native_task in done and not native_task.exception() else None
            enriched[index] = self._apply_floor(collections[index], quote, native_usd)
        return enriched

    def _apply_floor(self, collection: NFTCollection, quote: FloorPriceQuote, native_usd: Optional[float]) -> NFTCollection:
        if quote.currency.upper() in USD_CURRENCIES:
            return collection.with_floor_price(quote.floor_price, None, quote.source)
        usd = quote.floor_price * native_usd if native_usd else 0.0
        return collection.with_floor_price(usd, quote.floor_price, quote.source)

    def _outcome(
        self,
        collections: List[NFTCollection],
        chains: List[ChainConfig],
        results: List[SourceResult],
    ) -> SourceResult[List[NFTCollection]]:
        failures = [(chain.key, result) for chain, result in zip(chains, results) if result.degraded]
        if not failures:
            return SourceResult.success(collections)

        reason = "; ".join(f"{key}: {result.reason}" for key, result in failures)
        if len(failures) < len(chains):
            return SourceResult.failed(collections, SourceStatus.PARTIAL, reason)
        return SourceResult.failed(collections, failures[0][1].status, reason)


__all__ = ["NFTFetcher", "collection_sort_key"]
