import time

import pytest

from wallet_api.cache import TTLCache
from wallet_api.errors import ProviderError
from wallet_api.services.degradation import SourceStatus
from wallet_api.services.nfts import NFTFetcher
from wallet_api.services.pricing import PriceResolver
from wallet_api.types.providers import FloorPriceQuote

from fakes import VITALIK, FakeDex, FakeNFTProvider, make_config, owned_nft

AZUKI = "0xED5AF388653567Af2F388E6224dC7C4b3241C544"
OTHER = "0x5555555555555555555555555555555555555555"
CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def _fetcher(market, providers, **overrides):
    config = make_config(**overrides)
    pricing = PriceResolver(market, FakeDex(), TTLCache(name="prices"), config)
    return NFTFetcher(providers, pricing, config)


@pytest.mark.asyncio
async def test_items_are_grouped_by_contract(market):
    provider = FakeNFTProvider([
        owned_nft(AZUKI, "1", name="Azuki #1", image={"thumbnailUrl": "https://img.example/1.png"}),
        owned_nft(AZUKI.lower(), "2", name="Azuki #2"),
        owned_nft(OTHER, "9", collection="Other", symbol="OTH"),
    ])

    result = await _fetcher(market, {"ethereum": provider}).fetch(VITALIK)

    assert result.status is SourceStatus.OK
    by_contract = {c.contract_address: c for c in result.value}
    assert set(by_contract) == {AZUKI.lower(), OTHER}
    assert by_contract[AZUKI.lower()].item_count == 2
    assert by_contract[AZUKI.lower()].items[0].image == "https://img.example/1.png"
    assert by_contract[AZUKI.lower()].items[1].has_image is False


@pytest.mark.asyncio
async def test_ipfs_only_image_is_rewritten(market):
    provider = FakeNFTProvider([owned_nft(AZUKI, "7", metadata={"image": f"ipfs://{CID}"})])

    result = await _fetcher(market, {"ethereum": provider}).fetch(VITALIK)

    (item,) = result.value[0].items
    assert item.image.startswith("https://")
    assert CID in item.image
    assert item.has_image is True
    assert item.name == "AZUKI #7"


@pytest.mark.asyncio
async def test_non_http_image_falls_through_to_next_field(market):
    provider = FakeNFTProvider([
        owned_nft(
            AZUKI,
            "3",
            image={"thumbnailUrl": "data:image/svg+xml;base64,PHN2Zz4="},
            metadata={"image": "https://img.example/3.png"},
        ),
        owned_nft(AZUKI, "4", metadata={"image": "data:image/png;base64,AAAA"}),
    ])

    result = await _fetcher(market, {"ethereum": provider}).fetch(VITALIK)

    first, second = result.value[0].items
    assert first.image == "https://img.example/3.png"
    assert second.image is None
    assert second.has_image is False


@pytest.mark.asyncio
async def test_floor_prices_convert_to_usd_and_sort_first(market):
    provider = FakeNFTProvider(
        [
            owned_nft(OTHER, "1", collection="Other", symbol="OTH"),
            owned_nft(OTHER, "2", collection="Other", symbol="OTH"),
            owned_nft(OTHER, "3", collection="Other", symbol="OTH"),
            owned_nft(AZUKI, "1"),
            owned_nft(AZUKI, "2"),
        ],
        floors={AZUKI.lower(): FloorPriceQuote(source="openSea", floor_price=2.0, currency="ETH")},
    )

    result = await _fetcher(market, {"ethereum": provider}).fetch(VITALIK)

    first, second = result.value
    assert first.contract_address == AZUKI.lower()
    assert first.floor_price == 4000.0
    assert first.floor_price_native == 2.0
    assert first.floor_price_source == "openSea"
    assert first.total_value == 8000.0
    assert second.floor_price == 0.0
    assert second.total_value == 0.0


@pytest.mark.asyncio
async def test_floor_price_budget_is_bounded(market):
    provider = FakeNFTProvider(
        [owned_nft(AZUKI, "1")],
        floors={AZUKI.lower(): FloorPriceQuote(source="openSea", floor_price=2.0)},
        floor_delay=1.0,
    )

    started = time.perf_counter()
    result = await _fetcher(market, {"ethereum": provider}, floor_price_budget=0.1).fetch(VITALIK)

    assert time.perf_counter() - started < 0.6
    assert result.value[0].floor_price == 0.0


@pytest.mark.asyncio
async def test_floor_prices_only_requested_where_supported(market):
    base = FakeNFTProvider([owned_nft(OTHER, "1", collection="Based", symbol="BSD")])

    await _fetcher(market, {"base": base}).fetch(VITALIK)

    assert [call[0] for call in base.calls] == ["get_owned_nfts"]


@pytest.mark.asyncio
async def test_one_failing_chain_reports_partial(market):
    ethereum = FakeNFTProvider([owned_nft(AZUKI, "1")])
    base = FakeNFTProvider(error=ProviderError("alchemy", "rate limited"))

    result = await _fetcher(market, {"ethereum": ethereum, "base": base}).fetch(VITALIK)

    assert result.status is SourceStatus.PARTIAL
    assert [c.contract_address for c in result.value] == [AZUKI.lower()]
