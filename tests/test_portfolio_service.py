import time
from decimal import Decimal

import pytest

from wallet_api.config import CHAIN_REGISTRY
from wallet_api.errors import InvalidAddress, NameNotFound
from wallet_api.services.degradation import SourceStatus
from wallet_api.types.providers import FloorPriceQuote, TokenMetadata

from fakes import (
    ETH_WEI,
    OBSCURE,
    USDC,
    VITALIK,
    FakeBalanceProvider,
    FakeExplorer,
    FakeNameResolver,
    FakeNFTProvider,
    make_config,
    owned_nft,
)

SCAM = "0x9999999999999999999999999999999999999999"
AZUKI = "0xed5af388653567af2f388e6224dc7c4b3241c544"


def _wallet(eth_metadata, **extra):
    return {
        "ethereum": FakeBalanceProvider(
            native_wei=ETH_WEI,
            balances={USDC: 2_500_000_000},
            metadata=eth_metadata,
            **extra,
        ),
        "base": FakeBalanceProvider(native_wei=ETH_WEI // 2),
    }


def _upstream_calls(balances, *others):
    providers = list(balances.values()) + list(others)
    return sum(len(provider.calls) for provider in providers)


@pytest.mark.asyncio
async def test_portfolio_is_aggregated_across_chains(build_service, eth_metadata):
    service = build_service(balances=_wallet(eth_metadata))

    result, cached = await service.lookup(VITALIK)

    assert cached is False
    assert result.address == VITALIK
    assert [(t.chain, t.symbol) for t in result.tokens] == [
        ("ethereum", "USDC"),
        ("ethereum", "ETH"),
        ("base", "ETH"),
    ]
    assert result.total_value == pytest.approx(2500.0 + 2000.0 + 1000.0)
    assert result.total_value == pytest.approx(sum(t.usd_value for t in result.tokens))
    for token in result.tokens:
        assert token.usd_value == pytest.approx(float(token.balance) * token.price)
    assert set(result.tokens_by_chain) == {"ethereum", "base"}
    assert result.chains_with_balance == ["ethereum", "base"]
    assert result.token_count == 3
    assert result.unpriced_count == 0
    assert result.sources == {
        "tokens:ethereum": SourceStatus.OK,
        "tokens:base": SourceStatus.OK,
        "nfts": SourceStatus.OK,
        "activity": SourceStatus.OK,
    }


@pytest.mark.asyncio
async def test_cache_hit_is_identical_and_skips_upstreams(build_service, eth_metadata, market):
    balances = _wallet(eth_metadata)
    resolver = FakeNameResolver({"vitalik.eth": VITALIK})
    service = build_service(balances=balances, resolver=resolver)

    first, _ = await service.lookup("vitalik.eth")
    calls_before = _upstream_calls(balances, resolver, market)

    second, cached = await service.lookup("  Vitalik.ETH")

    assert cached is True
    assert _upstream_calls(balances, resolver, market) == calls_before
    assert second.model_dump(exclude={"response_time"}) == first.model_dump(exclude={"response_time"})


@pytest.mark.asyncio
async def test_slow_chain_degrades_only_that_chain(build_service, eth_metadata):
    balances = _wallet(eth_metadata)
    balances["base"] = FakeBalanceProvider(native_wei=ETH_WEI, delay=5.0)
    service = build_service(balances=balances, config=make_config(chain_timeout=0.2))

    result, _ = await service.lookup(VITALIK)

    assert result.sources["tokens:base"] is SourceStatus.TIMEOUT
    assert result.sources["tokens:ethereum"] is SourceStatus.OK
    assert result.chains_with_balance == ["ethereum"]
    assert result.tokens_by_chain["base"] == []
    assert {t.symbol for t in result.tokens_by_chain["ethereum"]} == {"USDC", "ETH"}


@pytest.mark.asyncio
async def test_chain_fetches_run_concurrently(build_service):
    chains = (CHAIN_REGISTRY["ethereum"], CHAIN_REGISTRY["base"], CHAIN_REGISTRY["polygon"])
    config = make_config(chains=chains, chain_timeout=0.2)
    balances = {chain.key: FakeBalanceProvider(native_wei=ETH_WEI, delay=5.0) for chain in chains}
    service = build_service(balances=balances, config=config)

    started = time.perf_counter()
    result, _ = await service.lookup(VITALIK)
    elapsed = time.perf_counter() - started

    assert elapsed < 0.2 * len(chains)
    assert result.tokens == []
    assert result.total_value == 0
    assert result.chains_with_balance == []
    assert all(result.sources[f"tokens:{chain.key}"] is SourceStatus.TIMEOUT for chain in chains)


@pytest.mark.asyncio
async def test_name_lookup_end_to_end(build_service, eth_metadata):
    resolver = FakeNameResolver({"vitalik.eth": VITALIK})
    service = build_service(balances=_wallet(eth_metadata), resolver=resolver)

    result = await service.get_portfolio("vitalik.eth")

    assert result.ens_name == "vitalik.eth"
    assert result.address == VITALIK
    assert result.total_value >= 0
    for chain in ("ethereum", "base"):
        natives = [t for t in result.tokens if t.chain == chain and t.is_native]
        assert len(natives) <= 1


@pytest.mark.asyncio
async def test_invalid_input_fails_before_any_fetch(build_service, eth_metadata):
    balances = _wallet(eth_metadata)
    service = build_service(balances=balances)

    with pytest.raises(InvalidAddress):
        await service.lookup("not-an-address")
    assert _upstream_calls(balances) == 0


@pytest.mark.asyncio
async def test_unknown_name_is_fatal(build_service):
    with pytest.raises(NameNotFound):
        await build_service().lookup("nobody.eth")


@pytest.mark.asyncio
async def test_spam_dust_and_unpriced_tokens(build_service):
    dusty = "0x" + "88" * 20
    bigger = "0x" + "aa" * 20
    ethereum = FakeBalanceProvider(
        native_wei=ETH_WEI,
        balances={
            SCAM: 1000 * ETH_WEI,
            OBSCURE: 3 * ETH_WEI,
            bigger: 7 * ETH_WEI,
            dusty: 5 * 10 ** 11,
        },
        metadata={
            SCAM: TokenMetadata(symbol="SCAM", name="Visit free-airdrop.com", decimals=18),
            OBSCURE: TokenMetadata(symbol="ODD", name="Odd Token", decimals=18),
            bigger: TokenMetadata(symbol="BIG", name="Big Token", decimals=18),
            dusty: TokenMetadata(symbol="DUST", name="Dust Token", decimals=18),
        },
    )
    service = build_service(balances={"ethereum": ethereum})

    result, _ = await service.lookup(VITALIK)

    assert [t.symbol for t in result.tokens] == ["ETH", "BIG", "ODD"]
    assert result.unpriced_count == 2
    assert result.total_value == pytest.approx(2000.0)


@pytest.mark.asyncio
async def test_spam_is_filtered_before_pricing(build_service, market):
    market.token_prices = {SCAM: 5.0, OBSCURE: 0.5}
    ethereum = FakeBalanceProvider(
        balances={SCAM: 1000 * ETH_WEI, OBSCURE: 3 * ETH_WEI},
        metadata={
            SCAM: TokenMetadata(symbol="SCAM", name="Visit free-airdrop.com", decimals=18),
            OBSCURE: TokenMetadata(symbol="ODD", name="Odd Token", decimals=18),
        },
    )
    service = build_service(balances={"ethereum": ethereum})

    result, _ = await service.lookup(VITALIK)

    assert [t.symbol for t in result.tokens] == ["ODD"]
    looked_up = [addr for call in market.calls if call[0] == "get_token_prices" for addr in call[2]]
    assert OBSCURE in looked_up
    assert SCAM not in looked_up


@pytest.mark.asyncio
async def test_nfts_and_activity_are_included(build_service, eth_metadata):
    nfts = FakeNFTProvider(
        [owned_nft(AZUKI, "1"), owned_nft(AZUKI, "2"), owned_nft(AZUKI, "3")],
        floors={AZUKI: FloorPriceQuote(source="openSea", floor_price=1.5)},
    )
    explorer = FakeExplorer(error=RuntimeError("explorer down"))
    service = build_service(balances=_wallet(eth_metadata), nfts={"ethereum": nfts}, explorer=explorer)

    result, _ = await service.lookup(VITALIK)

    assert result.nft_count == 3
    (collection,) = result.nfts
    assert collection.floor_price == 3000.0
    assert collection.total_value == 9000.0
    # NFT value is reported per collection, not folded into the token total
    assert result.total_value == pytest.approx(5500.0)
    assert result.activity == []
    assert result.sources["activity"] is SourceStatus.ERROR


@pytest.mark.asyncio
async def test_serialized_shape(build_service, eth_metadata):
    service = build_service(balances=_wallet(eth_metadata))
    result, _ = await service.lookup(VITALIK)

    body = result.model_dump(mode="json", by_alias=True)

    for key in (
        "address", "ensName", "totalValue", "tokens", "tokensByChain", "nfts",
        "activity", "tokenCount", "nftCount", "chainsWithBalance", "responseTime",
    ):
        assert key in body
    usdc = body["tokens"][0]
    assert usdc["contractAddress"] == USDC
    assert usdc["isNative"] is False
    assert usdc["usdValue"] == pytest.approx(2500.0)
    assert usdc["rawBalance"] == "2500000000"
    assert Decimal(usdc["balance"]) == Decimal(2500)
