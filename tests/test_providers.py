import pytest

from wallet_api.config import CHAIN_REGISTRY
from wallet_api.errors import ProviderError, ProviderUnavailable
from wallet_api.providers import alchemy, coingecko, dexscreener, etherscan

from fakes import USDC, VITALIK, WETH


class _DummyResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _DummyClient:
    """Replays queued payloads and records every request."""

    responses = []
    requests = []

    def __init__(self, *_, **__):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, json=None, **kwargs):
        _DummyClient.requests.append({"method": "POST", "url": url, "json": json})
        return _DummyResponse(_DummyClient.responses.pop(0))

    async def get(self, url, params=None, **kwargs):
        _DummyClient.requests.append({"method": "GET", "url": url, "params": params})
        return _DummyResponse(_DummyClient.responses.pop(0))


@pytest.fixture
def dummy_http(monkeypatch):
    _DummyClient.responses = []
    _DummyClient.requests = []
    monkeypatch.setattr(alchemy.httpx, "AsyncClient", _DummyClient)
    return _DummyClient


def _alchemy(chain="ethereum", **kwargs):
    return alchemy.AlchemyProvider(CHAIN_REGISTRY[chain], api_key="test", **kwargs)


@pytest.mark.asyncio
async def test_native_balance_is_parsed_from_hex(dummy_http):
    dummy_http.responses = [{"jsonrpc": "2.0", "id": 1, "result": "0xde0b6b3a7640000"}]

    assert await _alchemy().get_native_balance(VITALIK) == 10 ** 18
    request = dummy_http.requests[0]
    assert request["url"] == "https://eth-mainnet.g.alchemy.com/v2/test"
    assert request["json"]["method"] == "eth_getBalance"
    assert request["json"]["params"] == [VITALIK, "latest"]


@pytest.mark.asyncio
async def test_token_balances_follow_page_keys(dummy_http):
    dummy_http.responses = [
        {"result": {
            "tokenBalances": [
                {"contractAddress": USDC, "tokenBalance": "0x00000000000000000000000000000000000000000000000000000000000f4240"},
                {"contractAddress": WETH, "tokenBalance": "0x0000000000000000000000000000000000000000000000000000000000000000"},
            ],
            "pageKey": "next",
        }},
        {"result": {
            "tokenBalances": [
                {"contractAddress": "0x" + "12" * 20, "tokenBalance": None, "error": "execution reverted"},
                {"contractAddress": "0x" + "34" * 20, "tokenBalance": "0x5"},
            ],
        }},
    ]

    entries = await _alchemy().get_token_balances(VITALIK)

    assert [(e.contract_address, e.raw_balance) for e in entries] == [(USDC, 1_000_000), ("0x" + "34" * 20, 5)]
    assert dummy_http.requests[0]["json"]["params"] == [VITALIK, "erc20"]
    assert dummy_http.requests[1]["json"]["params"] == [VITALIK, "erc20", {"pageKey": "next"}]


@pytest.mark.asyncio
async def test_rpc_error_body_raises(dummy_http):
    dummy_http.responses = [{"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "bad"}}]

    with pytest.raises(ProviderError):
        await _alchemy().get_token_metadata(USDC)


@pytest.mark.asyncio
async def test_missing_key_is_unavailable(dummy_http):
    provider = alchemy.AlchemyProvider(CHAIN_REGISTRY["ethereum"], api_key="")

    with pytest.raises(ProviderUnavailable):
        await provider.get_native_balance(VITALIK)
    assert dummy_http.requests == []


@pytest.mark.asyncio
async def test_owned_nfts_are_typed(dummy_http):
    dummy_http.responses = [{
        "ownedNfts": [{
            "contract": {"address": "0xabc", "name": None, "symbol": "AZ", "openSeaMetadata": {"collectionName": "Azuki"}},
            "tokenId": "42",
            "tokenType": "ERC721",
            "image": {"cachedUrl": "https://cdn.example/42.png"},
            "raw": {"metadata": {"attributes": [{"trait_type": "Hat", "value": "Cap"}]}},
        }],
        "pageKey": None,
    }]

    (nft,) = await _alchemy(page_size=50).get_owned_nfts(VITALIK)

    assert nft.contract.display_name == "Azuki"
    assert nft.token_id == "42"
    assert nft.image_candidates()[1] == "https://cdn.example/42.png"
    params = dummy_http.requests[0]["params"]
    assert params["owner"] == VITALIK
    assert params["pageSize"] == 50
    assert params["withMetadata"] == "true"


@pytest.mark.asyncio
async def test_floor_price_uses_first_numeric_marketplace(dummy_http):
    dummy_http.responses = [{
        "openSea": {"floorPrice": None, "error": "unavailable"},
        "looksRare": {"floorPrice": 1.25, "priceCurrency": "ETH"},
    }]

    quote = await _alchemy().get_floor_price("0xabc")

    assert quote.source == "looksRare"
    assert quote.floor_price == 1.25
    assert quote.currency == "ETH"


@pytest.mark.asyncio
async def test_floor_price_skipped_off_mainnet(dummy_http):
    assert await _alchemy("base").get_floor_price("0xabc") is None
    assert dummy_http.requests == []


@pytest.mark.asyncio
async def test_coingecko_prices_skip_missing_values(dummy_http):
    dummy_http.responses = [
        {"ethereum": {"usd": 2000}, "dead-coin": {}, "zero": {"usd": 0}},
        {USDC.upper().replace("0X", "0x"): {"usd": 1.0}},
    ]
    provider = coingecko.CoingeckoProvider(api_key="")

    assert await provider.get_simple_prices(["ethereum", "dead-coin", "zero"]) == {"ethereum": 2000.0}
    assert await provider.get_token_prices("ethereum", [USDC]) == {USDC: 1.0}
    assert dummy_http.requests[1]["url"].endswith("/simple/token_price/ethereum")


@pytest.mark.asyncio
async def test_dexscreener_pairs_are_typed(dummy_http):
    dummy_http.responses = [{"pairs": [{
        "chainId": "ethereum",
        "dexId": "uniswap",
        "pairAddress": "0xpair",
        "baseToken": {"address": USDC.upper().replace("0X", "0x")},
        "priceUsd": "0.9998",
        "liquidity": {"usd": 1234567.5},
    }]}]

    (pair,) = await dexscreener.DexScreenerProvider().get_pairs(USDC)

    assert pair.base_token_address == USDC
    assert pair.price_usd == pytest.approx(0.9998)
    assert pair.liquidity_usd == 1234567.5


@pytest.mark.asyncio
async def test_etherscan_empty_history_and_errors(dummy_http):
    provider = etherscan.EtherscanProvider(chain_id=1, api_key="test")
    dummy_http.responses = [
        {"status": "0", "message": "No transactions found", "result": []},
        {"status": "0", "message": "NOTOK", "result": "Invalid API Key"},
        {"status": "1", "message": "OK", "result": [{"hash": "0x1", "from": VITALIK, "to": USDC, "value": "0", "timeStamp": "1700000000"}]},
    ]

    assert await provider.get_transactions(VITALIK, 10) == []
    with pytest.raises(ProviderError):
        await provider.get_transactions(VITALIK, 10)
    (tx,) = await provider.get_transactions(VITALIK, 10)

    assert tx.hash == "0x1"
    params = dummy_http.requests[0]["params"]
    assert params["chainid"] == 1
    assert params["action"] == "txlist"
    assert params["sort"] == "desc"
    assert params["offset"] == 10
