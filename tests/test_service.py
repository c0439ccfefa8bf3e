"""MarketService: cached listings, detail fallback chain, price history, order books."""

import httpx
import pytest
from conftest import NOW, make_service, raw_event, raw_market

from aurora.ingestion.polymarket import UpstreamError
from aurora.markets.normalize import normalize_market
from aurora.storage.markets import insert_market


@pytest.mark.asyncio
async def test_get_markets_is_cached_per_query():
    calls = []

    def events(request):
        calls.append(request.url.params.get("tag_id"))
        return [raw_event(1), raw_event(2)]

    service = make_service({"/events": events})
    first = await service.get_markets("Politics", limit=10)
    second = await service.get_markets("Politics", limit=10)
    assert [m.id for m in first] == [m.id for m in second] == ["0xcond0001", "0xcond0002"]
    assert calls == ["2"]
    await service.get_markets("Politics", limit=10, offset=1)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_search_uses_title_search():
    seen = []

    def events(request):
        seen.append(dict(request.url.params))
        return [raw_event(1)]

    service = make_service({"/events": events})
    markets = await service.fetch_view("Sports", limit=5, search="thing")
    assert seen[0]["title_contains"] == "thing"
    assert len(markets) == 1


@pytest.mark.asyncio
async def test_new_view_prefers_flagged_events():
    events = [raw_event(1, new=True), raw_event(2), raw_event(3, new=True)]
    service = make_service({"/events": events})
    markets = await service.fetch_view("New", limit=2)
    assert [m.id for m in markets] == ["0xcond0001", "0xcond0003"]
    assert all(m.is_new for m in markets)


@pytest.mark.asyncio
async def test_detail_by_event_slug_takes_first_market():
    event = raw_event(1, markets=[raw_market(1), raw_market(2)])
    service = make_service({"/events": lambda r: [event] if r.url.params.get("slug") == "event-1" else []})
    market = await service.get_market_detail("event-1")
    assert market.id == "0xcond0001"
    assert market.event_slug == "event-1"


@pytest.mark.asyncio
async def test_detail_falls_back_to_condition_id():
    service = make_service({"/events": [], "/markets/0xcond0005": raw_market(5)})
    market = await service.get_market_detail("0xcond0005")
    assert market.id == "0xcond0005"
    assert market.event_slug == "0xcond0005"


@pytest.mark.asyncio
async def test_detail_falls_back_to_market_slug_after_client_errors():
    service = make_service(
        {
            "/events": lambda r: httpx.Response(422, text="bad slug"),
            "/markets": lambda r: [raw_market(6)] if r.url.params.get("slug") == "will-thing-6-happen" else [],
        }
    )
    market = await service.get_market_detail("will-thing-6-happen")
    assert market.polymarket_id == "500006"


@pytest.mark.asyncio
async def test_detail_falls_back_to_stored_row(temp_db):
    stored = normalize_market(raw_market(7), raw_event(7), synced_at=NOW)
    insert_market(temp_db, stored)
    service = make_service({"/events": [], "/markets": []}, conn=temp_db)
    market = await service.get_market_detail("will-thing-7-happen")
    assert market.id == "0xcond0007"


@pytest.mark.asyncio
async def test_detail_absent_returns_none():
    service = make_service({"/events": [], "/markets": []})
    assert await service.get_market_detail("nothing-here") is None


@pytest.mark.asyncio
async def test_detail_server_error_propagates():
    service = make_service({"/events": lambda r: httpx.Response(502, text="bad gateway")})
    with pytest.raises(UpstreamError):
        await service.get_market_detail("event-1")


@pytest.mark.asyncio
async def test_price_history_as_percentages():
    event = raw_event(1)
    no_token = normalize_market(event["markets"][0], event, synced_at=NOW).tokens[1].token_id
    seen = []

    def history(request):
        seen.append(dict(request.url.params))
        return {"history": [{"t": 1767225600, "p": 0.4215}, {"t": 1767312000, "p": "0.5"}]}

    service = make_service({"/events": [event]}, {"/prices-history": history})
    result = await service.get_price_history("event-1", "1d", "No")
    assert result.token_id == no_token
    assert seen[0]["market"] == no_token
    assert [p.value for p in result.points] == [42.15, 50.0]
    assert [p.label for p in result.points] == ["Jan 1", "Jan 2"]

    await service.get_price_history("event-1", "1d", "No")
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_price_history_unknown_outcome_uses_first_token():
    event = raw_event(1)
    service = make_service({"/events": [event]}, {"/prices-history": {"history": []}})
    result = await service.get_price_history("event-1", "1h", "Maybe")
    assert result.token_id.endswith("0001")
    assert result.points == []


@pytest.mark.asyncio
async def test_orderbook_per_outcome_drops_failed_books():
    event = raw_event(1)
    yes_token, no_token = (t.token_id for t in normalize_market(event["markets"][0], event, synced_at=NOW).tokens)
    levels = [{"price": str(p / 100), "size": "10"} for p in range(1, 40)]

    def book(request):
        if request.url.params["token_id"] == no_token:
            return httpx.Response(500, text="down")
        return {"asset_id": yes_token, "bids": levels, "asks": levels, "timestamp": "1767225600000"}

    service = make_service({"/events": [event]}, {"/book": book})
    books = await service.get_orderbook("event-1")
    assert list(books) == ["Yes"]
    yes = books["Yes"]
    assert len(yes.bids) == len(yes.asks) == 15
    assert yes.bids[0].price == 0.39
    assert yes.asks[0].price == 0.01
    assert yes.timestamp == "1767225600000"


@pytest.mark.asyncio
async def test_orderbook_unknown_market():
    service = make_service({"/events": [], "/markets": []})
    assert await service.get_orderbook("nope") is None
