"""Upstream REST clients over httpx.MockTransport."""

from datetime import datetime, timezone

import httpx
import pytest
from conftest import json_transport

from aurora.ingestion.polymarket import ClobClient, DataClient, EventsQuery, GammaClient, UpstreamError


def _client(cls, routes):
    return cls("https://api.test", client=httpx.AsyncClient(transport=json_transport(routes)))


def test_events_query_omits_defaults():
    assert EventsQuery().to_params() == {"limit": 20}
    params = EventsQuery(limit=500, offset=0, ascending=False, closed=False).to_params()
    assert params == {"limit": 100, "closed": False}


def test_events_query_sends_set_fields():
    params = EventsQuery(
        limit=10,
        offset=20,
        tag_id=21,
        related_tags=True,
        order="endDate",
        ascending=True,
        end_date_min=datetime(2026, 1, 10, 12, tzinfo=timezone.utc),
    ).to_params()
    assert params == {
        "limit": 10,
        "offset": 20,
        "tag_id": 21,
        "related_tags": True,
        "order": "endDate",
        "ascending": True,
        "end_date_min": "2026-01-10T12:00:00Z",
    }


@pytest.mark.asyncio
async def test_list_events_passes_query_string():
    seen = []

    def events(request):
        seen.append(request.url.params)
        return [{"id": "1"}]

    gamma = _client(GammaClient, {"/events": events})
    assert await gamma.list_events(EventsQuery(limit=5, closed=False)) == [{"id": "1"}]
    assert seen[0]["limit"] == "5"
    assert seen[0]["closed"] == "false"
    assert "offset" not in seen[0]


@pytest.mark.asyncio
async def test_non_list_payload_is_empty():
    gamma = _client(GammaClient, {"/events": {"error": "weird"}})
    assert await gamma.list_events() == []


@pytest.mark.asyncio
async def test_http_error_carries_status_body_and_full_url():
    gamma = _client(GammaClient, {"/events": lambda r: httpx.Response(422, text="bad param")})
    with pytest.raises(UpstreamError) as exc:
        await gamma.list_events(EventsQuery(limit=3))
    err = exc.value
    assert err.status == 422
    assert err.body == "bad param"
    assert err.url == "https://api.test/events?limit=3"
    assert err.is_client_error
    assert not err.is_not_found


@pytest.mark.asyncio
async def test_bad_json_raises_upstream_error():
    gamma = _client(GammaClient, {"/events": lambda r: httpx.Response(200, text="<html>")})
    with pytest.raises(UpstreamError, match="invalid JSON"):
        await gamma.list_events()


@pytest.mark.asyncio
async def test_network_error_has_no_status():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    gamma = GammaClient("https://api.test", client=httpx.AsyncClient(transport=httpx.MockTransport(boom)))
    with pytest.raises(UpstreamError) as exc:
        await gamma.list_events()
    assert exc.value.status is None


@pytest.mark.asyncio
async def test_not_found_lookups_return_none():
    gamma = _client(GammaClient, {"/events": [], "/markets": []})
    assert await gamma.get_event_by_slug("missing") is None
    assert await gamma.get_market_by_slug("missing") is None
    assert await gamma.get_market_by_condition_id("0xmissing") is None


@pytest.mark.asyncio
async def test_market_by_condition_id():
    gamma = _client(GammaClient, {"/markets/0xabc": {"id": "77", "conditionId": "0xabc"}})
    assert (await gamma.get_market_by_condition_id("0xabc"))["id"] == "77"


@pytest.mark.asyncio
async def test_market_by_condition_id_server_error_propagates():
    gamma = _client(GammaClient, {"/markets/0xabc": lambda r: httpx.Response(500, text="oops")})
    with pytest.raises(UpstreamError):
        await gamma.get_market_by_condition_id("0xabc")


@pytest.mark.asyncio
async def test_search_events_params():
    seen = []

    def events(request):
        seen.append(request.url.params)
        return []

    gamma = _client(GammaClient, {"/events": events})
    await gamma.search_events("fed", limit=500)
    assert seen[0]["title_contains"] == "fed"
    assert seen[0]["limit"] == "100"
    assert seen[0]["closed"] == "false"


@pytest.mark.asyncio
async def test_price_history_fidelity_mapping():
    seen = []

    def history(request):
        seen.append(request.url.params)
        return {"history": [{"t": 1, "p": 0.5}]}

    clob = _client(ClobClient, {"/prices-history": history})
    assert await clob.get_price_history("tok", "1w") == [{"t": 1, "p": 0.5}]
    assert seen[0]["fidelity"] == "360"
    assert seen[0]["market"] == "tok"


@pytest.mark.asyncio
async def test_single_price_helpers():
    clob = _client(
        ClobClient,
        {
            "/last-trade-price": {"price": "0.61", "side": "BUY"},
            "/midpoint": lambda r: httpx.Response(404, json={"error": "No orderbook"}),
        },
    )
    assert await clob.get_last_trade_price("tok") == 0.61
    assert await clob.get_midpoint("tok") is None


@pytest.mark.asyncio
async def test_data_api_lowercases_address():
    seen = []

    def activity(request):
        seen.append(request.url.params)
        return [{"type": "TRADE"}]

    data = _client(DataClient, {"/activity": activity, "/positions": [{"size": 3}]})
    assert await data.get_user_activity("0xABCdef", limit=5) == [{"type": "TRADE"}]
    assert seen[0]["user"] == "0xabcdef"
    assert seen[0]["limit"] == "5"
    assert await data.get_user_positions("0xABC") == [{"size": 3}]
