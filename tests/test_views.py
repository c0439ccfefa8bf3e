"""View resolution, post-fetch ordering and the EndingSoon pipeline end to end."""

from datetime import timedelta

import httpx
import pytest
from conftest import NOW, iso, make_service, raw_event, raw_market

from aurora.markets.normalize import normalize_market
from aurora.markets.views import ENDING_SOON_HORIZON, order_markets, paginate, prefer_new_events, resolve_view


def _market(n, **raw):
    return normalize_market(raw_market(n, **raw), raw_event(n), synced_at=NOW)


def test_static_category_plan_uses_tag_and_oversize():
    plan = resolve_view("Crypto", limit=20, offset=10)
    params = plan.query.to_params()
    assert params["tag_id"] == 21
    assert params["related_tags"] is True
    assert params["limit"] == 60
    assert params["closed"] is False
    assert plan.filter_view == "Crypto"


def test_limits_are_capped_at_page_max():
    assert resolve_view("Trending", limit=80).query.limit == 100
    assert resolve_view("Breaking", limit=5).query.limit == 100


def test_sports_plan_orders_by_start_date():
    params = resolve_view("Sports", limit=20).query.to_params()
    assert params["tag_id"] == 100639
    assert params["order"] == "startDate"
    assert params["limit"] == 80


def test_search_overrides_view():
    plan = resolve_view("Sports", limit=20, search="election")
    assert plan.search_term == "election"
    assert plan.filter_view == "All"
    assert plan.query is None


def test_unknown_view_raises():
    with pytest.raises(ValueError):
        resolve_view("Nope", limit=10)


def test_breaking_ranks_by_volume_24h_and_drops_idle():
    markets = [_market(1, volume24hr=10), _market(2, volume24hr=0), _market(3, volume24hr=500)]
    ranked = order_markets("Breaking", markets, NOW, 20)
    assert [m.id for m in ranked] == ["0xcond0003", "0xcond0001"]


def test_highest_volume_ranks_by_total_volume():
    markets = [_market(1, volume="10"), _market(2, volume="900"), _market(3, volume="50")]
    assert [m.id for m in order_markets("HighestVolume", markets, NOW, 20)] == [
        "0xcond0002",
        "0xcond0003",
        "0xcond0001",
    ]


def test_prefer_new_events_falls_back_when_too_few():
    events = [raw_event(1, new=True), raw_event(2), raw_event(3, new=True)]
    assert len(prefer_new_events(events, 2)) == 2
    assert len(prefer_new_events(events, 5)) == 3


def test_paginate():
    markets = [_market(i) for i in range(1, 6)]
    assert [m.id for m in paginate(markets, 1, 2)] == ["0xcond0002", "0xcond0003"]
    assert len(paginate(markets, 2, None)) == 3


def test_ending_soon_order_markets_window():
    markets = [
        _market(1, endDate=iso(NOW + timedelta(hours=30))),
        _market(2, endDate=iso(NOW + timedelta(hours=60))),
        _market(3, endDate=iso(NOW + timedelta(hours=5))),
        _market(4, endDate=iso(NOW - timedelta(hours=1)), volume24hr=5),
        _market(5, endDate=None),
    ]
    ordered = order_markets("EndingSoon", markets, NOW, 20)
    assert [m.id for m in ordered] == ["0xcond0003", "0xcond0001"]
    assert all(NOW < m.end_date <= NOW + ENDING_SOON_HORIZON for m in ordered)


@pytest.mark.asyncio
async def test_ending_soon_view_end_to_end():
    """Dedicated query returns too few events, so the broad fetch is merged in."""
    soon = raw_event(1, markets=[raw_market(1, endDate=iso(NOW + timedelta(hours=40)))])
    broad = [
        raw_event(2, markets=[raw_market(2, endDate=iso(NOW + timedelta(hours=3)))]),
        raw_event(3, markets=[raw_market(3, endDate=iso(NOW + timedelta(days=10)))]),
        raw_event(4, markets=[raw_market(4, endDate=iso(NOW + timedelta(hours=48)))]),
    ]
    seen_params = []

    def events(request: httpx.Request):
        seen_params.append(dict(request.url.params))
        if request.url.params.get("order") == "endDate":
            return [soon]
        return broad

    service = make_service({"/events": events})
    markets = await service.get_markets("EndingSoon", limit=10)

    assert [m.id for m in markets] == ["0xcond0002", "0xcond0001", "0xcond0004"]
    assert seen_params[0]["ascending"] == "true"
    assert seen_params[0]["end_date_min"] == "2026-01-10T12:00:00Z"
    assert seen_params[0]["end_date_max"] == "2026-01-12T12:00:00Z"
    assert len(seen_params) == 2


@pytest.mark.asyncio
async def test_ending_soon_survives_dedicated_query_failure():
    broad = [raw_event(2, markets=[raw_market(2, endDate=iso(NOW + timedelta(hours=3)))])]

    def events(request: httpx.Request):
        if request.url.params.get("order") == "endDate":
            return httpx.Response(500, text="boom")
        return broad

    service = make_service({"/events": events})
    markets = await service.fetch_view("EndingSoon", limit=10)
    assert [m.id for m in markets] == ["0xcond0002"]


@pytest.mark.asyncio
async def test_view_fetch_failure_propagates():
    from aurora.ingestion.polymarket import UpstreamError

    service = make_service({"/events": lambda request: httpx.Response(503, text="down")})
    with pytest.raises(UpstreamError) as exc:
        await service.fetch_view("Politics", limit=10)
    assert exc.value.status == 503
