"""
tests/test_candidates.py
─────────────────────────────────────────────────────────────────────────────
Place families, diversity ranking, the bundled-dataset resolver, the Google
Places resolver (over httpx.MockTransport), the resolver chain and batched
place details.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from ideadate.modules.candidates.diversity import (
    DiversityPolicy,
    rank_candidates,
    read_diversity_policy,
    role_matches,
)
from ideadate.modules.candidates.family import classify_place_family
from ideadate.modules.candidates.google_resolver import (
    GoogleCandidateResolver,
    build_role_shaped_query,
    parse_google_place,
)
from ideadate.modules.candidates.local_resolver import LocalCandidateResolver
from ideadate.modules.candidates.place_details import (
    GooglePlaceDetailsFetcher,
    enrich_plan_with_details,
    fetch_place_details_batched,
)
from ideadate.modules.candidates.resolver import Candidate, SearchArgs
from ideadate.modules.candidates.resolver_chain import ResolverChain, sanitize_resolver_error
from ideadate.schemas.plan import PlaceLite, Stop
from ideadate.schemas.profile import Role

from conftest import FailingResolver, StaticResolver, calm_plan, make_stop

ANCHOR = make_stop("anchor", 37.7769, -122.4236, ("cafe",))


def _args(role=Role.START, stop=ANCHOR, radius=300, limit=8, vibe_id="first_date_low_pressure"):
    return SearchArgs(role=role, stop=stop, radius_meters=radius, vibe_id=vibe_id, limit=limit)


def _candidate(place_id, lat=37.7770, lng=-122.4230, types=("restaurant",), name=None):
    return Candidate(place_id=place_id, name=name or place_id.title(), lat=lat, lng=lng, types=types)


# ── Families and diversity ────────────────────────────────────────────────────

def test_place_families():
    assert classify_place_family(["cafe", "bar"]) == "food"
    assert classify_place_family(["book_store"]) == "culture"
    assert classify_place_family(["night_club"]) == "nightlife"
    assert classify_place_family([], "Moonlight Gelato") == "dessert"
    assert classify_place_family(["laundromat"], "Zed's") == "other"


def test_role_matches():
    assert role_matches(["cafe"], Role.START)
    assert not role_matches(["bar"], Role.START)
    assert role_matches([], Role.MAIN)
    assert role_matches(["laundromat"], Role.FLEX)


def test_diversity_policy_by_environment(production):
    policy = read_diversity_policy()
    assert policy.enabled is False
    assert policy.weight == 0.0


def test_diversity_policy_outside_production(development):
    policy = read_diversity_policy()
    assert policy.enabled is True
    assert policy.weight == pytest.approx(0.0005)


def test_diversity_weight_is_capped():
    assert DiversityPolicy(enabled=True, weight=5).weight == pytest.approx(0.01)
    assert DiversityPolicy(enabled=False, weight=5).weight == 0.0


def test_ranking_ignores_input_order():
    candidates = [
        _candidate("c-2", types=("cafe",)),
        _candidate("c-1", types=("cafe",)),
        _candidate("c-3", lat=37.7800, types=("bar",)),
        _candidate("c-4", lat=37.7790, types=("coffee_shop",)),
    ]
    forward = rank_candidates(candidates, Role.START, ANCHOR.lat_lng, 1000, policy=DiversityPolicy())
    backward = rank_candidates(candidates[::-1], Role.START, ANCHOR.lat_lng, 1000, policy=DiversityPolicy())
    assert [r.candidate.place_id for r in forward] == [r.candidate.place_id for r in backward]
    assert forward[-1].candidate.place_id == "c-3"
    assert [r.candidate.place_id for r in forward[:2]] == ["c-1", "c-2"]


def test_family_penalty_excludes_the_replaced_stop():
    policy = DiversityPolicy(enabled=True, weight=0.01)
    ranked = rank_candidates(
        [_candidate("food", types=("restaurant",)), _candidate("culture", types=("museum",))],
        Role.MAIN,
        ANCHOR.lat_lng,
        1000,
        plan_stops=calm_plan().stops,
        subject_stop_id="s1",
        policy=policy,
    )
    penalties = {r.candidate.place_id: r.penalty for r in ranked}
    assert penalties["food"] == 0.0
    assert penalties["culture"] == pytest.approx(0.01)


# ── Local dataset ─────────────────────────────────────────────────────────────

def test_local_resolver_orders_by_score():
    results = asyncio.run(LocalCandidateResolver()(_args(limit=3)))
    assert [c.place_id for c in results] == ["local-sf-001", "local-sf-005", "local-sf-002"]


def test_local_resolver_respects_radius_and_role():
    resolver = LocalCandidateResolver()
    rows = {row.place_id: row for row in resolver.rows}
    results = resolver.search(_args(role=Role.WIND_DOWN, radius=400, limit=20))
    assert results
    for candidate in results:
        assert "windDown" in rows[candidate.place_id].roles
    assert "local-sf-024" not in {c.place_id for c in results}


def test_local_resolver_needs_an_anchor():
    assert LocalCandidateResolver().search(_args(stop=Stop(id="nowhere"))) == []


# ── Google Places ─────────────────────────────────────────────────────────────

PLACES_RESPONSE = {
    "places": [
        {"id": "g-b", "displayName": {"text": "Blue Bottle"},
         "location": {"latitude": 37.7771, "longitude": -122.4230}, "types": ["Cafe", "cafe"],
         "priceLevel": "PRICE_LEVEL_MODERATE"},
        {"id": "g-a", "displayName": {"text": "Arsicault"},
         "location": {"latitude": 37.7760, "longitude": -122.4240}, "types": ["bakery"],
         "editorialSummary": {"text": "  Croissants.  "}},
        {"id": "g-b", "displayName": {"text": "Blue Bottle (dupe)"},
         "location": {"latitude": 37.7771, "longitude": -122.4230}},
        {"id": "g-c", "displayName": {"text": "No Location"}},
    ]
}


def _google(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleCandidateResolver(api_key=api_key, client=client)


def test_google_resolver_shapes_the_request_and_normalizes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=PLACES_RESPONSE)

    results = asyncio.run(_google(handler)(_args(radius=1000, limit=5)))

    assert seen["headers"]["X-Goog-Api-Key"] == "test-key"
    assert "places.displayName" in seen["headers"]["X-Goog-FieldMask"]
    body = seen["body"]
    assert body["includedTypes"][0] == "cafe"
    assert body["maxResultCount"] == 5
    assert body["locationRestriction"]["circle"]["radius"] == 800.0

    assert [c.place_id for c in results] == ["g-a", "g-b"]
    assert results[1].name == "Blue Bottle"
    assert results[1].types == ("cafe",)
    assert results[1].price_level == 2
    assert results[0].editorial_summary == "Croissants."


def test_role_shaped_query_clamps_radius():
    flex = build_role_shaped_query(Role.FLEX, Stop(id="x"), 50)
    assert flex.template_used == "generic"
    assert flex.radius_m == 250
    start = build_role_shaped_query(Role.START, ANCHOR, 99_999)
    assert start.radius_m == 3000
    assert build_role_shaped_query(Role.MAIN, ANCHOR, float("nan")).radius_m == 1200


def test_unusable_google_places_are_dropped():
    assert parse_google_place({"id": "x", "displayName": {"text": "X"}}) is None
    assert parse_google_place({"displayName": {"text": "X"},
                               "location": {"latitude": 1, "longitude": 2}}) is None


def test_google_resolver_without_key_raises():
    resolver = _google(lambda request: httpx.Response(200, json={}), api_key="")
    with pytest.raises(RuntimeError):
        asyncio.run(resolver(_args()))


def test_google_resolver_raises_on_http_errors():
    resolver = _google(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(resolver(_args()))


# ── Chain ─────────────────────────────────────────────────────────────────────

def test_chain_prefers_remote_with_enough_results():
    remote = StaticResolver([_candidate(f"r-{i}") for i in range(3)])
    chain = ResolverChain(remote=remote, local=LocalCandidateResolver())
    results, telemetry = asyncio.run(chain.resolve(_args()))
    assert len(results) == 3
    assert (telemetry.used, telemetry.count, telemetry.error) == ("remote", 3, None)


def test_chain_falls_back_to_local_on_thin_remote():
    chain = ResolverChain(remote=StaticResolver([_candidate("r-1")]), local=LocalCandidateResolver())
    results = asyncio.run(chain(_args()))
    assert results[0].place_id == "local-sf-001"
    assert chain.last_telemetry.used == "local"
    assert chain.last_telemetry.count == len(results)


def test_chain_reports_sanitized_errors():
    failing = FailingResolver()
    chain = ResolverChain(remote=failing, local=LocalCandidateResolver())
    results, telemetry = asyncio.run(chain.resolve(_args()))
    assert results
    assert telemetry.used == "local"
    assert telemetry.error == "upstream exploded (503)"
    assert failing.calls == 1


def test_chain_with_http_failure_and_no_local():
    remote = _google(lambda request: httpx.Response(503, text="unavailable"))
    results, telemetry = asyncio.run(ResolverChain(remote=remote).resolve(_args()))
    assert results == []
    assert telemetry.used == "none"
    assert "503" in telemetry.error
    assert len(telemetry.error) <= 120


def test_sanitize_resolver_error():
    long = sanitize_resolver_error("x" * 300)
    assert len(long) == 120
    assert long.endswith("...")
    assert sanitize_resolver_error(ValueError()) == "ValueError"
    assert sanitize_resolver_error(None) is None


# ── Place details ─────────────────────────────────────────────────────────────

def test_details_are_fetched_in_bounded_batches():
    state = {"active": 0, "peak": 0, "calls": []}

    async def fetch(place_id: str):
        state["calls"].append(place_id)
        state["active"] += 1
        state["peak"] = max(state["peak"], state["active"])
        await asyncio.sleep(0)
        state["active"] -= 1
        if place_id == "bad":
            raise ConnectionError("nope")
        return PlaceLite(place_id=place_id, formatted_address=f"{place_id} street")

    ids = ["a", "b", "a", "bad", "c", "", "d"]
    details = asyncio.run(fetch_place_details_batched(ids, fetch, batch_size=2))

    assert state["peak"] <= 2
    assert sorted(state["calls"]) == ["a", "b", "bad", "c", "d"]
    assert sorted(details) == ["a", "b", "c", "d"]


def test_enrich_fills_only_missing_fields():
    async def fetch(place_id: str):
        return PlaceLite(place_id=place_id, name="Other name", formatted_address="1 Hayes St", rating=4.5)

    enriched = asyncio.run(enrich_plan_with_details(calm_plan(), fetch))
    lite = enriched.stops[0].place_lite
    assert lite.name == "Place s1"
    assert lite.formatted_address == "1 Hayes St"
    assert lite.rating == 4.5


def test_google_details_fetcher():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/places/pid-9")
        return httpx.Response(200, json={
            "id": "pid-9",
            "displayName": {"text": "Nine"},
            "types": ["Bar"],
            "formattedAddress": "9 Oak St",
            "rating": 4,
            "priceLevel": "PRICE_LEVEL_EXPENSIVE",
            "photos": [{"name": "places/pid-9/photos/abc"}],
        })

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    lite = asyncio.run(GooglePlaceDetailsFetcher(api_key="k", client=client)("pid-9"))
    assert lite.name == "Nine"
    assert lite.types == ("bar",)
    assert lite.price_level == 3
    assert lite.rating == 4.0
    assert lite.photo_ref == "places/pid-9/photos/abc"
