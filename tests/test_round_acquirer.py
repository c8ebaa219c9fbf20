import asyncio
import random

import pytest

from shqip_guessr.errors import FallbackExhaustion, NetworkError
from shqip_guessr.providers import mapillary_provider
from shqip_guessr.src import metrics
from shqip_guessr.src.countries import is_location_safe
from shqip_guessr.src.round_acquirer import RoundAcquirer, round_from_image
from conftest import make_image


def _acquirer(**kwargs):
    kwargs.setdefault("fallback_ids", ("111", "222", "333"))
    kwargs.setdefault("rng", random.Random(5))
    return RoundAcquirer("tok", **kwargs)


def _patch_search(monkeypatch, results):
    calls = []

    async def fake_search(token, bbox, limit=50, session=None, timeout=30.0):
        calls.append(bbox)
        result = results(len(calls)) if callable(results) else results
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(mapillary_provider, "search_images_by_bbox", fake_search)
    return calls


def _patch_lookup(monkeypatch, records):
    calls = []
    records = list(records)

    async def fake_fetch(token, image_id, session=None, timeout=30.0):
        calls.append(image_id)
        record = records.pop(0)
        if isinstance(record, Exception):
            raise record
        return dict(record)

    monkeypatch.setattr(mapillary_provider, "fetch_image_by_id", fake_fetch)
    return calls


@pytest.mark.asyncio
async def test_search_hit_returns_round_for_country(monkeypatch):
    calls = _patch_search(monkeypatch, [make_image("77")])
    lookups = _patch_lookup(monkeypatch, [])

    rnd = await _acquirer().acquire_round(country="XK")

    assert rnd.country == "XK"
    assert rnd.image_id == "77"
    assert rnd.external_view_url == "https://www.mapillary.com/app/?pKey=77"
    assert is_location_safe(rnd.location.lat, rnd.location.lng)
    assert 1 <= len(calls) <= 5
    assert lookups == []
    data = await metrics.get_metrics()
    assert data["counters"]["round.search_hit"] == 1
    assert data["latencies"]["round.acquire_ms"]["count"] == 1


@pytest.mark.asyncio
async def test_unsafe_search_results_are_never_returned(monkeypatch):
    _patch_search(monkeypatch, [make_image("sea", lng=19.2, lat=41.3)])
    _patch_lookup(monkeypatch, [make_image("111", key="geometry")])

    rnd = await _acquirer().acquire_round(country="AL")

    assert rnd.image_id == "111"
    assert is_location_safe(rnd.location.lat, rnd.location.lng)


@pytest.mark.asyncio
async def test_all_searches_empty_uses_fallback(monkeypatch):
    calls = _patch_search(monkeypatch, [])
    lookups = _patch_lookup(monkeypatch, [make_image("222", lng=19.8187, lat=41.3275, key="geometry")])

    rnd = await _acquirer().acquire_round()

    assert len(calls) == 5
    assert len(lookups) == 1
    assert rnd.image_id == "222"
    assert rnd.country == "AL"
    data = await metrics.get_metrics()
    assert data["counters"]["round.search_exhausted"] == 1
    assert data["counters"]["round.fallback"] == 1


@pytest.mark.asyncio
async def test_search_errors_count_as_empty(monkeypatch):
    _patch_search(monkeypatch, NetworkError("boom", status=500))
    _patch_lookup(monkeypatch, [make_image("333", key="geometry")])

    rnd = await _acquirer().acquire_round(country="XK")

    assert rnd.image_id == "333"


@pytest.mark.asyncio
async def test_fallback_retries_past_unsafe_lookups(monkeypatch):
    _patch_search(monkeypatch, [])
    lookups = _patch_lookup(monkeypatch, [
        make_image("111", lng=19.2, lat=41.3, key="geometry"),
        make_image("222", lng=20.02, lat=42.02, key="geometry"),
        make_image("333", key="geometry"),
    ])

    rnd = await _acquirer().acquire_round()

    assert len(lookups) == 3
    assert rnd.image_id == "333"
    assert rnd.country == "XK"
    data = await metrics.get_metrics()
    assert data["counters"]["round.fallback_unsafe"] == 2


@pytest.mark.asyncio
async def test_fallback_exhaustion_after_three_failures(monkeypatch):
    _patch_search(monkeypatch, [])
    lookups = _patch_lookup(monkeypatch, [
        NetworkError("gone", status=404),
        make_image("222", lng=19.2, lat=41.3, key="geometry"),
        {"id": "333"},
    ])

    with pytest.raises(FallbackExhaustion):
        await _acquirer().acquire_round()

    assert len(lookups) == 3
    data = await metrics.get_metrics()
    assert data["counters"]["round.failed"] == 1


@pytest.mark.asyncio
async def test_empty_pool_is_fatal(monkeypatch):
    _patch_search(monkeypatch, [])
    lookups = _patch_lookup(monkeypatch, [])

    with pytest.raises(FallbackExhaustion):
        await _acquirer(fallback_ids=()).acquire_round()
    assert lookups == []


@pytest.mark.asyncio
async def test_deadline_falls_back_without_waiting_for_searches(monkeypatch):
    async def fake_search(token, bbox, limit=50, session=None, timeout=30.0):
        await asyncio.sleep(0.3)
        return [make_image("late")]

    monkeypatch.setattr(mapillary_provider, "search_images_by_bbox", fake_search)
    _patch_lookup(monkeypatch, [make_image("111", key="geometry")])

    loop = asyncio.get_running_loop()
    started = loop.time()
    rnd = await _acquirer(urgent_timeout=0.05).acquire_round()

    assert rnd.image_id == "111"
    assert loop.time() - started < 0.25
    data = await metrics.get_metrics()
    assert data["counters"]["round.timeout"] == 1
    # losers keep running and are simply dropped
    await asyncio.sleep(0.35)


@pytest.mark.asyncio
async def test_preload_uses_longer_deadline(monkeypatch):
    async def fake_search(token, bbox, limit=50, session=None, timeout=30.0):
        await asyncio.sleep(0.1)
        return [make_image("slow-but-good")]

    monkeypatch.setattr(mapillary_provider, "search_images_by_bbox", fake_search)
    lookups = _patch_lookup(monkeypatch, [])

    rnd = await _acquirer(urgent_timeout=0.01, preload_timeout=5.0).acquire_round(is_preload=True)

    assert rnd.image_id == "slow-but-good"
    assert lookups == []


def test_round_from_image_prefers_large_thumbnail():
    image = make_image("5")
    image["thumb_1024_url"] = "https://images.example.com/5_1024.jpg"
    image["creator"] = {"username": "arben"}
    image["captured_at"] = 1700000000000

    rnd = round_from_image(image, "XK")

    assert rnd.image_url.endswith("5_2048.jpg")
    assert rnd.creator_username == "arben"
    assert rnd.captured_at == 1700000000000
    assert rnd.location.lng == pytest.approx(21.1655)
    assert rnd.round_id != round_from_image(image, "XK").round_id


def test_from_config_copies_round_settings():
    from shqip_guessr.config import get_config

    cfg = get_config()
    acquirer = RoundAcquirer.from_config(cfg, fallback_ids=["1"])
    assert acquirer.attempts == cfg.round_config.attempts
    assert acquirer.urgent_timeout == cfg.round_config.urgent_timeout
    assert acquirer.fallback_ids == ("1",)
