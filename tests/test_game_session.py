import asyncio

import pytest

from shqip_guessr.src.game_session import GameSession, Phase, get_or_fetch_round
from shqip_guessr.src.schemas import LngLat
from shqip_guessr.src.storage import SAVED_GAME_KEY, LocalStorage, load_saved_game
from shqip_guessr.utils import async_utils
from conftest import make_round


class FakeRoundApi:
    """Serves numbered rounds; `fail_next` makes the next N urgent calls raise."""

    def __init__(self):
        self.calls = []
        self.fail_next = 0

    async def fetch_round(self, preload=False):
        self.calls.append(preload)
        if not preload and self.fail_next:
            self.fail_next -= 1
            raise RuntimeError("Could not find any rounds")
        await asyncio.sleep(0)
        return make_round(len(self.calls))


@pytest.mark.asyncio
async def test_get_or_fetch_round_uses_cache():
    api = FakeRoundApi()
    cache = {}
    first = await get_or_fetch_round(cache, 2, api.fetch_round)
    second = await get_or_fetch_round(cache, 2, api.fetch_round)
    assert first is second
    assert api.calls == [False]
    assert cache[2] is first


@pytest.mark.asyncio
async def test_start_preloads_remaining_rounds(tmp_path):
    api = FakeRoundApi()
    session = GameSession(api.fetch_round, LocalStorage(tmp_path))

    first = await session.start()
    await session.wait_for_preloads()

    assert session.phase is Phase.GUESSING
    assert session.round is first
    assert sorted(session.rounds_cache) == [0, 1, 2, 3, 4]
    assert api.calls.count(True) == 4
    assert api.calls.count(False) == 1


@pytest.mark.asyncio
async def test_preloaded_round_is_not_refetched(tmp_path):
    api = FakeRoundApi()
    session = GameSession(api.fetch_round, LocalStorage(tmp_path))
    await session.start()
    await session.wait_for_preloads()
    cached = session.rounds_cache[1]
    calls_before = len(api.calls)

    session.confirm_guess(LngLat(lng=21.0, lat=42.5))
    assert await session.next_round()

    assert session.round is cached
    assert len(api.calls) == calls_before


@pytest.mark.asyncio
async def test_confirm_guess_scores_and_saves(tmp_path):
    storage = LocalStorage(tmp_path)
    api = FakeRoundApi()
    session = GameSession(api.fetch_round, storage)
    await session.start()

    reveal = session.confirm_guess(session.round.location)

    assert reveal.distance_km == 0
    assert reveal.score == 5000
    assert session.phase is Phase.REVEALED
    saved = load_saved_game(storage)
    assert saved.total_score == 5000
    assert saved.current_round_index == 0
    assert len(saved.rounds) == 1
    assert saved.rounds[0].round_id == session.round.round_id
    await session.wait_for_preloads()


@pytest.mark.asyncio
async def test_cannot_guess_twice(tmp_path):
    session = GameSession(FakeRoundApi().fetch_round, LocalStorage(tmp_path))
    await session.start()
    session.confirm_guess(LngLat(lng=20.0, lat=42.0))
    with pytest.raises(RuntimeError):
        session.confirm_guess(LngLat(lng=20.0, lat=42.0))
    await session.wait_for_preloads()


@pytest.mark.asyncio
async def test_full_game_finishes(tmp_path):
    storage = LocalStorage(tmp_path)
    session = GameSession(FakeRoundApi().fetch_round, storage, total_rounds=3)
    await session.start()

    for _ in range(3):
        session.confirm_guess(LngLat(lng=19.8187, lat=41.3275))
        advanced = await session.next_round()

    assert advanced is False
    assert session.finished
    saved = session.saved_game()
    assert len(saved.rounds) == 3
    assert saved.total_score == session.total_score
    await session.wait_for_preloads()


@pytest.mark.asyncio
async def test_load_failure_enters_error_and_retry_recovers(tmp_path):
    api = FakeRoundApi()
    api.fail_next = 1
    session = GameSession(api.fetch_round, LocalStorage(tmp_path), total_rounds=1)

    assert await session.start() is None
    assert session.phase is Phase.ERROR
    assert session.error == "Could not find any rounds"

    recovered = await session.retry()
    assert recovered is not None
    assert session.phase is Phase.GUESSING
    assert session.round_index == 0


@pytest.mark.asyncio
async def test_retry_reloads_the_failed_round(tmp_path):
    api = FakeRoundApi()
    session = GameSession(api.fetch_round, LocalStorage(tmp_path), total_rounds=3)
    await session.start()
    await session.wait_for_preloads()
    session.rounds_cache.pop(1)

    session.confirm_guess(LngLat(lng=20.0, lat=42.0))
    api.fail_next = 1
    await session.next_round()
    assert session.phase is Phase.ERROR
    # the shown round is still round 0 until the reload succeeds
    assert session.round_index == 0

    await session.retry()
    assert session.phase is Phase.GUESSING
    assert session.round_index == 1


@pytest.mark.asyncio
async def test_start_clears_previous_game(tmp_path):
    storage = LocalStorage(tmp_path)
    session = GameSession(FakeRoundApi().fetch_round, storage)
    await session.start()
    session.confirm_guess(LngLat(lng=20.0, lat=42.0))
    assert load_saved_game(storage) is not None

    await session.start()
    assert load_saved_game(storage) is None
    assert session.total_score == 0
    await session.wait_for_preloads()


def test_invalid_round_count(tmp_path):
    with pytest.raises(ValueError):
        GameSession(FakeRoundApi().fetch_round, LocalStorage(tmp_path), total_rounds=0)


@pytest.mark.asyncio
async def test_confirm_guess_over_corrupt_store_starts_fresh(tmp_path):
    storage = LocalStorage(tmp_path)
    session = GameSession(FakeRoundApi().fetch_round, storage, total_rounds=1)
    await session.start()
    storage._path_for(SAVED_GAME_KEY).write_bytes(b"\xff\xfe{garbage")

    reveal = session.confirm_guess(LngLat(lng=20.0, lat=42.0))

    saved = load_saved_game(storage)
    assert session.phase is Phase.REVEALED
    assert saved.total_score == reveal.score == session.total_score
    assert len(saved.rounds) == 1


class BrokenStorage(LocalStorage):
    def set_item(self, key, value):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_failed_save_leaves_session_unchanged(tmp_path):
    session = GameSession(FakeRoundApi().fetch_round, BrokenStorage(tmp_path), total_rounds=1)
    await session.start()

    with pytest.raises(OSError):
        session.confirm_guess(LngLat(lng=20.0, lat=42.0))

    assert session.phase is Phase.GUESSING
    assert session.total_score == 0
    assert session.reveal is None


@pytest.mark.asyncio
async def test_restart_keeps_previous_preloads_alive(tmp_path):
    release = asyncio.Event()
    fetched = []

    async def slow_fetch(preload=False):
        if preload:
            await release.wait()
        fetched.append(preload)
        return make_round(len(fetched))

    session = GameSession(slow_fetch, LocalStorage(tmp_path), total_rounds=3)
    await session.start()
    first_preloads = list(session._preload_tasks)
    await session.start()

    assert all(task in async_utils._BACKGROUND_TASKS for task in first_preloads)
    release.set()
    await asyncio.gather(*first_preloads)
    await session.wait_for_preloads()
    # stale results from the first game are dropped
    assert fetched.count(True) == 4
    assert sorted(session.rounds_cache) == [0, 1, 2]
