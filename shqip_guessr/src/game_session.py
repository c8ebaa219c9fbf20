"""
Client-side game session: round loading with a preload cache, guess scoring
and saved-game bookkeeping.

The preload cache is a plain `dict[int, Round]` owned by the session. It is
cleared at `start()` and passed explicitly to `get_or_fetch_round`.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from shqip_guessr.src.geo import haversine_km, score_from_distance_km
from shqip_guessr.src.schemas import LngLat, Round, SavedGame, SavedRound
from shqip_guessr.src.storage import LocalStorage, clear_saved_game, load_saved_game, save_game
from shqip_guessr.utils.async_utils import spawn

logger = logging.getLogger(__name__)

TOTAL_ROUNDS = 5

FetchRound = Callable[[bool], Awaitable[Round]]


class Phase(Enum):
    LOADING = "loading"
    GUESSING = "guessing"
    REVEALED = "revealed"
    ERROR = "error"


@dataclass(frozen=True)
class Reveal:
    distance_km: float
    score: int


async def get_or_fetch_round(cache: Dict[int, Round], index: int, fetch_round: FetchRound) -> Round:
    """Return the cached round for `index`, fetching (urgently) and caching on a miss."""
    cached = cache.get(index)
    if cached is not None:
        return cached
    fetched = await fetch_round(False)
    return cache.setdefault(index, fetched)


class GameSession:
    """One play-through of `total_rounds` rounds.

    Not safe for concurrent use: the UI drives it one action at a time.
    """

    def __init__(self, fetch_round: FetchRound, storage: LocalStorage, total_rounds: int = TOTAL_ROUNDS):
        if total_rounds < 1:
            raise ValueError(f"Invalid round count: {total_rounds}")
        self.fetch_round = fetch_round
        self.storage = storage
        self.total_rounds = total_rounds

        self.rounds_cache: Dict[int, Round] = {}
        self.phase = Phase.LOADING
        self.round_index = 0
        self.round: Optional[Round] = None
        self.guess: Optional[LngLat] = None
        self.reveal: Optional[Reveal] = None
        self.total_score = 0
        self.error: Optional[str] = None
        self.finished = False

        self._pending_index = 0
        self._generation = 0
        self._preload_tasks: List[asyncio.Task] = []

    async def start(self) -> Optional[Round]:
        """Begin a new session: wipe the saved game and cache, preload, load round 0."""
        clear_saved_game(self.storage)
        self._generation += 1
        self.rounds_cache.clear()
        self.total_score = 0
        self.round_index = 0
        self.round = None
        self.finished = False

        generation = self._generation
        self._preload_tasks = [
            spawn(self._preload(i, generation)) for i in range(1, self.total_rounds)
        ]
        return await self.load_round(0)

    async def _preload(self, index: int, generation: int) -> None:
        if index in self.rounds_cache:
            return
        try:
            fetched = await self.fetch_round(True)
        except Exception as e:
            logger.warning("Preload failed for round %d: %s", index, e)
            return
        # drop results that arrive after a restart
        if generation == self._generation:
            self.rounds_cache.setdefault(index, fetched)

    async def wait_for_preloads(self) -> None:
        if self._preload_tasks:
            await asyncio.gather(*self._preload_tasks, return_exceptions=True)

    async def load_round(self, index: int) -> Optional[Round]:
        """Show round `index`; on failure the session enters the error phase."""
        self.phase = Phase.LOADING
        self.error = None
        self.reveal = None
        self.guess = None
        self._pending_index = index

        try:
            loaded = await get_or_fetch_round(self.rounds_cache, index, self.fetch_round)
        except Exception as e:
            logger.error("Could not load round %d: %s", index, e)
            self.error = str(e) or "Unknown error"
            self.phase = Phase.ERROR
            return None

        self.round = loaded
        self.round_index = index
        self.phase = Phase.GUESSING
        return loaded

    async def retry(self) -> Optional[Round]:
        """Reload the round whose load failed."""
        return await self.load_round(self._pending_index)

    def set_guess(self, guess: LngLat) -> None:
        if self.phase is not Phase.GUESSING:
            raise RuntimeError(f"Cannot place a guess while {self.phase.value}")
        self.guess = guess

    def confirm_guess(self, guess: Optional[LngLat] = None) -> Reveal:
        """Score the guess, record it in the saved game and reveal the answer."""
        if guess is not None:
            self.set_guess(guess)
        if self.phase is not Phase.GUESSING or self.round is None or self.guess is None:
            raise RuntimeError("No round to guess or no guess placed")

        distance_km = haversine_km(self.guess, self.round.location)
        score = score_from_distance_km(distance_km)
        total_score = self.total_score + score

        # persist first; session state only moves once the save succeeded
        existing = load_saved_game(self.storage)
        rounds = list(existing.rounds) if existing else []
        rounds.append(SavedRound(
            round_id=self.round.round_id,
            image_id=self.round.image_id,
            country=self.round.country,
            true_location=self.round.location,
            guess_location=self.guess,
            distance_km=distance_km,
            score=score,
        ))
        save_game(self.storage, SavedGame(
            version=1,
            total_rounds=self.total_rounds,
            current_round_index=self.round_index,
            total_score=total_score,
            rounds=rounds,
        ))

        self.total_score = total_score
        self.reveal = Reveal(distance_km=distance_km, score=score)
        self.phase = Phase.REVEALED
        return self.reveal

    async def next_round(self) -> bool:
        """Advance; returns False (and marks the session finished) after the last round."""
        if self.round_index + 1 >= self.total_rounds:
            self.finished = True
            return False
        await self.load_round(self.round_index + 1)
        return True

    def saved_game(self) -> Optional[SavedGame]:
        return load_saved_game(self.storage)
