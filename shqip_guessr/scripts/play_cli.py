"""Play a game in the terminal against a running shqip-guessr server.

Each round prints the image URL; answer with `lat,lng`. Progress is saved to
the local storage directory exactly like the browser client does.

Usage:
  python -m shqip_guessr.scripts.play_cli --base-url http://localhost:5000
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import aiohttp

from shqip_guessr.providers.round_client import RoundClient
from shqip_guessr.providers.utils import USER_AGENT
from shqip_guessr.src.countries import PLAY_BOUNDS, country_label
from shqip_guessr.src.game_session import TOTAL_ROUNDS, GameSession, Phase
from shqip_guessr.src.results import summarize_game, verdict_for_distance
from shqip_guessr.src.schemas import LngLat
from shqip_guessr.src.storage import LocalStorage

DEFAULT_STORAGE_DIR = Path.home() / ".shqip-guessr"


def parse_guess(text: str) -> LngLat:
    """Parse `lat,lng`; the point must lie inside the playable map bounds."""
    parts = [p.strip() for p in text.replace(" ", ",").split(",") if p.strip()]
    if len(parts) != 2:
        raise ValueError("expected 'lat,lng'")
    lat, lng = float(parts[0]), float(parts[1])
    if not PLAY_BOUNDS.contains(lat, lng):
        raise ValueError("guess must be inside Kosovo / Albania map bounds")
    return LngLat(lng=lng, lat=lat)


async def _prompt(message: str) -> str:
    return await asyncio.to_thread(input, message)


async def play(session: GameSession) -> None:
    await session.start()
    while True:
        while session.phase is Phase.ERROR:
            print(f"Couldn't load a round: {session.error}")
            answer = (await _prompt("Retry? [Y/n] ")).strip().lower()
            if answer.startswith("n"):
                return
            await session.retry()

        rnd = session.round
        print(f"\n{country_label(rnd.country)} - Round {session.round_index + 1}/{session.total_rounds}")
        print(f"Image: {rnd.image_url}")
        if rnd.creator_username:
            print(f"Photo by {rnd.creator_username} ({rnd.external_view_url})")

        while True:
            try:
                guess = parse_guess(await _prompt("Your guess (lat,lng): "))
                break
            except ValueError as e:
                print(f"  {e}")

        reveal = session.confirm_guess(guess)
        print(f"{verdict_for_distance(reveal.distance_km)} {reveal.distance_km:.1f} km, "
              f"+{reveal.score} (total {session.total_score})")
        print(f"Answer: {rnd.location.lat:.4f},{rnd.location.lng:.4f}")

        if not await session.next_round():
            break

    summary = summarize_game(session.saved_game())
    print(f"\nGame over: {summary.rank.emoji} {summary.rank.label} - "
          f"{summary.total_score:,} / {summary.max_possible:,} pts")


async def _main(args) -> int:
    storage = LocalStorage(args.storage_dir)
    async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as http:
        client = RoundClient(args.base_url, session=http)
        session = GameSession(client.fetch_round, storage, total_rounds=args.rounds)
        try:
            await play(session)
        finally:
            await session.wait_for_preloads()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Play shqip-guessr in the terminal")
    parser.add_argument("--base-url", "-u", default="http://localhost:5000", help="Round API base URL")
    parser.add_argument("--rounds", "-r", type=int, default=TOTAL_ROUNDS, help="Rounds per game")
    parser.add_argument("--storage-dir", default=str(DEFAULT_STORAGE_DIR), help="Where the saved game is kept")
    args = parser.parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except (KeyboardInterrupt, EOFError):
        return 130


if __name__ == "__main__":
    sys.exit(main())
