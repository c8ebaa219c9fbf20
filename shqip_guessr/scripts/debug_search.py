"""Probe Mapillary coverage: run sample bbox searches and report hit rates.

Usage:
  python -m shqip_guessr.scripts.debug_search --runs 10 --country AL
"""
import argparse
import asyncio
import random
import sys
import time
from typing import List, Optional

import aiohttp

from shqip_guessr.config import get_config
from shqip_guessr.errors import NetworkError
from shqip_guessr.providers import mapillary_provider
from shqip_guessr.providers.utils import USER_AGENT
from shqip_guessr.src.countries import COUNTRY_CODES, filter_safe_images, random_country, random_search_bbox


async def run_searches(
    token: str,
    runs: int = 10,
    country: Optional[str] = None,
    limit: int = 50,
    session: Optional[aiohttp.ClientSession] = None,
    rng: Optional[random.Random] = None,
) -> List[dict]:
    """Run `runs` sequential searches; returns one stats dict per attempt."""
    rng = rng or random.Random()
    stats = []
    for i in range(1, runs + 1):
        code = country or random_country(rng)
        bbox = random_search_bbox(code, rng)
        started = time.monotonic()
        row = {"attempt": i, "country": code, "bbox": bbox.to_param()}
        try:
            images = await mapillary_provider.search_images_by_bbox(token, bbox, limit=limit, session=session)
        except NetworkError as e:
            row["error"] = str(e)
        else:
            safe = filter_safe_images(images)
            row.update(
                raw=len(images),
                safe=len(safe),
                playable=len(mapillary_provider.filter_playable(safe)),
            )
        row["ms"] = round((time.monotonic() - started) * 1000)
        stats.append(row)

        if "error" in row:
            print(f"Attempt {i}: {code} [{row['bbox']}] -> API error: {row['error']}")
        else:
            print(f"Attempt {i}: {code} [{row['bbox']}] -> {row['raw']} images, "
                  f"{row['safe']} safe, {row['playable']} playable in {row['ms']}ms")
    return stats


async def _main(args) -> int:
    token = get_config().mapillary_token
    if not token:
        print("No token found. Make sure MAPILLARY_TOKEN is set.", file=sys.stderr)
        return 1
    async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
        stats = await run_searches(token, runs=args.runs, country=args.country, limit=args.limit, session=session)
    hits = sum(1 for s in stats if s.get("playable"))
    print(f"\n{hits}/{len(stats)} searches had a playable image")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run sample Mapillary searches inside the safe zones")
    parser.add_argument("--runs", "-n", type=int, default=10, help="Number of searches")
    parser.add_argument("--country", "-c", choices=COUNTRY_CODES, default=None, help="Restrict to one country")
    parser.add_argument("--limit", "-l", type=int, default=50, help="Images requested per search")
    args = parser.parse_args(argv)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
