"""Harvest known-good Mapillary image IDs for the round fallback pool.

Sweeps random safe-zone boxes across Kosovo and Albania, keeps images that
have coordinates, a thumbnail and a location inside a safe zone, and writes
the IDs to the pool file the API loads at startup.

Usage:
  python -m shqip_guessr.scripts.generate_fallbacks --target 200

Requires MAPILLARY_TOKEN in the environment (or .env.local).
"""
import argparse
import json
import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import requests

from shqip_guessr.config import get_config
from shqip_guessr.providers.mapillary_provider import (
    GRAPH_API_URL,
    image_coordinates,
    image_thumbnail_url,
)
from shqip_guessr.src.countries import is_location_safe, random_country, random_search_bbox

HARVEST_FIELDS = "id,computed_geometry,thumb_2048_url,thumb_1024_url"


def is_pool_worthy(image: dict) -> bool:
    coords = image_coordinates(image)
    if not image.get("id") or coords is None or not image_thumbnail_url(image):
        return False
    lng, lat = coords
    return is_location_safe(lat, lng)


def harvest(
    token: str,
    target: int = 200,
    max_attempts: int = 50,
    limit: int = 100,
    session: Optional[requests.Session] = None,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Collect up to `target` unique pool-worthy IDs in at most `max_attempts` searches."""
    session = session or requests.Session()
    rng = rng or random.Random()
    collected = {}  # insertion-ordered set

    for attempt in range(1, max_attempts + 1):
        if len(collected) >= target:
            break
        country = random_country(rng)
        bbox = random_search_bbox(country, rng)
        print(f"Attempt {attempt}: {country} [{bbox.to_param()}] (have {len(collected)}/{target})")

        try:
            resp = session.get(
                f"{GRAPH_API_URL}/images",
                params={
                    "bbox": bbox.to_param(),
                    "fields": HARVEST_FIELDS,
                    "limit": str(limit),
                    "is_pano": "false",
                },
                headers={"Authorization": f"OAuth {token}"},
                timeout=30,
            )
            resp.raise_for_status()
            images = resp.json().get("data") or []
        except (requests.RequestException, ValueError) as e:
            print(f"  -> API error: {e}")
            continue

        added = 0
        for img in images:
            if is_pool_worthy(img) and str(img["id"]) not in collected:
                collected[str(img["id"])] = None
                added += 1
        print(f"  -> {len(images)} raw, {added} new valid ids")

    return list(collected)[:target]


def write_pool(path: Path, ids: List[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "count": len(ids),
        "ids": ids,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
        f.write("\n")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    cfg = get_config()
    parser = argparse.ArgumentParser(description="Generate the round fallback ID pool")
    parser.add_argument("--target", "-t", type=int, default=200, help="Number of IDs to collect")
    parser.add_argument("--max-attempts", type=int, default=50, help="Give up after this many searches")
    parser.add_argument("--limit", "-l", type=int, default=100, help="Images requested per search")
    parser.add_argument("--output", "-o", default=cfg.fallback_ids_file, help="Pool file to write")
    args = parser.parse_args(argv)

    if not cfg.mapillary_token:
        print("No token found. Make sure MAPILLARY_TOKEN is set.", file=sys.stderr)
        return 1

    ids = harvest(cfg.mapillary_token, target=args.target, max_attempts=args.max_attempts, limit=args.limit)
    out = write_pool(Path(args.output), ids)
    print(f"Wrote {len(ids)} ids to {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
