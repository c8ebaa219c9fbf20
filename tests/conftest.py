"""
Pytest configuration for shqip-guessr tests.

Environment is set at import time because `shqip_guessr.config` reads it when
first imported.
"""
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MAPILLARY_TOKEN", "test-token")
os.environ["REDIS_URL"] = ""

import pytest

from shqip_guessr.src import metrics
from shqip_guessr.src.fallbacks import load_fallback_ids
from shqip_guessr.src.schemas import LngLat, Round


@pytest.fixture(autouse=True)
def clean_state():
    metrics.reset()
    load_fallback_ids.cache_clear()
    yield
    metrics.reset()
    load_fallback_ids.cache_clear()


def make_image(image_id="1", lng=21.1655, lat=42.6629, thumb=True, key="computed_geometry"):
    """Mapillary-shaped record; Prishtina by default (inside an XK safe zone)."""
    image = {"id": image_id, key: {"type": "Point", "coordinates": [lng, lat]}}
    if thumb:
        image["thumb_2048_url"] = f"https://images.example.com/{image_id}_2048.jpg"
    return image


def make_round(n=0, lng=21.1655, lat=42.6629, country="XK"):
    return Round(
        round_id=f"round-{n}",
        image_id=str(1000 + n),
        image_url=f"https://images.example.com/{n}.jpg",
        country=country,
        location=LngLat(lng=lng, lat=lat),
        external_view_url=f"https://www.mapillary.com/app/?pKey={1000 + n}",
    )
