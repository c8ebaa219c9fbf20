"""
Distance and scoring.
"""
import math

EARTH_RADIUS_KM = 6371.0
MAX_ROUND_SCORE = 5000
# score decays by 1/e every 200km: ~1839 at 200km, ~677 at 400km
SCORE_DECAY_KM = 200.0


def haversine_km(a, b) -> float:
    """Great-circle distance in km between two points with `.lat` / `.lng`."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def score_from_distance_km(distance_km: float) -> int:
    raw = MAX_ROUND_SCORE * math.exp(-distance_km / SCORE_DECAY_KM)
    return max(0, round(raw))
