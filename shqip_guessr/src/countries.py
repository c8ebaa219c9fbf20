"""
Static geography for the game: country bounds, safe zones, hotspots and the
bbox sampler used to query Mapillary.

Safe zones are boxes strictly inside Kosovo / Albania, inset from borders and
the coast, so any image inside one can be shown without ambiguity.
"""

import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Optional, Tuple

from shqip_guessr.providers.mapillary_provider import image_coordinates

CountryCode = Literal["XK", "AL"]

COUNTRY_CODES: Tuple[CountryCode, ...] = ("XK", "AL")

# Mapillary rejects /images bboxes with area >= 0.01 deg^2
MAPILLARY_MAX_BBOX_AREA = 0.01
# ~4km box, area 0.0016 deg^2
SEARCH_BOX_SIZE_DEG = 0.04
# hotspot centre jitter, +/- half of this per axis (~1km)
HOTSPOT_JITTER_DEG = 0.02
# fallback pool carries no country tags; north of this is treated as Kosovo
KOSOVO_MIN_LAT = 41.85


@dataclass(frozen=True)
class Bounds:
    west: float
    south: float
    east: float
    north: float

    def __post_init__(self):
        if not self.west < self.east:
            raise ValueError(f"Invalid bounds: west {self.west} must be < east {self.east}")
        if not self.south < self.north:
            raise ValueError(f"Invalid bounds: south {self.south} must be < north {self.north}")

    @property
    def area(self) -> float:
        return (self.east - self.west) * (self.north - self.south)

    @property
    def center(self) -> Tuple[float, float]:
        """Return (lat, lng) of the box centre."""
        return ((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    def contains(self, lat: float, lng: float) -> bool:
        """Inclusive point-in-box test."""
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def to_param(self) -> str:
        """Format as the `west,south,east,north` string the Graph API expects."""
        return f"{self.west},{self.south},{self.east},{self.north}"


@dataclass(frozen=True)
class Hotspot:
    country: CountryCode
    name: str
    lat: float
    lng: float


# Visual map bounds, not search bounds.
COUNTRY_BOUNDS: Dict[CountryCode, Bounds] = {
    "XK": Bounds(west=20.0, south=41.85, east=21.8, north=43.27),
    "AL": Bounds(west=19.1, south=39.63, east=21.1, north=42.66),
}

PLAY_BOUNDS = Bounds(
    west=min(b.west for b in COUNTRY_BOUNDS.values()),
    south=min(b.south for b in COUNTRY_BOUNDS.values()),
    east=max(b.east for b in COUNTRY_BOUNDS.values()),
    north=max(b.north for b in COUNTRY_BOUNDS.values()),
)

COUNTRY_LABELS: Dict[CountryCode, str] = {"XK": "Kosovo", "AL": "Albania"}

COUNTRY_SAFE_ZONES: Dict[CountryCode, Tuple[Bounds, ...]] = {
    "XK": (
        # Central/East (Prishtina, Ferizaj, Gjilan, Kamenice)
        Bounds(west=21.0, south=42.2, east=21.6, north=42.8),
        # West (Peja, Gjakova, Decan)
        Bounds(west=20.25, south=42.3, east=20.6, north=42.7),
        # South (Prizren, Suhareke)
        Bounds(west=20.6, south=42.15, east=20.9, north=42.4),
        # North (Mitrovica South, Vushtrri)
        Bounds(west=20.8, south=42.7, east=21.1, north=42.95),
    ),
    "AL": (
        # North-West (Shkoder, Lezhe)
        Bounds(west=19.45, south=41.7, east=19.7, north=42.1),
        # Central Coast (Tirana, Durres, Kavaje), starts at 19.4 to stay off the sea
        Bounds(west=19.4, south=41.0, east=19.95, north=41.5),
        # Central Inland (Elbasan, Lushnje, Berat)
        Bounds(west=19.7, south=40.6, east=20.3, north=41.1),
        # South-West (Fier, Vlore)
        Bounds(west=19.45, south=40.4, east=19.8, north=40.8),
        # Deep South (Sarande, Gjirokaster, Tepelene), above 39.8 to stay out of Greece
        Bounds(west=19.9, south=39.85, east=20.15, north=40.3),
        # South-East (Korce, Pogradec), west of 20.8 to stay out of Greece/North Macedonia
        Bounds(west=20.6, south=40.55, east=20.75, north=40.9),
    ),
}

HOTSPOTS: Tuple[Hotspot, ...] = (
    Hotspot("XK", "Prishtina", 42.6629, 21.1655),
    Hotspot("XK", "Prizren", 42.2141, 20.7410),
    Hotspot("XK", "Peja", 42.6600, 20.2900),
    Hotspot("XK", "Gjakova", 42.3833, 20.4333),
    Hotspot("XK", "Mitrovica", 42.8900, 20.8660),
    Hotspot("XK", "Ferizaj", 42.3700, 21.1500),
    Hotspot("XK", "Gjilan", 42.4600, 21.4600),
    Hotspot("AL", "Tirana", 41.3275, 19.8187),
    Hotspot("AL", "Durres", 41.3246, 19.4565),
    Hotspot("AL", "Vlore", 40.4650, 19.4850),
    Hotspot("AL", "Shkoder", 42.0683, 19.5126),
    Hotspot("AL", "Elbasan", 41.1125, 20.0822),
    Hotspot("AL", "Fier", 40.7239, 19.5562),
    Hotspot("AL", "Korce", 40.6150, 20.7770),
    Hotspot("AL", "Sarande", 39.8756, 20.0053),
)

ALL_SAFE_ZONES: Tuple[Bounds, ...] = tuple(z for code in COUNTRY_CODES for z in COUNTRY_SAFE_ZONES[code])


def country_label(country: CountryCode) -> str:
    return COUNTRY_LABELS[country]


def random_country(rng: Optional[random.Random] = None) -> CountryCode:
    rng = rng or random
    return "XK" if rng.random() < 0.5 else "AL"


def is_location_safe(lat: float, lng: float) -> bool:
    """True if the point falls inside any safe zone of either country."""
    return any(zone.contains(lat, lng) for zone in ALL_SAFE_ZONES)


def infer_country_from_lat(lat: float) -> CountryCode:
    """Rough country guess from latitude alone.

    Only used for fallback-pool images, which carry no country metadata.
    Northern Albania (Shkoder) sits above the threshold and will be labelled XK.
    """
    return "XK" if lat > KOSOVO_MIN_LAT else "AL"


def filter_safe_images(images: Iterable[dict]) -> List[dict]:
    """Drop Mapillary records whose coordinates are missing or outside every safe zone."""
    out = []
    for img in images:
        coords = image_coordinates(img)
        if coords is None:
            continue
        lng, lat = coords
        if is_location_safe(lat, lng):
            out.append(img)
    return out


def _box_around(lat: float, lng: float, size: float) -> Bounds:
    half = size / 2.0
    return Bounds(west=lng - half, south=lat - half, east=lng + half, north=lat + half)


def sample_bbox_in_zone(zone: Bounds, size: float = SEARCH_BOX_SIZE_DEG,
                        rng: Optional[random.Random] = None) -> Bounds:
    """Pick a random box of side `size` that stays inside `zone`.

    The centre is drawn from the zone inset by half the box on every side.
    On an axis where the zone is narrower than the box, the zone centre is used.
    """
    rng = rng or random
    margin = size / 2.0
    min_lng, max_lng = zone.west + margin, zone.east - margin
    min_lat, max_lat = zone.south + margin, zone.north - margin
    center_lat, center_lng = zone.center

    lng = rng.uniform(min_lng, max_lng) if min_lng < max_lng else center_lng
    lat = rng.uniform(min_lat, max_lat) if min_lat < max_lat else center_lat
    return _box_around(lat, lng, size)


def random_search_bbox(country: CountryCode, rng: Optional[random.Random] = None) -> Bounds:
    """Produce a small search bbox for `country`.

    Half the time the box is centred (with ~1km jitter) on a hotspot, which
    has far better image coverage than rural safe-zone interiors; otherwise it
    is a random box inside one of the country's safe zones.
    """
    rng = rng or random
    if rng.random() < 0.5:
        spots = [h for h in HOTSPOTS if h.country == country]
        if spots:
            spot = rng.choice(spots)
            half_jitter = HOTSPOT_JITTER_DEG / 2.0
            lng = spot.lng + rng.uniform(-half_jitter, half_jitter)
            lat = spot.lat + rng.uniform(-half_jitter, half_jitter)
            return _box_around(lat, lng, SEARCH_BOX_SIZE_DEG)

    zone = rng.choice(COUNTRY_SAFE_ZONES[country])
    return sample_bbox_in_zone(zone, SEARCH_BOX_SIZE_DEG, rng)
