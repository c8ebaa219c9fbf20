"""
Mapillary Graph API client: bbox image search, point lookup by ID and the
structural "is this image playable" filter.

Records are passed around as the raw Graph API dicts. This module does no
geographic filtering; safe-zone checks live in `shqip_guessr.src.countries`.
"""
import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import aiohttp

from shqip_guessr.errors import NetworkError
from shqip_guessr.providers.utils import get_session

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.mapillary.com"

SEARCH_FIELDS = [
    "id",
    "thumb_2048_url",
    "thumb_1024_url",
    "computed_geometry",
    "is_pano",
    "captured_at",
    "creator",
    "compass_angle",
]

# point lookups return `geometry`; it is what the fallback path validates
LOOKUP_FIELDS = [
    "id",
    "geometry",
    "thumb_2048_url",
    "thumb_1024_url",
    "captured_at",
    "creator",
    "compass_angle",
]

DEFAULT_SEARCH_LIMIT = 50
DEFAULT_TIMEOUT = 30.0

BboxLike = Union[Sequence[float], Any]


def _bbox_param(bbox: BboxLike) -> str:
    if hasattr(bbox, "to_param"):
        return bbox.to_param()
    west, south, east, north = bbox
    return f"{west},{south},{east},{north}"


def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"OAuth {token}"}


async def _get_json(
    url: str,
    params: Dict[str, str],
    token: str,
    session: Optional[aiohttp.ClientSession],
    timeout: float,
) -> Any:
    """GET `url` and decode JSON, mapping every failure to NetworkError."""
    try:
        async with get_session(session) as sess:
            async with sess.get(
                url,
                params=params,
                headers=_auth_headers(token),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    try:
                        body = await resp.text()
                    except Exception:
                        body = ""
                    raise NetworkError(
                        f"Mapillary request failed ({resp.status}): {body}",
                        status=resp.status,
                        body=body,
                    )
                return await resp.json()
    except NetworkError:
        raise
    except asyncio.TimeoutError as exc:
        raise NetworkError(f"Mapillary request timed out after {timeout}s") from exc
    except (aiohttp.ClientError, ValueError) as exc:
        raise NetworkError(f"Mapillary request failed: {exc}") from exc


async def search_images_by_bbox(
    token: str,
    bbox: BboxLike,
    limit: int = DEFAULT_SEARCH_LIMIT,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[Dict]:
    """Search non-panoramic Mapillary images inside a small bbox.

    The bbox must stay under the Graph API area ceiling (0.01 deg^2); callers
    are expected to use `random_search_bbox`, which always does.

    Returns the raw `data` records (possibly empty).

    Raises:
        NetworkError: On non-2xx status (body attached) or transport failure.
    """
    params = {
        "bbox": _bbox_param(bbox),
        "fields": ",".join(SEARCH_FIELDS),
        "limit": str(limit),
        "is_pano": "false",
    }
    data = await _get_json(f"{GRAPH_API_URL}/images", params, token, session, timeout)
    items = data.get("data") if isinstance(data, dict) else None
    return items if isinstance(items, list) else []


async def fetch_image_by_id(
    token: str,
    image_id: str,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Dict:
    """Fetch one image record by ID (fresh thumbnail URLs included).

    Raises:
        NetworkError: On non-2xx status, transport failure or a non-object body.
    """
    params = {"fields": ",".join(LOOKUP_FIELDS)}
    data = await _get_json(f"{GRAPH_API_URL}/{quote(str(image_id), safe='')}", params, token, session, timeout)
    if not isinstance(data, dict):
        raise NetworkError(f"Unexpected lookup response for image {image_id}")
    return data


def image_thumbnail_url(image: Dict) -> Optional[str]:
    """Best thumbnail URL: 2048px, then 1024px."""
    return image.get("thumb_2048_url") or image.get("thumb_1024_url") or None


def image_coordinates(image: Dict) -> Optional[Tuple[float, float]]:
    """Return `(lng, lat)` from computed_geometry (search) or geometry (lookup).

    Only an exactly-two-element numeric pair counts.
    """
    for key in ("computed_geometry", "geometry"):
        geom = image.get(key)
        if not isinstance(geom, dict):
            continue
        coords = geom.get("coordinates")
        if (
            isinstance(coords, (list, tuple))
            and len(coords) == 2
            and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in coords)
        ):
            return float(coords[0]), float(coords[1])
    return None


def image_creator_username(image: Dict) -> Optional[str]:
    creator = image.get("creator")
    if isinstance(creator, dict):
        return creator.get("username") or None
    return None


def mapillary_image_url(image_id: str) -> str:
    """Mapillary web viewer deep link for an image."""
    return f"https://www.mapillary.com/app/?pKey={quote(str(image_id), safe='')}"


def filter_playable(images: List[Dict]) -> List[Dict]:
    """Keep images with an id, a thumbnail and a coordinate pair."""
    return [
        img for img in images
        if img.get("id") and image_thumbnail_url(img) and image_coordinates(img) is not None
    ]


def pick_playable_image(images: List[Dict], rng: Optional[random.Random] = None) -> Optional[Dict]:
    """Uniformly pick one playable image, or None if there is none."""
    playable = filter_playable(images)
    if not playable:
        return None
    return (rng or random).choice(playable)
