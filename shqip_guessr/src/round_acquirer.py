"""
Round acquisition: race several live Mapillary searches against a deadline,
and fall back to the curated ID pool when none of them produces a playable,
safe image in time.

Urgent requests (a player is waiting) get 4.5s before falling back;
background preloads get 60s, since eventual success matters more there.
"""

import asyncio
import logging
import random
import time
import uuid
from typing import Optional, Sequence

import aiohttp
from pydantic import ValidationError

from shqip_guessr.errors import FallbackExhaustion, NetworkError, TimeoutExhaustion
from shqip_guessr.providers import mapillary_provider
from shqip_guessr.src import metrics
from shqip_guessr.src.countries import (
    CountryCode,
    filter_safe_images,
    infer_country_from_lat,
    is_location_safe,
    random_country,
    random_search_bbox,
)
from shqip_guessr.src.schemas import LngLat, Round
from shqip_guessr.utils.async_utils import first_success

logger = logging.getLogger(__name__)


def round_from_image(image: dict, country: CountryCode) -> Round:
    """Build a Round from a Mapillary record.

    Raises:
        pydantic.ValidationError: If the record lacks a thumbnail, coordinates or id
    """
    coords = mapillary_provider.image_coordinates(image)
    location = LngLat(lng=coords[0], lat=coords[1]) if coords else None
    image_id = str(image.get("id") or "")
    return Round(
        round_id=str(uuid.uuid4()),
        image_id=image_id,
        image_url=mapillary_provider.image_thumbnail_url(image),
        country=country,
        location=location,
        captured_at=image.get("captured_at"),
        creator_username=mapillary_provider.image_creator_username(image),
        external_view_url=mapillary_provider.mapillary_image_url(image_id),
        compass_angle=image.get("compass_angle"),
    )


class RoundAcquirer:
    """Finds one playable round per `acquire_round` call.

    Holds only read-only configuration; every call is independent.
    """

    def __init__(
        self,
        token: str,
        session: Optional[aiohttp.ClientSession] = None,
        fallback_ids: Sequence[str] = (),
        attempts: int = 5,
        urgent_timeout: float = 4.5,
        preload_timeout: float = 60.0,
        search_limit: int = 100,
        fallback_retries: int = 3,
        request_timeout: float = 30.0,
        rng: Optional[random.Random] = None,
    ):
        self.token = token
        self.session = session
        self.fallback_ids = tuple(fallback_ids)
        self.attempts = attempts
        self.urgent_timeout = urgent_timeout
        self.preload_timeout = preload_timeout
        self.search_limit = search_limit
        self.fallback_retries = fallback_retries
        self.request_timeout = request_timeout
        self.rng = rng or random.Random()

    @classmethod
    def from_config(cls, config, session=None, fallback_ids: Sequence[str] = ()) -> "RoundAcquirer":
        rc = config.round_config
        return cls(
            token=config.mapillary_token,
            session=session,
            fallback_ids=fallback_ids,
            attempts=rc.attempts,
            urgent_timeout=rc.urgent_timeout,
            preload_timeout=rc.preload_timeout,
            search_limit=rc.search_limit,
            fallback_retries=rc.fallback_retries,
            request_timeout=rc.request_timeout,
        )

    async def acquire_round(self, country: Optional[CountryCode] = None, is_preload: bool = False) -> Round:
        """Return a Round for `country` (random when None).

        Raises:
            FallbackExhaustion: If live search and every fallback lookup failed
        """
        country = country or random_country(self.rng)
        timeout = self.preload_timeout if is_preload else self.urgent_timeout
        started = time.monotonic()

        tasks = [asyncio.ensure_future(self._try_find_round(country)) for _ in range(self.attempts)]
        try:
            found = await first_success(tasks, timeout=timeout)
        except TimeoutExhaustion:
            logger.info("No round within %.1fs for %s (preload=%s); using fallback pool", timeout, country, is_preload)
            await metrics.increment("round.timeout")
            found = None
        else:
            if found is None:
                logger.info("All %d search attempts for %s came back empty; using fallback pool", self.attempts, country)
                await metrics.increment("round.search_exhausted")

        try:
            if found is not None:
                await metrics.increment("round.search_hit")
                return found
            try:
                result = await self._fallback_round()
            except FallbackExhaustion:
                await metrics.increment("round.failed")
                raise
            await metrics.increment("round.fallback")
            return result
        finally:
            await metrics.observe_latency("round.acquire_ms", (time.monotonic() - started) * 1000)

    async def _try_find_round(self, country: CountryCode) -> Optional[Round]:
        """One search attempt; any failure yields None."""
        try:
            bbox = random_search_bbox(country, self.rng)
            images = await mapillary_provider.search_images_by_bbox(
                self.token,
                bbox,
                limit=self.search_limit,
                session=self.session,
                timeout=self.request_timeout,
            )
            safe = filter_safe_images(images)
            picked = mapillary_provider.pick_playable_image(safe, self.rng)
            if picked is None:
                logger.debug("No playable image in %s (%d raw, %d safe)", bbox.to_param(), len(images), len(safe))
                return None
            return round_from_image(picked, country)
        except (NetworkError, ValidationError) as e:
            logger.debug("Search attempt failed: %s", e)
            return None
        except Exception:
            # a winner may already have been returned; nobody awaits this result
            logger.debug("Search attempt crashed", exc_info=True)
            return None

    async def _fallback_round(self) -> Round:
        """Fetch a random pool image by ID, re-checking it is safe.

        Raises:
            FallbackExhaustion: If the pool is empty or every try failed
        """
        if not self.fallback_ids:
            raise FallbackExhaustion("Fallback pool is empty")

        for attempt in range(1, self.fallback_retries + 1):
            image_id = self.rng.choice(self.fallback_ids)
            try:
                image = await mapillary_provider.fetch_image_by_id(
                    self.token, image_id, session=self.session, timeout=self.request_timeout
                )
            except NetworkError as e:
                logger.warning("Fallback lookup %s failed (try %d/%d): %s", image_id, attempt, self.fallback_retries, e)
                continue

            image.setdefault("id", image_id)
            coords = mapillary_provider.image_coordinates(image)
            if coords is None:
                logger.warning("Fallback image %s has no coordinates (try %d/%d)", image_id, attempt, self.fallback_retries)
                continue
            lng, lat = coords
            if not is_location_safe(lat, lng):
                logger.warning("Fallback image %s is unsafe (%s,%s) (try %d/%d)", image_id, lat, lng, attempt, self.fallback_retries)
                await metrics.increment("round.fallback_unsafe")
                continue

            try:
                return round_from_image(image, infer_country_from_lat(lat))
            except ValidationError as e:
                logger.warning("Fallback image %s is not playable (try %d/%d): %s", image_id, attempt, self.fallback_retries, e)

        raise FallbackExhaustion(
            f"No usable fallback image after {self.fallback_retries} tries",
            details={"retries": self.fallback_retries},
        )
