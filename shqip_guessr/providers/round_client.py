"""
HTTP client for the `/api/round` endpoint, used by the game session.
"""
import asyncio
from typing import Optional

import aiohttp
from pydantic import ValidationError

from shqip_guessr.errors import RoundFetchError
from shqip_guessr.providers.utils import get_session
from shqip_guessr.src.schemas import Round

# urgent server deadline is 4.5s plus up to 3 fallback lookups
URGENT_TIMEOUT = 30.0
# server allows 60s for preloads
PRELOAD_TIMEOUT = 90.0


class RoundClient:
    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session

    async def fetch_round(self, preload: bool = False) -> Round:
        """Fetch and validate one round.

        Raises:
            RoundFetchError: On transport failure, error status or an invalid payload
        """
        url = f"{self.base_url}/api/round"
        params = {"preload": "true"} if preload else None
        timeout = aiohttp.ClientTimeout(total=PRELOAD_TIMEOUT if preload else URGENT_TIMEOUT)
        try:
            async with get_session(self.session) as sess:
                async with sess.get(url, params=params, timeout=timeout) as resp:
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError:
                        payload = None
                    if resp.status != 200:
                        message = payload.get("error") if isinstance(payload, dict) else None
                        raise RoundFetchError(
                            message if isinstance(message, str) else "Failed",
                            details={"status": resp.status},
                        )
        except asyncio.TimeoutError as exc:
            raise RoundFetchError("Timed out waiting for a round") from exc
        except aiohttp.ClientError as exc:
            raise RoundFetchError(f"Could not reach the round API: {exc}") from exc

        try:
            return Round.model_validate(payload)
        except ValidationError as exc:
            raise RoundFetchError("Invalid round payload") from exc
