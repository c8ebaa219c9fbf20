"""
shqip-guessr Quart app: serves `/api/round` plus health and metrics endpoints.

Run with:
  hypercorn shqip_guessr.src.app:app
or, for development:
  python -m shqip_guessr.src.app
"""

from quart import Quart
from quart_cors import cors
import aiohttp
from redis import asyncio as aioredis

from shqip_guessr.config import get_config, setup_logging
from shqip_guessr.providers.utils import USER_AGENT
from shqip_guessr.src.fallbacks import load_fallback_ids
from shqip_guessr.src.routes import register_blueprints

setup_logging()

app = Quart(__name__)
cors(app, allow_origin=get_config().cors_allow_origin, allow_methods=["GET", "OPTIONS"])

# Global async clients, created in startup()
aiohttp_session: aiohttp.ClientSession | None = None
redis_client: aioredis.Redis | None = None


@app.before_serving
async def startup():
    global aiohttp_session, redis_client
    cfg = get_config()
    aiohttp_session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})

    pool = load_fallback_ids(cfg.fallback_ids_file)
    app.logger.info("Fallback pool: %d image ids", len(pool))

    if cfg.redis_url:
        try:
            redis_client = aioredis.from_url(cfg.redis_url)
            await redis_client.ping()  # type: ignore
            app.logger.info("Redis connected; metrics will be persisted")
        except Exception:
            redis_client = None
            app.logger.warning("Redis not available; keeping metrics in memory")


@app.after_serving
async def shutdown():
    global aiohttp_session, redis_client
    if aiohttp_session:
        await aiohttp_session.close()
        aiohttp_session = None
    if redis_client:
        await redis_client.aclose()
        redis_client = None


register_blueprints(app)


if __name__ == "__main__":
    app.run(debug=get_config().debug)
