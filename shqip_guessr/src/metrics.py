"""
Lightweight async metrics for round acquisition, stored in Redis when the app
has a client and in process memory otherwise.

- Counters: Redis INCRBY on `metrics:counter:{name}`
- Latency samples: LPUSH to `metrics:lat:{name}`, LTRIM to the last 1000
- get_metrics() returns counters plus count/avg/p50 per latency series
"""

from typing import Dict, Any, List
import logging
import statistics

logger = logging.getLogger(__name__)

_MEM_COUNTERS: Dict[str, int] = {}
_MEM_LATS: Dict[str, List[float]] = {}


async def _get_redis():
    # read lazily from the app module; importing it at load time would be circular
    try:
        from shqip_guessr.src.app import redis_client
        return redis_client
    except ImportError:
        return None


def _decode(value) -> str:
    return value.decode() if isinstance(value, (bytes, bytearray)) else value


def _summary(samples: List[float]) -> Dict[str, float]:
    return {
        'count': len(samples),
        'avg_ms': sum(samples) / len(samples),
        'p50_ms': float(statistics.median(samples)),
    }


def _mem_observe(name: str, ms: float, max_samples: int) -> None:
    samples = _MEM_LATS.setdefault(name, [])
    samples.insert(0, ms)
    del samples[max_samples:]


async def increment(name: str, amount: int = 1) -> None:
    """Increment a named counter by amount"""
    rc = await _get_redis()
    if rc:
        try:
            await rc.incrby(f"metrics:counter:{name}", amount)
            return
        except Exception:
            logger.debug("Redis counter write failed; using memory", exc_info=True)
    _MEM_COUNTERS[name] = _MEM_COUNTERS.get(name, 0) + amount


async def observe_latency(name: str, ms: float, max_samples: int = 1000) -> None:
    """Record a latency sample (milliseconds) for a named metric"""
    rc = await _get_redis()
    if rc:
        try:
            key = f"metrics:lat:{name}"
            await rc.lpush(key, str(ms))
            await rc.ltrim(key, 0, max_samples - 1)
            return
        except Exception:
            logger.debug("Redis latency write failed; using memory", exc_info=True)
    _mem_observe(name, ms, max_samples)


async def get_metrics() -> Dict[str, Any]:
    """Return a JSON-serializable dict of counters and latency stats.

    Redis values are merged with in-memory samples recorded before Redis was
    available (or while it was failing).
    """
    counters: Dict[str, int] = dict(_MEM_COUNTERS)
    lat_samples: Dict[str, List[float]] = {n: list(v) for n, v in _MEM_LATS.items()}

    rc = await _get_redis()
    if rc:
        try:
            for k in await rc.keys('metrics:counter:*'):
                key = _decode(k)
                name = key.split(':', 2)[-1]
                v = await rc.get(key)
                counters[name] = counters.get(name, 0) + (int(v) if v is not None else 0)

            for k in await rc.keys('metrics:lat:*'):
                key = _decode(k)
                name = key.split(':', 2)[-1]
                vals = [float(v) for v in await rc.lrange(key, 0, -1)]
                lat_samples.setdefault(name, []).extend(vals)
        except Exception:
            logger.warning("Reading metrics from Redis failed; returning in-memory metrics only", exc_info=True)
            counters = dict(_MEM_COUNTERS)
            lat_samples = {n: list(v) for n, v in _MEM_LATS.items()}

    return {
        'counters': counters,
        'latencies': {n: _summary(v) for n, v in lat_samples.items() if v},
    }


def reset() -> None:
    """Clear in-memory metrics."""
    _MEM_COUNTERS.clear()
    _MEM_LATS.clear()
