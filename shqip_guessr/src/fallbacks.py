"""
Curated fallback pool: Mapillary image IDs collected offline by
`shqip_guessr.scripts.generate_fallbacks` and shipped as package data.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Union

from shqip_guessr.config import DEFAULT_FALLBACK_IDS_FILE

logger = logging.getLogger(__name__)


def read_fallback_file(path: Union[str, Path]) -> Tuple[str, ...]:
    """Parse a pool file: either `{"ids": [...]}` or a bare JSON list."""
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)
    ids = payload.get("ids", []) if isinstance(payload, dict) else payload
    if not isinstance(ids, list):
        raise ValueError(f"Fallback pool {path} has no id list")
    return tuple(str(i) for i in ids if i)


@lru_cache(maxsize=8)
def load_fallback_ids(path: Optional[str] = None) -> Tuple[str, ...]:
    """Load (and cache) the fallback pool. A missing or broken file yields an empty pool."""
    path = path or DEFAULT_FALLBACK_IDS_FILE
    try:
        ids = read_fallback_file(path)
    except FileNotFoundError:
        logger.error("Fallback pool file not found: %s", path)
        return ()
    except ValueError as e:
        logger.error("Fallback pool file %s is invalid: %s", path, e)
        return ()
    if not ids:
        logger.warning("Fallback pool %s is empty; run shqip-generate-fallbacks", path)
    return ids
