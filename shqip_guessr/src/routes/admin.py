"""
Admin routes: health check and metrics
"""
import time
from quart import Blueprint, current_app, jsonify

from shqip_guessr.config import get_config
from shqip_guessr.src.fallbacks import load_fallback_ids
from shqip_guessr.src.metrics import get_metrics as get_metrics_dict

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Lightweight health endpoint returning component status."""
    from shqip_guessr.src.app import aiohttp_session, redis_client

    cfg = get_config()
    return jsonify({
        'app': 'ok',
        'time': time.time(),
        'ready': aiohttp_session is not None,
        'redis': redis_client is not None,
        'mapillary': bool(cfg.mapillary_token),
        'fallback_pool': len(load_fallback_ids(cfg.fallback_ids_file)),
    })


@bp.route('/metrics/json')
async def metrics_json():
    """Return simple JSON metrics (counters and latency summaries)"""
    try:
        metrics = await get_metrics_dict()
        return jsonify(metrics)
    except Exception:
        current_app.logger.exception('Failed to get metrics')
        return jsonify({'error': 'failed to fetch metrics'}), 500


def register(app):
    """Register admin blueprint with app"""
    app.register_blueprint(bp)
