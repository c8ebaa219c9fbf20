"""
Round route: acquire one playable round for the client.
"""
from quart import Blueprint, current_app, jsonify, request

from shqip_guessr.config import get_config
from shqip_guessr.errors import FallbackExhaustion
from shqip_guessr.src.fallbacks import load_fallback_ids
from shqip_guessr.src.round_acquirer import RoundAcquirer

bp = Blueprint('round', __name__)

NO_STORE = {"Cache-Control": "no-store"}


@bp.route('/api/round', methods=['GET'])
async def get_round():
    """Return a Round as JSON.

    `?preload=true` marks a background request and allows a 60s search
    deadline instead of 4.5s before the fallback pool is used.
    """
    from shqip_guessr.src import app as app_module

    cfg = get_config()
    is_preload = request.args.get('preload') == 'true'

    if not cfg.mapillary_token:
        return jsonify({'error': 'Missing MAPILLARY_TOKEN. Add it to .env.local (server-side only).'}), 500, NO_STORE

    acquirer = RoundAcquirer.from_config(
        cfg,
        session=app_module.aiohttp_session,
        fallback_ids=load_fallback_ids(cfg.fallback_ids_file),
    )
    try:
        found = await acquirer.acquire_round(is_preload=is_preload)
    except FallbackExhaustion as e:
        current_app.logger.error('Round acquisition failed: %s', e)
        return jsonify({'error': 'Could not find any rounds'}), 500, NO_STORE

    return jsonify(found.to_json_dict()), 200, NO_STORE


def register(app):
    """Register round blueprint with app"""
    app.register_blueprint(bp)
