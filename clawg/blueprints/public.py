"""
Public Blueprint
Health checks and service info.
"""

import time
from flask import Blueprint, jsonify

from clawg.config import VERSION, VERSION_NAME, FEATURES, SIGNAL_COMPONENT_MAX, MARKET_CAP_TIERS
from clawg.services.sources import UniswapPoolSource

public_bp = Blueprint('public', __name__)


@public_bp.route('/')
def home():
    """API root - shows service info."""
    return jsonify({
        'service': 'Clawg Signal Engine',
        'version': VERSION,
        'version_name': VERSION_NAME,
        'status': 'online',
        'features': FEATURES,
        'constants': {
            'signal_components': SIGNAL_COMPONENT_MAX,
            'market_cap_tiers': [{'above': t, 'points': p} for t, p in MARKET_CAP_TIERS],
        },
        'endpoints': {
            'token_directory': '/api/tokens',
            'token': '/api/tokens/<id>',
            'token_history': '/api/tokens/<id>/history',
            'trending': '/api/tokens/trending',
            'new_tokens': '/api/tokens/new',
            'agent_tokens': '/api/agents/<id>/tokens',
            'agent_signal': '/api/agents/<id>/signal',
            'agent_analytics': '/api/agents/<id>/analytics',
            'leaderboard': '/api/leaderboard',
            'cron': 'POST /api/cron/{snapshots,signal,analytics}',
        }
    })


@public_bp.route('/health')
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'timestamp': int(time.time()),
        'database': 'connected',
        'reference_price_usd': UniswapPoolSource.reference_cache.peek(),
        'version': VERSION
    })
