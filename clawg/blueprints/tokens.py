"""
Tokens Blueprint
Current metrics and snapshot history for linked tokens.
"""

from flask import Blueprint, jsonify, request

from clawg.models import db, Agent
from clawg.services.snapshots import SnapshotService
from clawg.services.tokens import DIRECTORY_PAGE_SIZE, TokenService

tokens_bp = Blueprint('tokens', __name__, url_prefix='/api')


@tokens_bp.route('/tokens', methods=['GET'])
def get_token_directory():
    """
    Directory of verified agents and their tokens.

    Query params:
        - sort: 'signal', 'newest', 'trending', 'marketCap' (default: signal)
        - chain: only tokens on this chain
        - min_market_cap: minimum latest market cap in USD
        - page: 1-based page (default: 1)
        - page_size: entries per page (default: 50, max: 100)
    """
    directory = TokenService.get_token_directory(
        sort_by=request.args.get('sort', 'signal'),
        chain=request.args.get('chain') or None,
        min_market_cap=request.args.get('min_market_cap', type=float),
        page=request.args.get('page', 1, type=int),
        page_size=request.args.get('page_size', DIRECTORY_PAGE_SIZE, type=int)
    )

    return jsonify({
        'success': True,
        'count': len(directory['items']),
        **directory
    })


@tokens_bp.route('/tokens/<int:token_id>', methods=['GET'])
def get_token(token_id):
    """Token with its latest snapshot."""
    token = TokenService.get_token(token_id)

    if not token:
        return jsonify({
            'success': False,
            'error': 'Token not found'
        }), 404

    return jsonify({
        'success': True,
        'token': TokenService.token_to_dict(token, SnapshotService.latest_snapshot(token.id))
    })


@tokens_bp.route('/tokens/<int:token_id>/history', methods=['GET'])
def get_token_history(token_id):
    """
    Snapshot history for a token.

    Query params:
        - days: window length (default: 30, max: 365)
    """
    token = TokenService.get_token(token_id)

    if not token:
        return jsonify({
            'success': False,
            'error': 'Token not found'
        }), 404

    days = min(int(request.args.get('days', 30)), 365)
    history = SnapshotService.get_history(token_id, days=days)

    return jsonify({
        'success': True,
        'token_id': token_id,
        'symbol': token.symbol,
        'days': days,
        'history': [SnapshotService.snapshot_to_dict(s) for s in history]
    })


@tokens_bp.route('/tokens/trending', methods=['GET'])
def get_trending_tokens():
    """
    Biggest movers.

    Query params:
        - period: '24h' or '7d' (default: 24h)
    """
    period = request.args.get('period', '24h')
    hours = 168 if period == '7d' else 24

    tokens = TokenService.get_trending_tokens(hours=hours)
    return jsonify({
        'success': True,
        'period': '7d' if hours == 168 else '24h',
        'count': len(tokens),
        'tokens': tokens
    })


@tokens_bp.route('/tokens/new', methods=['GET'])
def get_new_tokens():
    days = min(int(request.args.get('days', 7)), 90)
    tokens = TokenService.get_new_tokens(days=days)
    return jsonify({
        'success': True,
        'count': len(tokens),
        'tokens': tokens
    })


@tokens_bp.route('/agents/<int:agent_id>/tokens', methods=['GET'])
def get_agent_tokens(agent_id):
    if not db.session.get(Agent, agent_id):
        return jsonify({
            'success': False,
            'error': 'Agent not found'
        }), 404

    tokens = TokenService.get_agent_tokens(agent_id)
    return jsonify({
        'success': True,
        'count': len(tokens),
        'tokens': [TokenService.token_to_dict(t, SnapshotService.latest_snapshot(t.id)) for t in tokens]
    })
