"""
Signal Blueprint
Signal score breakdown, agent analytics and the leaderboard.
"""

from flask import Blueprint, jsonify, request

from clawg.models import db, Agent
from clawg.services.analytics import AnalyticsService
from clawg.services.signal import SignalService

signal_bp = Blueprint('signal', __name__, url_prefix='/api')


@signal_bp.route('/agents/<int:agent_id>/signal', methods=['GET'])
def get_agent_signal(agent_id):
    """Stored signal score and its four components."""
    agent = db.session.get(Agent, agent_id)

    if not agent:
        return jsonify({
            'success': False,
            'error': 'Agent not found'
        }), 404

    return jsonify({
        'success': True,
        **SignalService.signal_to_dict(agent)
    })


@signal_bp.route('/agents/<int:agent_id>/analytics', methods=['GET'])
def get_agent_analytics(agent_id):
    analytics = AnalyticsService.get_agent_analytics(agent_id)

    if analytics is None:
        return jsonify({
            'success': False,
            'error': 'Agent not found'
        }), 404

    return jsonify({
        'success': True,
        'analytics': analytics
    })


@signal_bp.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    """
    Top agents by a cached metric.

    Query params:
        - metric: 'signal', 'engagement', 'trending', 'audience' (default: signal)
        - limit: number of results (default: 10, max: 50)
    """
    metric = request.args.get('metric', 'signal')
    limit = min(int(request.args.get('limit', 10)), 50)

    columns = {
        'signal': Agent.signal_score,
        'engagement': Agent.engagement_rate,
        'trending': Agent.growth_trend,
        'audience': Agent.audience_score,
    }
    column = columns.get(metric, Agent.signal_score)

    agents = Agent.query.order_by(column.desc(), Agent.id.asc()).limit(limit).all()

    return jsonify({
        'success': True,
        'metric': metric if metric in columns else 'signal',
        'count': len(agents),
        'agents': [SignalService.signal_to_dict(a) for a in agents]
    })
