"""
Admin Blueprint
ISOLATED - This entire module can be disabled/removed for production.

Contains:
- Scheduler controls (status, run now, cancel)
- Token registry maintenance
- Database stats

To disable: Don't register this blueprint (see main.py)
"""

from flask import Blueprint, current_app, jsonify, request
from threading import Thread
from sqlalchemy import select
import logging

from clawg.config import ADMIN_KEY
from clawg.models import Agent, AgentToken, BuildLog, TokenSnapshot
from clawg.services.jobs import BatchJobs, JOB_IDS, job_control
from clawg.services.tokens import TokenService, LinkTokenRequest

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def verify_admin_key():
    """Verify admin key from header or body."""
    admin_key = request.headers.get('X-Admin-Key')
    if not admin_key:
        body = request.get_json(silent=True) or {}
        admin_key = body.get('admin_key')
    return admin_key == ADMIN_KEY


# =============================================================================
# SCHEDULER ADMIN ENDPOINTS
# =============================================================================

# Global scheduler reference (set by main.py)
_scheduler = None


def set_scheduler(scheduler):
    """Set scheduler reference for admin control."""
    global _scheduler
    _scheduler = scheduler


@admin_bp.route('/scheduler-status', methods=['GET'])
def admin_scheduler_status():
    """Scheduler state plus which batch jobs are mid-run."""
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    running = [job_id for job_id in JOB_IDS if job_control.is_running(job_id)]

    if _scheduler is None:
        return jsonify({'status': 'not_running', 'jobs': [], 'running': running})

    jobs = [{
        'id': job.id,
        'next_run': str(job.next_run_time) if job.next_run_time else None
    } for job in _scheduler.get_jobs()]

    return jsonify({
        'status': 'running',
        'jobs': jobs,
        'running': running
    })


@admin_bp.route('/jobs/<job_id>/run', methods=['POST'])
def admin_run_job(job_id):
    """Start a batch job in the background."""
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    if job_id not in JOB_IDS:
        return jsonify({'success': False, 'error': f'Unknown job: {job_id}'}), 404

    if job_control.is_running(job_id):
        return jsonify({'success': False, 'error': f'{job_id} is already running'}), 409

    app = current_app._get_current_object()

    def target():
        with app.app_context():
            BatchJobs().run(job_id)

    Thread(target=target, daemon=True).start()
    logger.info(f"[Admin] '{job_id}' triggered manually")

    return jsonify({
        'success': True,
        'message': f'{job_id} started in background'
    })


@admin_bp.route('/jobs/<job_id>/cancel', methods=['POST'])
def admin_cancel_job(job_id):
    """Stop a running job before its next item."""
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    if job_id not in JOB_IDS:
        return jsonify({'success': False, 'error': f'Unknown job: {job_id}'}), 404

    if not job_control.cancel(job_id):
        return jsonify({'success': False, 'error': f'{job_id} is not running'}), 409

    return jsonify({
        'success': True,
        'message': f'{job_id} will stop before its next item'
    })


# =============================================================================
# TOKEN REGISTRY
# =============================================================================

@admin_bp.route('/tokens', methods=['POST'])
def admin_link_token():
    """
    Link a token to an agent.

    Request body:
    {
        "agent_id": 1,                     # REQUIRED
        "chain": "base",                   # REQUIRED
        "contract_address": "0x...",       # REQUIRED
        "symbol": "CLAWG",                 # REQUIRED
        "name": "Clawg",                   # REQUIRED
        "decimals": 18,                    # optional
        "launchpad": "clanker",            # optional
        "is_primary": true,                # optional
        "snapshot": true                   # optional - record initial snapshot
    }
    """
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True) or {}
    for required in ['agent_id', 'chain', 'contract_address', 'symbol', 'name']:
        if not data.get(required):
            return jsonify({'success': False, 'error': f'Missing required field: {required}'}), 400

    result = TokenService.link_token(
        LinkTokenRequest(
            agent_id=int(data['agent_id']),
            chain=data['chain'],
            contract_address=data['contract_address'],
            symbol=data['symbol'],
            name=data['name'],
            decimals=int(data.get('decimals', 18)),
            launchpad=data.get('launchpad'),
            is_primary=bool(data.get('is_primary', False))
        ),
        record_initial_snapshot=bool(data.get('snapshot', True))
    )

    if not result.success:
        return jsonify({'success': False, 'error': result.error}), 400

    return jsonify({
        'success': True,
        'token': TokenService.token_to_dict(result.token)
    }), 201


@admin_bp.route('/tokens/<int:token_id>/primary', methods=['POST'])
def admin_set_primary(token_id):
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True) or {}
    result = TokenService.set_primary_token(token_id, int(data.get('agent_id', 0)))
    if not result.success:
        return jsonify({'success': False, 'error': result.error}), 404

    return jsonify({'success': True, 'token': TokenService.token_to_dict(result.token)})


@admin_bp.route('/tokens/<int:token_id>', methods=['DELETE'])
def admin_unlink_token(token_id):
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True) or {}
    result = TokenService.unlink_token(token_id, int(data.get('agent_id', 0)))
    if not result.success:
        return jsonify({'success': False, 'error': result.error}), 404

    return jsonify({'success': True})


@admin_bp.route('/db-stats', methods=['GET'])
def get_db_stats():
    """Row counts, including snapshots left behind by unlinked tokens."""
    if not verify_admin_key():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    live_token_ids = select(AgentToken.id)
    orphaned = TokenSnapshot.query.filter(~TokenSnapshot.token_id.in_(live_token_ids)).count()

    return jsonify({
        'success': True,
        'stats': {
            'agents': Agent.query.count(),
            'verified_agents': Agent.query.filter(Agent.erc8004_agent_id.isnot(None)).count(),
            'logs': BuildLog.query.count(),
            'tokens': AgentToken.query.count(),
            'snapshots': TokenSnapshot.query.count(),
            'orphaned_snapshots': orphaned,
        }
    })
