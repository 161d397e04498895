"""
Cron Blueprint
Endpoints for batch jobs triggered by external cron services.
"""

from flask import Blueprint, jsonify, request
import logging

from clawg.config import CRON_SECRET
from clawg.services.jobs import BatchJobs, JOB_SNAPSHOTS, JOB_SIGNAL, JOB_ANALYTICS, job_control

logger = logging.getLogger(__name__)

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')


def verify_cron_secret():
    """Verify cron secret from header or body."""
    auth_header = request.headers.get('Authorization', '')
    body_data = request.get_json(silent=True) or {}

    provided_secret = None
    if auth_header.startswith('Bearer '):
        provided_secret = auth_header[7:]
    elif body_data.get('cron_secret'):
        provided_secret = body_data.get('cron_secret')

    return provided_secret == CRON_SECRET


def run_job(job_id: str):
    if not verify_cron_secret():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    if job_control.is_running(job_id):
        return jsonify({'success': False, 'error': f'{job_id} is already running'}), 409

    result = BatchJobs().run(job_id)
    return jsonify({
        'success': True,
        'message': f'{job_id} completed',
        **result.to_dict()
    })


@cron_bp.route('/snapshots', methods=['POST'])
def cron_refresh_snapshots():
    """Cron endpoint: Record a fresh snapshot for every linked token."""
    return run_job(JOB_SNAPSHOTS)


@cron_bp.route('/signal', methods=['POST'])
def cron_recompute_signal():
    """Cron endpoint: Recompute signal scores for verified agents."""
    return run_job(JOB_SIGNAL)


@cron_bp.route('/analytics', methods=['POST'])
def cron_recompute_analytics():
    """Cron endpoint: Recompute agent metrics and log quality scores."""
    return run_job(JOB_ANALYTICS)
