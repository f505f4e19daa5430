"""
Outreach routes — review queue, approval decisions, email batch send.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen.pipeline import manager
from leadgen.pipeline.outreach import DECISION_ACTIONS

logger = logging.getLogger(__name__)

bp = Blueprint('outreach', __name__)


@bp.route('/api/email/approve')
def pending_emails():
    """Unreviewed leads with the email (or DM script) each would receive."""
    gate = manager.build_gate()
    pending = gate.pending_approvals()
    return jsonify({
        'success': True,
        'pendingEmails': [p.to_dict() for p in pending],
        'count': len(pending),
    })


@bp.route('/api/email/approve', methods=['POST'])
def decide():
    """Body: {action: approve | reject | mark-pending, leadIds: [...]}."""
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    lead_ids = data.get('leadIds')
    if not action or not isinstance(lead_ids, list):
        return jsonify({'success': False, 'error': 'Invalid request body'}), 400
    if action not in DECISION_ACTIONS:
        return jsonify({'success': False, 'error': f'Invalid action: {action}'}), 400

    result = manager.apply_decisions(action, lead_ids)
    return jsonify({
        'success': True,
        'message': f'{action} completed for {result.updated_count} leads',
        **result.to_dict(),
    })


@bp.route('/api/email', methods=['POST'])
def send_emails():
    """Body: {leadIds?: [...], dryRun?: bool}. Without leadIds, every approved unsent lead."""
    data = request.get_json(silent=True) or {}
    lead_ids = data.get('leadIds')
    dry_run = bool(data.get('dryRun', False))
    if lead_ids is not None and (not isinstance(lead_ids, list) or not lead_ids):
        return jsonify({'success': False, 'error': 'leadIds must be a non-empty list'}), 400

    result = manager.run_outreach(lead_ids, dry_run=dry_run)
    prefix = 'Dry run' if dry_run else 'Email campaign'
    return jsonify({
        'success': True,
        'message': f'{prefix} completed. Sent {result.emails_sent} emails.',
        **result.to_dict(),
    })
