"""
Qualification routes — AI analysis of leads, optionally with auto-approve.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen.pipeline import manager

logger = logging.getLogger(__name__)

bp = Blueprint('analyze', __name__)

ANALYZE_ACTIONS = ('analyze', 'auto-approve')


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'yes')


def _response(result, auto_approve):
    if auto_approve:
        message = (f'AI analyzed {result.analyzed_count} leads, '
                   f'auto-approved {result.auto_approved_count}')
    else:
        message = f'AI analyzed {result.analyzed_count} leads'
    return jsonify({'success': True, 'message': message, **result.to_dict()})


@bp.route('/api/ai/analyze')
def analyze_unanalyzed():
    """Score the newest unanalyzed leads. ?autoApprove=true applies threshold decisions."""
    auto_approve = _truthy(request.args.get('autoApprove', 'false'))
    try:
        limit = int(request.args.get('limit', 10))
    except ValueError:
        return jsonify({'success': False, 'error': 'limit must be an integer'}), 400
    if limit < 1:
        return jsonify({'success': False, 'error': 'limit must be >= 1'}), 400

    result = manager.run_qualification(auto_approve=auto_approve, limit=limit)
    return _response(result, auto_approve)


@bp.route('/api/ai/analyze', methods=['POST'])
def analyze_leads():
    """Body: {leadIds: [...], action: analyze | auto-approve, config?: {...}}."""
    data = request.get_json(silent=True) or {}
    lead_ids = data.get('leadIds')
    action = data.get('action', 'analyze')
    config = data.get('config')

    if not isinstance(lead_ids, list) or not lead_ids:
        return jsonify({'success': False, 'error': 'leadIds must be a non-empty list'}), 400
    if action not in ANALYZE_ACTIONS:
        return jsonify({'success': False, 'error': f'Invalid action: {action}'}), 400
    if config is not None and not isinstance(config, dict):
        return jsonify({'success': False, 'error': 'config must be an object'}), 400

    auto_approve = action == 'auto-approve'
    try:
        result = manager.run_qualification(lead_ids, auto_approve=auto_approve, config=config)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return _response(result, auto_approve)
