"""
Lead routes — list leads, move a lead along its lifecycle.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen.config import LEAD_STATUSES, RECOMMENDATIONS
from leadgen.pipeline import manager
from leadgen.services.lead_store import LeadStore

logger = logging.getLogger(__name__)

bp = Blueprint('leads', __name__)


@bp.route('/api/leads')
def list_leads():
    """All leads, newest first. ?recommendation= narrows to one AI recommendation."""
    recommendation = request.args.get('recommendation')
    store = LeadStore()
    if recommendation:
        if recommendation not in RECOMMENDATIONS:
            return jsonify({'success': False, 'error': 'Invalid recommendation'}), 400
        leads = store.list_by_recommendation(recommendation)
    else:
        leads = store.list_all()
    return jsonify({
        'success': True,
        'leads': [lead.to_dict() for lead in leads],
        'count': len(leads),
    })


@bp.route('/api/leads/<int:lead_id>', methods=['PATCH'])
def update_lead(lead_id):
    """
    Advance a lead's status. Only contacted → responded → converted is allowed
    here; new → contacted happens when an email is sent.
    """
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status or status not in LEAD_STATUSES:
        return jsonify({'success': False, 'error': 'Invalid status'}), 400

    gate = manager.build_gate()
    lead = gate.advance_status(lead_id, status)
    return jsonify({'success': True, 'lead': lead.to_dict()})
