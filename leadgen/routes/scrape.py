"""
Acquisition routes — synchronous scrape + background pipeline runs.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen.errors import AcquisitionFailed
from leadgen.pipeline import manager
from leadgen.services import db

logger = logging.getLogger(__name__)

bp = Blueprint('scrape', __name__)


@bp.route('/api/scrape')
def scrape():
    """Run acquisition over ?page= (default 1) for ?maxPages= pages (default 3)."""
    try:
        page = int(request.args.get('page', 1))
        max_pages = int(request.args.get('maxPages', 3))
    except ValueError:
        return jsonify({'success': False, 'error': 'page and maxPages must be integers'}), 400
    if page < 1 or max_pages < 0:
        return jsonify({'success': False, 'error': 'page must be >= 1 and maxPages >= 0'}), 400

    logger.info("Starting scrape for pages %d to %d", page, page + max_pages - 1)
    try:
        result = manager.run_acquisition(page, max_pages)
    except AcquisitionFailed as e:
        return jsonify({
            'success': False,
            'message': f'Scraping failed: {e}',
            'leadsFound': 0,
            'leadsAdded': 0,
            'errors': [str(e)],
        }), 500

    return jsonify({
        'success': True,
        'message': (f'Scraping completed. Found {result.leads_found} repositories, '
                    f'added {result.leads_added} new leads.'),
        **result.to_dict(),
    })


@bp.route('/api/runs', methods=['POST'])
def create_run():
    """Enqueue an acquisition / qualification / outreach run on the worker."""
    data = request.get_json(silent=True) or {}
    kind = data.get('kind')
    params = data.get('params') or {}
    if not isinstance(params, dict):
        return jsonify({'error': 'params must be an object'}), 400
    try:
        run_id = manager.launch_run(kind, params)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'run_id': run_id, 'status': 'queued'}), 202


@bp.route('/api/runs')
def list_runs():
    kind = request.args.get('kind')
    return jsonify({'runs': db.list_runs(kind=kind)})


@bp.route('/api/runs/<run_id>')
def get_run(run_id):
    run = db.get_run(run_id)
    if run is None:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(run)
