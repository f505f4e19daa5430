"""
Pipeline run persistence — called from the pipeline manager.

All writes are wrapped in try/except so a pipeline never blocks on DB errors.
"""
import logging
import uuid
from datetime import datetime, timezone

from leadgen import database
from leadgen.models.pipeline_run import PipelineRun

logger = logging.getLogger('services.db')

MAX_STORED_ERRORS = 20


def create_run(kind, params=None, run_id=None, status='queued'):
    """INSERT a run record. Returns the run id even if the write failed."""
    run_id = run_id or str(uuid.uuid4())
    session = database.get_session()
    try:
        session.add(PipelineRun(id=run_id, kind=kind, status=status, params=params or {}))
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to create %s run %s", kind, run_id, exc_info=True)
    finally:
        session.close()
    return run_id


def mark_running(run_id):
    _update(run_id, status='running')


def finish_run(run_id, result=None, errors=None, summary=None, failed=False):
    """
    UPDATE a run with its final counters.

    `result` is the stage's to_dict() payload; only the last
    MAX_STORED_ERRORS error strings are kept.
    """
    errors = list(errors or [])
    _update(
        run_id,
        status='failed' if failed else 'completed',
        result=result,
        error_count=len(errors),
        errors=errors[-MAX_STORED_ERRORS:],
        summary=summary,
        finished_at=datetime.now(timezone.utc),
    )


def _update(run_id, **fields):
    session = database.get_session()
    try:
        run = session.get(PipelineRun, run_id)
        if run is None:
            logger.warning("Run %s not found — skipping update", run_id)
            return
        for key, value in fields.items():
            setattr(run, key, value)
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to update run %s", run_id, exc_info=True)
    finally:
        session.close()


def get_run(run_id):
    """Run record as a dict, or None."""
    session = database.get_session()
    try:
        run = session.get(PipelineRun, run_id)
        return run.to_dict() if run else None
    finally:
        session.close()


def list_runs(kind=None, limit=50):
    session = database.get_session()
    try:
        query = session.query(PipelineRun)
        if kind:
            query = query.filter_by(kind=kind)
        runs = query.order_by(PipelineRun.created_at.desc()).limit(limit).all()
        return [r.to_dict() for r in runs]
    finally:
        session.close()
