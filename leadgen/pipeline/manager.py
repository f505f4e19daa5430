"""
Pipeline Manager — wires concrete collaborators and records every invocation.

Three independent pipelines share the lead store:
  ACQUISITION   GitHub search → filter → dedup → owner lookup → insert
  QUALIFICATION unanalyzed leads → OpenAI score → thresholds → write back
  OUTREACH      approved leads → gate → Resend

Each run_* call creates a PipelineRun record, executes synchronously, and
stores counters + errors. launch_run() enqueues the same work on RQ.
"""
import logging
from typing import Iterable, Optional

from leadgen.config import (
    AcquisitionSettings, GitHubSettings, OutreachSettings, RUN_KINDS,
)
from leadgen.errors import IllegalTransition, LeadNotFound
from leadgen.logging_config import run_logger
from leadgen.pipeline.acquisition import AcquisitionPipeline
from leadgen.pipeline.base import CancellationToken, QualificationResult
from leadgen.pipeline.outreach import OutreachGate
from leadgen.pipeline.qualification import QualificationEngine, load_settings
from leadgen.services import db
from leadgen.services.lead_store import LeadStore

logger = logging.getLogger('pipeline.manager')

JOB_TIMEOUT = 3600


# ── Lazy RQ queue (avoids import-time Redis connection) ──────────────────────

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from leadgen.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


# ── Builders ─────────────────────────────────────────────────────────────────

def build_acquisition(store=None) -> AcquisitionPipeline:
    from leadgen.services.github import build_source
    return AcquisitionPipeline(
        build_source(GitHubSettings.from_env()),
        store or LeadStore(),
        AcquisitionSettings.from_env(),
    )


def build_engine(config: dict = None) -> QualificationEngine:
    from leadgen.services.openai_client import build_scorer
    settings = load_settings(config)
    return QualificationEngine(build_scorer(settings), settings)


def build_gate(store=None) -> OutreachGate:
    from leadgen.services.email import build_transport
    settings = OutreachSettings.from_env()
    return OutreachGate(store or LeadStore(), build_transport(settings), settings)


# ── Run recording ────────────────────────────────────────────────────────────

def _summarize(kind, payload):
    if kind == 'acquisition':
        return (f"Found {payload['leadsFound']} repositories, "
                f"added {payload['leadsAdded']} new leads")
    if kind == 'qualification':
        return (f"Analyzed {payload['analyzedCount']} leads, "
                f"auto-approved {payload['autoApprovedCount']}")
    if kind == 'outreach':
        prefix = 'Dry run' if payload.get('dryRun') else 'Email campaign'
        return f"{prefix} completed. Sent {payload['emailsSent']} emails"
    return ''


def _record(kind, params, run_id, work):
    """Run `work()` under a PipelineRun record; failures are stored then re-raised."""
    if run_id is None:
        run_id = db.create_run(kind, params, status='running')
    else:
        db.mark_running(run_id)

    log = run_logger(logger, run_id, kind)
    try:
        result = work()
    except Exception as e:
        log.error("%s run %s failed: %s", kind, run_id, e, exc_info=True)
        db.finish_run(run_id, errors=[str(e)], summary=f"{kind} failed: {e}", failed=True)
        raise

    payload = result.to_dict()
    db.finish_run(run_id, result=payload, errors=result.errors, summary=_summarize(kind, payload))
    log.info("%s run %s completed: %s", kind, run_id, _summarize(kind, payload))
    return result


# ── Public API ───────────────────────────────────────────────────────────────

def run_acquisition(start_page: int = None, page_count: int = None, run_id: str = None,
                    cancel: CancellationToken = None, pipeline: AcquisitionPipeline = None):
    pipeline = pipeline or build_acquisition()
    params = {'page': start_page, 'maxPages': page_count}
    return _record('acquisition', params, run_id,
                   lambda: pipeline.run(start_page, page_count, cancel=cancel))


def _apply_recommendation(gate, scored) -> Optional[str]:
    """
    Move a freshly scored lead into the approval state its recommendation implies.

    Returns an error message when the gate could not be updated; a lead that
    already sits in a later approval state keeps it.
    """
    lead_id = scored.lead.id
    try:
        if scored.ai_recommendation == 'approve':
            gate.mark_pending_approval(lead_id)
            gate.approve(lead_id)
        elif scored.ai_recommendation == 'reject':
            gate.reject(lead_id)
        else:
            gate.mark_pending_approval(lead_id)
    except IllegalTransition as e:
        logger.info("Keeping existing approval state for lead %s: %s", lead_id, e)
    except Exception as e:
        logger.error("Failed to update approval for %s: %s", scored.lead.full_name, e)
        return f"error updating approval for {scored.lead.full_name}: {e}"
    return None


def _qualify(engine, store, gate, lead_ids, auto_approve, limit, cancel):
    errors = []
    if lead_ids is not None:
        ids = list(dict.fromkeys(lead_ids))
        if not ids:
            raise ValueError("leadIds must not be empty")
        leads = store.get_many(ids)
        if not leads:
            raise LeadNotFound(ids[0] if len(ids) == 1 else ids)
        found = {lead.id for lead in leads}
        errors.extend(f"lead {i} not found" for i in ids if i not in found)
    else:
        leads = store.list_unanalyzed(limit or engine.settings.batch_limit)

    if auto_approve:
        batch = engine.auto_approve(leads, cancel=cancel)
    else:
        batch = engine.score_batch(leads, cancel=cancel)

    errors.extend(batch.errors)
    persisted = []
    for scored in batch.scored:
        try:
            store.update_qualification(scored.lead.id, scored.ai_score,
                                       scored.ai_recommendation, scored.ai_analysis)
            persisted.append(scored)
        except Exception as e:
            logger.error("Failed to save analysis for %s: %s", scored.lead.full_name, e)
            errors.append(f"error saving analysis for {scored.lead.full_name}: {e}")
            continue
        if auto_approve:
            error = _apply_recommendation(gate, scored)
            if error:
                errors.append(error)

    saved = {id(s) for s in persisted}
    approved = [s for s in batch.approved if id(s) in saved]
    return QualificationResult(
        analyzed_count=len(persisted),
        auto_approved_count=len(approved) if auto_approve else 0,
        leads=approved if auto_approve else persisted,
        errors=errors,
        auto_approve=auto_approve,
    )


def run_qualification(lead_ids: Optional[Iterable[int]] = None, auto_approve: bool = False,
                      limit: int = None, config: dict = None, run_id: str = None,
                      cancel: CancellationToken = None, engine: QualificationEngine = None,
                      store=None, gate: OutreachGate = None) -> QualificationResult:
    """
    Score the given leads (or the newest unanalyzed ones) and save every analysis.

    With auto_approve, each scored lead is moved through the gate:
    approve → Approved, reject → Rejected, review → PendingApproval.
    """
    store = store or LeadStore()
    engine = engine or build_engine(config)
    if auto_approve and gate is None:
        gate = build_gate(store)
    ids = list(lead_ids) if lead_ids is not None else None
    params = {'leadIds': ids, 'autoApprove': auto_approve, 'limit': limit}
    return _record('qualification', params, run_id,
                   lambda: _qualify(engine, store, gate, ids, auto_approve, limit, cancel))


def run_outreach(lead_ids: Optional[Iterable[int]] = None, dry_run: bool = False,
                 run_id: str = None, cancel: CancellationToken = None, gate: OutreachGate = None):
    gate = gate or build_gate()
    ids = list(lead_ids) if lead_ids is not None else None
    params = {'leadIds': ids, 'dryRun': dry_run}
    return _record('outreach', params, run_id,
                   lambda: gate.send_batch(ids, dry_run=dry_run, cancel=cancel))


def apply_decisions(action: str, lead_ids: Iterable[int], gate: OutreachGate = None):
    gate = gate or build_gate()
    return gate.apply_decisions(action, lead_ids)


def launch_run(kind: str, params: dict = None) -> str:
    """Create a queued run record and enqueue execute_run on RQ. Returns the run id."""
    if kind not in RUN_KINDS:
        raise ValueError(f"Unsupported run kind: {kind}. Available: {RUN_KINDS}")
    params = params or {}
    run_id = db.create_run(kind, params)
    _get_queue().enqueue(execute_run, run_id, kind, params, job_timeout=JOB_TIMEOUT)
    logger.info("Enqueued %s run %s", kind, run_id)
    return run_id


# ── Background job (enqueued via RQ) ─────────────────────────────────────────

def execute_run(run_id: str, kind: str, params: dict):
    """Execute a queued run. `params.deadline` (seconds) bounds the run via cancellation."""
    deadline = params.get('deadline')
    cancel = CancellationToken(deadline=float(deadline)) if deadline else None
    logger.info("Starting %s run %s", kind, run_id)

    if kind == 'acquisition':
        result = run_acquisition(params.get('page'), params.get('maxPages'),
                                 run_id=run_id, cancel=cancel)
    elif kind == 'qualification':
        result = run_qualification(params.get('leadIds'), auto_approve=bool(params.get('autoApprove')),
                                   limit=params.get('limit'), config=params.get('config'),
                                   run_id=run_id, cancel=cancel)
    elif kind == 'outreach':
        result = run_outreach(params.get('leadIds'), dry_run=bool(params.get('dryRun')),
                              run_id=run_id, cancel=cancel)
    else:
        db.finish_run(run_id, errors=[f"unsupported kind: {kind}"], failed=True)
        raise ValueError(f"Unsupported run kind: {kind}")
    return result.to_dict()
