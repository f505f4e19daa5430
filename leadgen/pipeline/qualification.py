"""
Qualification — score leads through the scoring capability and derive the
approve / reject / review recommendation from the configured thresholds.

The engine never persists; callers (the manager, the analyze route) write
the ScoredLead results back through the lead store.
"""
import os
import logging
from typing import Iterable

import yaml

from leadgen.config import QualificationSettings
from leadgen.pipeline.base import BatchScoring, CancellationToken, ScoredLead
from leadgen.pipeline.pacing import Pacer, fixed_or_noop

logger = logging.getLogger('pipeline.qualification')


# ── Qualification config (YAML with hardcoded fallback) ──────────────────────

_qualification_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'model': 'gpt-4',
        'temperature': 0.3,
        'max_tokens': 1000,
        'thresholds': {
            'auto_approve': 0.8,
            'auto_reject': 0.3,
        },
        'batch_limit': 10,
        'delay': 1.0,
    }


def load_qualification_config():
    """Load qualification config from YAML, with in-memory cache and hardcoded fallback."""
    global _qualification_config
    if _qualification_config is not None:
        return _qualification_config

    config_path = os.path.join(os.path.dirname(__file__), 'qualification_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _qualification_config = yaml.safe_load(f) or {}
        logger.info("Config loaded from YAML (version=%s)", _qualification_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _qualification_config = _default_config()

    return _qualification_config


def load_settings(overrides: dict = None) -> QualificationSettings:
    """YAML config → env overrides → caller overrides."""
    cfg = load_qualification_config()
    defaults = _default_config()
    thresholds = {**defaults['thresholds'], **(cfg.get('thresholds') or {})}
    settings = QualificationSettings(
        model=cfg.get('model', defaults['model']),
        temperature=float(cfg.get('temperature', defaults['temperature'])),
        max_tokens=int(cfg.get('max_tokens', defaults['max_tokens'])),
        auto_approve_threshold=float(thresholds['auto_approve']),
        auto_reject_threshold=float(thresholds['auto_reject']),
        batch_limit=int(cfg.get('batch_limit', defaults['batch_limit'])),
        delay=float(cfg.get('delay', defaults['delay'])),
    )
    return settings.with_overrides(QualificationSettings.env_overrides()).with_overrides(overrides)


# ── Engine ───────────────────────────────────────────────────────────────────

class QualificationEngine:

    def __init__(self, scorer, settings: QualificationSettings = None, pacer: Pacer = None):
        self.scorer = scorer
        self.settings = settings or QualificationSettings()
        self.pacer = pacer or fixed_or_noop(self.settings.delay)
        if not self.settings.thresholds_valid:
            logger.warning(
                "auto_reject_threshold (%s) must be below auto_approve_threshold (%s); "
                "every lead will be sent to review",
                self.settings.auto_reject_threshold, self.settings.auto_approve_threshold,
            )

    def recommendation_for(self, score: float) -> str:
        """
        Threshold decision: approve at or above auto_approve_threshold, reject at
        or below auto_reject_threshold, review in between. Misordered thresholds
        put everything in review.
        """
        if not self.settings.thresholds_valid:
            return 'review'
        if score >= self.settings.auto_approve_threshold:
            return 'approve'
        if score <= self.settings.auto_reject_threshold:
            return 'reject'
        return 'review'

    def score_batch(self, leads: Iterable, cancel: CancellationToken = None) -> BatchScoring:
        """Score each lead in order. Failed leads are reported in `errors` and left unscored."""
        batch = BatchScoring()
        for index, lead in enumerate(leads):
            if cancel is not None and cancel.cancelled:
                batch.cancelled = True
                logger.info("Qualification cancelled after %d leads", index)
                break
            if index:
                self.pacer.pace()

            label = f"{lead.github_username}/{lead.repo_name}"
            try:
                response = self.scorer.score(lead)
            except Exception as e:
                logger.error("Error analyzing %s: %s", label, e)
                batch.errors.append(f"error analyzing {label}: {e}")
                continue

            recommendation = self.recommendation_for(response.score)
            batch.scored.append(ScoredLead(
                lead=lead,
                ai_score=response.score,
                ai_recommendation=recommendation,
                ai_analysis=response.reasoning,
                model_recommendation=response.recommendation,
                confidence=response.confidence,
                key_factors=list(response.key_factors),
            ))
            logger.info("Analyzed %s: score=%.2f → %s", label, response.score, recommendation)

        return batch

    def auto_approve(self, leads: Iterable, cancel: CancellationToken = None) -> BatchScoring:
        """score_batch, keeping only 'approve' results in `approved`."""
        batch = self.score_batch(leads, cancel=cancel)
        batch.approved = [s for s in batch.scored if s.ai_recommendation == 'approve']
        logger.info("Auto-approved %d of %d scored leads", len(batch.approved), len(batch.scored))
        return batch
