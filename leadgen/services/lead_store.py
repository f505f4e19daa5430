"""
Lead store gateway — every read and write of the `leads` table goes through here.

Each call opens its own session and closes it before returning, so Lead rows
handed back are detached snapshots. The store does not validate lifecycle
transitions; the outreach gate owns those rules.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from leadgen import database
from leadgen.config import LEAD_STATUSES
from leadgen.errors import LeadNotFound
from leadgen.models.lead import Lead

logger = logging.getLogger('services.lead_store')

_LEAD_COLUMNS = {c.name for c in Lead.__table__.columns} - {'id', 'created_at', 'updated_at'}


class LeadStore:

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _session(self):
        if self._session_factory is not None:
            return self._session_factory()
        return database.get_session()

    # ── Reads ─────────────────────────────────────────────────────────

    def exists(self, username: str, repo_name: str) -> bool:
        session = self._session()
        try:
            row = session.query(Lead.id).filter_by(
                github_username=username,
                repo_name=repo_name,
            ).first()
            return row is not None
        finally:
            session.close()

    def get(self, lead_id: int) -> Optional[Lead]:
        session = self._session()
        try:
            return session.get(Lead, lead_id)
        finally:
            session.close()

    def get_many(self, lead_ids: Iterable[int]) -> List[Lead]:
        """Leads for the given ids, in the order requested. Unknown ids are skipped."""
        ids = list(lead_ids)
        if not ids:
            return []
        session = self._session()
        try:
            rows = session.query(Lead).filter(Lead.id.in_(ids)).all()
        finally:
            session.close()
        by_id = {row.id: row for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def list_unanalyzed(self, limit: Optional[int] = None) -> List[Lead]:
        session = self._session()
        try:
            query = session.query(Lead).filter(Lead.ai_score.is_(None)).order_by(
                Lead.created_at.desc(), Lead.id.desc(),
            )
            if limit:
                query = query.limit(limit)
            return query.all()
        finally:
            session.close()

    def list_all(self) -> List[Lead]:
        session = self._session()
        try:
            return session.query(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).all()
        finally:
            session.close()

    def list_by_recommendation(self, recommendation: str) -> List[Lead]:
        session = self._session()
        try:
            return session.query(Lead).filter_by(
                ai_recommendation=recommendation,
            ).order_by(Lead.ai_score.desc(), Lead.id.desc()).all()
        finally:
            session.close()

    # ── Writes ────────────────────────────────────────────────────────

    def insert(self, fields: dict) -> Optional[Lead]:
        """
        Insert a new lead. Returns the stored row, or None when the store
        rejects it (duplicate owner/repo pair, or any database fault).
        """
        values = {k: v for k, v in fields.items() if k in _LEAD_COLUMNS}
        values.setdefault('status', 'new')
        session = self._session()
        try:
            lead = Lead(**values)
            session.add(lead)
            session.commit()
            return lead
        except IntegrityError:
            session.rollback()
            logger.warning("Duplicate lead rejected: %s/%s",
                           values.get('github_username'), values.get('repo_name'))
            return None
        except SQLAlchemyError:
            session.rollback()
            logger.error("Failed to insert lead %s/%s",
                         values.get('github_username'), values.get('repo_name'), exc_info=True)
            return None
        finally:
            session.close()

    def update_qualification(self, lead_id: int, score: float, recommendation: str, analysis: str) -> Lead:
        """Overwrite the AI fields. Repeating the same call leaves the same state."""
        session = self._session()
        try:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFound(lead_id)
            lead.ai_score = score
            lead.ai_recommendation = recommendation
            lead.ai_analysis = analysis
            lead.analyzed_at = datetime.now(timezone.utc)
            session.commit()
            return lead
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_status(self, lead_id: int, status: str) -> Lead:
        if status not in LEAD_STATUSES:
            raise ValueError(f"Unknown lead status: {status}")
        session = self._session()
        try:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFound(lead_id)
            lead.status = status
            session.commit()
            return lead
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def mark_contacted(self, lead_id: int, sent_at: Optional[datetime] = None) -> bool:
        """
        Record a send: new → contacted with email_sent set, in one conditional UPDATE.

        Only a lead that is still new and unsent matches, so a second writer for
        the same lead gets False instead of overwriting the first send.
        """
        session = self._session()
        try:
            matched = session.query(Lead).filter(
                Lead.id == lead_id,
                Lead.status == 'new',
                Lead.email_sent.is_(False),
            ).update({
                Lead.status: 'contacted',
                Lead.email_sent: True,
                Lead.email_sent_at: sent_at or datetime.now(timezone.utc),
            }, synchronize_session=False)
            session.commit()
            return matched == 1
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_outreach_flags(self, lead_id: int, pending: Optional[bool] = None,
                              approved: Optional[bool] = None, rejected: Optional[bool] = None) -> Lead:
        """Set whichever approval flags are given; None leaves a flag untouched."""
        session = self._session()
        try:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFound(lead_id)
            if pending is not None:
                lead.email_pending_approval = pending
            if approved is not None:
                lead.email_approved = approved
            if rejected is not None:
                lead.email_rejected = rejected
            session.commit()
            return lead
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
