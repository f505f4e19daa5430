"""
Outreach gate — the only place lead approval flags and lifecycle status change.

Approval state is derived from the three email_* flags:

  Unreviewed ──mark_pending──▶ PendingApproval ──approve──▶ Approved
       │                              │                        │
       └──────────────reject──────────┴─────────reject─────────┴──▶ Rejected (terminal)

Lifecycle status moves new → contacted only through a successful send, then
contacted → responded → converted through advance_status(). The lead store
accepts any write; every rule lives here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from leadgen.config import LEAD_STATUSES, OutreachSettings
from leadgen.errors import IllegalTransition, LeadNotFound, OutreachRefused
from leadgen.pipeline.base import CancellationToken, DecisionResult, OutreachResult
from leadgen.pipeline.pacing import Pacer, fixed_or_noop

logger = logging.getLogger('pipeline.outreach')

UNREVIEWED = 'unreviewed'
PENDING_APPROVAL = 'pending_approval'
APPROVED = 'approved'
REJECTED = 'rejected'

DECISION_ACTIONS = ('approve', 'reject', 'mark-pending')

# Lifecycle moves allowed outside of a send
_ADVANCES = {
    ('contacted', 'responded'),
    ('responded', 'converted'),
}


def approval_state(lead) -> str:
    if lead.email_rejected:
        return REJECTED
    if lead.email_approved:
        return APPROVED
    if lead.email_pending_approval:
        return PENDING_APPROVAL
    return UNREVIEWED


@dataclass
class PendingOutreach:
    """A lead awaiting review, with the message that would go out."""
    lead_id: int
    github_username: str
    repo_name: str
    repo_description: str
    email: str = ''
    email_content: str = ''
    dm_script: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'leadId': self.lead_id,
            'github_username': self.github_username,
            'email': self.email,
            'repo_name': self.repo_name,
            'repo_description': self.repo_description,
            'emailContent': self.email_content,
        }
        if self.dm_script is not None:
            data['dmScript'] = self.dm_script
        return data


class OutreachGate:

    def __init__(self, store, transport, settings: OutreachSettings = None,
                 pacer: Pacer = None, now=None):
        self.store = store
        self.transport = transport
        self.settings = settings or OutreachSettings()
        self.pacer = pacer or fixed_or_noop(self.settings.send_delay)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _load(self, lead_id):
        lead = self.store.get(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)
        return lead

    # ── Approval state machine ────────────────────────────────────────

    def mark_pending_approval(self, lead_id):
        lead = self._load(lead_id)
        state = approval_state(lead)
        if state == PENDING_APPROVAL:
            return lead
        if state != UNREVIEWED:
            raise IllegalTransition(lead_id, state, PENDING_APPROVAL)
        return self.store.update_outreach_flags(lead_id, pending=True, approved=False)

    def approve(self, lead_id):
        lead = self._load(lead_id)
        state = approval_state(lead)
        if state == APPROVED:
            return lead
        if state != PENDING_APPROVAL:
            raise IllegalTransition(lead_id, state, APPROVED)
        logger.info("Lead %s approved for outreach", lead_id)
        return self.store.update_outreach_flags(lead_id, pending=False, approved=True)

    def reject(self, lead_id):
        lead = self._load(lead_id)
        if approval_state(lead) == REJECTED:
            return lead
        logger.info("Lead %s rejected for outreach", lead_id)
        return self.store.update_outreach_flags(lead_id, pending=False, approved=False, rejected=True)

    def apply_decisions(self, action: str, lead_ids: Iterable[int]) -> DecisionResult:
        """Apply approve / reject / mark-pending to each id; per-id failures are collected."""
        if action not in DECISION_ACTIONS:
            raise ValueError(f"Unknown action: {action}")
        handler = {
            'approve': self.approve,
            'reject': self.reject,
            'mark-pending': self.mark_pending_approval,
        }[action]

        result = DecisionResult(action=action)
        for lead_id in lead_ids:
            try:
                handler(lead_id)
                result.updated_count += 1
            except Exception as e:
                logger.warning("Error processing lead %s (%s): %s", lead_id, action, e)
                result.errors.append(f"error processing lead {lead_id}: {e}")
        return result

    # ── Lifecycle ─────────────────────────────────────────────────────

    def advance_status(self, lead_id, status: str):
        if status not in LEAD_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        lead = self._load(lead_id)
        if lead.status == status:
            return lead
        if (lead.status, status) not in _ADVANCES:
            raise IllegalTransition(lead_id, lead.status, status)
        logger.info("Lead %s status %s → %s", lead_id, lead.status, status)
        return self.store.update_status(lead_id, status)

    # ── Sending ───────────────────────────────────────────────────────

    def check_send(self, lead):
        """Raise OutreachRefused unless the lead may be emailed right now."""
        if approval_state(lead) != APPROVED:
            raise OutreachRefused(lead.id, 'not approved for outreach')
        if lead.email_sent:
            raise OutreachRefused(lead.id, 'email already sent')
        if lead.status != 'new':
            raise OutreachRefused(lead.id, f"status is '{lead.status}', expected 'new'")
        if not lead.email:
            raise OutreachRefused(lead.id, f'no email for {lead.github_username} (use DM script)')

    def send(self, lead) -> bool:
        """
        Email one lead. True once the transport accepted it and the lead was
        marked contacted; False if the transport failed (nothing persisted).

        The precondition is checked against the stored row, not the copy
        passed in, and the contacted write only lands on a lead that is still
        new and unsent.
        """
        current = self._load(lead.id)
        self.check_send(current)
        if not self.transport.send(current):
            return False
        if not self.store.mark_contacted(current.id, self._now()):
            logger.warning("Lead %s was marked contacted by another sender during this send", current.id)
            raise OutreachRefused(current.id, 'already marked contacted by another send')
        return True

    def _default_batch(self) -> List:
        return [
            lead for lead in self.store.list_all()
            if lead.email and not lead.email_sent and lead.status == 'new'
            and approval_state(lead) == APPROVED
        ]

    def send_batch(self, lead_ids: Optional[Iterable[int]] = None, dry_run: bool = False,
                   cancel: CancellationToken = None) -> OutreachResult:
        """
        Send to the given leads, or to every approved, unsent, new lead with an
        email. In dry-run mode nothing is sent or written but each lead that
        passes the precondition still counts in emails_sent.
        """
        result = OutreachResult(dry_run=dry_run)
        if lead_ids is not None:
            ids = list(dict.fromkeys(lead_ids))
            if not ids:
                raise ValueError("lead_ids must not be empty")
            leads = self.store.get_many(ids)
            found = {lead.id for lead in leads}
            for missing in (i for i in ids if i not in found):
                result.errors.append(f"lead {missing} not found")
        else:
            leads = self._default_batch()

        logger.info("Preparing to email %d leads (dry run: %s)", len(leads), dry_run)

        for index, lead in enumerate(leads):
            if cancel is not None and cancel.cancelled:
                result.cancelled = True
                logger.info("Outreach cancelled after %d leads", index)
                break
            if index:
                self.pacer.pace()
            try:
                if dry_run:
                    self.check_send(lead)
                    logger.info("[DRY RUN] Would send email to %s for %s", lead.email, lead.github_username)
                    result.emails_sent += 1
                elif self.send(lead):
                    result.emails_sent += 1
                else:
                    result.errors.append(f"failed to send email to {lead.email}")
            except OutreachRefused as e:
                result.errors.append(str(e))
            except Exception as e:
                logger.error("Error emailing %s: %s", lead.github_username, e)
                result.errors.append(f"error emailing {lead.github_username}: {e}")

        logger.info("Outreach finished: %d sent, %d errors", result.emails_sent, len(result.errors))
        return result

    # ── Review queue ──────────────────────────────────────────────────

    def pending_approvals(self) -> List[PendingOutreach]:
        """Unsent, new, unreviewed leads with the email (or DM script) they would get."""
        pending = []
        for lead in self.store.list_all():
            if lead.email_sent or lead.status != 'new' or approval_state(lead) != UNREVIEWED:
                continue
            item = PendingOutreach(
                lead_id=lead.id,
                github_username=lead.github_username,
                repo_name=lead.repo_name,
                repo_description=lead.repo_description or '',
            )
            if lead.email:
                item.email = lead.email
                item.email_content = self.transport.generate_email_content(lead)
            else:
                item.dm_script = self.transport.generate_dm_script(lead)
            pending.append(item)
        return pending
