"""
Error taxonomy shared by the source adapter, store gateway, and pipeline stages.

Per-item failures are recorded into a run's error list by the caller;
only AcquisitionFailed escalates to a whole-run failure.
"""


class LeadgenError(Exception):
    """Base class for all pipeline errors."""


class MalformedResponse(LeadgenError):
    """An external payload (search page, user profile, scoring reply) failed to parse."""

    def __init__(self, source, detail):
        self.source = source
        self.detail = detail
        super().__init__(f"Malformed {source} response: {detail}")


class SourceError(LeadgenError):
    """The repository source failed in a way retrying later will not fix."""


class TransientSourceError(SourceError):
    """Network error, timeout, 5xx, or rate limit on a single source call."""


class AcquisitionFailed(LeadgenError):
    """The source failed before any page was fetched — the run did nothing."""


class LeadNotFound(LeadgenError):
    def __init__(self, lead_id):
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class IllegalTransition(LeadgenError):
    """The outreach gate refused a state change."""

    def __init__(self, lead_id, current, requested):
        self.lead_id = lead_id
        self.current = current
        self.requested = requested
        super().__init__(f"Lead {lead_id}: cannot go from '{current}' to '{requested}'")


class OutreachRefused(LeadgenError):
    """A send was attempted on a lead that does not meet the send precondition."""

    def __init__(self, lead_id, reason):
        self.lead_id = lead_id
        self.reason = reason
        super().__init__(f"Lead {lead_id}: {reason}")
