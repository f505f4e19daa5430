"""
Pipeline contracts.

Boundary types (RepoSummary, OwnerDetail, ScoringResponse), the collaborator
interfaces the pipeline stages depend on, the uniform result objects each stage
returns, and the cancellation token checked at page/item boundaries.

Concrete collaborators (GitHub, OpenAI, Resend) live in leadgen.services; the
stages only see these interfaces.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# ── Boundary types ───────────────────────────────────────────────────────────

@dataclass
class RepoSummary:
    """One repository from a search page, already parsed and typed."""
    owner: str
    name: str
    html_url: str
    description: str = ''
    topics: List[str] = field(default_factory=list)
    pushed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    language: Optional[str] = None
    owner_type: str = ''

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class OwnerDetail:
    login: str
    email: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    blog: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    twitter_username: Optional[str] = None
    public_repos: Optional[int] = None
    followers: Optional[int] = None


@dataclass
class ScoringResponse:
    """Parsed reply from the scoring capability."""
    score: float
    recommendation: str
    reasoning: str
    confidence: Optional[float] = None
    key_factors: List[str] = field(default_factory=list)


# ── Collaborator interfaces ──────────────────────────────────────────────────

class RepositorySource(ABC):
    """Paginated candidate search plus on-demand owner lookup."""

    @abstractmethod
    def search(self, page: int) -> List[RepoSummary]:
        """One page of results; an empty list means no more results."""
        ...

    @abstractmethod
    def fetch_owner_detail(self, username: str) -> Optional[OwnerDetail]:
        """Owner profile, or None when missing/forbidden."""
        ...


class Scorer(ABC):

    @abstractmethod
    def score(self, lead: Any) -> ScoringResponse:
        ...


class OutreachTransport(ABC):

    @abstractmethod
    def send(self, lead: Any) -> bool:
        ...

    @abstractmethod
    def generate_email_content(self, lead: Any) -> str:
        ...

    @abstractmethod
    def generate_dm_script(self, lead: Any) -> str:
        ...


# ── Cancellation ─────────────────────────────────────────────────────────────

class CancellationToken:
    """
    Cooperative stop signal for a single pipeline invocation.

    Set explicitly with cancel(), or implicitly once `deadline` seconds
    have elapsed since construction.
    """

    def __init__(self, deadline: Optional[float] = None, clock=time.monotonic):
        self._clock = clock
        self._expires_at = clock() + deadline if deadline is not None else None
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at


# ── Stage results ────────────────────────────────────────────────────────────

@dataclass
class AcquisitionResult:
    leads_found: int = 0
    leads_added: int = 0
    errors: List[str] = field(default_factory=list)
    pages_fetched: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'leadsFound': self.leads_found,
            'leadsAdded': self.leads_added,
            'errors': list(self.errors),
            'pagesFetched': self.pages_fetched,
            'cancelled': self.cancelled,
        }


@dataclass
class ScoredLead:
    """A lead annotated with one scoring pass. Not persisted by the engine."""
    lead: Any
    ai_score: float
    ai_recommendation: str
    ai_analysis: str
    model_recommendation: Optional[str] = None
    confidence: Optional[float] = None
    key_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': getattr(self.lead, 'id', None),
            'github_username': self.lead.github_username,
            'repo_name': self.lead.repo_name,
            'ai_score': self.ai_score,
            'ai_recommendation': self.ai_recommendation,
            'ai_analysis': self.ai_analysis,
        }


@dataclass
class BatchScoring:
    """Output of score_batch / auto_approve."""
    scored: List[ScoredLead] = field(default_factory=list)
    approved: List[ScoredLead] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class QualificationResult:
    analyzed_count: int = 0
    auto_approved_count: int = 0
    leads: List[ScoredLead] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    auto_approve: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analyzedCount': self.analyzed_count,
            'autoApprovedCount': self.auto_approved_count,
            'leads': [s.to_dict() for s in self.leads],
            'errors': list(self.errors),
        }


@dataclass
class OutreachResult:
    emails_sent: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'emailsSent': self.emails_sent,
            'errors': list(self.errors),
            'dryRun': self.dry_run,
            'cancelled': self.cancelled,
        }


@dataclass
class DecisionResult:
    action: str
    updated_count: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'updatedCount': self.updated_count,
            'errors': list(self.errors),
        }
