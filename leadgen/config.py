"""
Centralized configuration — env vars, constants, and the settings objects
handed to each pipeline component at construction.

Nothing outside this module reads os.environ for pipeline behavior; the
manager builds settings here and passes them down.
"""
import os
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ''):
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        return default


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── GitHub ────────────────────────────────────────────────────────────────────
GITHUB_TOKEN = os.getenv('GITHUB_TOKEN')
GITHUB_API_URL = os.getenv('GITHUB_API_URL', 'https://api.github.com')
GITHUB_SEARCH_QUERY = os.getenv('GITHUB_SEARCH_QUERY', 'topic:n8n OR topic:n8n-workflows')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
AI_MODEL = os.getenv('AI_MODEL')

# ── Resend (outreach email transport) ─────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = 'https://api.resend.com'
FROM_EMAIL = os.getenv('FROM_EMAIL', 'noreply@xeinst.com')

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Target filter ────────────────────────────────────────────────────────────
TARGET_KEYWORDS = ('n8n', 'n8n-workflow')

# ── Lead status values ───────────────────────────────────────────────────────
LEAD_STATUSES = [
    'new',
    'contacted',
    'responded',
    'converted',
]

# ── AI recommendation values ─────────────────────────────────────────────────
RECOMMENDATIONS = [
    'approve',
    'reject',
    'review',
]

# ── Pipeline run kinds + statuses ────────────────────────────────────────────
RUN_KINDS = [
    'acquisition',
    'qualification',
    'outreach',
]

RUN_STATUSES = [
    'queued',
    'running',
    'completed',
    'failed',
]


# ── Settings objects ─────────────────────────────────────────────────────────

@dataclass
class GitHubSettings:
    token: Optional[str] = None
    api_url: str = 'https://api.github.com'
    query: str = 'topic:n8n OR topic:n8n-workflows'
    per_page: int = 100
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> 'GitHubSettings':
        return cls(
            token=GITHUB_TOKEN,
            api_url=GITHUB_API_URL,
            query=GITHUB_SEARCH_QUERY,
            per_page=_env_int('GITHUB_PER_PAGE', 100),
            timeout=_env_float('GITHUB_TIMEOUT', 30.0),
        )


@dataclass
class AcquisitionSettings:
    """Freshness window, keyword filter, and pacing intervals for a scrape."""
    max_stale_days: int = 90
    keywords: Tuple[str, ...] = TARGET_KEYWORDS
    item_delay: float = 1.0
    page_delay: float = 2.0
    default_start_page: int = 1
    default_page_count: int = 3

    @classmethod
    def from_env(cls) -> 'AcquisitionSettings':
        return cls(
            max_stale_days=_env_int('MAX_STALE_DAYS', 90),
            item_delay=_env_float('ACQUISITION_ITEM_DELAY', 1.0),
            page_delay=_env_float('ACQUISITION_PAGE_DELAY', 2.0),
        )


@dataclass
class QualificationSettings:
    model: str = 'gpt-4'
    temperature: float = 0.3
    max_tokens: int = 1000
    auto_approve_threshold: float = 0.8
    auto_reject_threshold: float = 0.3
    batch_limit: int = 10
    delay: float = 1.0

    @classmethod
    def env_overrides(cls) -> dict:
        """Values set in the environment, to layer over the YAML config."""
        overrides = {}
        if AI_MODEL:
            overrides['model'] = AI_MODEL
        for env_name, attr in (('AUTO_APPROVE_THRESHOLD', 'auto_approve_threshold'),
                               ('AUTO_REJECT_THRESHOLD', 'auto_reject_threshold')):
            if os.getenv(env_name):
                overrides[attr] = _env_float(env_name, getattr(cls, attr))
        return overrides

    @property
    def thresholds_valid(self) -> bool:
        return self.auto_reject_threshold < self.auto_approve_threshold

    def with_overrides(self, overrides: Optional[dict]) -> 'QualificationSettings':
        """
        Copy with camelCase or snake_case overrides (as sent by API callers).

        Each value is converted to the type of the field it replaces; a value
        that does not convert raises ValueError.
        """
        if not overrides:
            return self
        aliases = {
            'autoApproveThreshold': 'auto_approve_threshold',
            'autoRejectThreshold': 'auto_reject_threshold',
            'maxTokens': 'max_tokens',
            'batchLimit': 'batch_limit',
        }
        kinds = {f.name: f.type for f in fields(self)}
        values = dict(self.__dict__)
        for key, value in overrides.items():
            name = aliases.get(key, key)
            if name not in kinds or value is None:
                continue
            kind = kinds[name]
            if isinstance(value, (bool, list, dict)):
                raise ValueError(f"Invalid value for {key}: {value!r}")
            try:
                values[name] = kind(value)
            except (TypeError, ValueError):
                raise ValueError(f"Invalid value for {key}: {value!r}") from None
        return QualificationSettings(**values)


@dataclass
class OutreachSettings:
    from_email: str = 'noreply@xeinst.com'
    subject: str = 'Your awesome n8n workflow caught our attention! 🚀'
    send_delay: float = 1.0
    resend_api_key: Optional[str] = field(default=None, repr=False)
    resend_api_url: str = 'https://api.resend.com'

    @classmethod
    def from_env(cls) -> 'OutreachSettings':
        return cls(
            from_email=FROM_EMAIL,
            send_delay=_env_float('OUTREACH_SEND_DELAY', 1.0),
            resend_api_key=RESEND_API_KEY,
            resend_api_url=RESEND_API_URL,
        )
