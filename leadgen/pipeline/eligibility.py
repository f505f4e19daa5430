"""
Eligibility checks — pure predicates applied to every search result before
any store or owner lookup happens.

  is_valid_candidate: repo topics / name / description mention the target keywords
  is_active:          last push within the freshness window (inclusive, fail closed)
  normalize_email:    contact address cleanup; noreply and malformed → None
"""
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from leadgen.config import TARGET_KEYWORDS

DEFAULT_MAX_STALE_DAYS = 90

_EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_EMAIL_JUNK_RE = re.compile(r'["\'()\s]')
_NOREPLY_MARKERS = ('noreply', 'no-reply', 'no_reply')


def is_valid_candidate(repo, keywords: Iterable[str] = TARGET_KEYWORDS) -> bool:
    """True if any keyword appears (case-insensitive substring) in a topic, the name, or the description."""
    needles = [k.lower() for k in keywords if k]
    if not needles:
        return False

    haystacks = [t.lower() for t in (repo.topics or []) if isinstance(t, str)]
    haystacks.append((repo.name or '').lower())
    haystacks.append((repo.description or '').lower())

    return any(needle in hay for hay in haystacks for needle in needles)


def parse_timestamp(value) -> Optional[datetime]:
    """ISO-8601 string or datetime → aware UTC datetime. None if missing/unparseable."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_active(repo, now: Optional[datetime] = None, max_stale_days: int = DEFAULT_MAX_STALE_DAYS) -> bool:
    """
    True if the last push is at most `max_stale_days` whole days before `now`.

    Partial days are dropped, so 90 days and 12 hours counts as 90. A missing
    or unparseable push timestamp counts as inactive.
    """
    pushed = parse_timestamp(getattr(repo, 'pushed_at', None))
    if pushed is None:
        return False
    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    return (now - pushed).days <= max_stale_days


def normalize_email(raw) -> Optional[str]:
    """Strip quotes/parens/whitespace; return None for malformed or noreply addresses."""
    if not raw or not isinstance(raw, str):
        return None
    cleaned = _EMAIL_JUNK_RE.sub('', raw)
    if not _EMAIL_RE.match(cleaned):
        return None
    lowered = cleaned.lower()
    if any(marker in lowered for marker in _NOREPLY_MARKERS):
        return None
    return cleaned
