"""
GitHub REST API — repository search + owner profile lookup.

Every payload is parsed into RepoSummary / OwnerDetail at this boundary;
missing required fields raise MalformedResponse instead of leaking None
into the pipeline. HTTP failures are split into transient (network, 5xx,
rate limit) and permanent (anything else) so the acquisition pipeline can
decide whether to record-and-continue or abort.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from leadgen.config import GitHubSettings
from leadgen.errors import MalformedResponse, SourceError, TransientSourceError
from leadgen.pipeline.base import OwnerDetail, RepoSummary, RepositorySource
from leadgen.pipeline.eligibility import parse_timestamp

logger = logging.getLogger('services.github')

_TRANSIENT_STATUSES = {403, 429, 500, 502, 503, 504}


def parse_repo(item: Dict[str, Any]) -> RepoSummary:
    """One search result item → RepoSummary."""
    if not isinstance(item, dict):
        raise MalformedResponse('search item', f"expected object, got {type(item).__name__}")

    owner = item.get('owner')
    login = owner.get('login') if isinstance(owner, dict) else None
    name = item.get('name')
    html_url = item.get('html_url')

    missing = [k for k, v in (('owner.login', login), ('name', name), ('html_url', html_url)) if not v]
    if missing:
        raise MalformedResponse('search item', f"missing {', '.join(missing)}")

    topics = item.get('topics') or []
    if not isinstance(topics, list):
        topics = []

    return RepoSummary(
        owner=login,
        name=name,
        html_url=html_url,
        description=item.get('description') or '',
        topics=[t for t in topics if isinstance(t, str)],
        pushed_at=parse_timestamp(item.get('pushed_at')),
        updated_at=parse_timestamp(item.get('updated_at')),
        created_at=parse_timestamp(item.get('created_at')),
        stars=item.get('stargazers_count'),
        forks=item.get('forks_count'),
        language=item.get('language'),
        owner_type=owner.get('type') or '',
    )


def parse_search_page(payload: Any) -> List[RepoSummary]:
    if not isinstance(payload, dict) or not isinstance(payload.get('items'), list):
        raise MalformedResponse('search page', "missing 'items' list")
    return [parse_repo(item) for item in payload['items']]


def parse_owner(payload: Any) -> OwnerDetail:
    if not isinstance(payload, dict) or not payload.get('login'):
        raise MalformedResponse('user', "missing 'login'")
    return OwnerDetail(
        login=payload['login'],
        email=payload.get('email') or None,
        name=payload.get('name') or None,
        company=payload.get('company') or None,
        blog=payload.get('blog') or None,
        location=payload.get('location') or None,
        bio=payload.get('bio') or None,
        twitter_username=payload.get('twitter_username') or None,
        public_repos=payload.get('public_repos'),
        followers=payload.get('followers'),
    )


class GitHubSource(RepositorySource):
    """Search the fixed n8n query page by page; fetch owner profiles on demand."""

    def __init__(self, settings: GitHubSettings = None, session: requests.Session = None, breaker=None):
        self.settings = settings or GitHubSettings()
        self.session = session or requests.Session()
        self.breaker = breaker
        self.session.headers.update({
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': '2022-11-28',
        })
        if self.settings.token:
            self.session.headers['Authorization'] = f'Bearer {self.settings.token}'

    def _get(self, path: str, params: Dict[str, Any] = None) -> requests.Response:
        url = f"{self.settings.api_url.rstrip('/')}{path}"
        try:
            return self.session.get(url, params=params, timeout=self.settings.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientSourceError(f"GET {path} failed: {e}") from e
        except requests.RequestException as e:
            raise SourceError(f"GET {path} failed: {e}") from e

    def _call(self, func, *args):
        if self.breaker is None:
            return func(*args)
        return self.breaker.call(func, *args)

    @staticmethod
    def _raise_for_status(resp: requests.Response, what: str):
        if resp.status_code in _TRANSIENT_STATUSES:
            raise TransientSourceError(f"{what}: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise SourceError(f"{what}: HTTP {resp.status_code} {resp.text[:200]}")

    def _search(self, page: int) -> List[RepoSummary]:
        resp = self._get('/search/repositories', params={
            'q': self.settings.query,
            'sort': 'updated',
            'order': 'desc',
            'per_page': self.settings.per_page,
            'page': page,
        })
        # GitHub serves at most 1000 search results; later pages answer 422
        if resp.status_code == 422:
            logger.info("Search page %d is past the result window — treating as exhausted", page)
            return []
        self._raise_for_status(resp, f"search page {page}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise MalformedResponse('search page', f"invalid JSON: {e}") from e
        return parse_search_page(payload)

    def search(self, page: int) -> List[RepoSummary]:
        repos = self._call(self._search, page)
        logger.info("Search page %d returned %d repositories", page, len(repos))
        return repos

    def _owner(self, username: str) -> Optional[OwnerDetail]:
        resp = self._get(f'/users/{username}')
        rate_limited = resp.status_code == 403 and resp.headers.get('X-RateLimit-Remaining') == '0'
        if resp.status_code in (403, 404) and not rate_limited:
            logger.info("No profile available for %s (HTTP %d)", username, resp.status_code)
            return None
        self._raise_for_status(resp, f"user {username}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise MalformedResponse('user', f"invalid JSON: {e}") from e
        return parse_owner(payload)

    def fetch_owner_detail(self, username: str) -> Optional[OwnerDetail]:
        return self._call(self._owner, username)


def build_source(settings: GitHubSettings = None) -> GitHubSource:
    """GitHubSource wired to env settings and the shared 'github' breaker."""
    from leadgen.services.circuit_breaker import get_breaker
    return GitHubSource(settings or GitHubSettings.from_env(), breaker=get_breaker('github'))
