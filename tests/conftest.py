"""Shared test fixtures."""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leadgen.database import Base
from leadgen.pipeline.base import (
    OutreachTransport, OwnerDetail, RepoSummary, RepositorySource, Scorer, ScoringResponse,
)
from leadgen.pipeline.pacing import Pacer

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import leadgen.models.lead
    import leadgen.models.pipeline_run
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that gateway methods and route handlers calling
    session.close() in their finally blocks don't invalidate the shared session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('leadgen.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def isolated_store(tmp_path):
    """LeadStore on its own file database; every call opens and closes a fresh session."""
    from leadgen.services.lead_store import LeadStore
    import leadgen.models.lead
    engine = create_engine(f"sqlite:///{tmp_path / 'leads.db'}")
    Base.metadata.create_all(engine)
    yield LeadStore(session_factory=sessionmaker(bind=engine, expire_on_commit=False))
    engine.dispose()


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.hgetall.return_value = {}
    with patch('leadgen.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def app(mock_redis):
    """Flask test app."""
    from leadgen import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Leads ────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_lead(db_session):
    """Factory fixture — inserts a Lead row with explicit defaults."""
    from leadgen.models.lead import Lead

    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        n = counter['n']
        defaults = dict(
            github_username=f'owner{n}',
            repo_name=f'n8n-workflows-{n}',
            repo_url=f'https://github.com/owner{n}/n8n-workflows-{n}',
            repo_description='A collection of n8n workflows',
            email=f'owner{n}@example.com',
            status='new',
            email_sent=False,
            email_pending_approval=False,
            email_approved=False,
            email_rejected=False,
            last_activity=NOW - timedelta(days=3),
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make


# ── Collaborator fakes ───────────────────────────────────────────────────────

def make_repo(owner='alice', name='n8n-flows', days_old=5, **overrides):
    fields = dict(
        owner=owner,
        name=name,
        html_url=f'https://github.com/{owner}/{name}',
        description='Workflow collection',
        topics=['n8n'],
        pushed_at=NOW - timedelta(days=days_old),
    )
    fields.update(overrides)
    return RepoSummary(**fields)


class FakeSource(RepositorySource):
    """Pages keyed by page number; an entry may be an exception to raise."""

    def __init__(self, pages=None, owners=None):
        self.pages = pages or {}
        self.owners = owners or {}
        self.searched = []
        self.owner_calls = []

    def search(self, page):
        self.searched.append(page)
        value = self.pages.get(page, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def fetch_owner_detail(self, username):
        self.owner_calls.append(username)
        value = self.owners.get(username)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return OwnerDetail(login=username, email=f'{username}@example.com')
        return value


class FakeScorer(Scorer):
    """Scores by repo name; a value may be an exception to raise."""

    def __init__(self, scores):
        self.scores = scores
        self.calls = []

    def score(self, lead):
        self.calls.append(lead.repo_name)
        value = self.scores[lead.repo_name]
        if isinstance(value, Exception):
            raise value
        return ScoringResponse(score=value, recommendation='review', reasoning=f'scored {value}')


class FakeTransport(OutreachTransport):

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send(self, lead):
        self.sent.append(lead.id)
        return self.succeed

    def generate_email_content(self, lead):
        return f'<p>Hello {lead.github_username}</p>'

    def generate_dm_script(self, lead):
        return f'Hey {lead.github_username}'


class RecordingPacer(Pacer):

    def __init__(self):
        self.calls = 0

    def pace(self):
        self.calls += 1


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def repo_factory():
    return make_repo


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_scorer():
    return FakeScorer


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def pacer():
    return RecordingPacer()
