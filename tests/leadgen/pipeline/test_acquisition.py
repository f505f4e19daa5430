"""Tests for leadgen.pipeline.acquisition — fetch, filter, dedup, insert, error isolation."""
import pytest
from unittest.mock import MagicMock

from leadgen.config import AcquisitionSettings
from leadgen.errors import AcquisitionFailed, SourceError, TransientSourceError
from leadgen.models.lead import Lead
from leadgen.pipeline.acquisition import AcquisitionPipeline, build_lead_fields
from leadgen.pipeline.base import CancellationToken, OwnerDetail
from leadgen.pipeline.pacing import NoopPacer
from leadgen.services.lead_store import LeadStore


def _pipeline(source, store=None, now=None, item_pacer=None, page_pacer=None):
    return AcquisitionPipeline(
        source,
        store or LeadStore(),
        AcquisitionSettings(),
        item_pacer=item_pacer or NoopPacer(),
        page_pacer=page_pacer or NoopPacer(),
        now=now,
    )


class TestAcquisitionRun:

    def test_inserts_only_active_valid_new_repo(self, fake_source, repo_factory, make_lead, db_session, now):
        """Page of [active+new, inactive, already stored] inserts exactly the first."""
        make_lead(github_username='carol', repo_name='n8n-existing')
        source = fake_source(pages={1: [
            repo_factory(owner='alice', name='n8n-fresh', days_old=2),
            repo_factory(owner='bob', name='n8n-stale', days_old=200),
            repo_factory(owner='carol', name='n8n-existing', days_old=1),
        ]})

        result = _pipeline(source, now=now).run(1, 1)

        assert result.leads_found == 3
        assert result.leads_added == 1
        assert result.errors == []
        assert source.owner_calls == ['alice']
        names = sorted(l.repo_name for l in db_session.query(Lead).all())
        assert names == ['n8n-existing', 'n8n-fresh']

    def test_rerun_adds_nothing(self, fake_source, repo_factory, db_session, now):
        pages = {1: [repo_factory(owner='alice', name='n8n-a'), repo_factory(owner='bob', name='n8n-b')]}

        first = _pipeline(fake_source(pages=pages), now=now).run(1, 1)
        second = _pipeline(fake_source(pages=pages), now=now).run(1, 1)

        assert first.leads_added == 2
        assert second.leads_added == 0
        assert second.leads_found == 2
        assert db_session.query(Lead).count() == 2

    def test_invalid_candidates_are_dropped_silently(self, fake_source, repo_factory, now):
        source = fake_source(pages={1: [
            repo_factory(name='zapier-recipes', description='Zapier', topics=['zapier']),
        ]})
        result = _pipeline(source, now=now).run(1, 1)
        assert result.leads_found == 1
        assert result.leads_added == 0
        assert result.errors == []
        assert source.owner_calls == []

    def test_stores_lead_fields(self, fake_source, repo_factory, db_session, now):
        owner = OwnerDetail(login='alice', email='"alice@example.com"', name='Alice', company='Acme')
        source = fake_source(
            pages={1: [repo_factory(owner='alice', name='n8n-x', stars=12, language='TypeScript')]},
            owners={'alice': owner},
        )
        _pipeline(source, now=now).run(1, 1)

        lead = db_session.query(Lead).one()
        assert lead.status == 'new'
        assert lead.email == 'alice@example.com'
        assert lead.owner_name == 'Alice'
        assert lead.owner_company == 'Acme'
        assert lead.repo_stars == 12
        assert lead.repo_language == 'TypeScript'
        assert lead.ai_score is None
        assert lead.email_sent is False

    def test_missing_owner_profile_stores_lead_without_email(self, repo_factory, now):
        source = MagicMock()
        source.search.side_effect = lambda page: [repo_factory(owner='ghost', name='n8n-g')] if page == 1 else []
        source.fetch_owner_detail.return_value = None
        store = MagicMock()
        store.exists.return_value = False

        result = _pipeline(source, store=store, now=now).run(1, 1)

        assert result.leads_added == 1
        fields = store.insert.call_args[0][0]
        assert fields['email'] is None
        assert fields['github_username'] == 'ghost'

    def test_noreply_email_not_stored(self, fake_source, repo_factory, db_session, now):
        source = fake_source(
            pages={1: [repo_factory(owner='bot', name='n8n-bot')]},
            owners={'bot': OwnerDetail(login='bot', email='bot@users.noreply.github.com')},
        )
        _pipeline(source, now=now).run(1, 1)
        assert db_session.query(Lead).one().email is None


class TestErrorIsolation:

    def test_one_failing_item_does_not_stop_the_rest(self, fake_source, repo_factory, now):
        repos = [repo_factory(owner=f'user{i}', name=f'n8n-{i}') for i in range(5)]
        source = fake_source(
            pages={1: repos},
            owners={'user2': RuntimeError('profile lookup exploded')},
        )

        result = _pipeline(source, now=now).run(1, 1)

        assert result.leads_added == 4
        assert len(result.errors) == 1
        assert 'user2/n8n-2' in result.errors[0]
        assert 'profile lookup exploded' in result.errors[0]
        assert result.errors[0].startswith('error processing user2/n8n-2')

    def test_rejected_insert_recorded(self, repo_factory, now):
        source = MagicMock()
        source.search.side_effect = lambda page: [repo_factory(owner='alice', name='n8n-a')] if page == 1 else []
        source.fetch_owner_detail.return_value = None
        store = MagicMock()
        store.exists.return_value = False
        store.insert.return_value = None

        result = _pipeline(source, store=store, now=now).run(1, 1)

        assert result.leads_added == 0
        assert result.errors == ['failed to insert lead: alice/n8n-a']

    def test_transient_page_failure_moves_to_next_page(self, fake_source, repo_factory, now):
        source = fake_source(pages={
            1: TransientSourceError('HTTP 502'),
            2: [repo_factory(owner='alice', name='n8n-a')],
        })
        result = _pipeline(source, now=now).run(1, 2)

        assert source.searched == [1, 2]
        assert result.leads_added == 1
        assert result.errors == ['error fetching page 1: HTTP 502']

    def test_permanent_failure_before_first_page_aborts(self, fake_source, now):
        source = fake_source(pages={1: SourceError('HTTP 401 Bad credentials')})
        with pytest.raises(AcquisitionFailed):
            _pipeline(source, now=now).run(1, 3)

    def test_permanent_failure_after_a_page_stops_pagination(self, fake_source, repo_factory, now):
        source = fake_source(pages={
            1: [repo_factory(owner='alice', name='n8n-a')],
            2: SourceError('HTTP 401'),
            3: [repo_factory(owner='bob', name='n8n-b')],
        })
        result = _pipeline(source, now=now).run(1, 3)

        assert source.searched == [1, 2]
        assert result.leads_added == 1
        assert result.errors == ['error fetching page 2: HTTP 401']


class TestPagination:

    def test_empty_page_stops_early(self, fake_source, repo_factory, now, pacer):
        source = fake_source(pages={1: [repo_factory(owner='alice', name='n8n-a')], 2: []})
        result = _pipeline(source, now=now, page_pacer=pacer).run(1, 5)

        assert source.searched == [1, 2]
        assert result.pages_fetched == 2
        assert pacer.calls == 1

    def test_page_pacing_skipped_after_last_page(self, fake_source, repo_factory, now, pacer):
        source = fake_source(pages={p: [repo_factory(owner=f'u{p}', name=f'n8n-{p}')] for p in (1, 2, 3)})
        _pipeline(source, now=now, page_pacer=pacer).run(1, 3)
        assert pacer.calls == 2

    def test_item_pacing_after_each_insert_attempt(self, fake_source, repo_factory, now, pacer):
        source = fake_source(pages={1: [
            repo_factory(owner='a', name='n8n-a'),
            repo_factory(owner='b', name='n8n-b', days_old=365),
            repo_factory(owner='c', name='n8n-c'),
        ]})
        _pipeline(source, now=now, item_pacer=pacer).run(1, 1)
        assert pacer.calls == 2

    def test_starts_at_requested_page(self, fake_source, now):
        source = fake_source(pages={})
        _pipeline(source, now=now).run(4, 2)
        assert source.searched == [4]

    def test_zero_pages_does_nothing(self, fake_source, now):
        source = fake_source(pages={})
        result = _pipeline(source, now=now).run(1, 0)
        assert source.searched == []
        assert result.to_dict()['leadsFound'] == 0

    def test_invalid_start_page(self, fake_source):
        with pytest.raises(ValueError):
            _pipeline(fake_source()).run(0, 1)


class TestCancellation:

    def test_cancel_before_start_returns_empty_partial(self, fake_source, repo_factory, now):
        token = CancellationToken()
        token.cancel()
        source = fake_source(pages={1: [repo_factory()]})
        result = _pipeline(source, now=now).run(1, 3, cancel=token)

        assert result.cancelled is True
        assert source.searched == []
        assert result.leads_found == 0

    def test_cancel_mid_page_keeps_partial_counts(self, fake_source, repo_factory, now):
        token = CancellationToken()
        repos = [repo_factory(owner=f'u{i}', name=f'n8n-{i}') for i in range(4)]
        source = fake_source(pages={1: repos, 2: [repo_factory(owner='late', name='n8n-late')]})

        original = source.fetch_owner_detail

        def fetch_then_cancel(username):
            if username == 'u1':
                token.cancel()
            return original(username)

        source.fetch_owner_detail = fetch_then_cancel
        result = _pipeline(source, now=now).run(1, 2, cancel=token)

        assert result.cancelled is True
        assert result.leads_found == 4
        assert result.leads_added == 2
        assert source.searched == [1]

    def test_deadline_expiry_cancels(self, fake_source, repo_factory, now):
        ticks = iter([0.0, 100.0, 100.0, 100.0])
        token = CancellationToken(deadline=10, clock=lambda: next(ticks))
        source = fake_source(pages={1: [repo_factory()]})
        result = _pipeline(source, now=now).run(1, 1, cancel=token)
        assert result.cancelled is True


class TestBuildLeadFields:

    def test_without_owner(self, repo_factory):
        fields = build_lead_fields(repo_factory(owner='x', name='n8n-y'), None)
        assert fields['github_username'] == 'x'
        assert fields['repo_name'] == 'n8n-y'
        assert fields['email'] is None
        assert fields['status'] == 'new'
        assert 'owner_name' not in fields
