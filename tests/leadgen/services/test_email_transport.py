"""Tests for leadgen.services.email — Resend transport and outreach copy."""
import pytest
import requests
from unittest.mock import MagicMock

from leadgen.config import OutreachSettings
from leadgen.services.email import (
    WAITLIST_URL, ResendTransport, generate_dm_script, generate_email_content,
)


def _settings(**overrides):
    values = dict(resend_api_key='re_test', from_email='hello@xeinst.com')
    values.update(overrides)
    return OutreachSettings(**values)


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.content = b'{}' if payload is not None else b''
    resp.json.return_value = payload
    resp.text = 'error body'
    return resp


@pytest.fixture
def session():
    s = MagicMock()
    s.post.return_value = _response(payload={'id': 'em_123'})
    return s


class TestCopy:

    def test_email_escapes_repo_fields(self, make_lead):
        lead = make_lead(repo_name='<script>', repo_description='Tom & Jerry')
        body = generate_email_content(lead)
        assert '&lt;script&gt;' in body
        assert 'Tom &amp; Jerry' in body
        assert WAITLIST_URL in body

    def test_dm_script_names_owner_and_repo(self, make_lead):
        script = generate_dm_script(make_lead(github_username='alice', repo_name='n8n-crm'))
        assert script.startswith('Hey alice')
        assert '"n8n-crm"' in script


class TestResendTransport:

    def test_posts_email(self, session, make_lead):
        lead = make_lead(email='alice@example.com')
        transport = ResendTransport(_settings(), session=session)

        assert transport.send(lead) is True

        url = session.post.call_args[0][0]
        kwargs = session.post.call_args.kwargs
        assert url == 'https://api.resend.com/emails'
        assert kwargs['headers'] == {'Authorization': 'Bearer re_test'}
        assert kwargs['json']['to'] == ['alice@example.com']
        assert kwargs['json']['from'] == 'hello@xeinst.com'
        assert 'Xeinst' in kwargs['json']['html']

    def test_no_email_is_false(self, session, make_lead):
        assert ResendTransport(_settings(), session=session).send(make_lead(email=None)) is False
        session.post.assert_not_called()

    def test_missing_api_key_is_false(self, session, make_lead):
        assert ResendTransport(_settings(resend_api_key=None), session=session).send(make_lead()) is False
        session.post.assert_not_called()

    def test_error_status_is_false(self, session, make_lead):
        session.post.return_value = _response(status=422, payload={'message': 'invalid to'})
        assert ResendTransport(_settings(), session=session).send(make_lead()) is False

    def test_network_error_is_false(self, session, make_lead):
        session.post.side_effect = requests.Timeout('slow')
        assert ResendTransport(_settings(), session=session).send(make_lead()) is False

    def test_open_breaker_is_false(self, session, make_lead):
        from leadgen.services.circuit_breaker import CircuitOpenError
        breaker = MagicMock()
        breaker.call.side_effect = CircuitOpenError('resend')
        assert ResendTransport(_settings(), session=session, breaker=breaker).send(make_lead()) is False
        session.post.assert_not_called()
