"""Tests for /api/email/approve (review queue, decisions) and /api/email (send)."""
import pytest
from unittest.mock import patch

from leadgen.pipeline.base import OutreachResult


class TestPendingEmails:

    def test_lists_unreviewed_leads(self, client, make_lead):
        make_lead(github_username='alice', repo_name='n8n-crm')
        make_lead(github_username='bob', email=None)
        make_lead(email_approved=True)

        data = client.get('/api/email/approve').get_json()

        assert data['count'] == 2
        by_user = {p['github_username']: p for p in data['pendingEmails']}
        assert 'n8n-crm' in by_user['alice']['emailContent']
        assert by_user['bob']['dmScript'].startswith('Hey bob')
        assert 'dmScript' not in by_user['alice']


class TestDecide:

    def test_approve(self, client, make_lead):
        lead = make_lead(email_pending_approval=True)
        data = client.post('/api/email/approve', json={'action': 'approve', 'leadIds': [lead.id]}).get_json()
        assert data['success'] is True
        assert data['updatedCount'] == 1
        assert data['action'] == 'approve'
        assert data['message'] == 'approve completed for 1 leads'

    def test_illegal_decision_reported_per_lead(self, client, make_lead):
        lead = make_lead()
        data = client.post('/api/email/approve', json={'action': 'approve', 'leadIds': [lead.id]}).get_json()
        assert data['updatedCount'] == 0
        assert len(data['errors']) == 1

    @pytest.mark.parametrize('body', [{}, {'action': 'approve'}, {'leadIds': [1]}])
    def test_invalid_body(self, client, body):
        resp = client.post('/api/email/approve', json=body)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid request body'

    def test_invalid_action(self, client):
        resp = client.post('/api/email/approve', json={'action': 'delete', 'leadIds': [1]})
        assert resp.status_code == 400


class TestSendEmails:

    @patch('leadgen.pipeline.manager.run_outreach')
    def test_dry_run(self, mock_run, client):
        mock_run.return_value = OutreachResult(emails_sent=3, dry_run=True)
        data = client.post('/api/email', json={'dryRun': True}).get_json()

        mock_run.assert_called_once_with(None, dry_run=True)
        assert data['emailsSent'] == 3
        assert data['dryRun'] is True
        assert data['message'] == 'Dry run completed. Sent 3 emails.'

    @patch('leadgen.pipeline.manager.run_outreach')
    def test_explicit_ids(self, mock_run, client):
        mock_run.return_value = OutreachResult(emails_sent=1, errors=['lead 9 not found'])
        data = client.post('/api/email', json={'leadIds': [4, 9]}).get_json()

        mock_run.assert_called_once_with([4, 9], dry_run=False)
        assert data['errors'] == ['lead 9 not found']
        assert data['message'] == 'Email campaign completed. Sent 1 emails.'

    @pytest.mark.parametrize('lead_ids', [[], 'all'])
    @patch('leadgen.pipeline.manager.run_outreach')
    def test_invalid_ids(self, mock_run, client, lead_ids):
        assert client.post('/api/email', json={'leadIds': lead_ids}).status_code == 400
        mock_run.assert_not_called()
