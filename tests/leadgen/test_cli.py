"""Tests for scripts/leads_cli.py."""
import json
import logging

import pytest
from unittest.mock import patch

from leadgen.errors import AcquisitionFailed, LeadNotFound
from leadgen.pipeline.base import AcquisitionResult, OutreachResult, QualificationResult
from scripts.leads_cli import build_parser, main


@pytest.fixture(autouse=True)
def _keep_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestParser:

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_repeatable_lead_ids(self):
        args = build_parser().parse_args(['send', '--lead-id', '4', '--lead-id', '7', '--dry-run'])
        assert args.lead_ids == [4, 7]
        assert args.dry_run is True


class TestMain:

    @patch('leadgen.pipeline.manager.run_acquisition')
    def test_scrape_prints_json(self, mock_run, capsys):
        mock_run.return_value = AcquisitionResult(leads_found=3, leads_added=1)

        assert main(['scrape', '--page', '2', '--max-pages', '1']) == 0

        mock_run.assert_called_once_with(2, 1)
        assert json.loads(capsys.readouterr().out)['leadsAdded'] == 1

    @patch('leadgen.pipeline.manager.run_acquisition', side_effect=AcquisitionFailed('HTTP 401'))
    def test_scrape_failure_exit_code(self, mock_run, capsys):
        assert main(['scrape']) == 1
        assert 'HTTP 401' in capsys.readouterr().err

    @patch('leadgen.pipeline.manager.run_qualification')
    def test_analyze(self, mock_run):
        mock_run.return_value = QualificationResult()
        main(['analyze', '--limit', '5', '--auto-approve'])
        mock_run.assert_called_once_with(None, auto_approve=True, limit=5)

    @patch('leadgen.pipeline.manager.run_qualification', side_effect=LeadNotFound(999))
    def test_analyze_unknown_lead_exit_code(self, mock_run, capsys):
        assert main(['analyze', '--lead-id', '999']) == 1
        assert 'Lead 999 not found' in capsys.readouterr().err

    @patch('leadgen.pipeline.manager.run_outreach')
    def test_send(self, mock_run):
        mock_run.return_value = OutreachResult(dry_run=True)
        main(['send', '--dry-run'])
        mock_run.assert_called_once_with(None, dry_run=True)

    @patch('scripts.leads_cli.init_db')
    @patch('leadgen.pipeline.manager.run_outreach', return_value=OutreachResult())
    def test_init_db_flag(self, mock_run, mock_init_db):
        main(['--init-db', 'send'])
        mock_init_db.assert_called_once()
