#!/usr/bin/env python3
"""
Run a pipeline from the command line, without the web app.

Usage:
    python scripts/leads_cli.py scrape --page 1 --max-pages 3
    python scripts/leads_cli.py analyze --limit 10 --auto-approve
    python scripts/leads_cli.py analyze --lead-id 4 --lead-id 7
    python scripts/leads_cli.py send --dry-run
    python scripts/leads_cli.py send --lead-id 4 --lead-id 7

Prints the run's result as JSON. Requires DATABASE_URL (defaults to
sqlite:///local.db); pass --init-db to create tables for local SQLite.
"""
import sys
import os
import json
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadgen.database import init_db
from leadgen.errors import AcquisitionFailed, LeadNotFound
from leadgen.logging_config import configure_logging
from leadgen.pipeline import manager


def build_parser():
    parser = argparse.ArgumentParser(description='n8n lead pipeline')
    parser.add_argument('--init-db', action='store_true', help='Create tables before running (local SQLite)')
    sub = parser.add_subparsers(dest='command', required=True)

    scrape = sub.add_parser('scrape', help='Search GitHub and insert new leads')
    scrape.add_argument('--page', type=int, default=1)
    scrape.add_argument('--max-pages', type=int, default=3)

    analyze = sub.add_parser('analyze', help='Score leads with the AI agent')
    analyze.add_argument('--limit', type=int, default=10, help='How many unanalyzed leads to score')
    analyze.add_argument('--lead-id', type=int, action='append', dest='lead_ids',
                         help='Score specific leads (repeatable)')
    analyze.add_argument('--auto-approve', action='store_true')

    send = sub.add_parser('send', help='Email approved leads')
    send.add_argument('--lead-id', type=int, action='append', dest='lead_ids',
                      help='Email specific leads (repeatable)')
    send.add_argument('--dry-run', action='store_true')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.init_db:
        init_db()

    if args.command == 'scrape':
        try:
            result = manager.run_acquisition(args.page, args.max_pages)
        except AcquisitionFailed as e:
            print(f'Scraping failed: {e}', file=sys.stderr)
            return 1
    elif args.command == 'analyze':
        try:
            result = manager.run_qualification(args.lead_ids, auto_approve=args.auto_approve, limit=args.limit)
        except LeadNotFound as e:
            print(f'Analysis failed: {e}', file=sys.stderr)
            return 1
    else:
        result = manager.run_outreach(args.lead_ids, dry_run=args.dry_run)

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


if __name__ == '__main__':
    sys.exit(main())
