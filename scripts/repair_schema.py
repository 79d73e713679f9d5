#!/usr/bin/env python3
"""
Schema Repair

Detects and heals drift in the CMS metadata the translation tables depend on:

  relations    duplicate relation records (keeps the earliest)
  markers      field "special" markers not in canonical JSON form
  fields       translation fields missing their capability marker
  links        translation tables missing relation records (report only)
  permissions  grants the service policy is missing

Every repair is idempotent and safe to run while the CMS and the webhook
service are live.

Exit codes: 0 nothing left to repair, 1 unrepaired drift, 2 database unreachable.

Usage:
    python scripts/repair_schema.py
    python scripts/repair_schema.py --only relations markers
    python scripts/repair_schema.py --only permissions --policy <policy-uuid>
"""

import argparse
import os
import sys

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import OperationalError

from autotranslate import create_app
from autotranslate.services.schema_consistency import RepairReport, SchemaConsistencyManager

REPAIRS = ('relations', 'markers', 'fields', 'links', 'permissions')


def run_repairs(manager, selected):
    report = RepairReport()
    if 'relations' in selected:
        manager.deduplicate_relations(report)
    if 'markers' in selected:
        manager.canonicalize_markers(report)
    if 'fields' in selected:
        manager.mark_translatable_fields(report)
    if 'links' in selected:
        manager.check_relations(report)
    if 'permissions' in selected:
        manager.ensure_permissions(report)
    return report


def print_report(report):
    print(f'\n\U0001f527 Schema Repair\n')
    if not report.drifts:
        print('✅ No drift found.\n')
        return

    for drift in report.repaired:
        print(f'  ✅ {drift.kind:<18} {drift.target}: {drift.detail}')
    for drift in report.unrepaired:
        print(f'  ❌ {drift.kind:<18} {drift.target}: {drift.detail}')

    print(f'\n  Repaired:   {len(report.repaired)}')
    print(f'  Unrepaired: {len(report.unrepaired)}\n')


def build_parser():
    parser = argparse.ArgumentParser(description='Repair translation metadata drift')
    parser.add_argument('--only', nargs='+', choices=REPAIRS, default=list(REPAIRS),
                        help='Run only these repairs (default: all)')
    parser.add_argument('--policy', default=None,
                        help='Service policy id (default: SERVICE_POLICY_ID)')
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        app = create_app()

    with app.app_context():
        manager = SchemaConsistencyManager(
            app.config['TRANSLATABLE_COLLECTIONS'],
            policy_id=args.policy or app.config.get('SERVICE_POLICY_ID'),
        )
        try:
            report = run_repairs(manager, args.only)
        except OperationalError as e:
            print(f'❌ Database connection failed: {e.orig if e.orig else e}')
            return 2

    print_report(report)
    return 0 if report.ok else 1


if __name__ == '__main__':
    sys.exit(main())
