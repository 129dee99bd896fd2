"""
One-time migration: seed default period budgets from legacy session budgets.

Sessions from the single-budget schema keep their allocations under the
default (NULL) period; this gives each of them a matching period budget.
Safe to run more than once.

Usage:
    python scripts/migrate_legacy_budgets.py
    python scripts/migrate_legacy_budgets.py --dry-run
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from skualloc.db.postgres import get_session
from skualloc.engine.periods import find_period_budget, migrate_legacy_budget
from skualloc.models import BudgetSession


def main():
    parser = argparse.ArgumentParser(description="Seed default period budgets from legacy budgets")
    parser.add_argument("--dry-run", action="store_true",
                        help="List sessions that would be migrated without writing")
    args = parser.parse_args()

    db = get_session()
    migrated = 0

    try:
        sessions = db.query(BudgetSession).filter(
            BudgetSession.total_budget.isnot(None)
        ).order_by(BudgetSession.id).all()

        print(f"Found {len(sessions)} sessions with a legacy budget")

        for session in sessions:
            if args.dry_run:
                if session.total_budget > 0 and find_period_budget(db, session, None) is None:
                    print(f"  would migrate session {session.id} ({session.name}): {session.total_budget:,}")
                    migrated += 1
                continue
            if migrate_legacy_budget(db, session):
                print(f"  migrated session {session.id} ({session.name}): {session.total_budget:,}")
                migrated += 1

        print()
        print(f"{'Would migrate' if args.dry_run else 'Migrated'} {migrated} sessions")

    except Exception as e:
        print(f"Error during migration: {e}")
        db.rollback()
        raise
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
