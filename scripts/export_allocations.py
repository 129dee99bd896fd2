"""
Export a session's cumulative allocations per SKU.

Usage:
    python scripts/export_allocations.py 12                    # allocation_12.csv
    python scripts/export_allocations.py 12 out/plan.xlsx      # workbook
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from skualloc.db.postgres import get_session
from skualloc.engine.errors import AllocationError
from skualloc.engine.sessions import get_budget_session
from skualloc.etl.allocation_export import export_csv, export_session, export_workbook


def main():
    parser = argparse.ArgumentParser(description="Export allocations of a budget session")
    parser.add_argument("session_id", type=int, help="Budget session id")
    parser.add_argument("out", type=str, nargs="?", default=None,
                        help="Output file (.csv or .xlsx); defaults to allocation_<id>.csv")
    args = parser.parse_args()

    out_path = Path(args.out or f"allocation_{args.session_id}.csv")

    db = get_session()

    try:
        session = get_budget_session(db, args.session_id)
        table = export_session(db, session)

        if out_path.suffix.lower() == ".xlsx":
            out_path.write_bytes(export_workbook(table))
        else:
            # BOM is already part of the text
            out_path.write_text(export_csv(table), encoding="utf-8", newline="")

        print(f"Exported {len(table.rows)} SKUs across {len(table.periods)} periods to {out_path}")

    except AllocationError as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
