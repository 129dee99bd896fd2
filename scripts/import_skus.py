"""
Import SKU master data (CSV or Excel) into a budget session.

Replaces the session's hierarchy columns, SKUs and every allocation.

Usage:
    python scripts/import_skus.py 12 data/skus.csv
    python scripts/import_skus.py 12 data/skus.xlsx
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
from skualloc.etl.sku_import import import_file


def main():
    parser = argparse.ArgumentParser(description="Import SKU data into a budget session")
    parser.add_argument("session_id", type=int, help="Budget session id")
    parser.add_argument("file", type=str, help="CSV or Excel file with sku_code and unitprice columns")
    args = parser.parse_args()

    file_path = Path(args.file)
    if not file_path.exists():
        print(f"Error: file not found at {file_path}")
        return 1

    print(f"Importing {file_path} into session {args.session_id}...")
    print()

    db = get_session()

    try:
        session = get_budget_session(db, args.session_id)
        stats = import_file(db, session, file_path)

        print("=" * 50)
        print("Import Complete!")
        print("=" * 50)
        print(f"  SKUs imported:        {stats['imported']}")
        print(f"  Hierarchy levels:     {stats['hierarchy_levels']}")
        print(f"  Rows dropped:         {stats['dropped']}")
        print(f"  Allocations removed:  {stats['removed_allocations']}")
        print("=" * 50)

    except AllocationError as e:
        print(f"Error: {e}")
        return 1
    except Exception as e:
        print(f"Error during import: {e}")
        db.rollback()
        raise
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
