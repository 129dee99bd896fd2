"""Period manager - named allocation buckets sharing one hierarchy.

A period is *active* while it has a ``PeriodBudget`` row; its allocation
rows carry the same key. Create, rename and delete each run as a single
transaction, so a budget row and its allocation rows always move together.
The default period has a NULL key; it exists for sessions migrated from the
single-budget schema and cannot be deleted.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from skualloc.db.postgres import transaction
from skualloc.models import Allocation, BudgetSession, HierarchyDefinition, PeriodBudget, SkuData
from .errors import ConflictError, NotFoundError, ValidationError
from .paths import join_path, parent_path, path_depth, path_segments
from .store import FULL_PERCENT, UNSET, ZERO_PERCENT

logger = logging.getLogger(__name__)

MAX_PERIOD_NAME = 100

# How the default period is spelled in URLs
DEFAULT_PERIOD_TOKEN = "null"


@dataclass
class PeriodCreateResult:
    """Outcome of creating a period."""
    period: str
    budget: int
    copied: int = 0
    seeded: int = 0


@dataclass
class PlaceholderRow:
    """Initial allocation for a new period without a copy source."""
    hierarchy_path: str
    level: int
    percentage: Decimal


def period_filter(column, period: Optional[str]):
    """SQL condition matching ``period``, treating None as IS NULL."""
    if period is None:
        return column.is_(None)
    return column == period


def period_sort_key(period: Optional[str]):
    """Default (None) first, then names in ascending order."""
    return (period is not None, period or "")


def sort_periods(periods: Iterable[Optional[str]]) -> List[Optional[str]]:
    return sorted(set(periods), key=period_sort_key)


def parse_period_token(token: Optional[str]) -> Optional[str]:
    """Decode a period from a URL segment (``null`` is the default period)."""
    if token is None or token == DEFAULT_PERIOD_TOKEN:
        return None
    return token


def normalize_period_name(name) -> str:
    """Strip and validate a new period name."""
    if not isinstance(name, str):
        raise ValidationError("Period name is required")
    name = name.strip()
    if not name:
        raise ValidationError("Period name is required")
    if len(name) > MAX_PERIOD_NAME:
        raise ValidationError(f"Period name must be at most {MAX_PERIOD_NAME} characters")
    if name == DEFAULT_PERIOD_TOKEN:
        raise ValidationError(f"'{DEFAULT_PERIOD_TOKEN}' is reserved for the default period")
    return name


def validate_budget(budget) -> int:
    """Budgets are positive integers in the currency's minor unit."""
    if isinstance(budget, bool):
        raise ValidationError(f"Invalid budget: {budget!r}")
    try:
        value = int(str(budget).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid budget: {budget!r}")
    if value <= 0:
        raise ValidationError("Budget must be a positive integer")
    return value


# =============================================================================
# Queries
# =============================================================================

def list_period_budgets(db: Session, session: BudgetSession) -> List[PeriodBudget]:
    """Period budget rows in display order."""
    rows = db.query(PeriodBudget).filter(PeriodBudget.session_id == session.id).all()
    return sorted(rows, key=lambda row: period_sort_key(row.period))


def list_periods(db: Session, session: BudgetSession) -> List[Optional[str]]:
    return [row.period for row in list_period_budgets(db, session)]


def budgets_by_period(db: Session, session: BudgetSession) -> Dict[Optional[str], int]:
    return {row.period: int(row.budget) for row in list_period_budgets(db, session)}


def find_period_budget(db: Session, session: BudgetSession, period: Optional[str]) -> Optional[PeriodBudget]:
    return db.query(PeriodBudget).filter(
        PeriodBudget.session_id == session.id,
        period_filter(PeriodBudget.period, period),
    ).first()


def get_period_budget(db: Session, session: BudgetSession, period: Optional[str]) -> PeriodBudget:
    row = find_period_budget(db, session, period)
    if row is None:
        raise NotFoundError(f"Period not found: {period if period is not None else 'default'}")
    return row


def count_allocations(db: Session, session: BudgetSession, period: Optional[str]) -> int:
    return db.query(Allocation).filter(
        Allocation.session_id == session.id,
        period_filter(Allocation.period, period),
    ).count()


def period_exists(db: Session, session: BudgetSession, period: Optional[str]) -> bool:
    """A key is taken if it has a budget row or any allocation rows."""
    if find_period_budget(db, session, period) is not None:
        return True
    return count_allocations(db, session, period) > 0


# =============================================================================
# Placeholders
# =============================================================================

def placeholder_allocations(skus: Iterable, definitions: Sequence) -> List[PlaceholderRow]:
    """Seed rows for every complete hierarchy prefix derivable from the SKUs.

    A path gets 100% when it is the only child of its parent (or the only
    top-level path), otherwise 0%. Only prefixes where every level 1..L has a
    value are seeded; SKU leaves are not.
    """
    depth = len(definitions)
    paths: List[str] = []
    seen = set()
    for sku in skus:
        for level in range(1, depth + 1):
            segments = path_segments(sku, definitions, level)
            if len(segments) != level:
                continue
            path = join_path(segments)
            if path not in seen:
                seen.add(path)
                paths.append(path)

    children: Dict[Optional[str], set] = {}
    for path in paths:
        children.setdefault(parent_path(path), set()).add(path)

    rows = []
    for path in paths:
        sole = len(children[parent_path(path)]) == 1
        rows.append(PlaceholderRow(
            hierarchy_path=path,
            level=path_depth(path),
            percentage=FULL_PERCENT if sole else ZERO_PERCENT,
        ))
    return rows


# =============================================================================
# Mutations
# =============================================================================

def create_period(
    db: Session,
    session: BudgetSession,
    period: str,
    budget,
    copy_from=UNSET,
) -> PeriodCreateResult:
    """Create a period with its budget.

    With ``copy_from`` (None meaning the default period) every allocation row
    of the source period is duplicated verbatim under the new key. When there
    is no source, or the source has no rows, placeholder rows are seeded for
    the current hierarchy instead, with amount and quantity 0.

    Raises:
        ValidationError: bad name or budget
        ConflictError: the period already exists
    """
    name = normalize_period_name(period)
    amount = validate_budget(budget)

    if period_exists(db, session, name):
        raise ConflictError(f"Period already exists: {name}")

    source_rows = []
    if copy_from is not UNSET:
        source_rows = db.query(Allocation).filter(
            Allocation.session_id == session.id,
            period_filter(Allocation.period, copy_from),
        ).all()

    result = PeriodCreateResult(period=name, budget=amount)

    with transaction(db):
        db.add(PeriodBudget(session_id=session.id, period=name, budget=amount))

        if source_rows:
            for row in source_rows:
                db.add(Allocation(
                    session_id=session.id,
                    hierarchy_path=row.hierarchy_path,
                    level=row.level,
                    percentage=row.percentage,
                    amount=row.amount,
                    quantity=row.quantity,
                    period=name,
                ))
            result.copied = len(source_rows)
        else:
            definitions = db.query(HierarchyDefinition).filter(
                HierarchyDefinition.session_id == session.id
            ).order_by(HierarchyDefinition.level).all()
            skus = db.query(SkuData).filter(
                SkuData.session_id == session.id
            ).order_by(SkuData.id).all()
            for placeholder in placeholder_allocations(skus, definitions):
                db.add(Allocation(
                    session_id=session.id,
                    hierarchy_path=placeholder.hierarchy_path,
                    level=placeholder.level,
                    percentage=placeholder.percentage,
                    amount=0,
                    quantity=0,
                    period=name,
                ))
                result.seeded += 1

    logger.info(
        f"Created period '{name}' for session {session.id}: "
        f"copied {result.copied}, seeded {result.seeded}"
    )
    return result


def rename_period(db: Session, session: BudgetSession, old: Optional[str], new: str) -> int:
    """Move a period's budget row and every allocation row to a new key.

    Returns:
        Number of allocation rows moved

    Raises:
        NotFoundError: ``old`` has no budget row
        ConflictError: ``new`` already exists
    """
    name = normalize_period_name(new)
    budget_row = get_period_budget(db, session, old)
    if period_exists(db, session, name):
        raise ConflictError(f"New period name already exists: {name}")

    with transaction(db):
        budget_row.period = name
        moved = db.query(Allocation).filter(
            Allocation.session_id == session.id,
            period_filter(Allocation.period, old),
        ).update({Allocation.period: name}, synchronize_session=False)

    db.expire_all()
    logger.info(f"Renamed period {old!r} -> '{name}' for session {session.id}: {moved} rows")
    return moved


def delete_period(db: Session, session: BudgetSession, period: Optional[str]) -> int:
    """Delete a period's budget row and all of its allocation rows.

    Returns:
        Number of allocation rows removed

    Raises:
        ValidationError: the default period cannot be deleted
        NotFoundError: the period does not exist
    """
    if period is None:
        raise ValidationError("The default period cannot be deleted")
    budget_row = get_period_budget(db, session, period)

    with transaction(db):
        removed = db.query(Allocation).filter(
            Allocation.session_id == session.id,
            period_filter(Allocation.period, period),
        ).delete(synchronize_session=False)
        db.delete(budget_row)

    db.expire_all()
    logger.info(f"Deleted period '{period}' for session {session.id}: {removed} rows")
    return removed


def migrate_legacy_budget(db: Session, session: BudgetSession) -> bool:
    """Seed the default period budget from the legacy session total budget.

    Runs once per session: sessions that already have a default period
    budget, or no legacy budget, are left alone.

    Returns:
        True if a default period budget was created
    """
    if not session.total_budget or session.total_budget <= 0:
        return False
    if find_period_budget(db, session, None) is not None:
        return False

    with transaction(db):
        db.add(PeriodBudget(session_id=session.id, period=None, budget=int(session.total_budget)))

    logger.info(f"Migrated legacy budget {session.total_budget} of session {session.id} to default period")
    return True
