"""Allocation services - load, edit and persist a session's allocations.

Each public function is one unit of work: it loads what it needs, validates
everything up front, then writes inside a single transaction. Saves replace
rows wholesale (delete then insert); a single-cell edit upserts one row.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from skualloc.db.postgres import transaction
from skualloc.models import Allocation, BudgetSession, HierarchyDefinition, SkuData
from .cascade import CascadeEngine, SiblingCheck
from .errors import NotFoundError, ValidationError
from .paths import join_path, path_depth, path_segments
from .periods import budgets_by_period, get_period_budget, period_filter, sort_periods, validate_budget
from .store import UNSET, AllocationStore, AllocationValue, to_percentage
from .tree import HierarchyTree, build_tree

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Everything the engine needs for one session, loaded in one go."""
    session: BudgetSession
    definitions: List[HierarchyDefinition]
    skus: List[SkuData]
    store: AllocationStore
    budgets: Dict[Optional[str], int]
    tree: HierarchyTree
    cascade: CascadeEngine

    @property
    def periods(self) -> List[Optional[str]]:
        return sort_periods(self.budgets)


@dataclass
class ApplyResult:
    """Outcome of a single percentage edit."""
    hierarchy_path: str
    period: Optional[str]
    value: AllocationValue
    siblings: SiblingCheck


@dataclass
class AutoAllocateResult:
    allocated: int
    percentage: Decimal


def load_workspace(db: Session, session: BudgetSession) -> Workspace:
    """Load definitions, SKUs, allocations and budgets and build the tree."""
    definitions = db.query(HierarchyDefinition).filter(
        HierarchyDefinition.session_id == session.id
    ).order_by(HierarchyDefinition.level).all()
    skus = db.query(SkuData).filter(SkuData.session_id == session.id).order_by(SkuData.id).all()
    rows = db.query(Allocation).filter(Allocation.session_id == session.id).all()
    store = AllocationStore.from_rows(rows)
    budgets = budgets_by_period(db, session)
    tree = build_tree(skus, definitions, store)
    cascade = CascadeEngine(tree, store, budgets)
    return Workspace(
        session=session,
        definitions=definitions,
        skus=skus,
        store=store,
        budgets=budgets,
        tree=tree,
        cascade=cascade,
    )


def get_tree(db: Session, session: BudgetSession) -> Workspace:
    """Workspace whose tree has stale period values flagged."""
    workspace = load_workspace(db, session)
    stale = workspace.cascade.mark_stale()
    if stale:
        logger.info(f"Session {session.id}: {stale} allocation values are stale")
    return workspace


def list_allocations(db: Session, session: BudgetSession, period=UNSET) -> List[Allocation]:
    """Allocation rows ordered by level then path, optionally for one period."""
    query = db.query(Allocation).filter(Allocation.session_id == session.id)
    if period is not UNSET:
        query = query.filter(period_filter(Allocation.period, period))
    return query.order_by(Allocation.level, Allocation.hierarchy_path).all()


def _field(row, name: str, default=None):
    if isinstance(row, dict):
        return row.get(name, default)
    return getattr(row, name, default)


def _non_negative_int(value, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}: {value!r}")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value!r}")
    if number < 0:
        raise ValidationError(f"{label.capitalize()} must be non-negative")
    return number


def validate_allocation_rows(
    rows: Iterable,
    budgets: Dict[Optional[str], int],
    period=UNSET,
    level_of: Callable[[str], int] = path_depth,
) -> List[dict]:
    """Check a full allocation payload and return normalised rows.

    ``level_of`` gives the level a path must be stored at; by default the
    number of path segments.

    Raises:
        ValidationError: on a bad field, a level that does not match the path,
            a duplicate (path, period), a row outside the period scope, or a
            period without a budget
    """
    cleaned = []
    seen = set()
    for index, row in enumerate(rows, start=1):
        path = _field(row, "hierarchy_path")
        if not isinstance(path, str) or not path:
            raise ValidationError(f"Row {index}: hierarchy_path is required")
        level = _field(row, "level")
        if isinstance(level, bool) or not isinstance(level, int) or level < 1:
            raise ValidationError(f"Row {index}: level must be a positive integer")
        expected = level_of(path)
        if level != expected:
            raise ValidationError(f"Row {index}: level {level} does not match '{path}' (level {expected})")
        row_period = _field(row, "period", None)
        if period is not UNSET:
            if row_period is None and not (isinstance(row, dict) and "period" in row):
                row_period = period
            if row_period != period:
                raise ValidationError(f"Row {index}: period {row_period!r} is outside {period!r}")
        if row_period not in budgets:
            raise ValidationError(f"Row {index}: unknown period {row_period!r}")
        key = (path, row_period)
        if key in seen:
            raise ValidationError(f"Row {index}: duplicate allocation for '{path}' in period {row_period!r}")
        seen.add(key)
        try:
            percentage = to_percentage(_field(row, "percentage"))
        except ValidationError as e:
            raise ValidationError(f"Row {index}: {e}")
        cleaned.append({
            "hierarchy_path": path,
            "level": level,
            "percentage": percentage,
            "amount": _non_negative_int(_field(row, "amount", 0), "amount"),
            "quantity": _non_negative_int(_field(row, "quantity", 0), "quantity"),
            "period": row_period,
        })
    return cleaned


def save_allocations(db: Session, session: BudgetSession, rows: Iterable, period=UNSET) -> int:
    """Replace the session's allocations (or one period's) with ``rows``.

    Returns:
        Number of rows written
    """
    workspace = load_workspace(db, session)
    cleaned = validate_allocation_rows(rows, workspace.budgets, period, workspace.cascade.level_of)

    with transaction(db):
        query = db.query(Allocation).filter(Allocation.session_id == session.id)
        if period is not UNSET:
            query = query.filter(period_filter(Allocation.period, period))
        deleted = query.delete(synchronize_session=False)
        for row in cleaned:
            db.add(Allocation(session_id=session.id, **row))

    db.expire_all()
    logger.info(f"Saved {len(cleaned)} allocations for session {session.id} (replaced {deleted})")
    return len(cleaned)


def _upsert(db: Session, session: BudgetSession, path: str, period: Optional[str], value: AllocationValue) -> None:
    row = db.query(Allocation).filter(
        Allocation.session_id == session.id,
        Allocation.hierarchy_path == path,
        period_filter(Allocation.period, period),
    ).first()
    if row is None:
        row = Allocation(session_id=session.id, hierarchy_path=path, period=period)
        db.add(row)
    row.level = value.level
    row.percentage = value.percentage
    row.amount = value.amount
    row.quantity = value.quantity


def apply_percentage(
    db: Session,
    session: BudgetSession,
    path: str,
    period: Optional[str],
    percentage,
) -> ApplyResult:
    """Enter a percentage for one node and persist the resolved row.

    Descendants are left as they are; the sibling total comes back as an
    advisory check, never as an error.
    """
    pct = to_percentage(percentage)
    workspace = load_workspace(db, session)
    if path not in workspace.tree:
        raise NotFoundError(f"Unknown hierarchy path: {path}")
    workspace.cascade.budget_for(period)

    value = workspace.cascade.apply(path, period, pct)
    siblings = workspace.cascade.sibling_total(path, period)

    with transaction(db):
        _upsert(db, session, path, period, value)

    return ApplyResult(hierarchy_path=path, period=period, value=value, siblings=siblings)


def complete_paths_at_level(skus: Sequence, definitions: Sequence, level: int) -> List[str]:
    """Paths of exactly ``level`` segments, from SKUs with a value at every level up to it."""
    paths = []
    seen = set()
    for sku in skus:
        segments = path_segments(sku, definitions, level)
        if len(segments) != level:
            continue
        path = join_path(segments)
        if path not in seen:
            seen.add(path)
            paths.append(path)
    return paths


def auto_allocate(db: Session, session: BudgetSession, level: int, period: Optional[str]) -> AutoAllocateResult:
    """Split one level evenly: every path at ``level`` gets floor(100 / n) percent.

    Existing allocations of that period at that level, or at any of the
    target paths whatever level they were stored with, are replaced; other
    levels and periods are untouched.
    """
    workspace = load_workspace(db, session)
    if not workspace.skus:
        raise ValidationError("No SKU data found")
    if not any(d.level == level for d in workspace.definitions):
        raise ValidationError(f"Invalid level: {level}")
    workspace.cascade.budget_for(period)

    paths = complete_paths_at_level(workspace.skus, workspace.definitions, level)
    percentage = (Decimal(10000 // len(paths)) / 100).quantize(Decimal("0.01")) if paths else Decimal("0.00")

    targets = set(paths)
    for path, value in list(workspace.store.for_period(period).items()):
        if value.level == level or path in targets:
            workspace.store.remove(path, period)
    values = {path: workspace.cascade.apply(path, period, percentage) for path in paths}

    with transaction(db):
        db.query(Allocation).filter(
            Allocation.session_id == session.id,
            or_(Allocation.level == level, Allocation.hierarchy_path.in_(paths)),
            period_filter(Allocation.period, period),
        ).delete(synchronize_session=False)
        for path, value in values.items():
            db.add(Allocation(
                session_id=session.id,
                hierarchy_path=path,
                level=level,
                percentage=value.percentage,
                amount=value.amount,
                quantity=value.quantity,
                period=period,
            ))

    db.expire_all()
    logger.info(f"Auto-allocated {len(paths)} paths at level {level} in period {period!r} at {percentage}%")
    return AutoAllocateResult(allocated=len(paths), percentage=percentage)


def _write_period(db: Session, session: BudgetSession, store: AllocationStore, period: Optional[str]) -> None:
    values = store.for_period(period)
    rows = db.query(Allocation).filter(
        Allocation.session_id == session.id,
        period_filter(Allocation.period, period),
    ).all()
    for row in rows:
        value = values.get(row.hierarchy_path)
        if value is not None:
            row.amount = value.amount
            row.quantity = value.quantity


def recompute(db: Session, session: BudgetSession, period: Optional[str]) -> int:
    """Re-derive every stored amount/quantity of a period top-down.

    Returns:
        Number of rows that changed
    """
    get_period_budget(db, session, period)
    workspace = load_workspace(db, session)
    changed = workspace.cascade.recompute_period(period)
    with transaction(db):
        _write_period(db, session, workspace.store, period)
    return changed


def update_period_budget(db: Session, session: BudgetSession, period: Optional[str], budget) -> int:
    """Change a period's budget and recompute that period's amounts.

    The budget row and the recomputed allocation rows commit together.

    Returns:
        Number of allocation rows that changed
    """
    amount = validate_budget(budget)
    budget_row = get_period_budget(db, session, period)

    workspace = load_workspace(db, session)
    workspace.cascade.budgets[period] = amount
    changed = workspace.cascade.recompute_period(period)

    with transaction(db):
        budget_row.budget = amount
        _write_period(db, session, workspace.store, period)

    logger.info(f"Budget of period {period!r} in session {session.id} set to {amount}; {changed} rows recomputed")
    return changed
