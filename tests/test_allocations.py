"""Tests for allocation services against the database."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from skualloc.engine.allocations import (
    apply_percentage,
    auto_allocate,
    get_tree,
    list_allocations,
    recompute,
    save_allocations,
    update_period_budget,
)
from skualloc.engine.errors import NotFoundError, ValidationError
from skualloc.engine.periods import create_period, find_period_budget
from skualloc.engine.sessions import create_category, create_session
from skualloc.etl.sku_import import import_skus, parse_import_rows
from skualloc.models import Allocation, PeriodBudget

from conftest import BUDGET


def stored(db, session, path, period="Q1"):
    return db.query(Allocation).filter(
        Allocation.session_id == session.id,
        Allocation.hierarchy_path == path,
        Allocation.period == period,
    ).one()


def row(path, level, percentage, period="Q1", amount=0, quantity=0):
    return {
        "hierarchy_path": path,
        "level": level,
        "percentage": percentage,
        "amount": amount,
        "quantity": quantity,
        "period": period,
    }


class TestApplyPercentage:
    """Tests for the single-cell edit."""

    def test_example_scenario_persists(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A/Red", "Q1", 40)
        result = apply_percentage(db, budget_session, "A/Blue", "Q1", 60)

        assert int(stored(db, budget_session, "A").amount) == 10_000_000
        red = stored(db, budget_session, "A/Red")
        assert int(red.amount) == 4_000_000
        assert int(red.quantity) == 4000
        assert red.level == 2
        assert result.value.amount == 6_000_000
        assert result.value.quantity == 3000
        assert result.siblings.total == Decimal("100")
        assert not result.siblings.over_limit

    def test_updates_existing_row(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A", "Q1", 25)

        assert db.query(Allocation).count() == 1
        assert int(stored(db, budget_session, "A").amount) == 2_500_000

    def test_over_limit_is_saved(self, db, budget_session):
        apply_percentage(db, budget_session, "A/Red", "Q1", 80)
        result = apply_percentage(db, budget_session, "A/Blue", "Q1", 30)

        assert result.siblings.over_limit
        assert result.siblings.total == Decimal("110")
        assert stored(db, budget_session, "A/Blue").percentage == Decimal("30")

    def test_unknown_path(self, db, budget_session):
        with pytest.raises(NotFoundError):
            apply_percentage(db, budget_session, "Z", "Q1", 10)

    def test_unknown_period(self, db, budget_session):
        with pytest.raises(NotFoundError):
            apply_percentage(db, budget_session, "A", "Q9", 10)

    def test_invalid_percentage(self, db, budget_session):
        with pytest.raises(ValidationError):
            apply_percentage(db, budget_session, "A", "Q1", "100.5")
        assert db.query(Allocation).count() == 0


class TestSaveAllocations:
    """Tests for wholesale saves."""

    def test_full_replace(self, db, budget_session):
        save_allocations(db, budget_session, [
            row("A", 1, "100", amount=10_000_000),
            row("A/Red", 2, "40", amount="4000000", quantity=4000),
        ])
        saved = save_allocations(db, budget_session, [row("A", 1, "50")])

        assert saved == 1
        rows = list_allocations(db, budget_session)
        assert [(r.hierarchy_path, r.percentage) for r in rows] == [("A", Decimal("50"))]

    def test_ordered_by_level_then_path(self, db, budget_session):
        save_allocations(db, budget_session, [
            row("A/Red", 2, "40"),
            row("A", 1, "100"),
            row("A/Blue", 2, "60"),
        ])

        paths = [r.hierarchy_path for r in list_allocations(db, budget_session)]
        assert paths == ["A", "A/Blue", "A/Red"]

    def test_period_scoped_save_keeps_other_periods(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        create_period(db, budget_session, "Q2", 1_000_000)

        save_allocations(db, budget_session, [row("A", 1, "10", period="Q2")], period="Q2")

        assert len(list_allocations(db, budget_session, "Q1")) == 1
        q2 = list_allocations(db, budget_session, "Q2")
        assert [(r.hierarchy_path, r.percentage) for r in q2] == [("A", Decimal("10"))]

    @pytest.mark.parametrize("rows", [
        [row("A", 1, "100"), row("A", 1, "50")],
        [row("A", 0, "100")],
        [row("A", 2, "100")],
        [row("A/Red", 1, "40")],
        [row("A", 1, "101")],
        [row("A", 1, "100", amount=-1)],
        [row("A", 1, "100", period="Q9")],
        [row("", 1, "100")],
    ])
    def test_invalid_payload_writes_nothing(self, db, budget_session, rows):
        apply_percentage(db, budget_session, "A", "Q1", 100)

        with pytest.raises(ValidationError):
            save_allocations(db, budget_session, rows)

        assert len(list_allocations(db, budget_session)) == 1

    def test_row_outside_scope(self, db, budget_session):
        create_period(db, budget_session, "Q2", 1_000)
        with pytest.raises(ValidationError):
            save_allocations(db, budget_session, [row("A", 1, "10", period="Q1")], period="Q2")

    def test_sku_rows_use_leaf_level(self, db, budget_session):
        saved = save_allocations(db, budget_session, [row("A/Red/SKU001", 3, "100")])
        assert saved == 1

        with pytest.raises(ValidationError):
            save_allocations(db, budget_session, [row("A/Red/SKU001", 2, "100")])


class TestAllocationUniqueness:
    """One row per (session, path, period), including the default period."""

    def test_default_period_rejects_duplicate_rows(self, db, budget_session):
        db.add(PeriodBudget(session_id=budget_session.id, period=None, budget=1_000))
        db.add(Allocation(session_id=budget_session.id, hierarchy_path="A", level=1, percentage=100, period=None))
        db.commit()

        db.add(Allocation(session_id=budget_session.id, hierarchy_path="A", level=1, percentage=50, period=None))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    @pytest.mark.parametrize("period", ["Q1", None])
    def test_auto_allocate_replaces_rows_by_path(self, db, budget_session, period):
        """A stored row with a stale level is replaced, not duplicated."""
        if period is None:
            db.add(PeriodBudget(session_id=budget_session.id, period=None, budget=BUDGET))
        db.add(Allocation(session_id=budget_session.id, hierarchy_path="A", level=2, percentage=50, period=period))
        db.commit()

        auto_allocate(db, budget_session, 1, period)

        rows = list_allocations(db, budget_session, period)
        assert [(r.hierarchy_path, r.level, r.percentage) for r in rows] == [("A", 1, Decimal("100"))]
        assert int(rows[0].amount) == BUDGET



class TestAutoAllocate:
    """Tests for the even split of one level."""

    def test_split_level(self, db, budget_session):
        result = auto_allocate(db, budget_session, 2, "Q1")

        assert result.allocated == 2
        assert result.percentage == Decimal("50.00")
        red = stored(db, budget_session, "A/Red")
        assert red.percentage == Decimal("50")
        assert int(red.amount) == 5_000_000
        assert int(red.quantity) == 5000

    def test_floor_of_uneven_split(self, db):
        category = create_category(db, "alice", "Split")
        session = create_session(db, category, "Three", "Q1", 900)
        import_skus(db, session, parse_import_rows([
            {"brand": "X", "sku_code": "S1", "unitprice": "1"},
            {"brand": "Y", "sku_code": "S2", "unitprice": "1"},
            {"brand": "Z", "sku_code": "S3", "unitprice": "1"},
        ]))

        result = auto_allocate(db, session, 1, "Q1")

        assert result.allocated == 3
        assert result.percentage == Decimal("33.33")
        assert int(stored(db, session, "X").amount) == 299

    def test_replaces_only_that_level(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A/Red", "Q1", 90)

        auto_allocate(db, budget_session, 2, "Q1")

        assert stored(db, budget_session, "A").percentage == Decimal("100")
        assert stored(db, budget_session, "A/Red").percentage == Decimal("50")

    def test_invalid_level(self, db, budget_session):
        with pytest.raises(ValidationError):
            auto_allocate(db, budget_session, 3, "Q1")

    def test_no_skus(self, db):
        category = create_category(db, "alice", "Empty")
        session = create_session(db, category, "Nothing", "Q1", 1_000)
        with pytest.raises(ValidationError):
            auto_allocate(db, session, 1, "Q1")


class TestRecompute:
    """Tests for explicit and budget-triggered recompute."""

    def test_recompute_fixes_stale_children(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A/Red", "Q1", 40)
        apply_percentage(db, budget_session, "A", "Q1", 50)

        workspace = get_tree(db, budget_session)
        assert workspace.tree.get("A/Red").per_period["Q1"].stale

        changed = recompute(db, budget_session, "Q1")

        assert changed == 1
        assert int(stored(db, budget_session, "A/Red").amount) == 2_000_000
        workspace = get_tree(db, budget_session)
        assert not workspace.tree.get("A/Red").per_period["Q1"].stale

    def test_update_period_budget(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A/Red", "Q1", 40)

        changed = update_period_budget(db, budget_session, "Q1", 20_000_000)

        assert changed == 2
        assert find_period_budget(db, budget_session, "Q1").budget == 20_000_000
        red = stored(db, budget_session, "A/Red")
        assert int(red.amount) == 8_000_000
        assert int(red.quantity) == 8000

    def test_invalid_budget(self, db, budget_session):
        with pytest.raises(ValidationError):
            update_period_budget(db, budget_session, "Q1", -5)
        assert find_period_budget(db, budget_session, "Q1").budget == 10_000_000

    def test_recompute_unknown_period(self, db, budget_session):
        with pytest.raises(NotFoundError):
            recompute(db, budget_session, "Q9")
