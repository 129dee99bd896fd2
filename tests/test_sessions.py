"""Tests for categories, sessions and capability checks."""

import pytest

from skualloc.engine.errors import AuthorizationError, NotFoundError, ValidationError
from skualloc.engine.periods import list_periods
from skualloc.engine.sessions import (
    can_edit,
    can_view,
    create_category,
    create_session,
    delete_category,
    get_budget_session,
    list_categories,
    list_sessions,
    require_edit,
    update_session,
)
from skualloc.models import Allocation, BudgetSession, Category, SkuData


def make_session(owner, status):
    return BudgetSession(name="Plan", status=status, category=Category(name="Cat", user_id=owner))


class TestCapabilities:
    """Who may view or edit a session."""

    def test_owner_can_do_everything(self):
        session = make_session("alice", "draft")
        assert can_view("alice", session)
        assert can_edit("alice", session)

    def test_draft_is_private(self):
        session = make_session("alice", "draft")
        assert not can_view("bob", session)
        assert not can_edit("bob", session)

    @pytest.mark.parametrize("status", ["confirmed", "archived"])
    def test_published_is_read_only(self, status):
        session = make_session("alice", status)
        assert can_view("bob", session)
        assert not can_edit("bob", session)
        with pytest.raises(AuthorizationError):
            require_edit("bob", session)


class TestSessionLifecycle:
    """Tests for creating, listing and deleting sessions."""

    def test_create_seeds_first_period(self, db):
        category = create_category(db, "alice", "Appliances")
        session = create_session(db, category, "Plan", " 2025-Q1 ", "5000")

        assert session.status == "draft"
        assert list_periods(db, session) == ["2025-Q1"]

    @pytest.mark.parametrize("name,period,budget", [
        ("", "Q1", 100),
        ("Plan", "", 100),
        ("Plan", "Q1", 0),
        ("Plan", "Q1", "abc"),
    ])
    def test_create_validates(self, db, name, period, budget):
        category = create_category(db, "alice", "Appliances")
        with pytest.raises(ValidationError):
            create_session(db, category, name, period, budget)
        assert db.query(BudgetSession).count() == 0

    def test_list_sessions_visibility(self, db):
        alice = create_category(db, "alice", "Appliances")
        draft = create_session(db, alice, "Draft", "Q1", 100)
        published = create_session(db, alice, "Published", "Q1", 100)
        update_session(db, published, status="confirmed")

        assert [s.id for s in list_sessions(db, "bob")] == [published.id]
        assert {s.id for s in list_sessions(db, "alice")} == {draft.id, published.id}

    def test_update_rejects_unknown_status(self, db, budget_session):
        with pytest.raises(ValidationError):
            update_session(db, budget_session, status="done")

    def test_list_categories_per_user(self, db):
        create_category(db, "alice", "Mine")
        create_category(db, "bob", "Theirs")

        assert [c.name for c in list_categories(db, "alice")] == ["Mine"]

    def test_delete_category_cascades(self, db, budget_session):
        category_id = budget_session.category_id

        with pytest.raises(AuthorizationError):
            delete_category(db, "bob", category_id)

        delete_category(db, "alice", category_id)

        assert db.query(BudgetSession).count() == 0
        assert db.query(SkuData).count() == 0
        assert db.query(Allocation).count() == 0

    def test_missing_session(self, db):
        with pytest.raises(NotFoundError):
            get_budget_session(db, 999)
