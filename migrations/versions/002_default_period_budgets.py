"""Seed default period budgets from legacy session budgets

Sessions created before per-period budgets carry a single total_budget and
allocations with period = NULL. Give each of them a NULL-key period budget
so the existing allocations keep resolving against the same amount.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO period_budgets (session_id, period, budget, created_at)
        SELECT s.id, NULL, s.total_budget, CURRENT_TIMESTAMP
        FROM budget_sessions s
        WHERE s.total_budget IS NOT NULL
          AND s.total_budget > 0
          AND NOT EXISTS (
              SELECT 1 FROM period_budgets pb
              WHERE pb.session_id = s.id AND pb.period IS NULL
          )
    """)


def downgrade() -> None:
    op.execute("""
        DELETE FROM period_budgets
        WHERE period IS NULL
          AND session_id IN (
              SELECT id FROM budget_sessions WHERE total_budget IS NOT NULL
          )
    """)
