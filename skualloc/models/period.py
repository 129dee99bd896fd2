"""Period budget model - the budget of one named period of a session."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship

from skualloc.db.postgres import Base


class PeriodBudget(Base):
    """Total budget for one period; NULL ``period`` is the default period."""
    
    __tablename__ = "period_budgets"
    __table_args__ = (
        UniqueConstraint('session_id', 'period', name='uq_period_budget'),
        Index(
            'uq_period_budget_default', 'session_id',
            unique=True,
            postgresql_where=text('period IS NULL'),
            sqlite_where=text('period IS NULL'),
        ),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("budget_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period = Column(String(100), nullable=True)
    budget = Column(BigInteger, nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    session = relationship("BudgetSession", back_populates="period_budgets")
    
    def __repr__(self):
        return f"<PeriodBudget({self.period}: {self.budget})>"
    
    @property
    def display_name(self) -> str:
        """Human-readable period name."""
        return self.period if self.period is not None else "default"
