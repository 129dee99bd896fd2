"""Allocation model - the persisted (path, period) -> percentage/amount/quantity record."""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, BigInteger, Numeric, DateTime, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship

from skualloc.db.postgres import Base


class Allocation(Base):
    """Budget share of one hierarchy node in one period.
    
    ``percentage`` is relative to the parent node's amount (or to the
    period budget for a top-level node). ``amount`` is in the currency's
    minor unit. A NULL ``period`` is the default period.
    """
    
    __tablename__ = "allocations"
    __table_args__ = (
        UniqueConstraint('session_id', 'hierarchy_path', 'period', name='uq_allocation_path_period'),
        # NULL periods never collide in the constraint above
        Index(
            'uq_allocation_default_period', 'session_id', 'hierarchy_path',
            unique=True,
            postgresql_where=text('period IS NULL'),
            sqlite_where=text('period IS NULL'),
        ),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("budget_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hierarchy_path = Column(String(1000), nullable=False)
    level = Column(Integer, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    amount = Column(BigInteger, nullable=False, default=0)
    quantity = Column(BigInteger, nullable=False, default=0)
    period = Column(String(100), nullable=True, index=True)
    
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    session = relationship("BudgetSession", back_populates="allocations")
    
    def __repr__(self):
        return f"<Allocation({self.hierarchy_path} @ {self.period}: {self.percentage}%)>"
    
    def to_dict(self) -> dict:
        """Convert to dictionary for API responses (amounts as strings)."""
        return {
            "hierarchy_path": self.hierarchy_path,
            "level": self.level,
            "percentage": self.percentage,
            "amount": str(self.amount or 0),
            "quantity": self.quantity or 0,
            "period": self.period,
        }
