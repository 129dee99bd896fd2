"""Category and budget session models - ownership and workflow status."""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from skualloc.db.postgres import Base


class SessionStatus(str, Enum):
    """Budget session workflow status."""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    ARCHIVED = "archived"


class Category(Base):
    """Product category owned by one user; groups budget sessions."""
    
    __tablename__ = "categories"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    user_id = Column(String(100), nullable=False, index=True)
    
    # Audit fields
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    sessions = relationship(
        "BudgetSession",
        back_populates="category",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self):
        return f"<Category(name='{self.name}', user_id='{self.user_id}')>"


class BudgetSession(Base):
    """One allocation plan over a SKU hierarchy.
    
    The session owns its hierarchy definitions, SKU rows, allocations and
    period budgets; deleting it deletes all of them.
    """
    
    __tablename__ = "budget_sessions"
    
    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.DRAFT.value)
    
    # Legacy single budget; only read by the one-time period migration
    total_budget = Column(BigInteger, nullable=True)
    
    # Audit fields
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    category = relationship("Category", back_populates="sessions")
    hierarchy_definitions = relationship(
        "HierarchyDefinition",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="HierarchyDefinition.level",
    )
    sku_data = relationship(
        "SkuData",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SkuData.id",
    )
    allocations = relationship(
        "Allocation",
        back_populates="session",
        cascade="all, delete-orphan",
    )
    period_budgets = relationship(
        "PeriodBudget",
        back_populates="session",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self):
        return f"<BudgetSession(name='{self.name}', status={self.status})>"
    
    @property
    def owner_id(self) -> str:
        """User id of the category owner."""
        return self.category.user_id if self.category else None
    
    @property
    def is_draft(self) -> bool:
        return self.status == SessionStatus.DRAFT.value
