"""Hierarchy definition and SKU models - the imported product master."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from skualloc.db.postgres import Base


class HierarchyDefinition(Base):
    """One hierarchy column of a session (level 1 is the top of the tree)."""
    
    __tablename__ = "hierarchy_definitions"
    __table_args__ = (
        UniqueConstraint('session_id', 'level', name='uq_hierarchy_level'),
        UniqueConstraint('session_id', 'column_name', name='uq_hierarchy_column'),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("budget_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    level = Column(Integer, nullable=False)
    column_name = Column(String(200), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    
    session = relationship("BudgetSession", back_populates="hierarchy_definitions")
    
    def __repr__(self):
        return f"<HierarchyDefinition(level={self.level}, column='{self.column_name}')>"


class SkuData(Base):
    """A SKU row: code, unit price and its value for each hierarchy column."""
    
    __tablename__ = "sku_data"
    __table_args__ = (
        UniqueConstraint('session_id', 'sku_code', name='uq_sku_code'),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("budget_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sku_code = Column(String(200), nullable=False)
    unit_price = Column(BigInteger, nullable=False, default=0)
    
    # {column_name: value}; absent key means no value at that level
    hierarchy_values = Column(JSON, nullable=False, default=dict)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    session = relationship("BudgetSession", back_populates="sku_data")
    
    def __repr__(self):
        return f"<SkuData(sku_code='{self.sku_code}', unit_price={self.unit_price})>"
