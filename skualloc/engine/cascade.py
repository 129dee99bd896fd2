"""Cascade engine - parent-relative percentage to amount/quantity math.

Every percentage is relative to the immediate parent's allocated amount in
the same period; a top-level node is relative to the period budget.

    amount   = floor(parent_amount * percentage / 100)
    quantity = floor(amount / sum(unit_price of related SKUs)), 0 if the sum is 0

There is no remainder redistribution, so sibling amounts at 100% rarely add
up to the parent's amount exactly. Changing a node does not touch its
descendants; ``recompute_period`` re-derives a whole period when the caller
asks for it, and ``mark_stale`` flags the nodes that are out of date.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .errors import NotFoundError
from .paths import parent_path, path_depth
from .store import AllocationStore, AllocationValue, FULL_PERCENT, PERCENT_QUANTUM, to_percentage
from .tree import HierarchyTree

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """Amount and quantity resolved for one node."""
    amount: int
    quantity: int


@dataclass
class SiblingCheck:
    """Advisory sibling total for one parent and period."""
    total: Decimal
    over_limit: bool


def percent_of(amount: int, percentage) -> int:
    """floor(amount * percentage / 100) in exact integer arithmetic."""
    hundredths = int((Decimal(str(percentage)) / PERCENT_QUANTUM).to_integral_value())
    return (int(amount) * hundredths) // 10000


class CascadeEngine:
    """Resolves amounts and quantities over a tree and an allocation store.
    
    Args:
        tree: hierarchy tree for the session
        store: allocation store (read and updated in place)
        budgets: {period: total budget} for every known period
    """
    
    def __init__(self, tree: HierarchyTree, store: AllocationStore, budgets: Dict[Optional[str], int]):
        self.tree = tree
        self.store = store
        self.budgets = dict(budgets)
        self._price_totals: Dict[str, int] = {}
    
    def budget_for(self, period: Optional[str]) -> int:
        if period not in self.budgets:
            raise NotFoundError(f"Period not found: {period if period is not None else 'default'}")
        return int(self.budgets[period])
    
    def parent_amount(self, path: str, period: Optional[str]) -> int:
        """Amount the node's percentage applies to.
        
        The period budget for a top-level node; otherwise the stored amount of
        the parent's allocation in the same period, falling back to the period
        budget when the parent has no allocation.
        """
        parent = parent_path(path)
        if parent is None:
            return self.budget_for(period)
        value = self.store.get(parent, period)
        if value is None:
            return self.budget_for(period)
        return value.amount
    
    def resolve_amount(self, path: str, period: Optional[str], percentage=None) -> int:
        """Amount for ``path`` at ``percentage`` (stored percentage when omitted)."""
        if percentage is None:
            value = self.store.get(path, period)
            percentage = value.percentage if value else Decimal("0")
        return percent_of(self.parent_amount(path, period), percentage)
    
    def unit_price_total(self, path: str) -> int:
        """Sum of unit prices of the SKUs the node covers."""
        if path not in self._price_totals:
            self._price_totals[path] = sum(
                int(sku.unit_price or 0) for sku in self.tree.related_skus(path)
            )
        return self._price_totals[path]
    
    def resolve_quantity(self, path: str, amount: int) -> int:
        total = self.unit_price_total(path)
        if total <= 0:
            return 0
        return int(amount) // total
    
    def resolve(self, path: str, period: Optional[str], percentage=None) -> CascadeResult:
        amount = self.resolve_amount(path, period, percentage)
        return CascadeResult(amount=amount, quantity=self.resolve_quantity(path, amount))
    
    def level_of(self, path: str) -> int:
        node = self.tree.get(path)
        return node.level if node else path_depth(path)
    
    def apply(self, path: str, period: Optional[str], percentage) -> AllocationValue:
        """Store a percentage for one node and resolve its amount and quantity.
        
        Only this node changes; descendants keep amounts computed from the
        old value until they are re-entered or the period is recomputed.
        """
        pct = to_percentage(percentage)
        result = self.resolve(path, period, pct)
        value = AllocationValue(
            percentage=pct,
            amount=result.amount,
            quantity=result.quantity,
            level=self.level_of(path),
        )
        self.store.set(path, period, value)
        check = self.sibling_total(path, period)
        if check.over_limit:
            logger.warning(f"Sibling percentages for '{path}' in period {period!r} total {check.total}%")
        return value
    
    def sibling_total(self, path: str, period: Optional[str]) -> SiblingCheck:
        """Sum of sibling percentages (including ``path``) under the same parent.
        
        Over 100 is advisory only: nothing is rejected.
        """
        siblings = self.tree.siblings(path)
        if siblings:
            paths = [node.path for node in siblings]
        else:
            paths = [path]
        total = Decimal("0")
        for sibling in paths:
            value = self.store.get(sibling, period)
            if value is not None:
                total += value.percentage
        return SiblingCheck(total=total, over_limit=total > FULL_PERCENT)
    
    def over_limit_parents(self, period: Optional[str]) -> Dict[Optional[str], Decimal]:
        """{parent path: sibling total} for every parent whose children exceed 100%."""
        flagged = {}
        for parent in [None] + [node.path for node in self.tree.walk() if node.children]:
            children = self.tree.children_of(parent)
            if not children:
                continue
            check = self.sibling_total(children[0].path, period)
            if check.over_limit:
                flagged[parent] = check.total
        return flagged
    
    def is_stale(self, path: str, period: Optional[str]) -> bool:
        """True when the stored amount differs from the one the parent implies."""
        value = self.store.get(path, period)
        if value is None or period not in self.budgets:
            return False
        expected = percent_of(self.parent_amount(path, period), value.percentage)
        return expected != value.amount
    
    def mark_stale(self) -> int:
        """Flag stale period values on the tree nodes; returns the count."""
        count = 0
        for node in self.tree.walk():
            for period, value in node.per_period.items():
                value.stale = self.is_stale(node.path, period)
                if value.stale:
                    count += 1
        return count
    
    def recompute_period(self, period: Optional[str]) -> int:
        """Re-derive amount and quantity top-down for every stored row of a period.
        
        Rows are never created for nodes the user has not touched. Stored
        paths that are no longer in the tree are recomputed after the tree
        nodes, against whatever their parent holds.
        
        Returns:
            Number of rows whose amount or quantity changed
        """
        self.budget_for(period)
        changed = 0
        visited = 0
        ordered = [node.path for node in self.tree.walk()]
        orphans = sorted(
            (path for path in self.store.for_period(period) if path not in self.tree),
            key=path_depth,
        )
        for path in ordered + orphans:
            value = self.store.get(path, period)
            if value is None:
                continue
            visited += 1
            result = self.resolve(path, period, value.percentage)
            if result.amount != value.amount or result.quantity != value.quantity:
                changed += 1
            value.amount = result.amount
            value.quantity = result.quantity
        logger.info(f"Recomputed period {period!r}: {changed} of {visited} rows changed")
        return changed
