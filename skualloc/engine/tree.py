"""Tree builder - derives the hierarchy forest from flat SKU rows.

The tree is never persisted. It is rebuilt on every read from the SKU rows,
the hierarchy definitions and (optionally) the allocation store, so there
is only one source of truth.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .paths import (
    Segments,
    join_path,
    ordered_definitions,
    path_segments,
    sku_segments,
    is_prefix,
)
from .store import AllocationStore

logger = logging.getLogger(__name__)


@dataclass
class PeriodValue:
    """A node's allocation in one period.
    
    ``stale`` is set by the cascade engine when the stored amount no longer
    matches what the parent's stored amount and this percentage produce.
    """
    percentage: Decimal
    amount: int
    quantity: int
    stale: bool = False


@dataclass
class HierarchyNode:
    """One node of the derived hierarchy (intermediate or SKU leaf)."""
    path: str
    segments: Segments
    level: int
    name: str
    is_sku: bool = False
    unit_price: Optional[int] = None
    children: List["HierarchyNode"] = field(default_factory=list)
    per_period: Dict[Optional[str], PeriodValue] = field(default_factory=dict)
    
    @property
    def parent_path(self) -> Optional[str]:
        if len(self.segments) <= 1:
            return None
        return join_path(self.segments[:-1])
    
    def to_dict(self, periods: Optional[Sequence[Optional[str]]] = None) -> dict:
        """Convert to a nested dictionary (amounts as strings)."""
        keys = list(self.per_period) if periods is None else list(periods)
        values = []
        for period in keys:
            value = self.per_period.get(period)
            if value is None:
                continue
            values.append({
                "period": period,
                "percentage": value.percentage,
                "amount": str(value.amount),
                "quantity": value.quantity,
                "stale": value.stale,
            })
        return {
            "path": self.path,
            "name": self.name,
            "level": self.level,
            "is_sku": self.is_sku,
            "unit_price": self.unit_price,
            "periods": values,
            "children": [child.to_dict(periods) for child in self.children],
        }


class HierarchyTree:
    """Forest of hierarchy nodes with a path index."""
    
    def __init__(self, skus: Sequence, definitions: Sequence):
        self.skus = list(skus)
        self.definitions = ordered_definitions(definitions)
        self.roots: List[HierarchyNode] = []
        self.nodes: Dict[str, HierarchyNode] = {}
        self._sku_segments: List[Segments] = []
    
    @property
    def depth(self) -> int:
        """Number of hierarchy columns (SKU leaves sit at depth + 1)."""
        return len(self.definitions)
    
    def get(self, path: str) -> Optional[HierarchyNode]:
        return self.nodes.get(path)
    
    def __contains__(self, path: str) -> bool:
        return path in self.nodes
    
    def __len__(self):
        return len(self.nodes)
    
    def children_of(self, path: Optional[str]) -> List[HierarchyNode]:
        """Children of ``path``; the roots when ``path`` is None."""
        if path is None:
            return self.roots
        node = self.nodes.get(path)
        return node.children if node else []
    
    def siblings(self, path: str) -> List[HierarchyNode]:
        """Nodes sharing the parent of ``path``, including the node itself."""
        node = self.nodes.get(path)
        if node is None:
            return []
        return self.children_of(node.parent_path)
    
    def walk(self) -> Iterator[HierarchyNode]:
        """Pre-order traversal; parents are always yielded before children."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))
    
    def related_skus(self, path: str) -> List:
        """SKU rows covered by the node at ``path``.
        
        For a SKU leaf that is the SKU itself; for an intermediate node every
        SKU whose derived path at some level equals ``path``.
        """
        node = self.nodes.get(path)
        if node is None:
            return []
        if node.is_sku:
            return [
                sku for sku, segments in zip(self.skus, self._sku_segments)
                if segments + (str(sku.sku_code),) == node.segments
            ]
        return [
            sku for sku, segments in zip(self.skus, self._sku_segments)
            if is_prefix(node.segments, segments)
        ]
    
    def paths_at_level(self, level: int) -> List[str]:
        """Intermediate paths with exactly ``level`` segments, in discovery order."""
        return [
            node.path for node in self.walk()
            if not node.is_sku and len(node.segments) == level
        ]
    
    def _add(self, node: HierarchyNode) -> None:
        self.nodes[node.path] = node
        parent = node.parent_path
        if parent is None:
            self.roots.append(node)
        else:
            self.nodes[parent].children.append(node)


def _attach_periods(node: HierarchyNode, store: Optional[AllocationStore]) -> None:
    if store is None:
        return
    for period, value in store.for_path(node.path).items():
        node.per_period[period] = PeriodValue(
            percentage=value.percentage,
            amount=value.amount,
            quantity=value.quantity,
        )


def build_tree(
    skus: Iterable,
    definitions: Sequence,
    store: Optional[AllocationStore] = None,
) -> HierarchyTree:
    """Build the hierarchy forest.
    
    For each SKU, every level 1..N yields a path; unseen paths become nodes
    attached under the path one segment shorter (or as roots). The SKU leaf
    is attached under its deepest intermediate path. Child order is
    first-seen order; nothing is re-sorted. SKUs missing hierarchy values
    simply produce shorter paths.
    
    Args:
        skus: SKU rows (objects with sku_code, unit_price, hierarchy_values)
        definitions: hierarchy definitions (objects with level, column_name)
        store: optional allocation store used to fill ``per_period``
    
    Returns:
        HierarchyTree
    """
    skus = list(skus)
    tree = HierarchyTree(skus, definitions)
    depth = tree.depth
    
    for sku in skus:
        deepest: Segments = ()
        for level in range(1, depth + 1):
            segments = path_segments(sku, tree.definitions, level)
            if not segments:
                continue
            deepest = segments
            path = join_path(segments)
            if path in tree.nodes:
                continue
            node = HierarchyNode(
                path=path,
                segments=segments,
                level=len(segments),
                name=segments[-1],
            )
            _attach_periods(node, store)
            tree._add(node)
        
        tree._sku_segments.append(deepest)
        
        leaf_segments = sku_segments(sku, tree.definitions)
        leaf_path = join_path(leaf_segments)
        if leaf_path in tree.nodes:
            logger.warning(f"SKU path '{leaf_path}' already used by another node; skipping SKU {sku.sku_code}")
            continue
        leaf = HierarchyNode(
            path=leaf_path,
            segments=leaf_segments,
            level=depth + 1,
            name=str(sku.sku_code),
            is_sku=True,
            unit_price=int(sku.unit_price or 0),
        )
        _attach_periods(leaf, store)
        tree._add(leaf)
    
    return tree
