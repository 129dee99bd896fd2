"""Hierarchical budget allocation engine.

Pure modules (no database access):
- paths: flat SKU record -> hierarchy path segments
- tree: SKU rows + hierarchy columns + allocations -> node forest
- store: sparse (path, period) -> allocation values
- cascade: percentage -> amount/quantity, sibling checks, recompute

Database-bound services:
- periods: create/copy/rename/delete periods, legacy budget migration
- allocations: save, single-cell apply, auto split, tree view
- sessions: categories, sessions, capability checks
"""

from .errors import (
    AllocationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
)
from .paths import build_path, sku_path, parent_path, split_path, join_path
from .store import AllocationStore, AllocationValue, UNSET
from .tree import HierarchyNode, HierarchyTree, PeriodValue, build_tree
from .cascade import CascadeEngine, CascadeResult, SiblingCheck, percent_of

__all__ = [
    'AllocationError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'AuthorizationError',
    'build_path',
    'sku_path',
    'parent_path',
    'split_path',
    'join_path',
    'AllocationStore',
    'AllocationValue',
    'UNSET',
    'HierarchyNode',
    'HierarchyTree',
    'PeriodValue',
    'build_tree',
    'CascadeEngine',
    'CascadeResult',
    'SiblingCheck',
    'percent_of',
]
