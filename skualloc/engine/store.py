"""In-memory allocation store.

A sparse mapping from (hierarchy path, period) to the allocation values of
that node. Services load it from ``Allocation`` rows, let the cascade engine
read and update it, and write the changed entries back.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import ValidationError
from .paths import path_depth

PERCENT_QUANTUM = Decimal("0.01")
ZERO_PERCENT = Decimal("0")
FULL_PERCENT = Decimal("100")

Key = Tuple[str, Optional[str]]


class _Unset:
    """Marker for 'argument not given' where None is a meaningful value."""

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


# None means the default period, so "no period given" needs its own marker
UNSET = _Unset()


def to_percentage(value) -> Decimal:
    """Validate and normalise a percentage to a Decimal with 2 places.
    
    Raises:
        ValidationError: if the value is not a number in [0, 100] or has
            more than two decimal places.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid percentage: {value!r}")
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid percentage: {value!r}")
    if not pct.is_finite():
        raise ValidationError(f"Invalid percentage: {value!r}")
    if pct < ZERO_PERCENT or pct > FULL_PERCENT:
        raise ValidationError(f"Percentage must be between 0 and 100, got {pct}")
    if pct != pct.quantize(PERCENT_QUANTUM):
        raise ValidationError(f"Percentage supports at most 2 decimal places, got {pct}")
    return pct.quantize(PERCENT_QUANTUM)


@dataclass
class AllocationValue:
    """Values stored for one (path, period)."""
    percentage: Decimal = ZERO_PERCENT
    amount: int = 0
    quantity: int = 0
    level: int = 0


class AllocationStore:
    """Sparse (path, period) -> AllocationValue mapping."""
    
    def __init__(self):
        self._values: Dict[Key, AllocationValue] = {}
    
    @classmethod
    def from_rows(cls, rows: Iterable) -> "AllocationStore":
        """Build a store from Allocation rows (or any objects with the same fields)."""
        store = cls()
        for row in rows:
            store.set(
                row.hierarchy_path,
                row.period,
                AllocationValue(
                    percentage=Decimal(str(row.percentage or 0)).quantize(PERCENT_QUANTUM),
                    amount=int(row.amount or 0),
                    quantity=int(row.quantity or 0),
                    level=row.level or path_depth(row.hierarchy_path),
                ),
            )
        return store
    
    def get(self, path: str, period: Optional[str]) -> Optional[AllocationValue]:
        return self._values.get((path, period))
    
    def set(self, path: str, period: Optional[str], value: AllocationValue) -> None:
        if not value.level:
            value.level = path_depth(path)
        self._values[(path, period)] = value
    
    def remove(self, path: str, period: Optional[str]) -> Optional[AllocationValue]:
        return self._values.pop((path, period), None)
    
    def has(self, path: str, period: Optional[str]) -> bool:
        return (path, period) in self._values
    
    def periods(self) -> List[Optional[str]]:
        """Distinct period keys present in the store (unordered)."""
        return list({period for _, period in self._values})
    
    def for_period(self, period: Optional[str]) -> Dict[str, AllocationValue]:
        """All entries of one period keyed by path."""
        return {path: value for (path, p), value in self._values.items() if p == period}
    
    def for_path(self, path: str) -> Dict[Optional[str], AllocationValue]:
        """All entries of one path keyed by period."""
        return {p: value for (pth, p), value in self._values.items() if pth == path}
    
    def items(self) -> Iterator[Tuple[Key, AllocationValue]]:
        return iter(self._values.items())
    
    def __len__(self):
        return len(self._values)
    
    def __contains__(self, key: Key) -> bool:
        return key in self._values
