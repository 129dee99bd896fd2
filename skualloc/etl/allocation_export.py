"""
Allocation export - one row per SKU with cumulative percentages per period.

Columns:
    <hierarchy columns...>, sku_code, default(%), <period>(%)..., unitprice,
    total_amount, total_quantity

A SKU's cumulative percentage in a period is the product of the
percentages stored at every level from the root down to the SKU leaf. It is
blank when any of those levels has no allocation or 0%. Totals add up
floor(period budget x cumulative fraction) over all periods.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, localcontext
from typing import Dict, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from skualloc.engine.paths import join_path, ordered_definitions, sku_segments
from skualloc.engine.periods import budgets_by_period, sort_periods
from skualloc.engine.store import AllocationStore
from skualloc.models import Allocation, BudgetSession, HierarchyDefinition, SkuData

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_LABEL = "default"
PERCENT_SUFFIX = "(%)"
SKU_CODE_HEADER = "sku_code"
TRAILING_HEADERS = ["unitprice", "total_amount", "total_quantity"]

CUMULATIVE_QUANTUM = Decimal("0.0001")
BOM = "\ufeff"


@dataclass
class ExportRow:
    """Typed values for one SKU."""
    hierarchy_values: List[str]
    sku_code: str
    percentages: List[Optional[Decimal]]
    unit_price: int
    total_amount: int = 0
    total_quantity: int = 0


@dataclass
class ExportTable:
    headers: List[str]
    periods: List[Optional[str]]
    rows: List[ExportRow] = field(default_factory=list)


def period_header(period: Optional[str]) -> str:
    label = DEFAULT_PERIOD_LABEL if period is None else period
    return f"{label}{PERCENT_SUFFIX}"


def cumulative_fraction(store: AllocationStore, segments: Sequence[str], period: Optional[str]) -> Optional[Decimal]:
    """Product of the level percentages (as fractions) along ``segments``.

    ``segments`` ends with the SKU code. Every hierarchy level above it must
    have a non-zero allocation in ``period``, otherwise the result is None.
    A SKU-level row is optional: it is multiplied in only when present and
    above 0%.
    """
    if len(segments) < 2:
        return None
    fraction = Decimal(1)
    with localcontext() as ctx:
        ctx.prec = 80
        for depth in range(1, len(segments)):
            value = store.get(join_path(segments[:depth]), period)
            if value is None or value.percentage <= 0:
                return None
            fraction = fraction * value.percentage / 100
        leaf = store.get(join_path(segments), period)
        if leaf is not None and leaf.percentage > 0:
            fraction = fraction * leaf.percentage / 100
    return fraction


def format_percentage(fraction: Decimal) -> str:
    return str((fraction * 100).quantize(CUMULATIVE_QUANTUM, rounding=ROUND_HALF_UP))


def floor_amount(budget: int, fraction: Decimal) -> int:
    with localcontext() as ctx:
        ctx.prec = 80
        return int((Decimal(budget) * fraction).to_integral_value(rounding=ROUND_FLOOR))


def build_export_rows(
    skus: Sequence,
    definitions: Sequence,
    store: AllocationStore,
    budgets: Dict[Optional[str], int],
) -> ExportTable:
    """Build the export table. Pure: no database access.

    Args:
        skus: SKU rows in export order
        definitions: hierarchy definitions
        store: allocations of every period
        budgets: {period: budget}; its keys decide the period columns
    """
    definitions = ordered_definitions(definitions)
    columns = [d.column_name for d in definitions]
    periods = sort_periods(budgets)
    headers = columns + [SKU_CODE_HEADER] + [period_header(p) for p in periods] + TRAILING_HEADERS

    table = ExportTable(headers=headers, periods=periods)
    for sku in skus:
        values = sku.hierarchy_values or {}
        unit_price = int(sku.unit_price or 0)
        segments = sku_segments(sku, definitions)
        row = ExportRow(
            hierarchy_values=[str(values.get(column) or "") for column in columns],
            sku_code=str(sku.sku_code),
            percentages=[],
            unit_price=unit_price,
        )
        for period in periods:
            fraction = cumulative_fraction(store, segments, period)
            if fraction is None:
                row.percentages.append(None)
                continue
            row.percentages.append(fraction)
            amount = floor_amount(budgets[period], fraction)
            row.total_amount += amount
            if unit_price > 0:
                row.total_quantity += amount // unit_price
        table.rows.append(row)

    logger.info(f"Built export of {len(table.rows)} SKUs over {len(periods)} periods")
    return table


def _text_cells(row: ExportRow) -> List[str]:
    return (
        row.hierarchy_values
        + [row.sku_code]
        + ["" if pct is None else format_percentage(pct) for pct in row.percentages]
        + [
            str(row.unit_price),
            str(row.total_amount) if row.total_amount > 0 else "",
            str(row.total_quantity) if row.total_quantity > 0 else "",
        ]
    )


def export_csv(table: ExportTable) -> str:
    """Render the table as BOM-prefixed CSV text with "\\n" line endings."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(table.headers)
    for row in table.rows:
        writer.writerow(_text_cells(row))
    return BOM + output.getvalue()


def export_workbook(table: ExportTable, sheet_name: str = "Allocation") -> bytes:
    """Render the table as an .xlsx workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    ws.append(table.headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in table.rows:
        ws.append(
            row.hierarchy_values
            + [row.sku_code]
            + [None if pct is None else float(format_percentage(pct)) for pct in row.percentages]
            + [
                row.unit_price,
                row.total_amount if row.total_amount > 0 else None,
                row.total_quantity if row.total_quantity > 0 else None,
            ]
        )

    for index, header in enumerate(table.headers, start=1):
        width = max([len(str(header))] + [
            len(str(cell.value)) for cell in ws[get_column_letter(index)] if cell.value is not None
        ])
        ws.column_dimensions[get_column_letter(index)].width = min(width + 2, 50)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def read_export(text: str) -> Dict[str, Dict[Optional[str], Optional[Decimal]]]:
    """Parse exported CSV back into {sku_code: {period: cumulative % or None}}.

    The ``default(%)`` column maps to the default (None) period.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        return {}

    sku_index = header.index(SKU_CODE_HEADER)
    period_columns = {}
    for index, name in enumerate(header):
        if index > sku_index and name.endswith(PERCENT_SUFFIX):
            label = name[:-len(PERCENT_SUFFIX)]
            period_columns[index] = None if label == DEFAULT_PERIOD_LABEL else label

    result = {}
    for cells in reader:
        if not cells:
            continue
        values = {}
        for index, period in period_columns.items():
            cell = cells[index].strip() if index < len(cells) else ""
            values[period] = Decimal(cell) if cell else None
        result[cells[sku_index]] = values
    return result


def export_session(db: Session, session: BudgetSession) -> ExportTable:
    """Load a session and build its export table."""
    definitions = db.query(HierarchyDefinition).filter(
        HierarchyDefinition.session_id == session.id
    ).order_by(HierarchyDefinition.level).all()
    skus = db.query(SkuData).filter(SkuData.session_id == session.id).order_by(SkuData.id).all()
    store = AllocationStore.from_rows(
        db.query(Allocation).filter(Allocation.session_id == session.id).all()
    )
    return build_export_rows(skus, definitions, store, budgets_by_period(db, session))
