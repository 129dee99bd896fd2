"""Import SKU master data (CSV or Excel) into a budget session.

The file has one row per SKU. Two column names are reserved:
- sku_code: SKU identifier (unique within the session)
- unitprice: non-negative integer unit price

Every other column is a hierarchy column; the first row's column order
assigns levels 1..N. Rows without a SKU code or a unit price are dropped.
Importing is destructive: the session's hierarchy definitions, SKU rows
and allocations are all replaced in one transaction.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pandas as pd
from sqlalchemy.orm import Session

from skualloc.config import Config
from skualloc.db.postgres import transaction
from skualloc.engine.errors import ValidationError
from skualloc.engine.paths import contains_separator
from skualloc.models import Allocation, BudgetSession, HierarchyDefinition, SkuData

logger = logging.getLogger(__name__)

SKU_CODE_COLUMN = "sku_code"
UNIT_PRICE_COLUMN = "unitprice"
RESERVED_COLUMNS = (SKU_CODE_COLUMN, UNIT_PRICE_COLUMN)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")


@dataclass
class ImportedSku:
    """One SKU row ready to be stored."""
    sku_code: str
    unit_price: int
    hierarchy_values: Dict[str, str] = field(default_factory=dict)


@dataclass
class ImportData:
    """Parsed import: SKUs plus hierarchy columns in level order."""
    skus: List[ImportedSku]
    hierarchy_columns: List[str]
    dropped: int = 0


# =============================================================================
# Readers
# =============================================================================

def read_csv_rows(source: Union[str, Path, bytes]) -> List[Dict[str, str]]:
    """Read CSV rows as dictionaries keyed by header.

    Args:
        source: a file path, or the file content as bytes
    """
    if isinstance(source, bytes):
        text = source.decode(Config.CSV_ENCODING)
        return list(csv.DictReader(io.StringIO(text)))

    with open(source, 'r', encoding=Config.CSV_ENCODING, newline='') as f:
        return list(csv.DictReader(f))


def read_excel_rows(source: Union[str, Path, bytes]) -> List[Dict[str, str]]:
    """Read the first sheet of a workbook, every cell as a string."""
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    df = pd.read_excel(source, sheet_name=0, dtype=str, keep_default_na=False)
    df.columns = [str(col).strip() for col in df.columns]
    return df.to_dict(orient="records")


def read_upload(filename: str, content: bytes) -> List[Dict[str, str]]:
    """Read an uploaded file, choosing the reader from its extension."""
    suffix = Path(filename or "").suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return read_excel_rows(content)
    try:
        return read_csv_rows(content)
    except UnicodeDecodeError:
        raise ValidationError(f"File is not {Config.CSV_ENCODING} encoded text")


# =============================================================================
# Parsing
# =============================================================================

def parse_unit_price(value) -> int:
    """Parse a unit price cell ("1,200" is accepted as 1200)."""
    cleaned = str(value).strip().replace(",", "")
    if cleaned.endswith(".0"):
        cleaned = cleaned[:-2]
    try:
        price = int(cleaned)
    except ValueError:
        raise ValidationError(f"Invalid unit price: {value!r}")
    if price < 0:
        raise ValidationError(f"Unit price must be non-negative: {value!r}")
    return price


def hierarchy_columns_of(rows: List[Dict[str, str]]) -> List[str]:
    """Non-reserved columns of the first row, in encountered order."""
    if not rows:
        return []
    columns = []
    for column in rows[0].keys():
        if column is None:
            continue
        name = str(column).strip()
        if name and name not in RESERVED_COLUMNS and name not in columns:
            columns.append(name)
    return columns


def _cell(row: Dict, column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def parse_import_rows(rows: Iterable[Dict[str, str]]) -> ImportData:
    """Turn raw rows into SKUs and hierarchy columns.

    Raises:
        ValidationError: no rows, missing reserved columns, a bad unit
            price, or a SKU code that appears twice
    """
    rows = list(rows)
    if not rows:
        raise ValidationError("No rows to import")
    header = {str(column).strip() for column in rows[0].keys() if column is not None}
    missing = [column for column in RESERVED_COLUMNS if column not in header]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")

    columns = hierarchy_columns_of(rows)
    skus: List[ImportedSku] = []
    seen = set()
    dropped = 0

    for row_num, raw in enumerate(rows, start=2):
        row = {str(k).strip(): v for k, v in raw.items() if k is not None}
        sku_code = _cell(row, SKU_CODE_COLUMN)
        price_cell = _cell(row, UNIT_PRICE_COLUMN)
        if not sku_code or not price_cell:
            dropped += 1
            continue

        try:
            unit_price = parse_unit_price(price_cell)
        except ValidationError as e:
            raise ValidationError(f"Row {row_num}: {e}")

        if sku_code in seen:
            raise ValidationError(f"Row {row_num}: duplicate sku_code '{sku_code}'")
        seen.add(sku_code)

        values = {}
        for column in columns:
            value = _cell(row, column)
            if value:
                values[column] = value
                if contains_separator(value):
                    logger.warning(
                        f"Row {row_num}: value '{value}' in column '{column}' contains the path separator"
                    )
        if contains_separator(sku_code):
            logger.warning(f"Row {row_num}: sku_code '{sku_code}' contains the path separator")

        skus.append(ImportedSku(sku_code=sku_code, unit_price=unit_price, hierarchy_values=values))

    if dropped:
        logger.warning(f"Dropped {dropped} rows without sku_code or unitprice")

    return ImportData(skus=skus, hierarchy_columns=columns, dropped=dropped)


# =============================================================================
# Load
# =============================================================================

def import_skus(db: Session, session: BudgetSession, data: ImportData) -> Dict:
    """Replace a session's hierarchy, SKUs and allocations with ``data``.

    Period budgets survive; every allocation row of every period is removed.

    Returns:
        Dictionary with import statistics
    """
    if len(set(data.hierarchy_columns)) != len(data.hierarchy_columns):
        raise ValidationError("Hierarchy column names must be unique")
    codes = [sku.sku_code for sku in data.skus]
    if len(set(codes)) != len(codes):
        raise ValidationError("SKU codes must be unique")

    stats = {
        "imported": len(data.skus),
        "hierarchy_levels": len(data.hierarchy_columns),
        "dropped": data.dropped,
        "removed_allocations": 0,
        "removed_skus": 0,
    }

    logger.info(f"Importing {len(data.skus)} SKUs into session {session.id}")

    with transaction(db):
        stats["removed_allocations"] = db.query(Allocation).filter(
            Allocation.session_id == session.id
        ).delete(synchronize_session=False)
        stats["removed_skus"] = db.query(SkuData).filter(
            SkuData.session_id == session.id
        ).delete(synchronize_session=False)
        db.query(HierarchyDefinition).filter(
            HierarchyDefinition.session_id == session.id
        ).delete(synchronize_session=False)
        db.flush()

        for index, column in enumerate(data.hierarchy_columns, start=1):
            db.add(HierarchyDefinition(
                session_id=session.id,
                level=index,
                column_name=column,
                display_order=index,
            ))
        for sku in data.skus:
            db.add(SkuData(
                session_id=session.id,
                sku_code=sku.sku_code,
                unit_price=sku.unit_price,
                hierarchy_values=dict(sku.hierarchy_values),
            ))

    db.expire_all()
    logger.info(
        f"Import complete: {stats['imported']} SKUs, {stats['hierarchy_levels']} levels, "
        f"removed {stats['removed_allocations']} allocations"
    )
    return stats


def import_file(db: Session, session: BudgetSession, file_path: Union[str, Path]) -> Dict:
    """Read a CSV or Excel file from disk and import it."""
    file_path = Path(file_path)
    rows = read_upload(file_path.name, file_path.read_bytes())
    return import_skus(db, session, parse_import_rows(rows))
