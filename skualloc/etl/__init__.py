"""ETL modules."""

from .sku_import import import_skus, parse_import_rows, read_csv_rows, read_excel_rows
from .allocation_export import build_export_rows, export_csv, export_workbook, read_export

__all__ = [
    'import_skus',
    'parse_import_rows',
    'read_csv_rows',
    'read_excel_rows',
    'build_export_rows',
    'export_csv',
    'export_workbook',
    'read_export',
]
