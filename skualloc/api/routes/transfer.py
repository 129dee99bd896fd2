"""
Import and export endpoints.

- POST /api/sessions/{id}/import: multipart upload (.csv or .xlsx) or a JSON
  body {"rows": [...]}; replaces the session's hierarchy, SKUs and allocations
- GET /api/sessions/{id}/export: cumulative allocation per SKU as CSV or xlsx
"""

import io
import logging
from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from skualloc.api.deps import get_current_user, load_session, service_errors
from skualloc.api.schemas import ImportResponse, ImportRowsRequest
from skualloc.db import get_db
from skualloc.engine.errors import ValidationError
from skualloc.etl.allocation_export import export_csv, export_session, export_workbook
from skualloc.etl.sku_import import import_skus, parse_import_rows, read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Import/Export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _rows_from_request(request: Request):
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or not hasattr(upload, "read"):
            raise ValidationError("Multipart upload needs a 'file' field")
        content = await upload.read()
        logger.info(f"Received upload {upload.filename} ({len(content)} bytes)")
        return read_upload(upload.filename, content)

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or a multipart upload")
    return ImportRowsRequest(**payload).rows if isinstance(payload, dict) else payload


@router.post("/{session_id}/import", response_model=ImportResponse)
async def import_sku_data(
    session_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Replace the session's SKU data from a file or JSON rows.

    Reserved columns are ``sku_code`` and ``unitprice``; every other column
    becomes a hierarchy level in column order. All existing allocations
    are removed.
    """
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        try:
            rows = await _rows_from_request(request)
        except ValidationError:
            raise
        except Exception as e:
            raise ValidationError(f"Could not read import data: {e}")
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ValidationError("Import rows must be a list of objects")
        data = parse_import_rows(rows)
        stats = import_skus(db, session, data)
        return ImportResponse(**stats)


@router.get("/{session_id}/export")
def export_allocations(
    session_id: int,
    format: str = "csv",
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Download the allocation export (``format=csv`` or ``format=xlsx``)."""
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        if format not in ("csv", "xlsx"):
            raise ValidationError(f"Unsupported export format: {format}")
        table = export_session(db, session)

    filename = f"allocation_{session.id}_{date.today().isoformat()}.{format}"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}

    if format == "xlsx":
        return StreamingResponse(
            io.BytesIO(export_workbook(table)),
            media_type=XLSX_MEDIA_TYPE,
            headers=headers,
        )
    return StreamingResponse(
        iter([export_csv(table).encode("utf-8")]),
        media_type="text/csv; charset=utf-8",
        headers=headers,
    )
