"""
aceops/services/spreadsheet.py

Purpose: Excel import/export helpers (openpyxl)

- Reads the first sheet of an uploaded workbook into header-keyed dicts
- Builds single-sheet workbooks for downloadable templates
"""

import io
from typing import Any, Dict, List, Sequence

from fastapi import UploadFile
from openpyxl import Workbook, load_workbook

from aceops.core.config import settings
from aceops.core.exceptions import ValidationError
from utils.constants import EXCEL_MIME_TYPES

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def read_excel_upload(file: UploadFile) -> List[Dict[str, Any]]:
    """
    Validates an uploaded Excel file and returns its data rows.

    Fully blank rows are dropped; cell values keep their native types.
    """
    if file is None:
        raise ValidationError("No file")
    if file.content_type not in EXCEL_MIME_TYPES:
        raise ValidationError("Invalid file type. Only Excel files allowed.")

    content = await file.read()
    if len(content) > settings.MAX_SHEET_BYTES:
        raise ValidationError("File too large")

    try:
        workbook = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception:
        raise ValidationError("Failed to parse upload")

    data = list(workbook.active.values)
    workbook.close()
    if not data:
        return []

    headers = [str(h).strip() if h is not None else "" for h in data[0]]
    rows = []
    for values in data[1:]:
        if all(v is None or str(v).strip() == "" for v in values):
            continue
        rows.append({headers[i]: values[i] for i in range(min(len(headers), len(values))) if headers[i]})
    return rows


def build_workbook(title: str, headers: Sequence[str], rows: Sequence[Sequence[Any]] = ()) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    sheet.append(list(headers))
    for row in rows:
        sheet.append(list(row))

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def cell_text(value: Any) -> str:
    """
    Stringifies a cell. Whole floats lose their ``.0`` so phone numbers and
    pincodes typed as numbers come back intact.
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
