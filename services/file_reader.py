# services/file_reader.py
"""Read uploaded member spreadsheets (CSV / XLSX) into a header row plus data rows."""

from __future__ import annotations

import csv
import logging
import os
import zipfile
from dataclasses import dataclass, field
from io import BytesIO, StringIO
from typing import Any, List, Sequence

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
import pandas as pd

from middleware.errors import FileFormatError
from utils.helpers import _is_missing

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
ALLOWED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS

_CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


@dataclass
class SheetData:
    """Header cells plus the data rows below them, each tagged with its file position."""

    headers: List[Any]
    rows: List[tuple[int, List[Any]]] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def file_extension(filename: str) -> str:
    _, ext = os.path.splitext((filename or "").lower())
    return ext


def allowed_file(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


def _decode_csv(data: bytes) -> str:
    for encoding in _CSV_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileFormatError("CSV file is not valid text")


def _read_csv_frame(data: bytes) -> pd.DataFrame:
    text = _decode_csv(data)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
        sep = dialect.delimiter
    except csv.Error:
        sep = ","
    try:
        # Rows may be ragged (trailing commas); short rows are padded with None.
        rows = list(csv.reader(StringIO(text), delimiter=sep))
    except csv.Error as exc:
        raise FileFormatError(f"Could not parse CSV file: {exc}") from exc
    if not rows:
        raise FileFormatError("The uploaded file is empty")
    # Every cell stays text: IC numbers and phones must keep leading zeros.
    return pd.DataFrame(rows, dtype=object)


def _read_excel_frame(data: bytes) -> pd.DataFrame:
    try:
        wb = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise FileFormatError(f"Could not open Excel workbook: {exc}") from exc
    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise FileFormatError("Workbook has no worksheets")
        rows = [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return pd.DataFrame(rows, dtype=object)


def _is_blank(cells: Sequence[Any]) -> bool:
    return all(_is_missing(c) for c in cells)


def read_member_file(data: bytes, filename: str) -> SheetData:
    """
    Parse raw upload bytes into :class:`SheetData`.

    The first non-blank row is the header (row 0). Data rows are numbered from
    1 by their position below the header; fully blank rows are skipped but
    still consume a number so ``source_row`` matches what the uploader sees.
    """

    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise FileFormatError(
            "Unsupported file type. Please upload a .csv or .xlsx file.",
            details={"filename": filename},
        )
    if not data:
        raise FileFormatError("The uploaded file is empty")

    frame = _read_csv_frame(data) if ext in CSV_EXTENSIONS else _read_excel_frame(data)
    records = frame.astype(object).where(pd.notna(frame), None).values.tolist()

    header_index = next((i for i, r in enumerate(records) if not _is_blank(r)), None)
    if header_index is None:
        raise FileFormatError("The uploaded file is empty")

    headers = list(records[header_index])
    while headers and _is_missing(headers[-1]):
        headers.pop()

    sheet = SheetData(headers=headers)
    for offset, cells in enumerate(records[header_index + 1:], start=1):
        if _is_blank(cells):
            continue
        sheet.rows.append((offset, list(cells)))

    logger.debug("Read %s: %d data rows", filename, sheet.total_rows)
    return sheet
