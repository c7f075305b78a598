"""Policy Ingest - Format reader.

Turns an uploaded file plus its declared type into row records: ordered
mappings of column header (as written in the file) to raw text.

Supported declared types:
- .csv  : delimited text, first line is the header, blank lines skipped
- .xlsx : first worksheet only, first row is the header (openpyxl)
- .xls  : first worksheet only, first row is the header (xlrd)

The file is opened and its header read eagerly when the context is entered,
so structural failures surface before any row is processed. Rows are then
produced lazily, one pass only.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime, time
from pathlib import Path

import openpyxl
import xlrd

from policy_ingest.config import ALLOWED_FILE_TYPES
from policy_ingest.errors import FileReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

RowRecord = dict[str, str]


def normalize_file_type(declared_type: str) -> str:
    """Normalize a declared type to its lowercase dotted form.

    Raises:
        UnsupportedFormatError: If the type is not csv, xlsx or xls.
    """
    normalized = (declared_type or "").strip().lower()
    if normalized and not normalized.startswith("."):
        normalized = f".{normalized}"
    if normalized not in ALLOWED_FILE_TYPES:
        raise UnsupportedFormatError(declared_type)
    return normalized


@contextmanager
def open_rows(path: str | Path, declared_type: str) -> Iterator[Iterator[RowRecord]]:
    """Open a tabular file and yield a lazy iterator of row records.

    Args:
        path: Path to the file.
        declared_type: One of ".csv", ".xlsx", ".xls".

    Yields:
        Iterator of row records, in file order.

    Raises:
        UnsupportedFormatError: If declared_type is not supported.
        FileReadError: If the file cannot be opened or parsed.
    """
    file_type = normalize_file_type(declared_type)
    path = Path(path)

    if file_type == ".csv":
        opener = _open_csv
    elif file_type == ".xlsx":
        opener = _open_xlsx
    else:
        opener = _open_xls

    with opener(path) as rows:
        yield rows


# --- Delimited text ---


@contextmanager
def _open_csv(path: Path) -> Iterator[Iterator[RowRecord]]:
    try:
        # utf-8-sig drops a leading byte order mark from the first header
        fh = open(path, newline="", encoding="utf-8-sig")
    except OSError as e:
        raise FileReadError(str(path), str(e)) from e

    try:
        reader = csv.reader(fh)
        try:
            header = next(reader, None)
        except (UnicodeDecodeError, csv.Error) as e:
            raise FileReadError(str(path), str(e)) from e
        yield _csv_records(path, header or [], reader)
    finally:
        fh.close()


def _csv_records(path: Path, header: Sequence[str], reader: Iterable[list[str]]) -> Iterator[RowRecord]:
    iterator = iter(reader)
    while True:
        try:
            values = next(iterator)
        except StopIteration:
            return
        except (UnicodeDecodeError, csv.Error) as e:
            raise FileReadError(str(path), str(e)) from e

        record = _make_record(header, values)
        if record is not None:
            yield record


# --- Spreadsheets ---


@contextmanager
def _open_xlsx(path: Path) -> Iterator[Iterator[RowRecord]]:
    try:
        workbook = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
    except Exception as e:
        # openpyxl raises a mix of zipfile, KeyError and its own exceptions
        raise FileReadError(str(path), str(e)) from e

    try:
        if not workbook.worksheets:
            yield iter(())
            return
        try:
            rows = workbook.worksheets[0].iter_rows(values_only=True)
            header = next(rows, None)
        except Exception as e:
            raise FileReadError(str(path), str(e)) from e
        header_text = [_cell_text(cell) for cell in header or ()]
        yield _sheet_records(path, header_text, rows)
    finally:
        workbook.close()


@contextmanager
def _open_xls(path: Path) -> Iterator[Iterator[RowRecord]]:
    try:
        book = xlrd.open_workbook(str(path), on_demand=True)
    except Exception as e:
        raise FileReadError(str(path), str(e)) from e

    try:
        if book.nsheets == 0:
            yield iter(())
            return
        try:
            sheet = book.sheet_by_index(0)
        except Exception as e:
            raise FileReadError(str(path), str(e)) from e

        def _values(row_idx: int) -> list[object]:
            values: list[object] = []
            for cell in sheet.row(row_idx):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    values.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    values.append(bool(cell.value))
                else:
                    values.append(cell.value)
            return values

        if sheet.nrows == 0:
            yield iter(())
            return
        header_text = [_cell_text(cell) for cell in _values(0)]
        rows = (_values(idx) for idx in range(1, sheet.nrows))
        yield _sheet_records(path, header_text, rows)
    finally:
        book.release_resources()


def _sheet_records(path: Path, header: Sequence[str], rows: Iterable[Sequence[object]]) -> Iterator[RowRecord]:
    iterator = iter(rows)
    while True:
        try:
            values = next(iterator)
        except StopIteration:
            return
        except Exception as e:
            raise FileReadError(str(path), str(e)) from e

        record = _make_record(header, [_cell_text(cell) for cell in values])
        if record is not None:
            yield record


# --- Helpers ---


def _make_record(header: Sequence[str], values: Sequence[str]) -> RowRecord | None:
    """Zip a header with row values.

    Columns with a blank header are dropped, missing values become "".
    Returns None for rows where every value is blank.
    """
    if not any(value.strip() for value in values):
        return None

    record: RowRecord = {}
    for idx, column in enumerate(header):
        if not column:
            continue
        record[column] = values[idx] if idx < len(values) else ""
    return record


def _cell_text(value: object) -> str:
    """Render a spreadsheet cell as the text a CSV export would hold."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
