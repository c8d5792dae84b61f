import io
import re
import json
import math
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import load_workbook

from insightboard.core.cache import generate_parse_cache_key, get_parse_cache
from insightboard.core.config import get_settings
from insightboard.core.errors import ParseError, UnsupportedFormat
from insightboard.core.performance import track_performance
from insightboard.core.schemas import CellValue, FileType, Record, TabularData
from insightboard.services.inference import infer_column_types

logger = logging.getLogger(__name__)

# Extension -> canonical file type
ALLOWED_EXTENSIONS: Dict[str, FileType] = {
    '.csv': 'csv',
    '.xlsx': 'xlsx',
    '.xls': 'xlsx',
    '.json': 'json',
}

# Numeric-looking CSV token, surrounding whitespace allowed
NUMERIC_TOKEN = re.compile(r'^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$')

# Exact spellings only; 'True' stays text
BOOLEAN_TOKENS: Dict[str, bool] = {'true': True, 'TRUE': True, 'false': False, 'FALSE': False}

XLSX_MAGIC = b'PK\x03\x04'


def detect_file_type(filename: str) -> FileType:
    """
    Map a filename to one of the supported file types by extension.

    Raises:
        UnsupportedFormat: missing or unknown extension
    """
    if not filename:
        raise UnsupportedFormat("Filename is required")

    file_ext = Path(filename).suffix.lower()
    if not file_ext:
        raise UnsupportedFormat("File must have an extension. Supported formats: CSV, XLSX, XLS, JSON")

    file_type = ALLOWED_EXTENSIONS.get(file_ext)
    if file_type is None:
        raise UnsupportedFormat(
            f"Unsupported file format: {file_ext}. Allowed formats: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    return file_type


def resolve_columns(records: Sequence[Dict[str, Any]], policy: str = "first_row") -> List[str]:
    """
    Derive the column set from parsed records.

    'first_row' uses the keys of the first record only: fields that appear
    only in later records are dropped and missing fields read as null.
    'union' collects keys across all records in first-seen order.
    """
    if not records:
        return []
    if policy == "union":
        columns: Dict[str, None] = {}
        for record in records:
            for key in record:
                columns.setdefault(str(key), None)
        return list(columns)
    return [str(key) for key in records[0]]


def normalize_cell(value: Any) -> CellValue:
    """Coerce a raw source value into a cell value."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _build_tabular(records: Sequence[Dict[str, Any]], columns: List[str]) -> TabularData:
    rows: List[Record] = [
        {column: normalize_cell(record.get(column)) for column in columns}
        for record in records
    ]
    return TabularData(columns=columns, rows=rows, column_types=infer_column_types(rows, columns))


def _decode_text(contents: bytes) -> str:
    try:
        return contents.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.info("File is not valid UTF-8, decoding as latin-1")
        return contents.decode('latin-1')


def convert_token(token: Any) -> CellValue:
    """
    Turn a raw CSV token into a number or boolean when it looks like one.

    Blank and whitespace-only tokens become null.
    """
    if token is None or (isinstance(token, float) and math.isnan(token)):
        return None
    if not token.strip():
        return None
    if token in BOOLEAN_TOKENS:
        return BOOLEAN_TOKENS[token]
    if NUMERIC_TOKEN.match(token):
        stripped = token.strip()
        if any(ch in stripped for ch in '.eE'):
            return float(stripped)
        return int(stripped)
    return token


def parse_csv(contents: bytes) -> TabularData:
    """
    Parse delimited text with a header row.

    Rows shorter than the header are padded with null. A row wider than the
    header is a ParseError, never a shifted or truncated record.
    """
    text = _decode_text(contents)
    try:
        # header=None so pandas never turns an extra leading field into an index
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except ValueError as e:
        # pandas' ParserError and EmptyDataError are both ValueErrors
        raise ParseError(f"CSV parsing error: {e}") from e

    raw_rows = list(df.itertuples(index=False, name=None))
    header = raw_rows[0]
    # with keep_default_na=False only padding reads as NaN
    width = sum(1 for token in header if not (isinstance(token, float) and math.isnan(token)))
    if width < len(header):
        raise ParseError(f"CSV parsing error: Too many fields, expected {width} per the header")

    columns = _header_names(header)
    records = [
        dict(zip(columns, (convert_token(token) for token in row)))
        for row in raw_rows[1:]
    ]
    return _build_tabular(records, columns)


def _fill_merged_cells(ws) -> int:
    """Unmerge ranges, copying the top-left value into every cell of the range."""
    merged_ranges = list(ws.merged_cells.ranges)
    for merged_range in merged_ranges:
        top_left_value = ws.cell(merged_range.min_row, merged_range.min_col).value
        ws.unmerge_cells(str(merged_range))
        for row in range(merged_range.min_row, merged_range.max_row + 1):
            for col in range(merged_range.min_col, merged_range.max_col + 1):
                ws.cell(row, col, top_left_value)
    return len(merged_ranges)


def _read_xlsx_rows(contents: bytes) -> List[tuple]:
    wb = load_workbook(io.BytesIO(contents), data_only=True)
    ws = wb.worksheets[0]
    merged = _fill_merged_cells(ws)
    if merged:
        logger.info(f"Unmerged {merged} cell ranges in sheet '{ws.title}'")
    return list(ws.iter_rows(values_only=True))


def _read_xls_rows(contents: bytes) -> List[tuple]:
    df = pd.read_excel(io.BytesIO(contents), sheet_name=0, header=None, dtype=object)
    return [
        tuple(None if pd.isna(value) else value for value in row)
        for row in df.itertuples(index=False, name=None)
    ]


def _is_blank(row: Sequence[Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in row)


def _header_names(header: Sequence[Any]) -> List[str]:
    """Column names from a header row; blanks get positional names, duplicates a suffix."""
    names: List[str] = []
    seen: Dict[str, int] = {}
    for index, value in enumerate(header):
        cell = normalize_cell(value)
        name = str(cell).strip() if cell not in (None, "") else f"Column {index + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def parse_excel(contents: bytes) -> TabularData:
    """
    Parse the first worksheet of an .xlsx or .xls workbook.

    The first non-blank row is the header, fully blank rows are skipped and
    blank cells read as null.
    """
    try:
        raw_rows = _read_xlsx_rows(contents) if contents[:4] == XLSX_MAGIC else _read_xls_rows(contents)
    except Exception as e:
        logger.warning(f"Spreadsheet could not be opened: {e}")
        raise ParseError(f"Unable to read spreadsheet: {e}") from e

    rows = [row for row in raw_rows if not _is_blank(row)]
    if len(rows) < 2:
        raise ParseError("Excel file contains no data")

    columns = _header_names(rows[0])
    records = [
        {column: (row[i] if i < len(row) else None) for i, column in enumerate(columns)}
        for row in rows[1:]
    ]
    return _build_tabular(records, columns)


def parse_json(contents: bytes, schema_policy: str = "first_row") -> TabularData:
    """Parse a JSON array of objects, or a single object treated as one row."""
    try:
        data = json.loads(_decode_text(contents))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if isinstance(data, dict):
        records = [data]
    elif isinstance(data, list):
        records = data
    else:
        raise ParseError("JSON must be an object or array of objects")

    if not records:
        raise ParseError("JSON file contains no data")
    if not all(isinstance(record, dict) for record in records):
        raise ParseError("JSON must be an object or array of objects")

    return _build_tabular(records, resolve_columns(records, schema_policy))


@track_performance("parse_file")
def parse(contents: bytes, file_type: FileType, schema_policy: Optional[str] = None) -> TabularData:
    """
    Parse an uploaded file into canonical tabular data.

    Results are cached by content hash, so re-uploading identical bytes skips
    the parse.

    Raises:
        UnsupportedFormat: unknown file type
        ParseError: malformed or empty input
    """
    policy = schema_policy or get_settings().schema_policy
    cache = get_parse_cache()
    cache_key = generate_parse_cache_key(contents, file_type, policy)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.info(f"Using cached parse result ({cached.row_count} rows)")
        return cached

    if file_type == 'csv':
        data = parse_csv(contents)
    elif file_type == 'xlsx':
        data = parse_excel(contents)
    elif file_type == 'json':
        data = parse_json(contents, policy)
    else:
        raise UnsupportedFormat(f"Unsupported file type: {file_type}")

    logger.info(f"Parsed {file_type} file: {data.row_count} rows, {data.column_count} columns")
    cache.set(cache_key, data)
    return data
