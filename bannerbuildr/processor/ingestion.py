"""Data ingestion module for BannerBuildr.

Reads the row-oriented data that drives variation generation:
- CSV files (UTF-8, or UTF-16 LE with BOM and tab-delimited)
- Excel workbooks (.xlsx / .xlsm), one tab at a time
- Google Sheet tabs published to the web, fetched as CSV

Every cell is read as text; blank cells become ``""`` and fully empty
rows are dropped.  Also holds the row selection helpers: tier filtering
and lookup of a row by its id.
"""

import csv
import io
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping
from urllib.parse import quote

import httpx
import pandas as pd

from bannerbuildr.errors import DataSourceError, RowNotFoundError, SheetFetchError
from bannerbuildr.schema.literals import to_text
from bannerbuildr.schema.models import TIER_COLUMNS, Tier


EXCEL_SUFFIXES = {".xlsx", ".xlsm"}

KEY_FIELD_CANDIDATES = ("id", "ID", "Id")

_SHEET_ID_RE = re.compile(r"/d/([a-zA-Z0-9-_]+)")

SHEET_CSV_URL = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq"
    "?tqx=out:csv&sheet={sheet_name}"
)


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

@dataclass
class RowSet:
    """Parsed rows plus the distinct column names, in file order."""
    rows: list[dict[str, str]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


# ---------------------------------------------------------------------------
# DataFrame -> rows
# ---------------------------------------------------------------------------

def clean_columns(df):
    """Strip whitespace from column names."""
    df.columns = [c.strip() if isinstance(c, str) else str(c) for c in df.columns]
    return df


def frame_to_rowset(df: pd.DataFrame) -> RowSet:
    """Convert a string-typed DataFrame to a RowSet, dropping empty rows."""
    df = clean_columns(df.fillna(""))
    columns = [c for c in df.columns if not str(c).startswith("Unnamed:")]
    rows = []
    for record in df[columns].to_dict(orient="records"):
        row = {k: to_text(v) for k, v in record.items()}
        if any(v.strip() for v in row.values()):
            rows.append(row)
    return RowSet(rows=rows, columns=list(columns))


# ---------------------------------------------------------------------------
# Encoding detection and CSV reading
# ---------------------------------------------------------------------------

def detect_encoding(path):
    """Detect whether a file is UTF-16 LE (with BOM) or UTF-8.

    Returns (encoding, delimiter) tuple; the delimiter is None for UTF-8
    files so it can be sniffed.
    """
    with open(path, "rb") as f:
        raw = f.read(4)
    if raw[:2] == b"\xff\xfe":
        return "utf-16", "\t"
    return "utf-8-sig", None


def _sniff_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        return ","


def parse_csv_text(text: str, sep: str | None = None) -> RowSet:
    """Parse CSV text (header row first) into a RowSet."""
    if not text.strip():
        return RowSet()
    if sep is None:
        sep = _sniff_delimiter(text[:4096])
    df = pd.read_csv(io.StringIO(text), sep=sep, dtype=str,
                     keep_default_na=False, skip_blank_lines=True)
    return frame_to_rowset(df)


def read_csv_rows(path) -> RowSet:
    """Read a CSV file with automatic encoding and delimiter detection."""
    encoding, sep = detect_encoding(path)
    with open(path, encoding=encoding, newline="") as f:
        text = f.read()
    return parse_csv_text(text, sep=sep)


def read_excel_rows(path, sheet: str | int | None = None) -> RowSet:
    """Read one tab of an Excel workbook (first tab by default)."""
    xl = pd.ExcelFile(path, engine="openpyxl")
    try:
        if sheet is None:
            sheet = xl.sheet_names[0]
        elif isinstance(sheet, str) and sheet not in xl.sheet_names:
            raise DataSourceError(
                f"Sheet {sheet!r} not found in {Path(path).name}; "
                f"available: {', '.join(xl.sheet_names)}"
            )
        df = xl.parse(sheet, dtype=str, keep_default_na=False)
    finally:
        xl.close()
    return frame_to_rowset(df)


def read_rows(path, sheet: str | int | None = None) -> RowSet:
    """Read rows from a CSV or Excel file, chosen by extension."""
    path = Path(path)
    if not path.exists():
        raise DataSourceError(f"Data file not found: {path}")
    if path.suffix.lower() in EXCEL_SUFFIXES:
        return read_excel_rows(path, sheet)
    return read_csv_rows(path)


# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------

def sheet_csv_url(sheet_url: str, sheet_name: str) -> str:
    """CSV export URL for one tab of a published Google Sheet."""
    m = _SHEET_ID_RE.search(sheet_url or "")
    if not m:
        raise SheetFetchError("Invalid Google Sheet URL format.", status_code=400)
    return SHEET_CSV_URL.format(sheet_id=m.group(1),
                                sheet_name=quote(sheet_name, safe=""))


def fetch_sheet(sheet_url: str, sheet_name: str,
                client: httpx.Client | None = None,
                timeout: float = 30.0) -> RowSet:
    """Fetch one published tab as CSV and parse it.

    The sheet must be shared publicly (or published to the web).
    """
    if not sheet_url or not sheet_name:
        raise SheetFetchError("Missing sheetUrl or sheetName", status_code=400)
    url = sheet_csv_url(sheet_url, sheet_name)
    try:
        if client is None:
            resp = httpx.get(url, timeout=timeout, follow_redirects=True)
        else:
            resp = client.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise SheetFetchError(f"Failed to fetch Google Sheet: {exc}") from exc

    if resp.status_code >= 400:
        body = resp.text
        # Google answers with a large HTML error page; only sniff it
        if "gid=" in body or "Request-URI Too Large" in body:
            raise SheetFetchError(
                f'The sheet tab "{sheet_name}" may not exist or is not public.',
                status_code=404,
            )
        raise SheetFetchError(
            "Failed to fetch Google Sheet. Make sure the sheet and tab are public.",
            status_code=resp.status_code,
        )
    return parse_csv_text(resp.text, sep=",")


def fetch_sheet_tabs(sheet_url: str, tabs: Iterable[str],
                     client: httpx.Client | None = None) -> dict[str, RowSet]:
    """Fetch several tabs of the same sheet, keyed by tab name."""
    return {tab: fetch_sheet(sheet_url, tab, client=client) for tab in tabs}


# ---------------------------------------------------------------------------
# Tier helpers
# ---------------------------------------------------------------------------

def tier_column(tier: Tier | str) -> str:
    return Tier.coerce(tier).column


def detect_tier(columns: Iterable[str]) -> Tier | None:
    """Tier implied by which tier column the data carries (T1 wins ties)."""
    cols = set(columns)
    for tier in (Tier.T1, Tier.T2):
        if TIER_COLUMNS[tier] in cols:
            return tier
    return None


def row_in_tier(row: Mapping[str, Any], tier: Tier | str) -> bool:
    if not isinstance(row, Mapping):
        # Left for the builder to report as a row failure
        return True
    return to_text(row.get(tier_column(tier))).strip() != ""


def filter_rows_for_tier(rows: Iterable[Mapping[str, Any]],
                         tier: Tier | str) -> list[tuple[int, Mapping[str, Any]]]:
    """``(original index, row)`` for rows whose tier column is filled."""
    return [(i, row) for i, row in enumerate(rows) if row_in_tier(row, tier)]


def order_columns_for_tier(columns: Iterable[str], tier: Tier | str) -> list[str]:
    """Tier column first; the other tier's column is dropped."""
    columns = list(columns)
    tier = Tier.coerce(tier)
    own = TIER_COLUMNS[tier]
    others = [c for c in columns if c not in TIER_COLUMNS.values()]
    if own in columns:
        return [own] + others
    return others


# ---------------------------------------------------------------------------
# Row lookup
# ---------------------------------------------------------------------------

def resolve_key_field(columns: Iterable[str], key_field: str | None = None) -> str:
    """The id column to look rows up by (``id`` / ``ID`` when not given)."""
    if key_field:
        return key_field
    columns = list(columns)
    for candidate in KEY_FIELD_CANDIDATES:
        if candidate in columns:
            return candidate
    return KEY_FIELD_CANDIDATES[0]


def select_row(rows: Iterable[Mapping[str, Any]], key: Any,
               key_field: str | None = None,
               source: str = "") -> Mapping[str, Any]:
    """First row whose key field equals ``key`` (compared as trimmed text).

    Raises :class:`RowNotFoundError` when nothing matches.
    """
    rows = list(rows)
    columns: list[str] = []
    for row in rows:
        columns.extend(k for k in row if k not in columns)
    key_field = resolve_key_field(columns, key_field)
    wanted = to_text(key).strip()
    for row in rows:
        if to_text(row.get(key_field)).strip() == wanted:
            return row
    raise RowNotFoundError(key_field, wanted, source)
