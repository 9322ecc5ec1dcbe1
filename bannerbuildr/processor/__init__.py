"""Data processor module for BannerBuildr."""

from .ingestion import (
    RowSet,
    detect_encoding,
    detect_tier,
    fetch_sheet,
    fetch_sheet_tabs,
    filter_rows_for_tier,
    order_columns_for_tier,
    parse_csv_text,
    read_rows,
    select_row,
    sheet_csv_url,
    tier_column,
)
from .mapper import (
    MappingSuggestion,
    normalize_mapping,
    object_mapping,
    suggest_mapping,
)
