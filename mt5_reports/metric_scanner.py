"""
Table-driven metric extraction.

Both report exports lay out their statistics as label / value pairs. The HTML
exports are read by searching cells for a known label and taking the value
from the cells to its right; the spreadsheet exports are read at fixed row and
column offsets from an anchor row. In both cases the layout lives in the
tables of config.py and this module only walks them.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from bs4 import BeautifulSoup, Tag

from .grid import cell
from .models import ParseDiagnostics
from .value_parsers import parse_metric_value

LabelEntry = Tuple[str, str, Tuple[str, ...]]
OffsetEntry = Tuple[int, int, str, Tuple[str, ...]]

# How many cells to the right of a label may hold its value
_VALUE_LOOKAHEAD = 2

def _assign(values: Dict[str, Any], kind: str, fields: Sequence[str], raw: Any,
            name: str, diagnostics: ParseDiagnostics) -> None:
    # Unread metrics are left out so the dataclass defaults apply
    parts = parse_metric_value(kind, raw) if raw is not None else None
    if parts is None:
        diagnostics.default(name)
        return
    for field_name, part in zip(fields, parts):
        values[field_name] = part

# ==========================================
# SECTION 1: HTML LABEL SCANNING
# ==========================================
def html_cell_text(tag: Tag) -> str:
    return tag.get_text(' ', strip=True).replace('\xa0', ' ')

def _table_rows(soup: BeautifulSoup) -> List[List[Tuple[Tag, str]]]:
    rows = []
    for tr in soup.find_all('tr'):
        cells = tr.find_all('td')
        if cells:
            rows.append([(td, html_cell_text(td)) for td in cells])
    return rows

def _value_after(row: List[Tuple[Tag, str]], index: int, bold_only: bool) -> Optional[str]:
    for td, text in row[index + 1:index + 1 + _VALUE_LOOKAHEAD]:
        bold = td.find('b')
        if bold is not None:
            bold_text = html_cell_text(bold)
            if bold_text:
                return bold_text
        elif not bold_only and text:
            return text
    return None

def find_labelled_value(rows: List[List[Tuple[Tag, str]]], label: str, bold_only: bool = True) -> Optional[str]:
    """
    Returns the value printed next to the first cell starting with `label`.

    Matching is by prefix on the stripped cell text, so 'Margin:' does not
    pick up 'Free Margin:'. Only the one or two cells right of the label on
    the same row are considered.
    """
    for row in rows:
        for index, (_, text) in enumerate(row):
            if text.startswith(label):
                value = _value_after(row, index, bold_only)
                if value is not None:
                    return value
    return None

def scan_html_metrics(
    soup: BeautifulSoup,
    label_table: List[LabelEntry],
    diagnostics: ParseDiagnostics,
    bold_only: bool = True
) -> Dict[str, Any]:
    """
    Applies a label table to an HTML report.

    Args:
        soup (BeautifulSoup): Parsed report document.
        label_table (List[LabelEntry]): (label, kind, fields) entries.
        diagnostics (ParseDiagnostics): Receives one entry per missing label.
        bold_only (bool): Require the value to be wrapped in <b>, as in the
            Trade History export.

    Returns:
        Dict[str, Any]: Field name -> parsed value, for every label found.
    """
    rows = _table_rows(soup)
    values: Dict[str, Any] = {}
    for label, kind, fields in label_table:
        raw = find_labelled_value(rows, label, bold_only)
        _assign(values, kind, fields, raw, label, diagnostics)
    return values

# ==========================================
# SECTION 2: GRID OFFSET READING
# ==========================================
def read_offset_metrics(
    grid: pd.DataFrame,
    anchor_row: int,
    offset_table: List[OffsetEntry],
    diagnostics: ParseDiagnostics
) -> Dict[str, Any]:
    """Reads every (row offset, column) entry of `offset_table` relative to `anchor_row`."""
    values: Dict[str, Any] = {}
    for row_offset, col, kind, fields in offset_table:
        raw = cell(grid, anchor_row + row_offset, col)
        _assign(values, kind, fields, raw, fields[0], diagnostics)
    return values
