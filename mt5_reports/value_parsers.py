"""
Cell Value Parsers.

Converts raw cell contents (HTML text or spreadsheet values) into typed values.
MT5 prints numbers with space or NBSP thousands separators and packs two
values into one cell for many metrics, e.g. '2 704.88 (2.65%)' or '3 (773.29)'.
Each such layout is a named 'kind' referenced by the metric tables in config.

Nothing in this module raises on bad input: unparseable values come back as
None and the calling parser decides on the default.
"""
import math
import re
from datetime import datetime
from typing import Any, Optional, Tuple

import pandas as pd

from .config import STRATEGY_PATTERNS
from .models import InputValue

# ==========================================
# SECTION 1: NUMBERS
# ==========================================
# Grouped thousands ('1 234 567.89', '1,234.50') or a plain number
_NUM = r'-?\d{1,3}(?:[ \u00a0,]\d{3})+(?:\.\d+)?|-?\d+(?:\.\d+)?'
_INT = r'\d{1,3}(?:[ \u00a0,]\d{3})+|\d+'

_COMPOSITE_PATTERNS = {
    # 2 704.88 (2.65%)  /  -0.75 (45.21%)
    'amount_percent': re.compile(rf'^\s*({_NUM})\s*\(\s*({_NUM})\s*%\s*\)'),
    'value_percent': re.compile(rf'^\s*({_NUM})\s*\(\s*({_NUM})\s*%\s*\)'),
    # 2.65% (2 704.88)
    'percent_amount': re.compile(rf'^\s*({_NUM})\s*%\s*\(\s*({_NUM})\s*\)'),
    # 9 (66.67%)
    'count_percent': re.compile(rf'^\s*({_INT})\s*\(\s*({_NUM})\s*%\s*\)'),
    'count_won': re.compile(rf'^\s*({_INT})\s*\(\s*({_NUM})\s*%\s*\)'),
    # 3 (773.29)
    'count_money': re.compile(rf'^\s*({_INT})\s*\(\s*({_NUM})\s*\)'),
    # 1 487.73 (2)
    'money_count': re.compile(rf'^\s*({_NUM})\s*\(\s*({_INT})\s*\)'),
}

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()

def clean_text(value: Any) -> str:
    """Returns the stripped string form of a cell, '' for empty cells."""
    if _is_missing(value):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace('\xa0', ' ').strip()

def _strip_number(text: str) -> str:
    return (
        text.replace('\xa0', '')
        .replace('\u2009', '')
        .replace(' ', '')
        .replace(',', '')
    )

def parse_number(value: Any) -> Optional[float]:
    """
    Parses an MT5-formatted number.

    Accepts native numbers (spreadsheet cells) as well as text with space,
    NBSP or comma thousands separators and an optional trailing '%'.

    Args:
        value (Any): Raw cell content.

    Returns:
        Optional[float]: The number, or None if the content is not numeric.
    """
    if isinstance(value, bool) or _is_missing(value):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = _strip_number(str(value)).rstrip('%')
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None

def _to_float(text: str) -> float:
    return float(_strip_number(text))

def _to_int(text: str) -> int:
    return int(_strip_number(text))

def won_count(count: int, percent: float) -> int:
    """Number of winning trades implied by a 'count (won %)' cell, rounded half up."""
    return int(count * percent / 100 + 0.5)

def parse_metric_value(kind: str, value: Any) -> Optional[Tuple[Any, ...]]:
    """
    Parses one metric cell according to its layout kind.

    Composite kinds return their parts in a fixed order: the amount / count
    first, then the percentage (or money / count for streak cells). The
    'count_won' kind additionally derives the winning count. Whenever the
    leading amount is zero the percentage is forced to zero as well.

    Args:
        kind (str): Layout kind (see config metric tables).
        value (Any): Raw cell content.

    Returns:
        Optional[Tuple[Any, ...]]: Parsed parts, or None when the cell does
        not match the layout.
    """
    if _is_missing(value):
        return None

    if kind == 'text':
        return (clean_text(value),)

    if kind in ('number', 'percent', 'int'):
        number = parse_number(value)
        if number is None:
            return None
        return (int(round(number)),) if kind == 'int' else (number,)

    pattern = _COMPOSITE_PATTERNS.get(kind)
    if pattern is None:
        raise KeyError(f"Unknown metric value kind '{kind}'")

    match = pattern.match(clean_text(value))
    if not match:
        return None
    first, second = match.group(1), match.group(2)

    if kind in ('amount_percent', 'value_percent'):
        amount = _to_float(first)
        return amount, (_to_float(second) if amount != 0 else 0.0)
    if kind == 'percent_amount':
        amount = _to_float(second)
        return amount, (_to_float(first) if amount != 0 else 0.0)
    if kind in ('count_percent', 'count_won'):
        count = _to_int(first)
        percent = _to_float(second) if count != 0 else 0.0
        if kind == 'count_won':
            return count, won_count(count, percent), percent
        return count, percent
    if kind == 'count_money':
        return _to_int(first), _to_float(second)
    # money_count
    return _to_float(first), _to_int(second)

# ==========================================
# SECTION 2: DATES
# ==========================================
# Layouts tried in order; the MT5 default comes first
DATE_FORMATS = [
    '%Y.%m.%d %H:%M:%S',
    '%Y.%m.%d %H:%M',
    '%Y.%m.%d',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
    '%m/%d/%Y %H:%M:%S',
    '%m/%d/%Y %H:%M',
    '%m/%d/%Y',
]

_SERIAL_TEXT = re.compile(r'^\d+(?:\.\d+)?$')

# Excel's day zero, including its phantom 29 Feb 1900
_EXCEL_ORIGIN = '1899-12-30'
_EXCEL_SERIAL_RANGE = (1, 100000)

def excel_serial_to_datetime(serial: float) -> Optional[datetime]:
    if not _EXCEL_SERIAL_RANGE[0] <= serial < _EXCEL_SERIAL_RANGE[1]:
        return None
    stamp = pd.to_datetime(serial, unit='D', origin=_EXCEL_ORIGIN)
    # Float serials carry sub-second noise
    return stamp.round('s').to_pydatetime()

def parse_date(value: Any) -> Optional[datetime]:
    """
    Parses an MT5 timestamp from HTML text or a spreadsheet cell.

    Order of attempts:
    1. Native datetimes (openpyxl date cells) pass through.
    2. Native numbers, and plain numeric strings, are read as Excel serial
       dates.
    3. Each layout in DATE_FORMATS, via pd.to_datetime with an explicit
       format so nothing is inferred row by row.

    Returns:
        Optional[datetime]: The timestamp, or None if no layout matches.
    """
    if isinstance(value, bool) or _is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return excel_serial_to_datetime(float(value))

    text = str(value).strip()
    if _SERIAL_TEXT.match(text):
        return excel_serial_to_datetime(float(text))

    for fmt in DATE_FORMATS:
        stamp = pd.to_datetime(text, format=fmt, errors='coerce')
        if not pd.isna(stamp):
            return stamp.to_pydatetime()
    return None

# ==========================================
# SECTION 3: COMMENTS & INPUTS
# ==========================================
_STRATEGY_REGEXES = [re.compile(p) for p in STRATEGY_PATTERNS]
_INPUT_LINE = re.compile(r'^([^=]+)=(.+)$')

def extract_strategy(comment: Any) -> Optional[str]:
    """
    Resolves a strategy name from an order or position comment.

    Tries a bracketed tag, a braced tag and a leading capitalised token in
    that order; falls back to the whole comment.
    """
    text = clean_text(comment)
    if not text:
        return None
    for regex in _STRATEGY_REGEXES:
        match = regex.search(text)
        if match:
            return match.group(1).strip()
    return text

def coerce_input_value(raw: str) -> InputValue:
    text = raw.strip()
    if text in ('true', 'false'):
        return text == 'true'
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return text
    return number if math.isfinite(number) else text

def parse_input_line(text: Any) -> Optional[Tuple[str, InputValue]]:
    """Splits an expert input line 'Key=Value' into a typed pair."""
    match = _INPUT_LINE.match(clean_text(text))
    if not match:
        return None
    return match.group(1).strip(), coerce_input_value(match.group(2))
