"""
Account and Settings Extraction.

Reads the identity block at the top of each export: the account header of a
Trade History report, or the expert / symbol / period / inputs block of a
Strategy Tester report. Both HTML and spreadsheet variants are covered.
"""
import re
from typing import Dict, List, Optional, Tuple

import pandas as pd
from bs4 import BeautifulSoup

from .config import (
    ACCOUNT_LABELS,
    DEFAULT_ACCOUNT_TYPE,
    DEFAULT_CURRENCY,
    DEFAULT_HEDGING_MODE,
    HEADER_SCAN_ROWS,
    INPUTS_LABEL,
    SETTINGS_LABELS,
)
from .grid import cell_text
from .metric_scanner import html_cell_text
from .models import AccountInfo, BacktestSettings, InputValue
from .value_parsers import parse_date, parse_input_line

# "13342140 (USD, FundedNext-Server 2, real, Hedge)"
ACCOUNT_PATTERN = re.compile(r'^(\d+)\s*\(([^,]+),\s*([^,]+),\s*([^,]+),\s*([^)]+)\)')

# "ICMarketsSC-Demo (Build 5399)"
BUILD_PATTERN = re.compile(r'^(.+?)\s*\(Build\s+(\d+)\)')

# ==========================================
# SECTION 1: ACCOUNT INFO
# ==========================================
def _match_label(label: str, table: Dict[str, str]) -> Optional[str]:
    for prefix, key in table.items():
        if label.startswith(prefix):
            return key
    return None

def parse_account_value(value: str) -> Dict[str, str]:
    """
    Decomposes the account header cell.

    Falls back to the first whitespace token as the account number, leaving
    currency, server, type and hedging mode at their defaults.
    """
    match = ACCOUNT_PATTERN.match(value)
    if match:
        return {
            'account_number': match.group(1),
            'currency': match.group(2).strip(),
            'server': match.group(3).strip(),
            'account_type': match.group(4).strip(),
            'hedging_mode': match.group(5).strip(),
        }
    tokens = value.split()
    return {
        'account_number': tokens[0] if tokens else '',
        'currency': DEFAULT_CURRENCY,
        'server': '',
        'account_type': DEFAULT_ACCOUNT_TYPE,
        'hedging_mode': DEFAULT_HEDGING_MODE,
    }

def _build_account_info(pairs: List[Tuple[str, str]]) -> AccountInfo:
    fields = {}
    seen = set()
    for label, value in pairs:
        key = _match_label(label, ACCOUNT_LABELS)
        # First occurrence of each label wins
        if key is None or key in seen:
            continue
        seen.add(key)
        if key == 'name':
            fields['name'] = value.rstrip('*').strip()
        elif key == 'account':
            fields.update(parse_account_value(value))
        elif key == 'company':
            fields['company'] = value
        elif key == 'report_date':
            fields['report_date'] = parse_date(value)
    return AccountInfo(**fields)

def extract_account_info_html(soup: BeautifulSoup) -> AccountInfo:
    """Reads header rows made of <th> label / value pairs."""
    pairs = []
    for tr in soup.find_all('tr'):
        cells = tr.find_all('th')
        if len(cells) >= 2:
            pairs.append((html_cell_text(cells[0]), html_cell_text(cells[1])))
    return _build_account_info(pairs)

def extract_account_info_grid(grid: pd.DataFrame) -> AccountInfo:
    """Reads the label in column 0 and the value in column 3 (or 1) of the first rows."""
    pairs = []
    for row in range(min(HEADER_SCAN_ROWS, len(grid))):
        label = cell_text(grid, row, 0)
        if label:
            pairs.append((label, cell_text(grid, row, 3) or cell_text(grid, row, 1)))
    return _build_account_info(pairs)

# ==========================================
# SECTION 2: BACKTEST SETTINGS
# ==========================================
def split_broker_build(text: str) -> Optional[Tuple[str, str]]:
    match = BUILD_PATTERN.match(text)
    if not match:
        return None
    return match.group(1).strip(), match.group(2)

def _build_settings(broker_line: Optional[str], rows: List[Tuple[str, str]]) -> BacktestSettings:
    """
    Folds (label, value) rows into settings.

    The Inputs region starts at the 'Inputs:' row and continues over rows with
    an empty label until any other label appears.
    """
    fields: Dict[str, str] = {}
    inputs: Dict[str, InputValue] = {}
    in_inputs = False

    for label, value in rows:
        key = _match_label(label, SETTINGS_LABELS) if label else None
        if key is not None:
            fields.setdefault(key, value)
            in_inputs = False
        elif label.startswith(INPUTS_LABEL) or (not label and in_inputs):
            in_inputs = True
            pair = parse_input_line(value)
            if pair is not None:
                inputs[pair[0]] = pair[1]
        elif label:
            in_inputs = False

    broker, build = '', ''
    if broker_line:
        broker, build = split_broker_build(broker_line) or (broker_line, '')

    return BacktestSettings(
        expert=fields.get('expert', ''),
        symbol=fields.get('symbol', ''),
        period=fields.get('period', ''),
        broker=broker,
        build=build,
        inputs=inputs,
    )

def extract_backtest_settings_html(soup: BeautifulSoup) -> BacktestSettings:
    broker_line = None
    rows = []
    for tr in soup.find_all('tr'):
        cells = tr.find_all('td')
        if len(cells) == 1:
            text = html_cell_text(cells[0])
            if broker_line is None and split_broker_build(text):
                broker_line = text
            continue
        if len(cells) < 2:
            continue

        # Label cells span three columns; the value sits in the next cell
        label_index = next((i for i, td in enumerate(cells) if td.get('colspan') == '3'), 0)
        if label_index + 1 >= len(cells):
            continue
        rows.append((html_cell_text(cells[label_index]), html_cell_text(cells[label_index + 1])))

    return _build_settings(broker_line, rows)

def extract_backtest_settings_grid(grid: pd.DataFrame) -> BacktestSettings:
    broker_line = None
    for row in range(min(HEADER_SCAN_ROWS, len(grid))):
        text = cell_text(grid, row, 0)
        if split_broker_build(text):
            broker_line = text
            break

    rows = []
    for row in range(len(grid)):
        label = cell_text(grid, row, 0)
        value = cell_text(grid, row, 3)
        if label or value:
            rows.append((label, value))
        # The settings block ends well before the deal log
        if label and label.lower() == 'deals':
            break

    return _build_settings(broker_line, rows)
