"""
Spreadsheet Grid Access.

MT5 spreadsheet exports are not tabular in the pandas sense: several tables
(Positions, Orders, Deals, Results) are stacked vertically on one sheet, each
introduced by a title cell in column 0. The sheet is therefore loaded as a raw
grid (integer row and column labels, no header) and sections are located by
boolean masks over column 0, the same way stacked CSV reports are handled.
"""
from io import BytesIO
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd
from openpyxl import load_workbook

from .value_parsers import clean_text, parse_number

# ==========================================
# SECTION 1: LOADING
# ==========================================
def load_grid(content: bytes) -> pd.DataFrame:
    """
    Flattens the first worksheet of an .xlsx workbook into a 2D grid.

    Blank rows are kept so that fixed row offsets stay aligned with the sheet.
    Cell values are left as openpyxl returns them (str, int, float, datetime
    or None).

    Args:
        content (bytes): Raw workbook bytes.

    Returns:
        pd.DataFrame: Grid indexed 0..n-1 on both axes, dtype object.
    """
    workbook = load_workbook(BytesIO(content), data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    grid = pd.DataFrame(rows, dtype=object)
    # Some exports carry fewer than 13 columns on short sheets
    return grid.reindex(columns=range(max(grid.shape[1], 13)))

# ==========================================
# SECTION 2: CELL ACCESS
# ==========================================
def cell(grid: pd.DataFrame, row: int, col: int) -> Any:
    if row < 0 or row >= len(grid) or col < 0 or col >= grid.shape[1]:
        return None
    value = grid.iat[row, col]
    return None if pd.isna(value) else value

def cell_text(grid: pd.DataFrame, row: int, col: int) -> str:
    return clean_text(cell(grid, row, col))

def cell_number(grid: pd.DataFrame, row: int, col: int) -> Optional[float]:
    return parse_number(cell(grid, row, col))

def row_values(grid: pd.DataFrame, row: int) -> List[Any]:
    return [cell(grid, row, col) for col in range(grid.shape[1])]

def row_texts(grid: pd.DataFrame, row: int) -> List[str]:
    return [cell_text(grid, row, col) for col in range(grid.shape[1])]

def column_texts(grid: pd.DataFrame, col: int) -> pd.Series:
    """Stripped text of one column, '' for empty cells."""
    if col >= grid.shape[1]:
        return pd.Series('', index=grid.index)
    return grid[col].map(clean_text)

# ==========================================
# SECTION 3: SECTION DISCOVERY
# ==========================================
def find_section_row(
    grid: pd.DataFrame,
    title: str,
    col: int = 0,
    start: int = 0,
    case_sensitive: bool = True
) -> Optional[int]:
    """
    Locates the first row at or after `start` whose cell in `col` equals `title`.

    Args:
        grid (pd.DataFrame): Sheet grid from load_grid.
        title (str): Section title, e.g. 'Positions' or 'Results'.
        col (int): Column holding section titles.
        start (int): First row to consider.
        case_sensitive (bool): Compare exactly or case-insensitively.

    Returns:
        Optional[int]: Row index, or None if the section is absent.
    """
    texts = column_texts(grid, col)
    if case_sensitive:
        mask = texts == title
    else:
        mask = texts.str.lower() == title.lower()
    mask &= grid.index >= start

    matches = grid.index[mask]
    return int(matches[0]) if len(matches) else None

def find_section_end(grid: pd.DataFrame, start: int, titles: List[str], col: int = 0) -> int:
    """First row after `start` that opens one of `titles`; the grid length if none does."""
    texts = column_texts(grid, col)
    mask = texts.isin(titles) & (grid.index > start)
    matches = grid.index[mask]
    return int(matches[0]) if len(matches) else len(grid)

def find_cell(grid: pd.DataFrame, text: str, max_rows: Optional[int] = None) -> Optional[Tuple[int, int]]:
    """
    Finds the first cell (row-major order) whose stripped text contains `text`.

    Returns:
        Optional[Tuple[int, int]]: (row, col) of the match, or None.
    """
    region = grid if max_rows is None else grid.iloc[:max_rows]
    mask = region.map(lambda v: text in clean_text(v)).to_numpy(dtype=bool)
    hits = np.argwhere(mask)
    if hits.size == 0:
        return None
    row, col = hits[0]
    return int(row), int(col)

def contains_text(grid: pd.DataFrame, phrase: str, max_rows: int) -> bool:
    """True if any cell in the first `max_rows` rows contains `phrase`."""
    region = grid.iloc[:max_rows].map(clean_text).to_numpy().ravel()
    return any(phrase in text for text in region)
