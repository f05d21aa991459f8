"""
MT5 Trade History Report Parser (Excel).

Parses the .xlsx variant of the Trade History export. The first worksheet
holds the same stacked sections as the HTML report (Positions, Orders, Deals,
Results) with each section title in column 0 and its column headers on the
next row. Column positions inside Positions are resolved from those headers;
the Results block is read at fixed offsets from its title row.
"""
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import (
    DEFAULT_INITIAL_DEPOSIT,
    DEPOSIT_SCAN_ROWS,
    HISTORY_DEAL_AMOUNT_COL,
    HISTORY_DEAL_TYPE_COL,
    HISTORY_RESULTS_OFFSETS,
    HISTORY_SNAPSHOT_LABELS,
    IDENTITY_ERRORS,
    IDENTITY_MARKERS,
    IDENTITY_SCAN_ROWS,
    POSITION_HEADER_KEYWORDS,
    SECTION_DEALS,
    SECTION_ORDERS,
    SECTION_POSITIONS,
    SECTION_RESULTS,
    TRADE_HISTORY,
)
from .grid import (
    cell,
    cell_number,
    cell_text,
    column_texts,
    contains_text,
    find_section_end,
    find_section_row,
    load_grid,
    row_texts,
)
from .header_extractor import extract_account_info_grid
from .metric_scanner import read_offset_metrics
from .models import TRADE_TYPES, ParseDiagnostics, ParseResult, PerformanceMetrics, Trade, TradeHistoryReport
from .value_parsers import clean_text, extract_strategy, parse_date, parse_number

# ==========================================
# SECTION 1: COLUMN RESOLUTION
# ==========================================
def resolve_position_columns(headers: List[str]) -> Dict[str, int]:
    """
    Maps Positions header cells to trade fields.

    The export repeats 'Time' and 'Price' for the open and close legs, so
    the first occurrence is the open column and the second the close column.
    Price matching ignores the 'S / L' and 'T / P' headers.

    Args:
        headers (List[str]): Header row texts.

    Returns:
        Dict[str, int]: Field name -> column index for every header found.
    """
    columns: Dict[str, int] = {}
    time_cols = []
    price_cols = []

    for index, raw in enumerate(headers):
        header = raw.lower().strip()
        if not header:
            continue
        if 'time' in header:
            time_cols.append(index)
        if 'price' in header and 's / l' not in header and 't / p' not in header:
            price_cols.append(index)
        for field_name, keywords in POSITION_HEADER_KEYWORDS.items():
            if field_name not in columns and any(k in header for k in keywords):
                columns[field_name] = index

    if time_cols:
        columns['open_time'] = time_cols[0]
    if len(time_cols) > 1:
        columns['close_time'] = time_cols[1]
    if price_cols:
        columns['open_price'] = price_cols[0]
    if len(price_cols) > 1:
        columns['close_price'] = price_cols[1]
    return columns

# ==========================================
# SECTION 2: ORDERS -> STRATEGY MAP
# ==========================================
def parse_order_strategies(grid: pd.DataFrame) -> Dict[str, str]:
    """
    Builds an order id -> strategy name map from the Orders section comments.

    Positions share their id with the order that opened them, so this map is
    the most reliable strategy source for a trade.
    """
    title_row = find_section_row(grid, SECTION_ORDERS)
    if title_row is None:
        return {}

    header_row = title_row + 1
    headers = [h.lower() for h in row_texts(grid, header_row)]
    if 'order' not in headers or 'comment' not in headers:
        return {}
    order_col = headers.index('order')
    comment_col = headers.index('comment')

    end = find_section_end(grid, header_row, [SECTION_DEALS, SECTION_POSITIONS, SECTION_RESULTS])
    strategies = {}
    for row in range(header_row + 1, end):
        order = cell_text(grid, row, order_col)
        strategy = extract_strategy(cell(grid, row, comment_col))
        if order and strategy:
            strategies[order] = strategy
    return strategies

# ==========================================
# SECTION 3: POSITIONS
# ==========================================
def _value(grid: pd.DataFrame, row: int, columns: Dict[str, int], name: str) -> Any:
    return cell(grid, row, columns[name]) if name in columns else None

def _number(grid: pd.DataFrame, row: int, columns: Dict[str, int], name: str) -> float:
    number = parse_number(_value(grid, row, columns, name))
    return number if number is not None else 0.0

def _magic_number(raw: Any) -> Optional[int]:
    number = parse_number(raw)
    return int(number) if number is not None else None

def parse_positions(grid: pd.DataFrame, strategies: Dict[str, str], diagnostics: ParseDiagnostics) -> List[Trade]:
    title_row = find_section_row(grid, SECTION_POSITIONS)
    if title_row is None:
        diagnostics.default(SECTION_POSITIONS)
        return []

    header_row = title_row + 1
    columns = resolve_position_columns(row_texts(grid, header_row))
    end = find_section_end(grid, header_row, [SECTION_ORDERS, SECTION_DEALS])

    trades = []
    for row in range(header_row + 1, end):
        symbol = clean_text(_value(grid, row, columns, 'symbol'))
        side = clean_text(_value(grid, row, columns, 'type')).lower()
        if not symbol:
            continue
        if side not in TRADE_TYPES:
            diagnostics.skip(f"unknown type '{side}' in position {clean_text(_value(grid, row, columns, 'position'))}")
            continue

        position = clean_text(_value(grid, row, columns, 'position'))
        open_time = parse_date(_value(grid, row, columns, 'open_time'))
        close_time = parse_date(_value(grid, row, columns, 'close_time'))
        if open_time is None or close_time is None:
            diagnostics.skip(f"unreadable time in position {position}")
            continue

        comment = clean_text(_value(grid, row, columns, 'comment'))
        strategy = strategies.get(position) or extract_strategy(comment)

        try:
            trades.append(Trade(
                open_time=open_time,
                position=position,
                symbol=symbol,
                type=side,
                volume=_number(grid, row, columns, 'volume'),
                open_price=_number(grid, row, columns, 'open_price'),
                stop_loss=_number(grid, row, columns, 'stop_loss'),
                take_profit=_number(grid, row, columns, 'take_profit'),
                close_time=close_time,
                close_price=_number(grid, row, columns, 'close_price'),
                commission=_number(grid, row, columns, 'commission'),
                swap=_number(grid, row, columns, 'swap'),
                profit=_number(grid, row, columns, 'profit'),
                comment=comment or None,
                magic_number=_magic_number(_value(grid, row, columns, 'magic_number')),
                strategy=strategy,
            ))
        except ValueError as e:
            diagnostics.skip(str(e))
    return trades

# ==========================================
# SECTION 4: ACCOUNT SNAPSHOT & RESULTS
# ==========================================
def _parse_snapshot(grid: pd.DataFrame) -> Dict[str, float]:
    values = {}
    for label, label_col, value_col, field_name in HISTORY_SNAPSHOT_LABELS:
        rows = grid.index[column_texts(grid, label_col) == label]
        if len(rows):
            number = cell_number(grid, int(rows[0]), value_col)
            if number is not None:
                values[field_name] = number
    return values

def _find_initial_deposit(grid: pd.DataFrame, diagnostics: ParseDiagnostics) -> float:
    deals_row = find_section_row(grid, SECTION_DEALS)
    if deals_row is not None:
        for row in range(deals_row + 1, min(deals_row + DEPOSIT_SCAN_ROWS, len(grid))):
            if cell_text(grid, row, HISTORY_DEAL_TYPE_COL).lower() == 'balance':
                amount = cell_number(grid, row, HISTORY_DEAL_AMOUNT_COL)
                if amount:
                    return amount
                break
    diagnostics.default('initial_deposit')
    return DEFAULT_INITIAL_DEPOSIT

# ==========================================
# SECTION 5: ENTRY POINT
# ==========================================
def parse_trade_history_xlsx(content: bytes, verbose: bool = False) -> ParseResult:
    """
    Parses an MT5 Trade History .xlsx export.

    Args:
        content (bytes): Raw workbook bytes.
        verbose (bool): Echo progress and every defaulted value to stdout.

    Returns:
        ParseResult: A TradeHistoryReport on success; otherwise an 'identity'
        or 'parse' error. Never raises.
    """
    diagnostics = ParseDiagnostics(verbose=verbose)
    try:
        grid = load_grid(content)

        if not contains_text(grid, IDENTITY_MARKERS[TRADE_HISTORY], IDENTITY_SCAN_ROWS):
            return ParseResult.fail(IDENTITY_ERRORS[TRADE_HISTORY], 'identity', diagnostics)

        account_info = extract_account_info_grid(grid)
        trades = parse_positions(grid, parse_order_strategies(grid), diagnostics)

        values: Dict[str, Any] = _parse_snapshot(grid)
        values['initial_deposit'] = _find_initial_deposit(grid, diagnostics)
        if 'equity' not in values and 'balance' in values:
            values['equity'] = values['balance']

        results_row = find_section_row(grid, SECTION_RESULTS)
        if results_row is None:
            diagnostics.default(SECTION_RESULTS)
            values['total_trades'] = len(trades)
        else:
            values.update(read_offset_metrics(grid, results_row, HISTORY_RESULTS_OFFSETS, diagnostics))

        report = TradeHistoryReport.build(account_info, trades, PerformanceMetrics.from_values(values))

        if verbose:
            print(f" [+] Parsed {len(trades)} positions for account {account_info.account_number or '(unknown)'}")
        return ParseResult.ok(report, diagnostics)

    except Exception as e:
        if verbose:
            print(f" [!] Fatal error parsing Trade History workbook: {e}")
        return ParseResult.fail(str(e) or 'Unknown error parsing report', 'parse', diagnostics)
