"""
MT5 Strategy Tester Report Parser (Excel).

Same content as the HTML tester report, flattened onto one worksheet. The
statistics block has no section title; it is anchored on the cell reading
'Bars:' and read at fixed offsets from that row. The deal log follows a
'Deals' title row and ends at the first row without a symbol.
"""
from typing import Any, Iterator, List

import pandas as pd

from .config import (
    BACKTEST,
    BACKTEST_METRICS_ANCHOR,
    BACKTEST_RESULTS_OFFSETS,
    IDENTITY_ERRORS,
    IDENTITY_MARKERS,
    SECTION_DEALS,
)
from .deal_matcher import replay_deal_log
from .grid import cell_text, find_cell, find_section_row, load_grid, row_values
from .header_extractor import extract_backtest_settings_grid
from .metric_scanner import read_offset_metrics
from .models import BacktestMetrics, BacktestReport, ParseDiagnostics, ParseResult


def _deal_rows(grid: pd.DataFrame, diagnostics: ParseDiagnostics) -> Iterator[List[Any]]:
    title_row = find_section_row(grid, SECTION_DEALS, case_sensitive=False)
    if title_row is None:
        diagnostics.default(SECTION_DEALS)
        return
    # title_row + 1 holds the column headers
    for row in range(title_row + 2, len(grid)):
        yield row_values(grid, row)


def parse_backtest_xlsx(content: bytes, verbose: bool = False) -> ParseResult:
    """
    Parses an MT5 Strategy Tester .xlsx report.

    Args:
        content (bytes): Raw workbook bytes.
        verbose (bool): Echo progress and every defaulted value to stdout.

    Returns:
        ParseResult: A BacktestReport on success; otherwise an 'identity' or
        'parse' error. Never raises.
    """
    diagnostics = ParseDiagnostics(verbose=verbose)
    try:
        grid = load_grid(content)

        if IDENTITY_MARKERS[BACKTEST] not in cell_text(grid, 0, 0):
            return ParseResult.fail(IDENTITY_ERRORS[BACKTEST], 'identity', diagnostics)

        settings = extract_backtest_settings_grid(grid)
        replay = replay_deal_log(_deal_rows(grid, diagnostics), diagnostics, stop_at_blank_symbol=True)

        anchor = find_cell(grid, BACKTEST_METRICS_ANCHOR)
        if anchor is None:
            diagnostics.default(BACKTEST_METRICS_ANCHOR)
            values = {}
        else:
            values = read_offset_metrics(grid, anchor[0], BACKTEST_RESULTS_OFFSETS, diagnostics)

        values['initial_deposit'] = replay.initial_deposit
        values['balance'] = replay.final_balance
        values['equity'] = replay.final_balance

        report = BacktestReport.build(settings, replay.trades, BacktestMetrics.from_values(values))

        if verbose:
            print(f" [+] Rebuilt {len(replay.trades)} trades for {settings.expert or 'expert'} on {settings.symbol or 'symbol'}")
        return ParseResult.ok(report, diagnostics)

    except Exception as e:
        if verbose:
            print(f" [!] Fatal error parsing backtest workbook: {e}")
        return ParseResult.fail(str(e) or 'Unknown error parsing backtest report', 'parse', diagnostics)
