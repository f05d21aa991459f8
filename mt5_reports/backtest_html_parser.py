"""
MT5 Strategy Tester Report Parser (HTML).

The tester report lists settings and statistics as label/value cell pairs,
followed by the order and deal logs. Positions are not listed; they are
rebuilt from the deal log by the DealMatcher.
"""
from typing import List

from bs4 import BeautifulSoup, Tag

from .config import (
    BACKTEST,
    BACKTEST_METRIC_LABELS,
    IDENTITY_ERRORS,
    IDENTITY_MARKERS,
    MIN_DEAL_CELLS,
    SECTION_DEALS,
)
from .deal_matcher import replay_deal_log
from .header_extractor import extract_backtest_settings_html
from .metric_scanner import html_cell_text, scan_html_metrics
from .models import BacktestMetrics, BacktestReport, ParseDiagnostics, ParseResult


def _deal_rows(soup: BeautifulSoup) -> List[List[str]]:
    """
    Collects the cell texts of every coloured row with a full deal layout.

    Rows before the 'Deals' heading (the Orders log shares the same shape)
    are ignored when the heading is present.
    """
    rows = soup.find_all('tr')
    start = 0
    for index, tr in enumerate(rows):
        if any(html_cell_text(cell) == SECTION_DEALS for cell in tr.find_all(['th', 'td'])):
            start = index + 1
            break

    deal_rows = []
    for tr in rows[start:]:
        if not tr.has_attr('bgcolor'):
            continue
        cells: List[Tag] = tr.find_all('td')
        if len(cells) < MIN_DEAL_CELLS:
            continue
        deal_rows.append([html_cell_text(td) for td in cells])
    return deal_rows


def parse_backtest_html(html: str, verbose: bool = False) -> ParseResult:
    """
    Parses an MT5 Strategy Tester HTML report.

    Balance, equity and initial deposit come from the replayed deal log rather
    than from the statistics block.

    Args:
        html (str): Decoded document text.
        verbose (bool): Echo progress and every defaulted value to stdout.

    Returns:
        ParseResult: A BacktestReport on success; otherwise an 'identity' or
        'parse' error. Never raises.
    """
    diagnostics = ParseDiagnostics(verbose=verbose)
    try:
        soup = BeautifulSoup(html, 'html.parser')

        title = soup.find('title')
        if title is None or IDENTITY_MARKERS[BACKTEST] not in title.get_text():
            return ParseResult.fail(IDENTITY_ERRORS[BACKTEST], 'identity', diagnostics)

        settings = extract_backtest_settings_html(soup)
        replay = replay_deal_log(_deal_rows(soup), diagnostics)

        values = scan_html_metrics(soup, BACKTEST_METRIC_LABELS, diagnostics, bold_only=False)
        values['initial_deposit'] = replay.initial_deposit
        values['balance'] = replay.final_balance
        values['equity'] = replay.final_balance

        report = BacktestReport.build(settings, replay.trades, BacktestMetrics.from_values(values))

        if verbose:
            print(f" [+] Rebuilt {len(replay.trades)} trades for {settings.expert or 'expert'} on {settings.symbol or 'symbol'}")
        return ParseResult.ok(report, diagnostics)

    except Exception as e:
        if verbose:
            print(f" [!] Fatal error parsing backtest report: {e}")
        return ParseResult.fail(str(e) or 'Unknown error parsing backtest report', 'parse', diagnostics)
