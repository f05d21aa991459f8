"""
MT5 Trade History Report Parser (HTML).

Parses the HTML 'Trade History Report' exported from the MetaTrader 5
terminal. The document is one wide table split into titled sections
(Positions, Orders, Deals, Summary/Results). There are no CSS classes on data
rows; the only reliable data-row signal is the alternating background colour
the terminal paints on them.

Output is a TradeHistoryReport with:
1. Account info read from the <th> header rows.
2. One Trade per Positions row.
3. Performance metrics read by label from the Results block.
"""
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .config import (
    HISTORY_DEAL_AMOUNT_COL,
    HISTORY_DEAL_TYPE_COL,
    HISTORY_METRIC_LABELS,
    IDENTITY_ERRORS,
    IDENTITY_MARKERS,
    MIN_POSITION_CELLS,
    POSITION_COLUMNS,
    POSITIONS_HEADER_COLSPAN,
    SECTION_DEALS,
    SECTION_POSITIONS,
    TRADE_HISTORY,
    ZEBRA_COLORS,
)
from .header_extractor import extract_account_info_html
from .metric_scanner import html_cell_text, scan_html_metrics
from .models import TRADE_TYPES, ParseDiagnostics, ParseResult, PerformanceMetrics, Trade, TradeHistoryReport
from .value_parsers import extract_strategy, parse_date, parse_number

# ==========================================
# SECTION 1: DOCUMENT STRUCTURE
# ==========================================
def has_identity_marker(soup: BeautifulSoup, marker: str) -> bool:
    """True if the report title or any header text carries `marker`."""
    title = soup.find('title')
    if title is not None and marker in title.get_text():
        return True
    return soup.find(string=lambda s: s is not None and marker in s) is not None

def _is_section_header(tr: Tag) -> bool:
    return tr.find('th', attrs={'colspan': POSITIONS_HEADER_COLSPAN}) is not None

def _section_rows(soup: BeautifulSoup, section: str) -> Optional[List[Tag]]:
    """
    Returns the rows between a section title and the next section title.

    Section titles are <th colspan="14"> cells; the first table holding a
    matching title is used.
    """
    for table in soup.find_all('table'):
        rows = table.find_all('tr')
        for index, tr in enumerate(rows):
            header = tr.find('th', attrs={'colspan': POSITIONS_HEADER_COLSPAN})
            if header is None or section not in html_cell_text(header):
                continue
            body = []
            for row in rows[index + 1:]:
                if _is_section_header(row):
                    break
                body.append(row)
            return body
    return None

def _is_zebra_row(tr: Tag) -> bool:
    return (tr.get('bgcolor') or '').upper() in ZEBRA_COLORS

# ==========================================
# SECTION 2: POSITIONS
# ==========================================
def _number(texts: List[str], column: str) -> float:
    value = parse_number(texts[POSITION_COLUMNS[column]])
    return value if value is not None else 0.0

def _trade_from_cells(texts: List[str]) -> Trade:
    open_time = parse_date(texts[POSITION_COLUMNS['open_time']])
    close_time = parse_date(texts[POSITION_COLUMNS['close_time']])
    if open_time is None or close_time is None:
        raise ValueError(f"unreadable time in position {texts[POSITION_COLUMNS['position']]}")

    side = texts[POSITION_COLUMNS['type']].lower()
    if side not in TRADE_TYPES:
        raise ValueError(f"unknown type '{side}' in position {texts[POSITION_COLUMNS['position']]}")

    # Optional trailing comment column
    comment = texts[MIN_POSITION_CELLS] if len(texts) > MIN_POSITION_CELLS and texts[MIN_POSITION_CELLS] else None

    return Trade(
        open_time=open_time,
        position=texts[POSITION_COLUMNS['position']],
        symbol=texts[POSITION_COLUMNS['symbol']],
        type=side,
        volume=_number(texts, 'volume'),
        open_price=_number(texts, 'open_price'),
        stop_loss=_number(texts, 'stop_loss'),
        take_profit=_number(texts, 'take_profit'),
        close_time=close_time,
        close_price=_number(texts, 'close_price'),
        commission=_number(texts, 'commission'),
        swap=_number(texts, 'swap'),
        profit=_number(texts, 'profit'),
        comment=comment,
        strategy=extract_strategy(comment),
    )

def parse_positions(soup: BeautifulSoup, diagnostics: ParseDiagnostics) -> List[Trade]:
    rows = _section_rows(soup, SECTION_POSITIONS)
    if rows is None:
        diagnostics.default(SECTION_POSITIONS)
        return []

    trades = []
    for tr in rows:
        if not _is_zebra_row(tr):
            continue
        texts = [html_cell_text(td) for td in tr.find_all('td')]
        if len(texts) < MIN_POSITION_CELLS:
            continue
        try:
            trades.append(_trade_from_cells(texts))
        except ValueError as e:
            diagnostics.skip(str(e))
    return trades

# ==========================================
# SECTION 3: DEPOSIT FALLBACK
# ==========================================
def _deposit_from_deals(soup: BeautifulSoup) -> Optional[float]:
    """Amount of the first 'balance' deal, used when no 'Deposit:' label exists."""
    rows = _section_rows(soup, SECTION_DEALS)
    if not rows:
        return None
    for tr in rows:
        texts = [html_cell_text(td) for td in tr.find_all('td')]
        if len(texts) > HISTORY_DEAL_AMOUNT_COL and texts[HISTORY_DEAL_TYPE_COL].lower() == 'balance':
            return parse_number(texts[HISTORY_DEAL_AMOUNT_COL])
    return None

# ==========================================
# SECTION 4: ENTRY POINT
# ==========================================
def parse_trade_history_html(html: str, verbose: bool = False) -> ParseResult:
    """
    Parses an MT5 Trade History HTML export.

    Args:
        html (str): Decoded document text.
        verbose (bool): Echo progress and every defaulted value to stdout.

    Returns:
        ParseResult: A TradeHistoryReport on success; otherwise an 'identity'
        or 'parse' error. Never raises.
    """
    diagnostics = ParseDiagnostics(verbose=verbose)
    try:
        soup = BeautifulSoup(html, 'html.parser')

        if not has_identity_marker(soup, IDENTITY_MARKERS[TRADE_HISTORY]):
            return ParseResult.fail(IDENTITY_ERRORS[TRADE_HISTORY], 'identity', diagnostics)

        account_info = extract_account_info_html(soup)
        trades = parse_positions(soup, diagnostics)

        values = scan_html_metrics(soup, HISTORY_METRIC_LABELS, diagnostics, bold_only=True)
        if 'initial_deposit' not in values:
            deposit = _deposit_from_deals(soup)
            if deposit is not None:
                values['initial_deposit'] = deposit

        report = TradeHistoryReport.build(account_info, trades, PerformanceMetrics.from_values(values))

        if verbose:
            print(f" [+] Parsed {len(trades)} positions for account {account_info.account_number or '(unknown)'}")
        return ParseResult.ok(report, diagnostics)

    except Exception as e:
        if verbose:
            print(f" [!] Fatal error parsing Trade History report: {e}")
        return ParseResult.fail(str(e) or 'Unknown error parsing report', 'parse', diagnostics)
