"""
Backtest Deal Matching.

The Strategy Tester does not list positions, only the deal log: every position
appears as an opening ('in') deal and a later closing ('out') deal. This
module replays that log and pairs the deals back into completed trades.

Opening deals wait in one of two pending pools (long for buy/in, short for
sell/in). A closing deal takes the first entry of the opposing pool with the
same volume. Closes that find no such entry, typically partial closes, are
dropped and reported through the diagnostics.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, NamedTuple, Optional

from .config import DEAL_COLUMNS, DEFAULT_INITIAL_DEPOSIT
from .models import BacktestTrade, ParseDiagnostics
from .value_parsers import clean_text, parse_date, parse_number

# ==========================================
# SECTION 1: DEAL RECORDS
# ==========================================
@dataclass(frozen=True)
class Deal:
    time: datetime
    ticket: int
    symbol: str
    type: str
    direction: str
    volume: float
    price: float
    order: int
    commission: float
    swap: float
    profit: float
    balance: float
    comment: str = ''


def _column(values: List[Any], name: str) -> Any:
    index = DEAL_COLUMNS[name]
    return values[index] if index < len(values) else None

def _float(values: List[Any], name: str) -> float:
    number = parse_number(_column(values, name))
    return number if number is not None else 0.0

def _int(values: List[Any], name: str) -> int:
    return int(_float(values, name))

def deal_from_row(values: List[Any]) -> Optional[Deal]:
    """Builds a Deal from one row of the deal table, or None if its time is unreadable."""
    time = parse_date(_column(values, 'time'))
    if time is None:
        return None
    return Deal(
        time=time,
        ticket=_int(values, 'ticket'),
        symbol=clean_text(_column(values, 'symbol')),
        type=clean_text(_column(values, 'type')).lower(),
        direction=clean_text(_column(values, 'direction')).lower(),
        volume=_float(values, 'volume'),
        price=_float(values, 'price'),
        order=_int(values, 'order'),
        commission=_float(values, 'commission'),
        swap=_float(values, 'swap'),
        profit=_float(values, 'profit'),
        balance=_float(values, 'balance'),
        comment=clean_text(_column(values, 'comment')),
    )

# ==========================================
# SECTION 2: PENDING POOLS
# ==========================================
class PendingPool:
    """Opening deals of one side waiting for their close, in arrival order."""

    def __init__(self) -> None:
        self._entries: List[Deal] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, deal: Deal) -> None:
        self._entries.append(deal)

    def index_of_volume(self, volume: float) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if math.isclose(entry.volume, volume, rel_tol=1e-9, abs_tol=1e-9):
                return index
        return None

    def take(self, index: int) -> Deal:
        return self._entries.pop(index)


class DealMatcher:
    """
    Pairs opening and closing deals into BacktestTrade records.

    Attributes:
        trades (List[BacktestTrade]): Completed trades in closing order.
        long_pool (PendingPool): Open buy positions.
        short_pool (PendingPool): Open sell positions.
    """

    def __init__(self, diagnostics: Optional[ParseDiagnostics] = None) -> None:
        self.diagnostics = diagnostics or ParseDiagnostics()
        self.long_pool = PendingPool()
        self.short_pool = PendingPool()
        self.trades: List[BacktestTrade] = []

    def feed(self, deal: Deal) -> Optional[BacktestTrade]:
        """
        Processes one buy/sell deal.

        Returns:
            Optional[BacktestTrade]: The trade completed by this deal, if any.
        """
        if deal.type not in ('buy', 'sell'):
            self.diagnostics.warn(f"Deal {deal.ticket}: ignored deal type '{deal.type}'")
            return None

        if deal.direction == 'in':
            pool = self.long_pool if deal.type == 'buy' else self.short_pool
            pool.add(deal)
            return None

        if deal.direction != 'out':
            self.diagnostics.warn(f"Deal {deal.ticket}: ignored direction '{deal.direction}'")
            return None

        # A sell closes a long, a buy closes a short
        pool = self.long_pool if deal.type == 'sell' else self.short_pool
        index = pool.index_of_volume(deal.volume)
        if index is None:
            self.diagnostics.unmatched(f"deal {deal.ticket} {deal.type} {deal.volume} {deal.symbol}")
            return None

        opening = pool.take(index)
        try:
            trade = _complete_trade(opening, deal)
        except ValueError as e:
            self.diagnostics.skip(str(e))
            return None

        self.trades.append(trade)
        return trade

    @property
    def pending(self) -> int:
        return len(self.long_pool) + len(self.short_pool)


def _complete_trade(opening: Deal, closing: Deal) -> BacktestTrade:
    return BacktestTrade(
        open_time=opening.time,
        position=str(opening.ticket),
        symbol=opening.symbol or closing.symbol,
        type=opening.type,
        volume=opening.volume,
        open_price=opening.price,
        stop_loss=0.0,
        take_profit=0.0,
        close_time=closing.time,
        close_price=closing.price,
        commission=closing.commission,
        swap=closing.swap,
        profit=closing.profit,
        comment=closing.comment or opening.comment or None,
        ticket=opening.ticket,
        order=closing.order,
        direction='out',
        balance=closing.balance,
    )

# ==========================================
# SECTION 3: DEAL LOG REPLAY
# ==========================================
class DealReplay(NamedTuple):
    trades: List[BacktestTrade]
    initial_deposit: float
    final_balance: float


def replay_deal_log(
    rows: Iterable[List[Any]],
    diagnostics: ParseDiagnostics,
    stop_at_blank_symbol: bool = False
) -> DealReplay:
    """
    Replays a chronological deal log.

    The first positive 'balance' row before any trade seeds the initial
    deposit (default 10000). The final balance is the running balance of the
    last deal processed.

    Args:
        rows (Iterable[List[Any]]): Raw deal rows laid out per DEAL_COLUMNS.
        diagnostics (ParseDiagnostics): Collects skipped and unmatched deals.
        stop_at_blank_symbol (bool): End the log at the first row without a
            symbol (spreadsheet exports) instead of skipping it.

    Returns:
        DealReplay: Completed trades, initial deposit and final balance.
    """
    matcher = DealMatcher(diagnostics)
    initial_deposit = DEFAULT_INITIAL_DEPOSIT
    final_balance = None

    for values in rows:
        deal_type = clean_text(_column(values, 'type')).lower()
        if deal_type == 'balance':
            amount = parse_number(_column(values, 'balance'))
            if not matcher.trades and final_balance is None and amount and amount > 0:
                initial_deposit = amount
            continue

        if not clean_text(_column(values, 'symbol')):
            if stop_at_blank_symbol:
                break
            continue

        deal = deal_from_row(values)
        if deal is None:
            diagnostics.skip(f"deal with unreadable time '{clean_text(_column(values, 'time'))}'")
            continue

        if deal.balance:
            final_balance = deal.balance
        matcher.feed(deal)

    if matcher.pending:
        diagnostics.warn(f"{matcher.pending} position(s) still open at the end of the deal log")

    return DealReplay(
        trades=matcher.trades,
        initial_deposit=initial_deposit,
        final_balance=final_balance if final_balance is not None else initial_deposit,
    )
