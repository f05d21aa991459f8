"""
MT5 Report Domain Model.

Immutable records produced by the report parsers: account identity, backtest
run settings, completed trades and the performance metric blocks of both
report kinds. A parse returns a ParseResult wrapping either a finished report
or a single human-readable error, together with the diagnostics collected
while defaulting missing values.
"""
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .config import (
    BACKTEST,
    DEFAULT_ACCOUNT_TYPE,
    DEFAULT_CURRENCY,
    DEFAULT_HEDGING_MODE,
    DEFAULT_HOLDING_TIME,
    TRADE_HISTORY,
)

InputValue = Union[bool, int, float, str]

TRADE_TYPES = ('buy', 'sell')

# ==========================================
# SECTION 1: HEADER RECORDS
# ==========================================
@dataclass(frozen=True)
class AccountInfo:
    """Identity block of a live Trade History export."""
    name: str = ''
    account_number: str = ''
    company: str = ''
    currency: str = DEFAULT_CURRENCY
    server: str = ''
    account_type: str = DEFAULT_ACCOUNT_TYPE
    hedging_mode: str = DEFAULT_HEDGING_MODE
    report_date: Optional[datetime] = None


@dataclass(frozen=True)
class BacktestSettings:
    """
    Identity of one Strategy Tester run.

    `inputs` is held as an ordered tuple of (name, value) pairs so the
    settings stay hashable; a mapping passed in is converted on construction.
    """
    expert: str = ''
    symbol: str = ''
    period: str = ''
    broker: str = ''
    build: str = ''
    inputs: Tuple[Tuple[str, InputValue], ...] = ()

    def __post_init__(self) -> None:
        pairs = self.inputs.items() if isinstance(self.inputs, Mapping) else self.inputs
        object.__setattr__(self, 'inputs', tuple((str(k), v) for k, v in pairs))

    @property
    def input_map(self) -> Dict[str, InputValue]:
        return dict(self.inputs)


# ==========================================
# SECTION 2: TRADES
# ==========================================
@dataclass(frozen=True)
class Trade:
    """
    One completed round-trip position.

    Net P/L is never stored; it is derived from profit, commission and swap
    through the `net_profit` property.

    Raises:
        ValueError: If the close time precedes the open time or the side is
            neither 'buy' nor 'sell'.
    """
    open_time: datetime
    position: str
    symbol: str
    type: str
    volume: float
    open_price: float
    stop_loss: float
    take_profit: float
    close_time: datetime
    close_price: float
    commission: float
    swap: float
    profit: float
    comment: Optional[str] = None
    magic_number: Optional[int] = None
    strategy: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type not in TRADE_TYPES:
            raise ValueError(f"Unknown trade type '{self.type}' for position {self.position}")
        if self.close_time < self.open_time:
            raise ValueError(
                f"Position {self.position} closes ({self.close_time}) before it opens ({self.open_time})"
            )

    @property
    def net_profit(self) -> float:
        return self.profit + self.commission + self.swap

    @property
    def duration_seconds(self) -> float:
        return (self.close_time - self.open_time).total_seconds()


@dataclass(frozen=True)
class BacktestTrade(Trade):
    """Trade rebuilt from a pair of tester deals."""
    ticket: int = 0
    order: int = 0
    direction: str = 'out'
    balance: float = 0.0

# ==========================================
# SECTION 3: METRICS
# ==========================================
@dataclass(frozen=True)
class PerformanceMetrics:
    # Balance & margin snapshot
    initial_deposit: float = 0.0
    balance: float = 0.0
    equity: float = 0.0
    margin: float = 0.0
    free_margin: float = 0.0
    margin_level: float = 0.0
    floating_pl: float = 0.0
    credit_facility: float = 0.0

    # Profit totals
    total_net_profit: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    profit_factor: float = 0.0
    expected_payoff: float = 0.0

    # Risk
    recovery_factor: float = 0.0
    sharpe_ratio: float = 0.0
    balance_drawdown_absolute: float = 0.0
    balance_drawdown_maximal: float = 0.0
    balance_drawdown_maximal_percent: float = 0.0
    balance_drawdown_relative: float = 0.0
    balance_drawdown_relative_percent: float = 0.0

    # Trade counts
    total_trades: int = 0
    short_trades: int = 0
    short_trades_won: int = 0
    short_trades_won_percent: float = 0.0
    long_trades: int = 0
    long_trades_won: int = 0
    long_trades_won_percent: float = 0.0
    profit_trades: int = 0
    profit_trades_percent: float = 0.0
    loss_trades: int = 0
    loss_trades_percent: float = 0.0

    # Extremes
    largest_profit_trade: float = 0.0
    largest_loss_trade: float = 0.0
    average_profit_trade: float = 0.0
    average_loss_trade: float = 0.0

    # Streaks
    max_consecutive_wins: int = 0
    max_consecutive_wins_money: float = 0.0
    max_consecutive_losses: int = 0
    max_consecutive_losses_money: float = 0.0
    maximal_consecutive_profit: float = 0.0
    maximal_consecutive_profit_count: int = 0
    maximal_consecutive_loss: float = 0.0
    maximal_consecutive_loss_count: int = 0
    average_consecutive_wins: float = 0.0
    average_consecutive_losses: float = 0.0

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_values(cls, values: Dict[str, Any]):
        """Builds a metrics block from a flat mapping, ignoring unknown keys."""
        known = set(cls.field_names())
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass(frozen=True)
class BacktestMetrics(PerformanceMetrics):
    bars: int = 0
    ticks: int = 0
    symbols: int = 1
    equity_drawdown_absolute: float = 0.0
    equity_drawdown_maximal: float = 0.0
    equity_drawdown_maximal_percent: float = 0.0
    equity_drawdown_relative: float = 0.0
    equity_drawdown_relative_percent: float = 0.0
    z_score: float = 0.0
    z_score_percent: float = 0.0
    ahpr: float = 0.0
    ahpr_percent: float = 0.0
    ghpr: float = 0.0
    ghpr_percent: float = 0.0
    lr_correlation: float = 0.0
    lr_standard_error: float = 0.0
    correlation_profits_mfe: float = 0.0
    correlation_profits_mae: float = 0.0
    correlation_mfe_mae: float = 0.0
    min_position_holding_time: str = DEFAULT_HOLDING_TIME
    max_position_holding_time: str = DEFAULT_HOLDING_TIME
    avg_position_holding_time: str = DEFAULT_HOLDING_TIME
    total_deals: int = 0
    on_tester_result: float = 0.0

# ==========================================
# SECTION 4: REPORTS
# ==========================================
def _period_bounds(trades: Tuple[Trade, ...]) -> Tuple[Optional[datetime], Optional[datetime]]:
    if not trades:
        return None, None
    return min(t.open_time for t in trades), max(t.close_time for t in trades)


@dataclass(frozen=True)
class TradeHistoryReport:
    account_info: AccountInfo
    trades: Tuple[Trade, ...]
    metrics: PerformanceMetrics
    report_period_start: Optional[datetime] = None
    report_period_end: Optional[datetime] = None
    uploaded_at: datetime = field(default_factory=datetime.now, compare=False)
    id: Optional[str] = None
    user_id: Optional[str] = None
    type: str = field(default=TRADE_HISTORY, init=False)

    @classmethod
    def build(cls, account_info: AccountInfo, trades: List[Trade], metrics: PerformanceMetrics) -> 'TradeHistoryReport':
        """Assembles a report and derives the period bounds from its trades."""
        trades = tuple(trades)
        start, end = _period_bounds(trades)
        return cls(account_info, trades, metrics, report_period_start=start, report_period_end=end)

    def with_identity(self, report_id: Optional[str] = None, user_id: Optional[str] = None) -> 'TradeHistoryReport':
        return replace(self, id=report_id or str(uuid.uuid4()), user_id=user_id)


@dataclass(frozen=True)
class BacktestReport:
    settings: BacktestSettings
    trades: Tuple[BacktestTrade, ...]
    metrics: BacktestMetrics
    report_period_start: Optional[datetime] = None
    report_period_end: Optional[datetime] = None
    uploaded_at: datetime = field(default_factory=datetime.now, compare=False)
    id: Optional[str] = None
    user_id: Optional[str] = None
    type: str = field(default=BACKTEST, init=False)

    @classmethod
    def build(cls, settings: BacktestSettings, trades: List[BacktestTrade], metrics: BacktestMetrics) -> 'BacktestReport':
        trades = tuple(trades)
        start, end = _period_bounds(trades)
        return cls(settings, trades, metrics, report_period_start=start, report_period_end=end)

    def with_identity(self, report_id: Optional[str] = None, user_id: Optional[str] = None) -> 'BacktestReport':
        return replace(self, id=report_id or str(uuid.uuid4()), user_id=user_id)


Report = Union[TradeHistoryReport, BacktestReport]

# ==========================================
# SECTION 5: PARSE OUTCOME
# ==========================================
@dataclass
class ParseDiagnostics:
    """
    Collects every point where a parser fell back to a default.

    Parsing never aborts on a missing label or a bad row; instead the event is
    recorded here so callers (and tests) can see how much of a document was
    actually recognised. With `verbose` set, each event is also echoed to the
    console in the project's status-line format.
    """
    verbose: bool = False
    defaulted: List[str] = field(default_factory=list)
    skipped_rows: List[str] = field(default_factory=list)
    unmatched_deals: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def default(self, name: str) -> None:
        self.defaulted.append(name)
        if self.verbose:
            print(f" [!] Warning: '{name}' not found, defaulting")

    def skip(self, reason: str) -> None:
        self.skipped_rows.append(reason)
        if self.verbose:
            print(f" [!] Warning: Skipped row ({reason})")

    def unmatched(self, description: str) -> None:
        self.unmatched_deals.append(description)
        if self.verbose:
            print(f" [!] Warning: Unmatched closing deal dropped ({description})")

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        if self.verbose:
            print(f" [!] Warning: {message}")

    def summary(self) -> Dict[str, int]:
        return {
            'defaulted': len(self.defaulted),
            'skipped_rows': len(self.skipped_rows),
            'unmatched_deals': len(self.unmatched_deals),
            'warnings': len(self.warnings),
        }


@dataclass
class ParseResult:
    success: bool
    report: Optional[Report] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    diagnostics: Optional[ParseDiagnostics] = None

    @classmethod
    def ok(cls, report: Report, diagnostics: Optional[ParseDiagnostics] = None) -> 'ParseResult':
        return cls(success=True, report=report, diagnostics=diagnostics)

    @classmethod
    def fail(cls, error: str, error_kind: str = 'parse', diagnostics: Optional[ParseDiagnostics] = None) -> 'ParseResult':
        return cls(success=False, error=error, error_kind=error_kind, diagnostics=diagnostics)
