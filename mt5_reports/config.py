# ==========================================
# 0. ACCOUNT DEFAULTS
# ==========================================

# Used when the account header cannot be decomposed
DEFAULT_CURRENCY = 'USD'
DEFAULT_ACCOUNT_TYPE = 'real'
DEFAULT_HEDGING_MODE = 'Hedge'

# Starting balance assumed when a deal log carries no balance row
DEFAULT_INITIAL_DEPOSIT = 10000.0

# Strategy Tester prints holding times as H:MM:SS
DEFAULT_HOLDING_TIME = '0:00:00'

# ==========================================
# 1. REPORT IDENTITY
# ==========================================

TRADE_HISTORY = 'trade-history'
BACKTEST = 'backtest'

REPORT_KINDS = [TRADE_HISTORY, BACKTEST]

# Phrases every genuine export carries in its title or first cell
IDENTITY_MARKERS = {
    TRADE_HISTORY: 'Trade History Report',
    BACKTEST: 'Strategy Tester Report',
}

IDENTITY_ERRORS = {
    TRADE_HISTORY: 'This does not appear to be an MT5 Trade History Report. Please upload a Trade History Report.',
    BACKTEST: 'This does not appear to be an MT5 Backtest Report. Please upload a Strategy Tester Report.',
}

# Rows of a spreadsheet searched for the identity phrase
IDENTITY_SCAN_ROWS = 10

# ==========================================
# 2. UPLOAD SLOTS & EXTENSIONS
# ==========================================

HTML_EXTENSIONS = ('.html', '.htm')
XLSX_EXTENSIONS = ('.xlsx',)
SUPPORTED_EXTENSIONS = HTML_EXTENSIONS + XLSX_EXTENSIONS

# Each upload target accepts one report kind and a fixed set of extensions
UPLOAD_SLOTS = {
    'trade-history': {'kind': TRADE_HISTORY, 'extensions': HTML_EXTENSIONS},
    'trade-history-spreadsheet': {'kind': TRADE_HISTORY, 'extensions': XLSX_EXTENSIONS},
    'backtest': {'kind': BACKTEST, 'extensions': XLSX_EXTENSIONS},
    'backtest-html': {'kind': BACKTEST, 'extensions': HTML_EXTENSIONS},
}

EXTENSION_ERRORS = {
    HTML_EXTENSIONS: 'Please upload an HTML file (.html or .htm)',
    XLSX_EXTENSIONS: 'Please upload an Excel file (.xlsx)',
}

UNSUPPORTED_EXTENSION_ERROR = 'Unsupported file type. Please upload an HTML (.html, .htm) or Excel (.xlsx) report.'

# MT5 writes HTML exports as UTF-16LE; the rest are tried in order
FALLBACK_ENCODINGS = ['utf-8', 'cp1252', 'latin-1']

# ==========================================
# 3. HTML LAYOUT MARKERS
# ==========================================

# Alternating row colours that flag data rows in the history export
ZEBRA_COLORS = ('#FFFFFF', '#F7F7F7')

# The Positions section header spans the full table width
POSITIONS_HEADER_COLSPAN = '14'

# Minimum cell counts for a row to be treated as a trade / deal
MIN_POSITION_CELLS = 13
MIN_DEAL_CELLS = 12

# Header labels of the history account block
ACCOUNT_LABELS = {
    'Name:': 'name',
    'Account:': 'account',
    'Company:': 'company',
    'Date:': 'report_date',
}

# Settings labels of the backtest header block
SETTINGS_LABELS = {
    'Expert:': 'expert',
    'Symbol:': 'symbol',
    'Period:': 'period',
}

INPUTS_LABEL = 'Inputs:'

# ==========================================
# 4. SECTION NAMES
# ==========================================

SECTION_POSITIONS = 'Positions'
SECTION_ORDERS = 'Orders'
SECTION_DEALS = 'Deals'
SECTION_RESULTS = 'Results'

# Cell text anchoring the backtest results block in spreadsheets
BACKTEST_METRICS_ANCHOR = 'Bars:'

# Header rows of the spreadsheet export are scanned up to this row
HEADER_SCAN_ROWS = 20

# Balance row searched this many rows below the Deals title
DEPOSIT_SCAN_ROWS = 10

# ==========================================
# 5. METRIC LABEL TABLES (HTML)
# ==========================================
# Each entry: (label prefix, value kind, target field(s))
# Value kinds are resolved in value_parsers.parse_metric_value.

HISTORY_METRIC_LABELS = [
    # Account snapshot
    ('Deposit:', 'number', ('initial_deposit',)),
    ('Balance:', 'number', ('balance',)),
    ('Equity:', 'number', ('equity',)),
    ('Margin:', 'number', ('margin',)),
    ('Free Margin:', 'number', ('free_margin',)),
    ('Margin Level:', 'percent', ('margin_level',)),
    ('Floating P/L:', 'number', ('floating_pl',)),
    ('Credit Facility:', 'number', ('credit_facility',)),

    # Profit
    ('Total Net Profit:', 'number', ('total_net_profit',)),
    ('Gross Profit:', 'number', ('gross_profit',)),
    ('Gross Loss:', 'number', ('gross_loss',)),
    ('Profit Factor:', 'number', ('profit_factor',)),
    ('Expected Payoff:', 'number', ('expected_payoff',)),

    # Risk
    ('Recovery Factor:', 'number', ('recovery_factor',)),
    ('Sharpe Ratio:', 'number', ('sharpe_ratio',)),
    ('Balance Drawdown Absolute:', 'number', ('balance_drawdown_absolute',)),
    ('Balance Drawdown Maximal:', 'amount_percent', ('balance_drawdown_maximal', 'balance_drawdown_maximal_percent')),
    ('Balance Drawdown Relative:', 'percent_amount', ('balance_drawdown_relative', 'balance_drawdown_relative_percent')),

    # Trade counts
    ('Total Trades:', 'int', ('total_trades',)),
    ('Short Trades (won %):', 'count_won', ('short_trades', 'short_trades_won', 'short_trades_won_percent')),
    ('Long Trades (won %):', 'count_won', ('long_trades', 'long_trades_won', 'long_trades_won_percent')),
    ('Profit Trades (% of total):', 'count_percent', ('profit_trades', 'profit_trades_percent')),
    ('Loss Trades (% of total):', 'count_percent', ('loss_trades', 'loss_trades_percent')),

    # Extremes
    ('Largest profit trade:', 'number', ('largest_profit_trade',)),
    ('Largest loss trade:', 'number', ('largest_loss_trade',)),
    ('Average profit trade:', 'number', ('average_profit_trade',)),
    ('Average loss trade:', 'number', ('average_loss_trade',)),

    # Streaks
    ('Maximum consecutive wins', 'count_money', ('max_consecutive_wins', 'max_consecutive_wins_money')),
    ('Maximum consecutive losses', 'count_money', ('max_consecutive_losses', 'max_consecutive_losses_money')),
    ('Maximal consecutive profit', 'money_count', ('maximal_consecutive_profit', 'maximal_consecutive_profit_count')),
    ('Maximal consecutive loss', 'money_count', ('maximal_consecutive_loss', 'maximal_consecutive_loss_count')),
    ('Average consecutive wins:', 'number', ('average_consecutive_wins',)),
    ('Average consecutive losses:', 'number', ('average_consecutive_losses',)),
]

# Snapshot and margin rows are absent from tester output
_HISTORY_ONLY_LABELS = {'Deposit:', 'Balance:', 'Equity:', 'Margin:', 'Free Margin:', 'Floating P/L:', 'Credit Facility:'}

BACKTEST_METRIC_LABELS = [
    ('Bars:', 'int', ('bars',)),
    ('Ticks:', 'int', ('ticks',)),
    ('Symbols:', 'int', ('symbols',)),
    ('Equity Drawdown Absolute:', 'number', ('equity_drawdown_absolute',)),
    ('Equity Drawdown Maximal:', 'amount_percent', ('equity_drawdown_maximal', 'equity_drawdown_maximal_percent')),
    ('Equity Drawdown Relative:', 'percent_amount', ('equity_drawdown_relative', 'equity_drawdown_relative_percent')),
    ('Z-Score:', 'value_percent', ('z_score', 'z_score_percent')),
    ('AHPR:', 'value_percent', ('ahpr', 'ahpr_percent')),
    ('GHPR:', 'value_percent', ('ghpr', 'ghpr_percent')),
    ('LR Correlation:', 'number', ('lr_correlation',)),
    ('LR Standard Error:', 'number', ('lr_standard_error',)),
    ('OnTester result:', 'number', ('on_tester_result',)),
    ('Correlation (Profits,MFE):', 'number', ('correlation_profits_mfe',)),
    ('Correlation (Profits,MAE):', 'number', ('correlation_profits_mae',)),
    ('Correlation (MFE,MAE):', 'number', ('correlation_mfe_mae',)),
    ('Minimal position holding time:', 'text', ('min_position_holding_time',)),
    ('Maximal position holding time:', 'text', ('max_position_holding_time',)),
    ('Average position holding time:', 'text', ('avg_position_holding_time',)),
    ('Total Deals:', 'int', ('total_deals',)),
] + [entry for entry in HISTORY_METRIC_LABELS if entry[0] not in _HISTORY_ONLY_LABELS]

# ==========================================
# 6. METRIC OFFSET TABLES (SPREADSHEET)
# ==========================================
# Each entry: (row offset from anchor, column, value kind, target field(s))

# Anchored on the 'Results' section title
HISTORY_RESULTS_OFFSETS = [
    (1, 3, 'number', ('total_net_profit',)),
    (1, 7, 'number', ('gross_profit',)),
    (1, 11, 'number', ('gross_loss',)),
    (2, 3, 'number', ('profit_factor',)),
    (2, 7, 'number', ('expected_payoff',)),
    (3, 3, 'number', ('recovery_factor',)),
    (3, 7, 'number', ('sharpe_ratio',)),
    (5, 3, 'number', ('balance_drawdown_absolute',)),
    (5, 7, 'amount_percent', ('balance_drawdown_maximal', 'balance_drawdown_maximal_percent')),
    (5, 11, 'percent_amount', ('balance_drawdown_relative', 'balance_drawdown_relative_percent')),
    (6, 3, 'int', ('total_trades',)),
    (6, 7, 'count_won', ('short_trades', 'short_trades_won', 'short_trades_won_percent')),
    (6, 11, 'count_won', ('long_trades', 'long_trades_won', 'long_trades_won_percent')),
    (7, 7, 'count_percent', ('profit_trades', 'profit_trades_percent')),
    (7, 11, 'count_percent', ('loss_trades', 'loss_trades_percent')),
    (8, 7, 'number', ('largest_profit_trade',)),
    (8, 11, 'number', ('largest_loss_trade',)),
    (9, 7, 'number', ('average_profit_trade',)),
    (9, 11, 'number', ('average_loss_trade',)),
    (10, 7, 'count_money', ('max_consecutive_wins', 'max_consecutive_wins_money')),
    (10, 11, 'count_money', ('max_consecutive_losses', 'max_consecutive_losses_money')),
    (11, 7, 'money_count', ('maximal_consecutive_profit', 'maximal_consecutive_profit_count')),
    (11, 11, 'money_count', ('maximal_consecutive_loss', 'maximal_consecutive_loss_count')),
    (12, 7, 'number', ('average_consecutive_wins',)),
    (12, 11, 'number', ('average_consecutive_losses',)),
]

# Anchored on the row holding the 'Bars:' cell
BACKTEST_RESULTS_OFFSETS = [
    (0, 3, 'int', ('bars',)),
    (0, 7, 'int', ('ticks',)),
    (0, 11, 'int', ('symbols',)),
    (1, 3, 'number', ('total_net_profit',)),
    (1, 7, 'number', ('balance_drawdown_absolute',)),
    (1, 11, 'number', ('equity_drawdown_absolute',)),
    (2, 3, 'number', ('gross_profit',)),
    (2, 7, 'amount_percent', ('balance_drawdown_maximal', 'balance_drawdown_maximal_percent')),
    (2, 11, 'amount_percent', ('equity_drawdown_maximal', 'equity_drawdown_maximal_percent')),
    (3, 3, 'number', ('gross_loss',)),
    (3, 7, 'percent_amount', ('balance_drawdown_relative', 'balance_drawdown_relative_percent')),
    (3, 11, 'percent_amount', ('equity_drawdown_relative', 'equity_drawdown_relative_percent')),
    (5, 3, 'number', ('profit_factor',)),
    (5, 7, 'number', ('expected_payoff',)),
    (5, 11, 'percent', ('margin_level',)),
    (6, 3, 'number', ('recovery_factor',)),
    (6, 7, 'number', ('sharpe_ratio',)),
    (6, 11, 'value_percent', ('z_score', 'z_score_percent')),
    (7, 3, 'value_percent', ('ahpr', 'ahpr_percent')),
    (7, 7, 'number', ('lr_correlation',)),
    (7, 11, 'number', ('on_tester_result',)),
    (8, 3, 'value_percent', ('ghpr', 'ghpr_percent')),
    (8, 7, 'number', ('lr_standard_error',)),
    (10, 3, 'number', ('correlation_profits_mfe',)),
    (10, 7, 'number', ('correlation_profits_mae',)),
    (10, 11, 'number', ('correlation_mfe_mae',)),
    (11, 3, 'text', ('min_position_holding_time',)),
    (11, 7, 'text', ('max_position_holding_time',)),
    (11, 11, 'text', ('avg_position_holding_time',)),
    (13, 3, 'int', ('total_trades',)),
    (13, 7, 'count_won', ('short_trades', 'short_trades_won', 'short_trades_won_percent')),
    (13, 11, 'count_won', ('long_trades', 'long_trades_won', 'long_trades_won_percent')),
    (14, 3, 'int', ('total_deals',)),
    (14, 7, 'count_percent', ('profit_trades', 'profit_trades_percent')),
    (14, 11, 'count_percent', ('loss_trades', 'loss_trades_percent')),
    (15, 7, 'number', ('largest_profit_trade',)),
    (15, 11, 'number', ('largest_loss_trade',)),
    (16, 7, 'number', ('average_profit_trade',)),
    (16, 11, 'number', ('average_loss_trade',)),
    (17, 7, 'count_money', ('max_consecutive_wins', 'max_consecutive_wins_money')),
    (17, 11, 'count_money', ('max_consecutive_losses', 'max_consecutive_losses_money')),
    (18, 7, 'money_count', ('maximal_consecutive_profit', 'maximal_consecutive_profit_count')),
    (18, 11, 'money_count', ('maximal_consecutive_loss', 'maximal_consecutive_loss_count')),
    (19, 7, 'number', ('average_consecutive_wins',)),
    (19, 11, 'number', ('average_consecutive_losses',)),
]

# Snapshot labels of the history spreadsheet: label column -> value column
HISTORY_SNAPSHOT_LABELS = [
    ('Balance:', 0, 3, 'balance'),
    ('Equity:', 0, 3, 'equity'),
    ('Credit Facility:', 0, 3, 'credit_facility'),
    ('Floating P/L:', 0, 3, 'floating_pl'),
    ('Free Margin:', 6, 9, 'free_margin'),
    ('Margin:', 6, 9, 'margin'),
    ('Margin Level:', 6, 9, 'margin_level'),
]

# ==========================================
# 7. TABLE COLUMN LAYOUTS
# ==========================================

# History HTML Positions rows (fixed offsets)
POSITION_COLUMNS = {
    'open_time': 0,
    'position': 1,
    'symbol': 2,
    'type': 3,
    'volume': 4,
    'open_price': 5,
    'stop_loss': 6,
    'take_profit': 7,
    'close_time': 8,
    'close_price': 9,
    'commission': 10,
    'swap': 11,
    'profit': 12,
}

# Deal log of both backtest exports
DEAL_COLUMNS = {
    'time': 0,
    'ticket': 1,
    'symbol': 2,
    'type': 3,
    'direction': 4,
    'volume': 5,
    'price': 6,
    'order': 7,
    'commission': 8,
    'swap': 9,
    'profit': 10,
    'balance': 11,
    'comment': 12,
}

# History spreadsheet Deals rows used for the deposit lookup
HISTORY_DEAL_TYPE_COL = 3
HISTORY_DEAL_AMOUNT_COL = 11

# Positions header keywords resolved by substring (first match wins)
POSITION_HEADER_KEYWORDS = {
    'position': ('position', 'ticket'),
    'symbol': ('symbol',),
    'type': ('type',),
    'volume': ('volume',),
    'stop_loss': ('s / l', 'stop'),
    'take_profit': ('t / p', 'take'),
    'commission': ('commission',),
    'swap': ('swap',),
    'profit': ('profit',),
    'comment': ('comment',),
    'magic_number': ('magic',),
}

# ==========================================
# 8. STRATEGY NAME PATTERNS
# ==========================================
# Tried in order against order / position comments
STRATEGY_PATTERNS = [
    r'\[([^\]]+)\]',
    r'\{([^}]+)\}',
    r'^([A-Z][A-Za-z0-9_]+)',
]

# ==========================================
# 9. STORAGE & ANALYTICS
# ==========================================

STORAGE_DIR = 'data/saved_reports'

NO_MAGIC_LABEL = 'No Magic Number'
NO_STRATEGY_LABEL = 'No Strategy'
