"""
Synthetic MT5 exports for the test suites.

HTML documents are assembled as strings shaped like the terminal output;
spreadsheets are written with openpyxl into memory so every test gets a fresh
workbook without touching the disk.
"""
from datetime import datetime
from io import BytesIO

from openpyxl import Workbook

# ==========================================
# HELPERS
# ==========================================
def _tds(values):
    return ''.join(f'<td>{v}</td>' for v in values)

def _money(value):
    return f'{value:,.2f}'.replace(',', ' ')

def sheet_row(cells, width=15):
    """Builds a sheet row from a {column: value} mapping."""
    row = [None] * width
    for col, value in cells.items():
        row[col] = value
    return row

def workbook_bytes(rows):
    workbook = Workbook()
    sheet = workbook.active
    for r, row in enumerate(rows, start=1):
        for c, value in enumerate(row, start=1):
            if value is not None and value != '':
                sheet.cell(row=r, column=c, value=value)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()

# ==========================================
# TRADE HISTORY (HTML)
# ==========================================
HISTORY_POSITION = [
    '2024.01.02 10:00:00', '1001', 'EURUSD', 'buy', '0.10', '1.10000', '', '',
    '2024.01.02 12:00:00', '1.11000', '-2.00', '-1.00', '100.00',
]

HISTORY_METRICS = [
    ('Balance:', '10 097.00'),
    ('Equity:', '10 097.00'),
    ('Free Margin:', '10 097.00'),
    ('Margin:', '0.00'),
    ('Total Net Profit:', '97.00'),
    ('Gross Profit:', '97.00'),
    ('Gross Loss:', '0.00'),
    ('Profit Factor:', '0.00'),
    ('Expected Payoff:', '97.00'),
    ('Balance Drawdown Maximal:', '0.00 (0.00%)'),
    ('Balance Drawdown Relative:', '0.00% (0.00)'),
    ('Total Trades:', '1'),
    ('Short Trades (won %):', '0 (0.00%)'),
    ('Long Trades (won %):', '1 (100.00%)'),
    ('Profit Trades (% of total):', '1 (100.00%)'),
    ('Loss Trades (% of total):', '0 (0.00%)'),
    ('Maximum consecutive wins ($):', '1 (97.00)'),
    ('Maximal consecutive profit (count):', '97.00 (1)'),
]

# HTML rendition of the account exported by history_xlsx_rows()
PAIRED_HISTORY_POSITIONS = [
    ['2024.01.02 10:00:00', '1001', 'EURUSD', 'buy', '0.10', '1.10000', '', '',
     '2024.01.02 12:00:00', '1.11000', '-2.00', '-1.00', '100.00', '[Breakout] v1'],
    ['2024.01.03 09:00:00', '1002', 'GBPUSD', 'sell', '0.20', '1.27000', '', '',
     '2024.01.03 12:00:00', '1.27250', '0.00', '0.00', '-50.00', 'Scalper entry'],
]

PAIRED_HISTORY_METRICS = [
    ('Balance:', '10 047.00'),
    ('Equity:', '10 047.00'),
    ('Total Net Profit:', '47.00'),
    ('Gross Profit:', '97.00'),
    ('Gross Loss:', '-50.00'),
    ('Profit Factor:', '1.94'),
    ('Expected Payoff:', '23.50'),
    ('Total Trades:', '2'),
    ('Profit Trades (% of total):', '1 (50.00%)'),
    ('Loss Trades (% of total):', '1 (50.00%)'),
]

def history_html(positions=None, metrics=None, deposit_label=None, deal_deposit='10 000.00',
                 title='5551234: Trade History Report'):
    """
    Trade History export with one Positions block, a Deals block holding the
    opening balance deal and a Results block.
    """
    positions = [HISTORY_POSITION] if positions is None else positions
    metrics = HISTORY_METRICS if metrics is None else metrics

    position_rows = ''.join(
        f'<tr bgcolor="{"#FFFFFF" if i % 2 == 0 else "#F7F7F7"}" align="right">{_tds(p)}</tr>'
        for i, p in enumerate(positions)
    )

    deal_rows = ''
    if deal_deposit is not None:
        deal = ['2024.01.01 00:00:00', '1', '', 'balance', '', '', '', '', '0.00', '0.00', '0.00',
                deal_deposit, deal_deposit, '']
        deal_rows = f'<tr bgcolor="#FFFFFF" align="right">{_tds(deal)}</tr>'

    metric_rows = ''.join(
        f'<tr align="right"><td colspan="3">{label}</td><td><b>{value}</b></td></tr>'
        for label, value in metrics
    )
    if deposit_label is not None:
        metric_rows += f'<tr align="right"><td colspan="3">Deposit:</td><td><b>{deposit_label}</b></td></tr>'

    return f"""<html><head><title>{title}</title></head><body>
<table cellspacing="1" cellpadding="3" border="0">
<tr align="center"><th colspan="14"><div style="font: 14pt"><b>Trade History Report</b></div></th></tr>
<tr align="left"><th colspan="4">Name:</th><th colspan="10"><b>John Doe*</b></th></tr>
<tr align="left"><th colspan="4">Account:</th><th colspan="10"><b>5551234 (USD, Broker-Server, real, Hedge)</b></th></tr>
<tr align="left"><th colspan="4">Company:</th><th colspan="10"><b>Broker Ltd</b></th></tr>
<tr align="left"><th colspan="4">Date:</th><th colspan="10"><b>2024.02.01 09:00</b></th></tr>
<tr align="center"><th colspan="14"><div><b>Positions</b></div></th></tr>
<tr bgcolor="#E5F0FC" align="center">{_tds(['Time', 'Position', 'Symbol', 'Type', 'Volume', 'Price', 'S / L', 'T / P', 'Time', 'Price', 'Commission', 'Swap', 'Profit'])}</tr>
{position_rows}
<tr align="center"><th colspan="14"><div><b>Deals</b></div></th></tr>
<tr bgcolor="#E5F0FC" align="center">{_tds(['Time', 'Deal', 'Symbol', 'Type', 'Direction', 'Volume', 'Price', 'Order', 'Commission', 'Fee', 'Swap', 'Profit', 'Balance', 'Comment'])}</tr>
{deal_rows}
<tr align="center"><th colspan="14"><div><b>Results</b></div></th></tr>
{metric_rows}
</table></body></html>"""

# ==========================================
# TRADE HISTORY (XLSX)
# ==========================================
POSITION_HEADERS = ['Time', 'Position', 'Symbol', 'Type', 'Volume', 'Price', 'S / L', 'T / P',
                    'Time', 'Price', 'Commission', 'Swap', 'Profit', 'Magic', 'Comment']

def history_xlsx_rows(include_results=True, marker='Trade History Report'):
    rows = [
        sheet_row({0: marker}),
        sheet_row({0: 'Name:', 3: 'John Doe'}),
        sheet_row({0: 'Account:', 3: '5551234 (USD, Broker-Server, real, Hedge)'}),
        sheet_row({0: 'Company:', 3: 'Broker Ltd'}),
        sheet_row({0: 'Date:', 3: '2024.02.01 09:00'}),
        sheet_row({0: 'Positions'}),
        POSITION_HEADERS,
        [datetime(2024, 1, 2, 10), 1001, 'EURUSD', 'buy', 0.1, 1.1, None, None,
         datetime(2024, 1, 2, 12), 1.11, -2, -1, 100, 777, '[Breakout] v1'],
        # Excel serial timestamps: 2024-01-03 09:00 -> 12:00
        [45294.375, 1002, 'GBPUSD', 'sell', 0.2, 1.27, None, None,
         45294.5, 1.2725, 0, 0, -50, None, 'Scalper entry'],
        sheet_row({0: 'Orders'}),
        sheet_row({i: h for i, h in enumerate(['Open Time', 'Order', 'Symbol', 'Type', 'Volume', 'Price',
                                          'S / L', 'T / P', 'Time', 'State', 'Comment'])}),
        sheet_row({0: datetime(2024, 1, 2, 10), 1: 1001, 2: 'EURUSD', 3: 'buy', 9: 'filled', 10: '[Trend] order'}),
        sheet_row({0: 'Deals'}),
        sheet_row({i: h for i, h in enumerate(['Time', 'Deal', 'Symbol', 'Type', 'Direction', 'Volume', 'Price',
                                          'Order', 'Commission', 'Fee', 'Swap', 'Profit', 'Balance'])}),
        sheet_row({0: datetime(2024, 1, 1), 1: 1, 3: 'balance', 11: 10000, 12: 10000}),
        sheet_row({}),
        sheet_row({0: 'Balance:', 3: 10047, 6: 'Free Margin:', 9: 10047}),
        sheet_row({0: 'Equity:', 3: 10047, 6: 'Margin:', 9: 0}),
    ]
    if include_results:
        rows += [
            sheet_row({0: 'Results'}),
            sheet_row({0: 'Total Net Profit:', 3: 47, 4: 'Gross Profit:', 7: 97, 8: 'Gross Loss:', 11: -50}),
            sheet_row({0: 'Profit Factor:', 3: 1.94, 4: 'Expected Payoff:', 7: 23.5}),
            sheet_row({0: 'Recovery Factor:', 3: 0.94, 4: 'Sharpe Ratio:', 7: 0.5}),
            sheet_row({}),
            sheet_row({0: 'Balance Drawdown Absolute:', 3: 0, 7: '50.00 (0.50%)', 11: '0.50% (50.00)'}),
            sheet_row({0: 'Total Trades:', 3: 2, 7: '1 (0.00%)', 11: '1 (100.00%)'}),
            sheet_row({7: '1 (50.00%)', 11: '1 (50.00%)'}),
            sheet_row({7: 97, 11: -50}),
            sheet_row({7: 97, 11: -50}),
            sheet_row({7: '1 (97.00)', 11: '1 (-50.00)'}),
            sheet_row({7: '97.00 (1)', 11: '-50.00 (1)'}),
            sheet_row({7: 1, 11: 1}),
        ]
    return rows

def history_xlsx(**kwargs):
    return workbook_bytes(history_xlsx_rows(**kwargs))

# ==========================================
# STRATEGY TESTER (shared deal log)
# ==========================================
# (time, deal, symbol, type, direction, volume, price, order, commission, swap, profit, balance, comment)
BACKTEST_DEALS = [
    (datetime(2024, 1, 1, 0, 0), 1, '', 'balance', '', None, None, None, 0, 0, 10000, 10000, ''),
    (datetime(2024, 1, 2, 10, 0), 2, 'EURUSD', 'buy', 'in', 0.1, 1.1, 2, 0, 0, 0, 10000, ''),
    (datetime(2024, 1, 2, 14, 0), 3, 'EURUSD', 'sell', 'out', 0.1, 1.11, 3, -0.5, 0, 100, 10099.5, 'tp 1.11'),
    (datetime(2024, 1, 3, 9, 0), 4, 'EURUSD', 'sell', 'in', 0.2, 1.108, 4, 0, 0, 0, 10099.5, ''),
    (datetime(2024, 1, 3, 12, 0), 5, 'EURUSD', 'buy', 'out', 0.2, 1.1105, 5, -1, 0, -50, 10048.5, 'sl 1.1105'),
]

DEAL_HEADERS = ['Time', 'Deal', 'Symbol', 'Type', 'Direction', 'Volume', 'Price', 'Order',
                'Commission', 'Swap', 'Profit', 'Balance', 'Comment']

def _deal_html_cells(deal):
    time, ticket, symbol, kind, direction, volume, price, order, commission, swap, profit, balance, comment = deal
    return [
        time.strftime('%Y.%m.%d %H:%M:%S'), ticket, symbol, kind, direction,
        '' if volume is None else f'{volume:.2f}',
        '' if price is None else f'{price:.5f}',
        '' if order is None else order,
        f'{commission:.2f}', f'{swap:.2f}', _money(profit), _money(balance), comment,
    ]

def backtest_html(deals=None, title='Strategy Tester Report'):
    deals = BACKTEST_DEALS if deals is None else deals
    deal_rows = ''.join(
        f'<tr bgcolor="{"#FFFFFF" if i % 2 == 0 else "#F7F7F7"}" align="right">{_tds(_deal_html_cells(d))}</tr>'
        for i, d in enumerate(deals)
    )

    def stat(label, value):
        return f'<td colspan="3">{label}</td><td colspan="2"><b>{value}</b></td>'

    return f"""<html><head><title>{title}</title></head><body>
<table cellspacing="1" cellpadding="3" border="0">
<tr align="center"><td colspan="13"><div style="font: 10pt"><b>ICMarketsSC-Demo (Build 5399)</b></div></td></tr>
<tr align="left"><td colspan="3">Expert:</td><td colspan="10"><b>MovingAverage</b></td></tr>
<tr align="left"><td colspan="3">Symbol:</td><td colspan="10"><b>EURUSD</b></td></tr>
<tr align="left"><td colspan="3">Period:</td><td colspan="10"><b>H1 (2024.01.01 - 2024.02.01)</b></td></tr>
<tr align="left"><td colspan="3">Inputs:</td><td colspan="10"><b>Lots=0.1</b></td></tr>
<tr align="left"><td colspan="3"></td><td colspan="10"><b>UseTrail=true</b></td></tr>
<tr align="left"><td colspan="3"></td><td colspan="10"><b>Label=alpha</b></td></tr>
<tr align="right">{stat('Bars:', '1000')}{stat('Ticks:', '50 000')}{stat('Symbols:', '1')}</tr>
<tr align="right">{stat('Total Net Profit:', '48.50')}{stat('Balance Drawdown Absolute:', '0.00')}{stat('Equity Drawdown Absolute:', '10.50')}</tr>
<tr align="right">{stat('Gross Profit:', '99.50')}{stat('Balance Drawdown Maximal:', '51.00 (0.50%)')}{stat('Equity Drawdown Maximal:', '60.00 (0.59%)')}</tr>
<tr align="right">{stat('Gross Loss:', '-51.00')}{stat('Balance Drawdown Relative:', '0.50% (51.00)')}{stat('Equity Drawdown Relative:', '0.59% (60.00)')}</tr>
<tr align="right">{stat('Z-Score:', '-0.50 (61.71%)')}{stat('AHPR:', '1.0024 (0.24%)')}{stat('GHPR:', '1.0024 (0.24%)')}</tr>
<tr align="right">{stat('Average position holding time:', '3:30:00')}</tr>
<tr align="right">{stat('Total Trades:', '2')}{stat('Short Trades (won %):', '1 (0.00%)')}{stat('Long Trades (won %):', '1 (100.00%)')}</tr>
<tr align="right">{stat('Total Deals:', '5')}{stat('Profit Trades (% of total):', '1 (50.00%)')}{stat('Loss Trades (% of total):', '1 (50.00%)')}</tr>
<tr align="center"><th colspan="13"><div style="font: 10pt"><b>Deals</b></div></th></tr>
<tr bgcolor="#E5F0FC" align="center">{_tds(DEAL_HEADERS)}</tr>
{deal_rows}
</table></body></html>"""

def backtest_xlsx_rows(deals=None, marker='Strategy Tester Report', trailing_rows=None):
    deals = BACKTEST_DEALS if deals is None else deals
    rows = [
        sheet_row({0: marker}),
        sheet_row({0: 'ICMarketsSC-Demo (Build 5399)'}),
        sheet_row({0: 'Expert:', 3: 'MovingAverage'}),
        sheet_row({0: 'Symbol:', 3: 'EURUSD'}),
        sheet_row({0: 'Period:', 3: 'H1 (2024.01.01 - 2024.02.01)'}),
        sheet_row({0: 'Inputs:', 3: 'Lots=0.1'}),
        sheet_row({3: 'UseTrail=true'}),
        sheet_row({3: 'Label=alpha'}),
        # Anchor row (offset 0)
        sheet_row({0: 'Bars:', 3: 1000, 4: 'Ticks:', 7: 50000, 8: 'Symbols:', 11: 1}),
        sheet_row({0: 'Total Net Profit:', 3: 48.5, 7: 0, 11: 10.5}),
        sheet_row({0: 'Gross Profit:', 3: 99.5, 7: '51.00 (0.50%)', 11: '60.00 (0.59%)'}),
        sheet_row({0: 'Gross Loss:', 3: -51, 7: '0.50% (51.00)', 11: '0.59% (60.00)'}),
        sheet_row({}),
        sheet_row({0: 'Profit Factor:', 3: 1.95, 7: 24.25, 11: '0.00%'}),
        sheet_row({0: 'Recovery Factor:', 3: 0.95, 7: 0.3, 11: '-0.50 (61.71%)'}),
        sheet_row({0: 'AHPR:', 3: '1.0024 (0.24%)', 7: 0.12, 11: 0}),
        sheet_row({0: 'GHPR:', 3: '1.0024 (0.24%)', 7: 12.3}),
        sheet_row({}),
        sheet_row({0: 'Correlation (Profits,MFE):', 3: 0.5, 7: -0.2, 11: 0.1}),
        sheet_row({0: 'Minimal position holding time:', 3: '3:00:00', 7: '4:00:00', 11: '3:30:00'}),
        sheet_row({}),
        sheet_row({0: 'Total Trades:', 3: 2, 7: '1 (0.00%)', 11: '1 (100.00%)'}),
        sheet_row({0: 'Total Deals:', 3: 5, 7: '1 (50.00%)', 11: '1 (50.00%)'}),
        sheet_row({7: 99.5, 11: -51}),
        sheet_row({7: 99.5, 11: -51}),
        sheet_row({7: '1 (99.50)', 11: '1 (-51.00)'}),
        sheet_row({7: '99.50 (1)', 11: '-51.00 (1)'}),
        sheet_row({7: 1, 11: 1}),
        sheet_row({}),
        sheet_row({0: 'Deals'}),
        DEAL_HEADERS,
    ]
    rows += [list(deal) for deal in deals]
    rows += trailing_rows or []
    return rows

def backtest_xlsx(**kwargs):
    return workbook_bytes(backtest_xlsx_rows(**kwargs))
