import unittest
from datetime import datetime

from mt5_reports.grid import find_cell, find_section_row, load_grid
from mt5_reports.history_html_parser import parse_trade_history_html
from mt5_reports.history_xlsx_parser import parse_trade_history_xlsx, resolve_position_columns

from report_fixtures import (
    PAIRED_HISTORY_METRICS,
    PAIRED_HISTORY_POSITIONS,
    POSITION_HEADERS,
    history_html,
    history_xlsx,
    history_xlsx_rows,
    workbook_bytes,
)

class TestTradeHistoryXlsx(unittest.TestCase):

    def setUp(self):
        self.result = parse_trade_history_xlsx(history_xlsx())
        self.report = self.result.report

    # ==========================================
    # CATEGORY 1: GRID ACCESS
    # ==========================================

    def test_grid_section_lookup(self):
        grid = load_grid(history_xlsx())
        self.assertEqual(find_section_row(grid, 'Positions'), 5)
        self.assertEqual(find_section_row(grid, 'deals', case_sensitive=False), 12)
        self.assertIsNone(find_section_row(grid, 'Summary'))
        self.assertEqual(find_cell(grid, 'Free Margin:'), (16, 6))
        # Matches on containment, so the first cell holding 'Margin:' is 'Free Margin:'
        self.assertEqual(find_cell(grid, 'Margin:'), (16, 6))

    def test_header_resolution(self):
        """Repeated Time / Price headers map to the open then the close leg."""
        columns = resolve_position_columns(POSITION_HEADERS)
        self.assertEqual(columns['open_time'], 0)
        self.assertEqual(columns['close_time'], 8)
        self.assertEqual(columns['open_price'], 5)
        self.assertEqual(columns['close_price'], 9)
        self.assertEqual(columns['stop_loss'], 6)
        self.assertEqual(columns['take_profit'], 7)
        self.assertEqual(columns['profit'], 12)
        self.assertEqual(columns['magic_number'], 13)
        self.assertEqual(columns['comment'], 14)

    # ==========================================
    # CATEGORY 2: POSITIONS
    # ==========================================

    def test_positions(self):
        print(" [TEST] Parsing Trade History workbook positions...")
        self.assertTrue(self.result.success, self.result.error)
        self.assertEqual([t.position for t in self.report.trades], ['1001', '1002'])

        first, second = self.report.trades
        self.assertEqual(first.type, 'buy')
        self.assertAlmostEqual(first.net_profit, 97.0)
        self.assertEqual(first.magic_number, 777)
        self.assertIsNone(second.magic_number)
        self.assertEqual(second.type, 'sell')
        print(f"   > Parsed {len(self.report.trades)} positions")
        print(" [PASS] Positions resolved from headers.")

    def test_excel_serial_timestamps(self):
        second = self.report.trades[1]
        self.assertEqual(second.open_time, datetime(2024, 1, 3, 9, 0))
        self.assertEqual(second.close_time, datetime(2024, 1, 3, 12, 0))

    def test_strategy_priority(self):
        """The Orders comment beats the position comment; the comment is the fallback."""
        first, second = self.report.trades
        self.assertEqual(first.strategy, 'Trend')
        self.assertEqual(first.comment, '[Breakout] v1')
        self.assertEqual(second.strategy, 'Scalper')

    # ==========================================
    # CATEGORY 3: METRICS
    # ==========================================

    def test_snapshot_and_deposit(self):
        metrics = self.report.metrics
        self.assertEqual(metrics.initial_deposit, 10000.0)
        self.assertEqual(metrics.balance, 10047.0)
        self.assertEqual(metrics.equity, 10047.0)
        self.assertEqual(metrics.free_margin, 10047.0)
        self.assertEqual(metrics.margin, 0.0)

    def test_results_offsets(self):
        metrics = self.report.metrics
        self.assertEqual(metrics.total_net_profit, 47.0)
        self.assertEqual(metrics.gross_profit, 97.0)
        self.assertEqual(metrics.gross_loss, -50.0)
        self.assertEqual(metrics.profit_factor, 1.94)
        self.assertEqual(metrics.balance_drawdown_maximal, 50.0)
        self.assertEqual(metrics.balance_drawdown_maximal_percent, 0.5)
        self.assertEqual(metrics.balance_drawdown_relative, 50.0)
        self.assertEqual(metrics.balance_drawdown_relative_percent, 0.5)
        self.assertEqual(metrics.total_trades, 2)
        self.assertEqual((metrics.short_trades, metrics.short_trades_won), (1, 0))
        self.assertEqual((metrics.long_trades, metrics.long_trades_won), (1, 1))
        self.assertEqual(metrics.profit_trades, 1)
        self.assertEqual(metrics.loss_trades, 1)
        self.assertEqual(metrics.max_consecutive_losses_money, -50.0)
        self.assertEqual(metrics.maximal_consecutive_loss_count, 1)

    def test_account_info(self):
        info = self.report.account_info
        self.assertEqual(info.name, 'John Doe')
        self.assertEqual(info.account_number, '5551234')
        self.assertEqual(info.report_date, datetime(2024, 2, 1, 9, 0))

    def test_missing_results_block(self):
        result = parse_trade_history_xlsx(history_xlsx(include_results=False))
        self.assertTrue(result.success)
        self.assertEqual(result.report.metrics.total_trades, 2)
        self.assertEqual(result.report.metrics.total_net_profit, 0.0)
        self.assertIn('Results', result.diagnostics.defaulted)

    def test_identity_rejection(self):
        result = parse_trade_history_xlsx(history_xlsx(marker='Account Statement'))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, 'identity')

    def test_corrupt_workbook(self):
        result = parse_trade_history_xlsx(b'not a zip archive')
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, 'parse')
        self.assertIsNone(result.report)

    # ==========================================
    # CATEGORY 4: CROSS-FORMAT
    # ==========================================

    def test_shared_fields_match_html(self):
        """The same position yields the same core trade from either export."""
        html_trade = parse_trade_history_html(history_html()).report.trades[0]
        xlsx_trade = self.report.trades[0]
        for name in ('position', 'symbol', 'type', 'volume', 'open_time', 'close_time',
                     'open_price', 'close_price', 'commission', 'swap', 'profit'):
            self.assertEqual(getattr(html_trade, name), getattr(xlsx_trade, name), name)

    def test_same_account_from_both_exports(self):
        """HTML and Excel exports of one account agree on trades, net profit and account."""
        print(" [TEST] Comparing HTML and workbook Trade History exports...")
        html_report = parse_trade_history_html(
            history_html(positions=PAIRED_HISTORY_POSITIONS, metrics=PAIRED_HISTORY_METRICS)
        ).report

        self.assertEqual(len(html_report.trades), len(self.report.trades))
        self.assertEqual(html_report.metrics.total_net_profit, self.report.metrics.total_net_profit)
        self.assertEqual(html_report.account_info.account_number, self.report.account_info.account_number)
        self.assertEqual(sum(t.net_profit for t in html_report.trades),
                         sum(t.net_profit for t in self.report.trades))
        for html_trade, xlsx_trade in zip(html_report.trades, self.report.trades):
            self.assertEqual(html_trade.open_time, xlsx_trade.open_time)
            self.assertEqual(html_trade.close_time, xlsx_trade.close_time)
            self.assertEqual(html_trade.type, xlsx_trade.type)
        print(" [PASS] Both formats agree.")

    def test_unknown_type_is_skipped(self):
        rows = history_xlsx_rows()
        rows[8] = list(rows[8])
        rows[8][3] = 'balance'
        result = parse_trade_history_xlsx(workbook_bytes(rows))
        self.assertEqual([t.position for t in result.report.trades], ['1001'])
        self.assertEqual(len(result.diagnostics.skipped_rows), 1)



if __name__ == '__main__':
    unittest.main()
