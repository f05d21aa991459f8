import gzip
import os
import tempfile
import unittest
from datetime import datetime

from mt5_reports.backtest_xlsx_parser import parse_backtest_xlsx
from mt5_reports.history_html_parser import parse_trade_history_html
from mt5_reports.report_storage import ReportStore, report_from_dict, report_to_dict

from report_fixtures import backtest_xlsx, history_html

class TestReportStorage(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = ReportStore(os.path.join(self.tmp.name, 'saved'))
        self.history = parse_trade_history_html(history_html()).report
        self.backtest = parse_backtest_xlsx(backtest_xlsx()).report

    def tearDown(self):
        self.tmp.cleanup()

    # ==========================================
    # CATEGORY 1: SERIALISATION
    # ==========================================

    def test_dict_round_trip_restores_dates(self):
        data = report_to_dict(self.history)
        self.assertEqual(data['trades'][0]['open_time'], '2024-01-02T10:00:00')

        restored = report_from_dict(data)
        self.assertEqual(restored, self.history)
        self.assertIsInstance(restored.trades[0].open_time, datetime)
        self.assertEqual(restored.account_info.report_date, datetime(2024, 2, 1, 9, 0))

    def test_backtest_inputs_stored_as_object(self):
        data = report_to_dict(self.backtest)
        self.assertEqual(data['settings']['inputs'], {'Lots': 0.1, 'UseTrail': True, 'Label': 'alpha'})
        self.assertEqual(report_from_dict(data).settings, self.backtest.settings)

    def test_unknown_type_is_rejected(self):
        data = report_to_dict(self.history)
        data['type'] = 'statement'
        with self.assertRaises(ValueError):
            report_from_dict(data)

    # ==========================================
    # CATEGORY 2: PER-USER STORE
    # ==========================================

    def test_save_and_load_round_trip(self):
        """Saved reports come back equal, with id and owner attached."""
        print(" [TEST] Saving and reloading reports...")
        saved_history = self.store.save(self.history, 'alice')
        saved_backtest = self.store.save(self.backtest, 'alice')

        loaded = self.store.load_all('alice')
        self.assertEqual([s.id for s in loaded], [saved_history.id, saved_backtest.id])
        self.assertEqual(loaded[0].report, saved_history.report)
        self.assertEqual(loaded[1].report, saved_backtest.report)
        self.assertEqual(loaded[1].report.settings.input_map['UseTrail'], True)
        self.assertEqual(loaded[0].report.user_id, 'alice')
        self.assertEqual(loaded[0].report.id, saved_history.id)
        print(f"   > Reloaded {len(loaded)} reports")
        print(" [PASS] Storage round trip verified.")

    def test_display_names(self):
        saved = self.store.save(self.backtest, 'alice')
        self.assertTrue(saved.name.startswith('MovingAverage (EURUSD)'))
        saved = self.store.save(self.history, 'alice')
        self.assertTrue(saved.name.startswith('John Doe'))

    def test_users_are_isolated(self):
        self.store.save(self.history, 'alice')
        self.assertEqual(self.store.load_all('bob'), [])

    def test_active_report_tracking(self):
        first = self.store.save(self.history, 'alice')
        second = self.store.save(self.backtest, 'alice')
        self.assertEqual(self.store.get_active_id('alice'), second.id)

        self.store.set_active_id(first.id, 'alice')
        self.assertEqual(self.store.get_active_id('alice'), first.id)

    def test_get_and_delete(self):
        saved = self.store.save(self.history, 'alice')
        self.assertEqual(self.store.get(saved.id, 'alice').report, saved.report)

        self.assertTrue(self.store.delete(saved.id, 'alice'))
        self.assertIsNone(self.store.get(saved.id, 'alice'))
        self.assertIsNone(self.store.get_active_id('alice'))
        self.assertFalse(self.store.delete(saved.id, 'alice'))

    def test_saving_a_stored_report_again_is_a_no_op(self):
        saved = self.store.save(self.history, 'alice')
        again = self.store.save(saved.report, 'alice')

        self.assertEqual(again.id, saved.id)
        self.assertEqual(len(self.store.load_all('alice')), 1)

    def test_failed_write_keeps_previous_file(self):
        """A write that fails midway leaves the stored reports readable."""
        saved = self.store.save(self.history, 'alice')
        with self.assertRaises(TypeError):
            self.store._write('alice', {'active_id': None, 'reports': [object()]})

        self.assertEqual([s.id for s in self.store.load_all('alice')], [saved.id])
        self.assertEqual(os.listdir(self.store.base_dir), ['alice.json.gz'])

    def test_corrupt_file_reads_as_empty(self):
        self.store.save(self.history, 'alice')
        path = os.path.join(self.store.base_dir, 'alice.json.gz')
        with gzip.open(path, 'wt', encoding='utf-8') as f:
            f.write('{not json')
        self.assertEqual(self.store.load_all('alice'), [])
        self.assertIsNone(self.store.get_active_id('alice'))


if __name__ == '__main__':
    unittest.main()
