"""
MT5 Report Dashboard Entry Point.

Interactive front end for the MT5 report ingestion engine. Loads a Trade
History or Strategy Tester export (HTML or Excel), prints the parsed account
and performance summary together with the parse diagnostics, generates the
analytics tables and plots, and keeps a per-user library of saved reports.

Only one report is active at a time; parsing or loading a report replaces it
and discards any analysis derived from the previous one.
"""
import os
import sys
import time
from typing import Callable, List, Optional

import pandas as pd

# --- Custom Module Imports ---
# loader: Detects the format and dispatches to the matching parser.
# ReportAnalyser: Balance curve, period returns, breakdowns and plots.
# ReportStore: Per-user persistence of parsed reports.
from mt5_reports import report_loader as loader
from mt5_reports.config import BACKTEST, STORAGE_DIR, SUPPORTED_EXTENSIONS, TRADE_HISTORY
from mt5_reports.derived_metrics import calculate_derived_metrics
from mt5_reports.models import ParseResult, TradeHistoryReport
from mt5_reports.report_analytics import ReportAnalyser
from mt5_reports.report_storage import ReportStore, report_display_name

# --- Configuration Constants ---
# Directory scanned for exported reports.
DATA_DIR = r'data'

# Owner of reports saved from this terminal.
DEFAULT_USER_ID = 'local'

# Number of trades echoed in the summary.
PREVIEW_TRADES = 10

class ReportDashboardApp:
    """
    Controls the report parsing, analysis and storage workflow.

    Holds the active report and its parse diagnostics, and routes menu
    choices to the individual steps. Analysis steps check that a report is
    loaded and trigger the parse step otherwise.
    """
    def __init__(self) -> None:
        self.report = None
        self.diagnostics = None
        self.report_name = None
        self.analyser = None

        self.store = ReportStore(STORAGE_DIR, verbose=True)

    def menu(self) -> None:
        """
        Displays the main menu and routes user input to the steps.

        Runs until the user quits.
        """
        while True:
            self._print_header()
            print(" 1. Parse Trade History Report")
            print(" 2. Parse Backtest Report")
            print(" 3. Show Report Summary")
            print(" 4. Analyse and Plot Report")
            print()
            print(" 5. Save Report")
            print(" 6. Load Saved Report")
            print(" 7. Delete Saved Report")
            print()
            print(" Q. Quit")
            print("-" * 60)

            if self.report is None:
                status = "REPORT: --"
            else:
                status = f"REPORT: {self.report.type.upper()} | TRADES: {len(self.report.trades)}"
                status += " | SAVED" if self.report.id else " | UNSAVED"
            print(f" STATUS: {status}")
            print("-" * 60)

            choice = input(" >> Select Option: ").upper().strip()
            time.sleep(0.5)

            if choice == '1':
                self.step_parse_report(TRADE_HISTORY)

            elif choice == '2':
                self.step_parse_report(BACKTEST)

            elif choice == '3':
                self.step_summary()

            elif choice == '4':
                self.step_analyse()

            elif choice == '5':
                self.step_save_report()

            elif choice == '6':
                self.step_load_report()

            elif choice == '7':
                self.step_delete_report()

            elif choice == 'Q':
                sys.exit()

            else:
                print(" [!] Invalid selection.")
                time.sleep(0.5)

    # =========================================================================
    # STEP 1: REPORT PARSING
    # =========================================================================
    def step_parse_report(self, report_kind: str) -> None:
        """
        Selects an export file and parses it as `report_kind`.

        On failure the previously active report is kept.

        Args:
            report_kind (str): 'trade-history' or 'backtest'.

        Returns:
            None
        """
        title = "TRADE HISTORY" if report_kind == TRADE_HISTORY else "BACKTEST"
        self._print_section_header(f"STEP 1: PARSE {title} REPORT")

        path = self._select_report_file()
        if not path:
            return

        print(f" [>] Loading: {path}")
        if not os.path.exists(path):
            print(f"\n [!] Error: File not found at {path}")
            time.sleep(0.5)
            return

        result: ParseResult = loader.load_report_file(path, report_kind, verbose=True)

        if not result.success:
            print(f"\n [!] Error ({result.error_kind}): {result.error}")
            time.sleep(0.5)
            input("\n >> Press Enter to return to menu...")
            time.sleep(0.5)
            return

        self._reset_state()
        self.report = result.report
        self.diagnostics = result.diagnostics
        self.report_name = os.path.splitext(os.path.basename(path))[0]

        counts = self.diagnostics.summary() if self.diagnostics else {}
        print(f"\n [+] Parsed {len(self.report.trades)} trades "
              f"({counts.get('defaulted', 0)} defaulted values, "
              f"{counts.get('skipped_rows', 0)} skipped rows, "
              f"{counts.get('unmatched_deals', 0)} unmatched deals)")
        time.sleep(0.5)

    # =========================================================================
    # STEP 2: SUMMARY
    # =========================================================================
    def step_summary(self) -> None:
        """Prints header, key metrics, derived metrics and diagnostics of the active report."""
        self._check_dependency(self.report is not None, "Step 1 (Parse Report)",
                               lambda: self.step_parse_report(TRADE_HISTORY))
        if self.report is None:
            return

        self._print_section_header("STEP 2: REPORT SUMMARY")
        report = self.report
        metrics = report.metrics

        if isinstance(report, TradeHistoryReport):
            info = report.account_info
            print(f" Account:  {info.account_number} ({info.currency}, {info.server}, {info.account_type}, {info.hedging_mode})")
            print(f" Name:     {info.name}")
            print(f" Company:  {info.company}")
        else:
            settings = report.settings
            print(f" Expert:   {settings.expert}")
            print(f" Symbol:   {settings.symbol} ({settings.period})")
            print(f" Broker:   {settings.broker} (Build {settings.build})")
            if settings.inputs:
                print(" Inputs:")
                for key, value in settings.inputs:
                    print(f"     - {key} = {value}")

        if report.report_period_start is not None:
            print(f" Period:   {report.report_period_start:%Y-%m-%d} -> {report.report_period_end:%Y-%m-%d}")

        summary = pd.Series({
            'Initial Deposit': metrics.initial_deposit,
            'Balance': metrics.balance,
            'Total Net Profit': metrics.total_net_profit,
            'Profit Factor': metrics.profit_factor,
            'Total Trades': metrics.total_trades,
            'Profit Trades': metrics.profit_trades,
            'Max Balance DD %': metrics.balance_drawdown_maximal_percent,
        })
        if isinstance(report, TradeHistoryReport):
            derived = calculate_derived_metrics(report)
            summary['Win Rate %'] = derived['win_rate']
            summary['ROI %'] = derived['roi']
            summary['Avg Duration [h]'] = derived['avg_trade_duration_hours']

        print("\nKey Metrics:")
        print(summary.to_string(float_format=lambda v: f"{v:,.2f}"))

        if report.trades:
            print(f"\nFirst {min(PREVIEW_TRADES, len(report.trades))} Trades:")
            preview = ReportAnalyser(report).trades_frame().head(PREVIEW_TRADES)
            print(preview[['position', 'symbol', 'type', 'volume', 'open_time', 'close_time', 'net_profit']].to_string(index=False))

        if self.diagnostics is not None:
            print("\nParse Diagnostics:")
            for name, count in self.diagnostics.summary().items():
                print(f"     - {name}: {count}")

        input("\n >> Press Enter to return to menu...")
        time.sleep(0.5)

    # =========================================================================
    # STEP 3: ANALYSIS & VISUALISATION
    # =========================================================================
    def step_analyse(self) -> None:
        """
        Computes the analytics tables, exports them to CSV and saves the plots
        into results/<report name>.

        Returns:
            None
        """
        self._check_dependency(self.report is not None, "Step 1 (Parse Report)",
                               lambda: self.step_parse_report(TRADE_HISTORY))
        if self.report is None:
            return

        self._print_section_header("STEP 3: ANALYSIS & VISUALISATION")

        if not self.report.trades:
            print(" [!] Report has no trades to analyse.")
            time.sleep(0.5)
            input("\n >> Press Enter to return to menu...")
            time.sleep(0.5)
            return

        output_dir = os.path.join('results', self.report_name or self.report.type)
        os.makedirs(output_dir, exist_ok=True)
        print(f" [+] Created output directory: {output_dir}")
        time.sleep(0.5)

        self.analyser = ReportAnalyser(self.report)

        stats = self.analyser.curve_stats()
        print("\nBalance Curve:")
        for key, value in stats.items():
            print(f"     - {key}: {value:,.2f}")

        comparison = self.analyser.get_summary_table()
        print("\nReported vs Recomputed:")
        print(comparison)

        monthly = self.analyser.monthly_returns()
        yearly = self.analyser.yearly_returns()
        magic = self.analyser.magic_number_breakdown()
        strategy = self.analyser.strategy_breakdown()

        print("\nYearly Returns:")
        print(yearly.to_string(index=False))
        print("\nMagic Number Breakdown:")
        print(magic.to_string(index=False))

        comparison.to_csv(os.path.join(output_dir, 'metrics_comparison.csv'))
        monthly.to_csv(os.path.join(output_dir, 'monthly_returns.csv'), index=False)
        yearly.to_csv(os.path.join(output_dir, 'yearly_returns.csv'), index=False)
        magic.to_csv(os.path.join(output_dir, 'magic_breakdown.csv'), index=False)
        strategy.to_csv(os.path.join(output_dir, 'strategy_breakdown.csv'), index=False)
        self.analyser.trades_frame().to_csv(os.path.join(output_dir, 'trades.csv'), index=False)

        print("\n [+] Saved Statistics Data")
        time.sleep(0.5)

        self.analyser.plot_equity_curve(
            save_path=os.path.join(output_dir, '1_equity_curve.png')
        )

        self.analyser.plot_monthly_heatmap(
            save_path=os.path.join(output_dir, '2_monthly_returns.png')
        )

        self.analyser.plot_magic_breakdown(
            save_path=os.path.join(output_dir, '3_magic_breakdown.png')
        )

        print(f"\n [+] All analysis files saved to: {output_dir}")
        time.sleep(0.5)
        input("\n >> Press Enter to return to menu...")
        time.sleep(0.5)

    # =========================================================================
    # STEP 4: REPORT LIBRARY
    # =========================================================================
    def step_save_report(self) -> None:
        self._print_section_header("SAVING REPORT")

        if self.report is None:
            print(" [!] Nothing to save (Parse a report first).")
            time.sleep(0.5)
            input("\n >> Press Enter to return...")
            time.sleep(0.5)
            return

        saved = self.store.save(self.report, DEFAULT_USER_ID)
        self.report = saved.report
        time.sleep(0.5)
        input("\n >> Press Enter to continue...")
        time.sleep(0.5)

    def step_load_report(self) -> None:
        """Restores a saved report and makes it the active one."""
        self._print_section_header("LOADING SAVED REPORT")

        selected = self._select_saved_report()
        if selected is None:
            return

        print(f" [>] Loading {selected.name}...")
        self._reset_state()
        self.report = selected.report
        self.report_name = selected.id
        self.store.set_active_id(selected.id, DEFAULT_USER_ID)

        print(" [+] Load complete.")
        time.sleep(0.5)
        input("\n >> Press Enter to continue...")
        time.sleep(0.5)

    def step_delete_report(self) -> None:
        self._print_section_header("DELETING SAVED REPORT")

        selected = self._select_saved_report()
        if selected is None:
            return

        if self.store.delete(selected.id, DEFAULT_USER_ID):
            print(f" [+] Deleted {selected.name}")
            if self.report is not None and self.report.id == selected.id:
                self._reset_state()
        else:
            print(f" [!] Could not delete {selected.name}")
        time.sleep(0.5)

    # =========================================================================
    # UTILITY FUNCTIONS
    # =========================================================================
    def _select_report_file(self) -> Optional[str]:
        """
        Lists the exports in DATA_DIR (newest first) and returns the chosen path.

        Falls back to manual path entry when the directory is empty or the
        user picks option 0. Returns None if no path was entered.
        """
        files: List[str] = []
        if os.path.exists(DATA_DIR):
            files = [f for f in os.listdir(DATA_DIR) if f.lower().endswith(SUPPORTED_EXTENSIONS)]
            files.sort(key=lambda x: os.path.getmtime(os.path.join(DATA_DIR, x)), reverse=True)

        if files:
            while True:
                print(f"\n Available Reports in '{DATA_DIR}':")
                print("   [0] Manual Path Entry")
                for idx, f in enumerate(files):
                    print(f"   [{idx+1}] {f}")

                choice = input("\n >> Select file number [Default: 1]: ").strip()
                time.sleep(0.5)

                if not choice:
                    return os.path.join(DATA_DIR, files[0])
                if choice == '0':
                    break
                try:
                    file_idx = int(choice) - 1
                    if 0 <= file_idx < len(files):
                        return os.path.join(DATA_DIR, files[file_idx])
                    print(" [!] Number out of range. Please try again.")
                    time.sleep(1)
                except ValueError:
                    print(" [!] Invalid input. Please enter a number.")
                    time.sleep(1)

        path = input(" >> Enter path to report (.html, .htm, .xlsx): ").strip().strip('"')
        time.sleep(0.5)
        return path or None

    def _select_saved_report(self):
        saved = self.store.load_all(DEFAULT_USER_ID)
        if not saved:
            print(" [!] No saved reports found.")
            time.sleep(0.5)
            input("\n >> Press Enter to return...")
            time.sleep(0.5)
            return None

        active_id = self.store.get_active_id(DEFAULT_USER_ID)
        print("Saved Reports:")
        for idx, entry in enumerate(saved):
            marker = " (active)" if entry.id == active_id else ""
            print(f"   [{idx+1}] {entry.name} - saved {entry.saved_at:%Y-%m-%d %H:%M}{marker}")

        try:
            choice = input("\n >> Select report number (or Enter to cancel): ")
            if not choice.strip():
                return None
            index = int(choice) - 1
            if index < 0:
                raise IndexError(index)
            return saved[index]
        except (ValueError, IndexError):
            print(" [!] Invalid selection.")
            time.sleep(1)
            return None

    def _reset_state(self) -> None:
        """Drops the active report and everything derived from it."""
        print("\n [!] Clearing previous application state...")
        time.sleep(0.5)

        self.report = None
        self.diagnostics = None
        self.report_name = None
        self.analyser = None

    def _print_section_header(self, title: str) -> None:
        print("\n" + "="*60)
        print(f" {title}")
        print("="*60 + "\n")

    def _check_dependency(self, condition: bool, fix_action_name: str, fix_action_func: Callable[[], None]) -> bool:
        """
        Verifies a prerequisite step and runs it when missing.

        Args:
            condition (bool): True if the dependency is met.
            fix_action_name (str): Name of the missing step.
            fix_action_func (callable): Step to execute if condition is False.

        Returns:
            bool: True if the dependency was already met.
        """
        if not condition:
            print(f"\n [!] Missing dependency: {fix_action_name}")
            time.sleep(0.5)
            print(f" [>] Auto-triggering {fix_action_name}...")
            time.sleep(0.5)
            fix_action_func()
            return False
        return True

    def _print_header(self) -> None:
        print("\n" + "#"*60)
        print("            MT5 REPORT DASHBOARD")
        if self.report is not None:
            print(f"   {report_display_name(self.report)}")
        print("#"*60)

if __name__ == "__main__":
    app = ReportDashboardApp()
    try:
        app.menu()
    except KeyboardInterrupt:
        print("\n [!] Interrupted by user. Exiting.")
        time.sleep(0.5)
        sys.exit()
