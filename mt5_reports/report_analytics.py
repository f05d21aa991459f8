"""
Report Analytics Module.

Provides the ReportAnalyser class, which turns the trade list of a parsed MT5
report into the dashboard views: a closed-trade balance curve, monthly and
yearly returns, per-magic-number and per-strategy breakdowns, and a set of
core metrics recomputed from the trades to cross-check the figures printed by
the terminal. Generates the matching plots with matplotlib / seaborn.
"""
from typing import Any, Dict, Optional

import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import numpy as np
import pandas as pd
import seaborn as sns

from .config import NO_MAGIC_LABEL, NO_STRATEGY_LABEL
from .models import Report

# Global plot configuration
plt.rcParams.update({
    'font.family': 'sans-serif',
    'font.size': 12,
    'axes.titlesize': 15,
    'axes.titleweight': 'bold',
    'axes.labelsize': 13,
    'legend.fontsize': 12,
})

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

TRADE_COLUMNS = [
    'position', 'symbol', 'type', 'volume', 'open_time', 'close_time', 'open_price', 'close_price',
    'commission', 'swap', 'profit', 'net_profit', 'duration_hours', 'magic_number', 'strategy', 'comment'
]

class ReportAnalyser:
    """
    Closed-trade analytics for a Trade History or backtest report.

    All views are derived from `report.trades` and the report's initial
    deposit; nothing is read back from the parsed metrics except in
    get_summary_table, which puts both side by side.
    """

    def __init__(self, report: Report) -> None:
        self.report = report
        self.initial_deposit = float(report.metrics.initial_deposit)
        self.currency = getattr(getattr(report, 'account_info', None), 'currency', 'USD')
        self.trades = self.trades_frame()

    # ==========================================
    # TRADE TABLE
    # ==========================================
    def trades_frame(self) -> pd.DataFrame:
        """One row per trade, sorted by close time, with net profit and duration."""
        records = [
            {
                'position': t.position,
                'symbol': t.symbol,
                'type': t.type,
                'volume': t.volume,
                'open_time': t.open_time,
                'close_time': t.close_time,
                'open_price': t.open_price,
                'close_price': t.close_price,
                'commission': t.commission,
                'swap': t.swap,
                'profit': t.profit,
                'net_profit': t.net_profit,
                'duration_hours': t.duration_seconds / 3600,
                'magic_number': t.magic_number,
                'strategy': t.strategy,
                'comment': t.comment,
            }
            for t in self.report.trades
        ]
        df = pd.DataFrame(records, columns=TRADE_COLUMNS)
        if df.empty:
            return df
        df['open_time'] = pd.to_datetime(df['open_time'])
        df['close_time'] = pd.to_datetime(df['close_time'])
        return df.sort_values('close_time', kind='stable').reset_index(drop=True)

    # ==========================================
    # BALANCE CURVE
    # ==========================================
    def equity_curve(self) -> pd.Series:
        """
        Running balance after each closed trade.

        The first point is the initial deposit at the first trade's open
        time; each later point is indexed by the trade's close time.
        """
        if self.trades.empty:
            return pd.Series(dtype=float, name='balance')

        start = pd.Series([self.initial_deposit], index=[self.trades['open_time'].iloc[0]])
        running = self.initial_deposit + self.trades['net_profit'].cumsum()
        running.index = self.trades['close_time']

        curve = pd.concat([start, running])
        curve.name = 'balance'
        return curve

    def curve_stats(self) -> Dict[str, float]:
        curve = self.equity_curve()
        if curve.empty:
            return {}

        final_balance = float(curve.iloc[-1])
        gain = final_balance - self.initial_deposit
        gain_percent = gain / self.initial_deposit * 100 if self.initial_deposit > 0 else 0.0

        # Drawdown in money against the running peak; percent of the peak it came from
        roll_max = curve.cummax()
        drawdown = roll_max - curve
        worst = int(np.argmax(drawdown.to_numpy()))
        max_drawdown = float(drawdown.iloc[worst])
        peak = float(roll_max.iloc[worst])
        max_drawdown_percent = max_drawdown / peak * 100 if peak > 0 else 0.0

        return {
            'final_balance': final_balance,
            'gain': gain,
            'gain_percent': gain_percent,
            'max_drawdown': max_drawdown,
            'max_drawdown_percent': max_drawdown_percent,
        }

    # ==========================================
    # PERIOD RETURNS
    # ==========================================
    def monthly_returns(self) -> pd.DataFrame:
        """
        Net profit per calendar month of the close time, with the balance at
        the start of the month and the month's return on that balance.
        """
        columns = ['year', 'month', 'month_name', 'profit', 'starting_balance', 'return_percent']
        if self.trades.empty:
            return pd.DataFrame(columns=columns)

        df = self.trades[['close_time', 'net_profit']].copy()
        df['year'] = df['close_time'].dt.year
        df['month'] = df['close_time'].dt.month
        # Balance before each trade; the first trade of a month gives the month's start
        df['balance_before'] = self.initial_deposit + df['net_profit'].cumsum() - df['net_profit']

        monthly = df.groupby(['year', 'month'], sort=True).agg(
            profit=('net_profit', 'sum'),
            starting_balance=('balance_before', 'first'),
        ).reset_index()

        monthly['month_name'] = monthly['month'].map(lambda m: MONTH_NAMES[m - 1])
        monthly['return_percent'] = np.where(
            monthly['starting_balance'] != 0,
            monthly['profit'] / monthly['starting_balance'].replace(0, np.nan) * 100,
            0.0
        )
        return monthly[columns]

    def yearly_returns(self) -> pd.DataFrame:
        monthly = self.monthly_returns()
        if monthly.empty:
            return pd.DataFrame(columns=['year', 'profit', 'starting_balance', 'return_percent'])

        yearly = monthly.groupby('year', sort=True).agg(
            profit=('profit', 'sum'),
            starting_balance=('starting_balance', 'first'),
        ).reset_index()
        yearly['return_percent'] = np.where(
            yearly['starting_balance'] != 0,
            yearly['profit'] / yearly['starting_balance'].replace(0, np.nan) * 100,
            0.0
        )
        return yearly

    # ==========================================
    # BREAKDOWNS
    # ==========================================
    def _breakdown(self, key: pd.Series, column: str) -> pd.DataFrame:
        columns = [column, 'total_trades', 'winning_trades', 'losing_trades', 'win_rate',
                   'total_profit', 'total_loss', 'net_profit', 'profit_factor', 'avg_win', 'avg_loss']
        if self.trades.empty:
            return pd.DataFrame(columns=columns)

        net = self.trades['net_profit']
        df = pd.DataFrame({
            column: key,
            'net_profit': net,
            'win': net > 0,
            'loss': net < 0,
            'gain': net.clip(lower=0),
            'cost': (-net).clip(lower=0),
        })

        grouped = df.groupby(column, sort=False).agg(
            total_trades=('net_profit', 'size'),
            winning_trades=('win', 'sum'),
            losing_trades=('loss', 'sum'),
            total_profit=('gain', 'sum'),
            total_loss=('cost', 'sum'),
            net_profit=('net_profit', 'sum'),
        ).reset_index()

        grouped['win_rate'] = grouped['winning_trades'] / grouped['total_trades'] * 100
        grouped['profit_factor'] = [
            p / l if l > 0 else (np.inf if p > 0 else 0.0)
            for p, l in zip(grouped['total_profit'], grouped['total_loss'])
        ]
        grouped['avg_win'] = np.where(grouped['winning_trades'] > 0,
                                      grouped['total_profit'] / grouped['winning_trades'].replace(0, np.nan), 0.0)
        grouped['avg_loss'] = np.where(grouped['losing_trades'] > 0,
                                       grouped['total_loss'] / grouped['losing_trades'].replace(0, np.nan), 0.0)

        grouped = grouped.sort_values('net_profit', ascending=False, kind='stable').reset_index(drop=True)
        return grouped[columns]

    def magic_number_breakdown(self) -> pd.DataFrame:
        """Per-magic-number performance, best net profit first."""
        key = self.trades['magic_number'].map(
            lambda m: NO_MAGIC_LABEL if m is None or pd.isna(m) else str(int(m))
        ) if not self.trades.empty else pd.Series(dtype=object)
        return self._breakdown(key, 'magic_number')

    def strategy_breakdown(self) -> pd.DataFrame:
        key = self.trades['strategy'].map(
            lambda s: s if isinstance(s, str) and s else NO_STRATEGY_LABEL
        ) if not self.trades.empty else pd.Series(dtype=object)
        return self._breakdown(key, 'strategy')

    # ==========================================
    # RECOMPUTED METRICS
    # ==========================================
    @staticmethod
    def _max_streak(flags: pd.Series, values: pd.Series) -> tuple:
        """Longest run of True flags and the money summed over that run."""
        best_len, best_sum = 0, 0.0
        run_len, run_sum = 0, 0.0
        for flag, value in zip(flags, values):
            if flag:
                run_len += 1
                run_sum += value
                if run_len > best_len:
                    best_len, best_sum = run_len, run_sum
            else:
                run_len, run_sum = 0, 0.0
        return best_len, best_sum

    def recompute_metrics(self) -> Dict[str, Any]:
        """
        Re-derives the core result metrics from the trade list.

        Returns:
            Dict[str, Any]: Keys named like the PerformanceMetrics fields.
        """
        if self.trades.empty:
            return {'total_trades': 0, 'total_net_profit': 0.0}

        net = self.trades['net_profit']
        wins = net[net > 0]
        losses = net[net < 0]
        longs = self.trades['type'] == 'buy'

        gross_profit = float(wins.sum())
        gross_loss = float(losses.sum())
        max_wins, max_wins_money = self._max_streak(net > 0, net)
        max_losses, max_losses_money = self._max_streak(net < 0, net)

        return {
            'total_trades': int(len(net)),
            'total_net_profit': float(net.sum()),
            'gross_profit': gross_profit,
            'gross_loss': gross_loss,
            'profit_factor': gross_profit / abs(gross_loss) if gross_loss < 0 else 0.0,
            'expected_payoff': float(net.mean()),
            'profit_trades': int(len(wins)),
            'loss_trades': int(len(losses)),
            'long_trades': int(longs.sum()),
            'long_trades_won': int((longs & (net > 0)).sum()),
            'short_trades': int((~longs).sum()),
            'short_trades_won': int((~longs & (net > 0)).sum()),
            'largest_profit_trade': float(wins.max()) if not wins.empty else 0.0,
            'largest_loss_trade': float(losses.min()) if not losses.empty else 0.0,
            'average_profit_trade': float(wins.mean()) if not wins.empty else 0.0,
            'average_loss_trade': float(losses.mean()) if not losses.empty else 0.0,
            'max_consecutive_wins': max_wins,
            'max_consecutive_wins_money': max_wins_money,
            'max_consecutive_losses': max_losses,
            'max_consecutive_losses_money': max_losses_money,
        }

    def get_summary_table(self) -> pd.DataFrame:
        """Reported vs recomputed metrics, with the absolute difference."""
        recomputed = self.recompute_metrics()
        rows = []
        for name, value in recomputed.items():
            reported = getattr(self.report.metrics, name, np.nan)
            rows.append({
                'metric': name,
                'reported': reported,
                'recomputed': value,
                'difference': abs(float(value) - float(reported)) if reported is not None else np.nan,
            })
        return pd.DataFrame(rows).set_index('metric')

    # ==========================================
    # VISUALISATION METHODS
    # ==========================================
    def _finish_plot(self, save_path: Optional[str], show: bool) -> None:
        plt.tight_layout()
        if save_path:
            print(f" [>] Saving plot to {save_path}")
            plt.savefig(save_path, dpi=600, bbox_inches='tight')
        if show:
            plt.show()
        else:
            plt.close()

    def plot_equity_curve(self, save_path: Optional[str] = None, show: bool = True) -> None:
        """
        Plots the closed-trade balance curve with the running-peak drawdown
        shaded underneath.
        """
        curve = self.equity_curve()
        if curve.empty:
            print(" [!] Warning: No trades to plot.")
            return

        plt.figure(figsize=(12, 6))
        plt.plot(curve.index, curve.values, color='tab:blue', linewidth=2, label='Balance')
        plt.fill_between(curve.index, curve.values, curve.cummax().values,
                         color='red', alpha=0.15, label='Drawdown')
        plt.axhline(self.initial_deposit, color='gray', linestyle='--', alpha=0.6, label='Initial Deposit')

        stats = self.curve_stats()
        plt.gca().text(0.98, 0.02,
                       f"Gain: {stats['gain_percent']:+.2f}%   Max DD: {stats['max_drawdown_percent']:.2f}%",
                       transform=plt.gca().transAxes,
                       horizontalalignment='right',
                       verticalalignment='bottom',
                       bbox=dict(facecolor='white', alpha=0.8, edgecolor='none'))

        plt.ylabel(f'Balance [{self.currency}]')
        plt.legend(loc='upper left', framealpha=1.0, facecolor='white')
        plt.grid(True, alpha=0.3)
        self._finish_plot(save_path, show)

    def plot_monthly_heatmap(self, save_path: Optional[str] = None, show: bool = True) -> None:
        """Year x month heatmap of monthly returns in percent."""
        monthly = self.monthly_returns()
        if monthly.empty:
            print(" [!] Warning: No trades to plot.")
            return

        table = monthly.pivot(index='year', columns='month', values='return_percent')
        table = table.reindex(columns=range(1, 13))
        table.columns = MONTH_NAMES

        plt.figure(figsize=(12, 1.2 + 0.6 * len(table)))
        ax = sns.heatmap(table.astype(float), annot=True, fmt='.1f', cmap='RdYlGn', center=0,
                         linewidths=0.5, cbar_kws={'format': mtick.PercentFormatter()})
        ax.set_xlabel('')
        ax.set_ylabel('Year')
        self._finish_plot(save_path, show)

    def plot_magic_breakdown(self, save_path: Optional[str] = None, show: bool = True) -> None:
        breakdown = self.magic_number_breakdown()
        if breakdown.empty:
            print(" [!] Warning: No trades to plot.")
            return

        colors = ['seagreen' if v >= 0 else 'indianred' for v in breakdown['net_profit']]
        plt.figure(figsize=(10, 5))
        sns.barplot(data=breakdown, x='magic_number', y='net_profit', hue='magic_number',
                    palette=colors, legend=False)
        plt.axhline(0, color='black', linewidth=0.8)
        plt.xlabel('Magic Number')
        plt.ylabel(f'Net Profit [{self.currency}]')
        plt.grid(True, axis='y', alpha=0.3)
        self._finish_plot(save_path, show)
