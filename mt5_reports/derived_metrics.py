"""
Derived metrics for Trade History reports.

Values the terminal does not print but the dashboard shows: win rate, return
on the initial deposit and average holding time. All divisions are guarded so
empty reports give zeros instead of NaN.
"""
from typing import Dict

import numpy as np

from .models import TradeHistoryReport


def calculate_derived_metrics(report: TradeHistoryReport) -> Dict[str, float]:
    """
    Computes win rate, ROI and mean trade duration for a Trade History report.

    Args:
        report (TradeHistoryReport): A parsed live-account report.

    Returns:
        Dict[str, float]: 'win_rate' and 'roi' in percent,
        'avg_trade_duration_ms' and 'avg_trade_duration_hours'.

    Raises:
        TypeError: If given a backtest report.
    """
    if not isinstance(report, TradeHistoryReport):
        raise TypeError(f"Derived metrics apply to Trade History reports, got {type(report).__name__}")

    metrics = report.metrics

    win_rate = metrics.profit_trades / metrics.total_trades * 100 if metrics.total_trades > 0 else 0.0
    roi = metrics.total_net_profit / metrics.initial_deposit * 100 if metrics.initial_deposit > 0 else 0.0

    if report.trades:
        durations_ms = np.array([t.duration_seconds * 1000 for t in report.trades])
        avg_duration_ms = float(durations_ms.mean())
    else:
        avg_duration_ms = 0.0

    return {
        'win_rate': float(win_rate),
        'roi': float(roi),
        'avg_trade_duration_ms': avg_duration_ms,
        'avg_trade_duration_hours': avg_duration_ms / (1000 * 60 * 60),
    }
