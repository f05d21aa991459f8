"""
Report Storage.

Persists parsed reports per user as gzip-compressed JSON. JSON carries no date
type, so every timestamp is written as an ISO-8601 string and explicitly
rebuilt on load; everything else round-trips as plain values.

Each user file holds the saved reports plus the id of the report currently
open in the dashboard ('active' report).
"""
import gzip
import json
import os
import re
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import BACKTEST, STORAGE_DIR, TRADE_HISTORY
from .models import (
    AccountInfo,
    BacktestMetrics,
    BacktestReport,
    BacktestSettings,
    BacktestTrade,
    PerformanceMetrics,
    Report,
    Trade,
    TradeHistoryReport,
)

# ==========================================
# SECTION 1: SERIALISATION
# ==========================================
def _to_json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_safe(v) for v in value]
    return value

def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None

def report_to_dict(report: Report) -> Dict[str, Any]:
    """Converts a report into a JSON-safe mapping (dates as ISO strings)."""
    data = asdict(report)
    if isinstance(report, BacktestReport):
        # Inputs are stored as a JSON object, not as a list of pairs
        data['settings']['inputs'] = report.settings.input_map
    return _to_json_safe(data)

def _trade_from_dict(data: Dict[str, Any], trade_cls) -> Trade:
    values = dict(data)
    values['open_time'] = _parse_iso(values['open_time'])
    values['close_time'] = _parse_iso(values['close_time'])
    return trade_cls(**values)

def report_from_dict(data: Dict[str, Any]) -> Report:
    """
    Rebuilds a report produced by report_to_dict.

    Raises:
        ValueError: If the mapping carries an unknown report type.
    """
    common = {
        'report_period_start': _parse_iso(data.get('report_period_start')),
        'report_period_end': _parse_iso(data.get('report_period_end')),
        'uploaded_at': _parse_iso(data.get('uploaded_at')) or datetime.now(),
        'id': data.get('id'),
        'user_id': data.get('user_id'),
    }

    if data.get('type') == TRADE_HISTORY:
        account = dict(data['account_info'])
        account['report_date'] = _parse_iso(account.get('report_date'))
        return TradeHistoryReport(
            account_info=AccountInfo(**account),
            trades=tuple(_trade_from_dict(t, Trade) for t in data['trades']),
            metrics=PerformanceMetrics.from_values(data['metrics']),
            **common
        )

    if data.get('type') == BACKTEST:
        return BacktestReport(
            settings=BacktestSettings(**data['settings']),
            trades=tuple(_trade_from_dict(t, BacktestTrade) for t in data['trades']),
            metrics=BacktestMetrics.from_values(data['metrics']),
            **common
        )

    raise ValueError(f"Unknown report type '{data.get('type')}'")

# ==========================================
# SECTION 2: PER-USER STORE
# ==========================================
@dataclass
class SavedReport:
    id: str
    name: str
    report: Report
    saved_at: datetime = field(default_factory=datetime.now)


def report_display_name(report: Report) -> str:
    uploaded = report.uploaded_at.strftime('%d/%m/%Y')
    if isinstance(report, TradeHistoryReport):
        return f"{report.account_info.name or report.account_info.account_number} - {uploaded}"
    return f"{report.settings.expert} ({report.settings.symbol}) - {uploaded}"


class ReportStore:
    """
    Saved reports of every user, one compressed file per user.

    Read failures are reported on the console and treated as an empty store,
    so a corrupt file never blocks the application.
    """

    def __init__(self, base_dir: str = STORAGE_DIR, verbose: bool = False) -> None:
        self.base_dir = base_dir
        self.verbose = verbose
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, user_id: str) -> str:
        safe_id = re.sub(r'[^A-Za-z0-9_.-]', '_', user_id)
        return os.path.join(self.base_dir, f"{safe_id}.json.gz")

    def _read(self, user_id: str) -> Dict[str, Any]:
        path = self._path(user_id)
        if not os.path.exists(path):
            return {'active_id': None, 'reports': []}
        try:
            with gzip.open(path, 'rt', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            print(f" [!] Warning: Could not read saved reports for '{user_id}': {e}")
            return {'active_id': None, 'reports': []}

    def _write(self, user_id: str, payload: Dict[str, Any]) -> None:
        # Swapped in whole; a failed write leaves the previous file intact
        path = self._path(user_id)
        tmp_path = f"{path}.tmp"
        try:
            with gzip.open(tmp_path, 'wt', encoding='utf-8') as f:
                json.dump(payload, f)
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    # ------------------------------------------
    # Public API
    # ------------------------------------------
    def save(self, report: Report, user_id: str) -> SavedReport:
        """
        Stores a report, attaching id and owner, and marks it active.

        A report that already carries an id stored for this user is not
        written a second time; the stored entry is returned instead.
        """
        if report.id is not None and report.user_id == user_id:
            existing = self.get(report.id, user_id)
            if existing is not None:
                if self.verbose:
                    print(f" [!] Report '{existing.name}' is already saved ({existing.id})")
                return existing

        report_id = f"report_{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:9]}"
        stored = report.with_identity(report_id, user_id)
        saved = SavedReport(id=report_id, name=report_display_name(stored), report=stored)

        payload = self._read(user_id)
        payload['reports'].append({
            'id': saved.id,
            'name': saved.name,
            'saved_at': saved.saved_at.isoformat(),
            'report': report_to_dict(stored),
        })
        payload['active_id'] = report_id
        self._write(user_id, payload)

        if self.verbose:
            print(f" [+] Saved report '{saved.name}' ({report_id})")
        return saved

    def load_all(self, user_id: str) -> List[SavedReport]:
        saved = []
        for entry in self._read(user_id)['reports']:
            try:
                saved.append(SavedReport(
                    id=entry['id'],
                    name=entry['name'],
                    report=report_from_dict(entry['report']),
                    saved_at=_parse_iso(entry.get('saved_at')) or datetime.now(),
                ))
            except (KeyError, TypeError, ValueError) as e:
                print(f" [!] Warning: Skipping unreadable saved report: {e}")
        return saved

    def get(self, report_id: str, user_id: str) -> Optional[SavedReport]:
        return next((s for s in self.load_all(user_id) if s.id == report_id), None)

    def delete(self, report_id: str, user_id: str) -> bool:
        """Removes a saved report; clears the active id if it pointed at it."""
        payload = self._read(user_id)
        remaining = [r for r in payload['reports'] if r.get('id') != report_id]
        if len(remaining) == len(payload['reports']):
            return False
        payload['reports'] = remaining
        if payload.get('active_id') == report_id:
            payload['active_id'] = None
        self._write(user_id, payload)
        return True

    def get_active_id(self, user_id: str) -> Optional[str]:
        return self._read(user_id).get('active_id')

    def set_active_id(self, report_id: str, user_id: str) -> None:
        payload = self._read(user_id)
        payload['active_id'] = report_id
        self._write(user_id, payload)
