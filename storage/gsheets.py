# storage/gsheets.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Tuple
import datetime as dt
import logging
import random
import time

import gspread
from gspread.exceptions import APIError, WorksheetNotFound

logger = logging.getLogger(__name__)


# ----------------------------
# Config
# ----------------------------

@dataclass
class GSheetsConfig:
    spreadsheet_name: str = "EdgeFrame_DB"
    sleep_ws: str = "sleep_records"
    checkins_ws: str = "check_ins"
    profiles_ws: str = "user_profiles"
    predictions_ws: str = "predictions"
    admin_logs_ws: str = "admin_logs"

    # sleep_records:
    #   date, username, duration_minutes, quality_rating, bedtime, wake_time,
    #   caffeine_after_2pm, alcohol_tonight, exercise_today, screen_time_minutes, nap_duration_minutes
    #
    # check_ins:
    #   date, username, sleep_quality, mental_clarity, energy_rating, stress_level
    #
    # user_profiles:
    #   username, timezone, chronotype, age
    #
    # predictions:
    #   date, username, state, risk_level, edge_score, scoring_mode, payload_json


SLEEP_HEADERS = [
    "date", "username",
    "duration_minutes", "quality_rating",
    "bedtime", "wake_time",
    "caffeine_after_2pm", "alcohol_tonight", "exercise_today",
    "screen_time_minutes", "nap_duration_minutes",
    "updated_at",
]
CHECKIN_HEADERS = [
    "date", "username",
    "sleep_quality", "mental_clarity", "energy_rating", "stress_level",
    "updated_at",
]
PROFILE_HEADERS = [
    "username", "timezone", "chronotype", "age",
    "created_at", "updated_at",
]
PREDICTION_HEADERS = [
    "date", "username",
    "state", "risk_level", "edge_score", "scoring_mode",
    "payload_json",
    "updated_at",
]
ADMIN_LOG_HEADERS = [
    "timestamp",
    "level",
    "action",
    "username",
    "detail",
]


# ----------------------------
# Utilities
# ----------------------------

def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()

def _date_iso(d: dt.date) -> str:
    return d.isoformat()


def _is_retryable_api_error(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        code = getattr(getattr(exc, "response", None), "status_code", None)
        if code in (429, 500, 502, 503, 504):
            return True
    text = str(exc).lower()
    return any(k in text for k in ("timeout", "temporarily", "rate limit", "connection reset", "503"))


def _with_retry(op: str, fn, attempts: int = 4, base_delay: float = 0.25):
    last_err: Optional[Exception] = None
    for i in range(max(1, attempts)):
        try:
            return fn()
        except Exception as e:
            last_err = e
            if i >= attempts - 1 or not _is_retryable_api_error(e):
                break
            delay = base_delay * (2 ** i) + random.uniform(0.0, 0.15)
            logger.warning("gsheets %s failed (attempt %d), retrying in %.2fs: %s", op, i + 1, delay, e)
            time.sleep(delay)
    raise RuntimeError(f"GSheets operation failed: {op}: {last_err}") from last_err


def _col_letter(n: int) -> str:
    """1 -> A, 2 -> B ... 27 -> AA"""
    s = ""
    while n > 0:
        n, r = divmod(n - 1, 26)
        s = chr(65 + r) + s
    return s


def _ensure_headers(ws, headers: List[str]):
    """Append any missing header columns; never reorders existing ones."""
    existing = _with_retry("row_values(header)", lambda: ws.row_values(1))
    if not existing:
        _with_retry("append_row(header)", lambda: ws.append_row(headers))
        return
    updated = list(existing)
    for h in headers:
        if h not in updated:
            updated.append(h)
    if len(updated) != len(existing):
        _with_retry("update(header)", lambda: ws.update(range_name=f"A1:{_col_letter(len(updated))}1", values=[updated]))


def _row_from_dict(headers: List[str], data: Dict[str, Any], base: Optional[List[str]] = None) -> List[str]:
    row = list(base) if base else []
    if len(row) < len(headers):
        row += [""] * (len(headers) - len(row))
    header_to_pos = {h: i for i, h in enumerate(headers)}
    for k, v in data.items():
        if k in header_to_pos:
            row[header_to_pos[k]] = "" if v is None else str(v)
    return row


def _update_row_dict(ws, row_idx: int, patch: Dict[str, Any]):
    headers = _with_retry("row_values(header)", lambda: ws.row_values(1))
    if not headers:
        raise RuntimeError("Worksheet has no header row.")
    current = _with_retry("row_values(row)", lambda: ws.row_values(row_idx))
    row = _row_from_dict(headers, patch, base=current)
    _with_retry("update(row)", lambda: ws.update(range_name=f"A{row_idx}:{_col_letter(len(headers))}{row_idx}", values=[row]))


def _append_row_dict(ws, data: Dict[str, Any]):
    headers = _with_retry("row_values(header)", lambda: ws.row_values(1))
    if not headers:
        raise RuntimeError("Worksheet has no header row.")
    _with_retry("append_row", lambda: ws.append_row(_row_from_dict(headers, data)))


def _matches(row: Dict[str, Any], username: str, date_s: Optional[str] = None) -> bool:
    if str(row.get("username", "")).strip() != str(username).strip():
        return False
    return date_s is None or str(row.get("date", "")).strip() == date_s


# ----------------------------
# Main client
# ----------------------------

class EdgeGSheets:
    def __init__(self, gc: gspread.Client, cfg: Optional[GSheetsConfig] = None):
        self.gc = gc
        self.cfg = cfg or GSheetsConfig()
        self._read_cache: Dict[str, Tuple[float, Any]] = {}
        self._default_ttl_sec = 20.0

        self.sh = _with_retry("open(spreadsheet)", lambda: self.gc.open(self.cfg.spreadsheet_name))
        self.sleep = self._get_or_create_ws(self.cfg.sleep_ws)
        self.checkins = self._get_or_create_ws(self.cfg.checkins_ws)
        self.profiles = self._get_or_create_ws(self.cfg.profiles_ws)
        self.predictions = self._get_or_create_ws(self.cfg.predictions_ws)
        self.admin_logs = self._get_or_create_ws(self.cfg.admin_logs_ws)

        self._init_schema()

    def _get_or_create_ws(self, title: str):
        try:
            return _with_retry(f"worksheet({title})", lambda: self.sh.worksheet(title))
        except RuntimeError as e:
            if not isinstance(e.__cause__, WorksheetNotFound):
                raise
            logger.info("creating worksheet %s", title)
            return _with_retry(f"add_worksheet({title})", lambda: self.sh.add_worksheet(title=title, rows=1000, cols=30))

    def _init_schema(self):
        _ensure_headers(self.sleep, SLEEP_HEADERS)
        _ensure_headers(self.checkins, CHECKIN_HEADERS)
        _ensure_headers(self.profiles, PROFILE_HEADERS)
        _ensure_headers(self.predictions, PREDICTION_HEADERS)
        _ensure_headers(self.admin_logs, ADMIN_LOG_HEADERS)

    # -------- read cache --------

    def _cache_get(self, key: str) -> Optional[Any]:
        item = self._read_cache.get(key)
        if not item:
            return None
        exp, value = item
        if time.time() >= exp:
            self._read_cache.pop(key, None)
            return None
        return value

    def _cache_set(self, key: str, value: Any, ttl_sec: Optional[float] = None) -> Any:
        ttl = float(ttl_sec if ttl_sec is not None else self._default_ttl_sec)
        self._read_cache[key] = (time.time() + max(1.0, ttl), value)
        return value

    def _cache_invalidate(self, prefix: str) -> None:
        for k in [k for k in self._read_cache if k.startswith(prefix)]:
            self._read_cache.pop(k, None)

    def _records_cached(self, key: str, ws, ttl_sec: Optional[float] = None) -> List[Dict[str, Any]]:
        cached = self._cache_get(key)
        if cached is not None:
            return cached
        rows = _with_retry("get_all_records", lambda: ws.get_all_records())
        return self._cache_set(key, rows, ttl_sec=ttl_sec)

    # -------- shared (username, date) upsert --------

    def _upsert_dated(self, ws, cache_prefix: str, username: str, date: dt.date, data: Dict[str, Any]) -> None:
        """
        Upsert by (date, username). Duplicate rows for the same key are deleted,
        bottom-up so earlier row indexes stay valid.
        """
        date_s = _date_iso(date)
        records = self._records_cached(f"{cache_prefix}:all", ws)
        # get_all_records() starts at sheet row 2
        found_rows = [i for i, r in enumerate(records, start=2) if _matches(r, username, date_s)]

        payload = {"date": date_s, "username": username, "updated_at": _now_iso()}
        payload.update(data)

        if not found_rows:
            _append_row_dict(ws, payload)
        else:
            _update_row_dict(ws, found_rows[0], payload)
            for idx in sorted(found_rows[1:], reverse=True):
                _with_retry(f"delete_rows(duplicate_{cache_prefix})", lambda i=idx: ws.delete_rows(i))
        self._cache_invalidate(f"{cache_prefix}:")

    def _rows_for_user(self, ws, cache_prefix: str, username: str, as_of: Optional[dt.date], limit: Optional[int]) -> List[Dict[str, Any]]:
        """Newest first; ISO date strings sort chronologically."""
        rows = self._records_cached(f"{cache_prefix}:all", ws)
        out = [r for r in rows if _matches(r, username)]
        if as_of is not None:
            as_of_s = _date_iso(as_of)
            out = [r for r in out if str(r.get("date", "")).strip() <= as_of_s]
        out.sort(key=lambda r: str(r.get("date", "")), reverse=True)
        if limit is not None:
            return out[: max(0, int(limit))]
        return out

    # -------- Sleep records --------

    def get_sleep_records_for_user(self, username: str, as_of: Optional[dt.date] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._rows_for_user(self.sleep, "sleep", username, as_of, limit)

    def upsert_sleep_record(self, username: str, date: dt.date, data: Dict[str, Any]) -> None:
        self._upsert_dated(self.sleep, "sleep", username, date, data)

    # -------- Check-ins --------

    def get_checkins_for_user(self, username: str, as_of: Optional[dt.date] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._rows_for_user(self.checkins, "checkins", username, as_of, limit)

    def upsert_checkin(self, username: str, date: dt.date, data: Dict[str, Any]) -> None:
        self._upsert_dated(self.checkins, "checkins", username, date, data)

    # -------- Profiles --------

    def get_profile(self, username: str) -> Optional[Dict[str, Any]]:
        rows = self._records_cached("profiles:all", self.profiles)
        for r in rows:
            if _matches(r, username):
                return r
        return None

    def list_usernames(self) -> List[str]:
        rows = self._records_cached("profiles:all", self.profiles)
        out: List[str] = []
        for r in rows:
            name = str(r.get("username", "")).strip()
            if name and name not in out:
                out.append(name)
        return out

    def upsert_profile(self, username: str, data: Dict[str, Any]) -> None:
        rows = self._records_cached("profiles:all", self.profiles)
        row_idx = next((i for i, r in enumerate(rows, start=2) if _matches(r, username)), None)
        payload = {"username": username, "updated_at": _now_iso()}
        payload.update(data)
        if row_idx is None:
            payload.setdefault("created_at", _now_iso())
            _append_row_dict(self.profiles, payload)
        else:
            _update_row_dict(self.profiles, row_idx, payload)
        self._cache_invalidate("profiles:")

    # -------- Predictions --------

    def get_prediction(self, username: str, date: dt.date) -> Optional[Dict[str, Any]]:
        date_s = _date_iso(date)
        rows = self._records_cached("predictions:all", self.predictions)
        for r in rows:
            if _matches(r, username, date_s):
                return r
        return None

    def upsert_prediction(self, username: str, date: dt.date, data: Dict[str, Any]) -> None:
        self._upsert_dated(self.predictions, "predictions", username, date, data)

    # -------- Admin logs --------

    def append_admin_log(self, level: str, action: str, username: str, detail: str) -> None:
        payload = {
            "timestamp": _now_iso(),
            "level": str(level or "info"),
            "action": str(action or ""),
            "username": str(username or ""),
            "detail": str(detail or ""),
        }
        try:
            _append_row_dict(self.admin_logs, payload)
            self._cache_invalidate("admin_logs:")
        except Exception as e:
            # Audit log failures never fail the main flow.
            logger.warning("admin log append failed for %s: %s", action, e)

    def get_recent_admin_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self._records_cached("admin_logs:all", self.admin_logs)
        out = list(rows)
        out.sort(key=lambda r: str(r.get("timestamp", "")), reverse=True)
        return out[: max(0, int(limit))]
