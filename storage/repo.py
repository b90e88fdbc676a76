# storage/repo.py
from __future__ import annotations

from typing import Optional, Dict, Any, List
import datetime as dt
import json
import logging

from edgeframe.models import WINDOW_LIMIT, CheckIn, SleepRecord, UserProfile
from edgeframe.prediction import InsufficientData, PredictionOutcome

logger = logging.getLogger(__name__)


_TRUE = ("1", "true", "t", "yes", "y")
_FALSE = ("0", "false", "f", "no", "n")


def _coerce_int(x: Any) -> Optional[int]:
    if x is None or x == "":
        return None
    try:
        return int(round(float(x)))
    except (TypeError, ValueError):
        return None


def _coerce_bool(x: Any) -> Optional[bool]:
    if x is None or x == "":
        return None
    s = str(x).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return None


def _coerce_date(x: Any) -> Optional[dt.date]:
    s = str(x or "").strip()
    if not s:
        return None
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        return None


def _coerce_datetime(x: Any) -> Optional[dt.datetime]:
    s = str(x or "").strip()
    if not s:
        return None
    try:
        return dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None


class EdgeRepo:
    """
    Backend-agnostic history source for PredictionEngine.
    History reads and writes raise RuntimeError on failure (audited), so an outage
    is never mistaken for missing data. Listing helpers degrade to empty results.
    """
    def __init__(self, gsheets_client):
        self.db = gsheets_client

    def _audit_error(self, action: str, username: str, err: Exception) -> None:
        logger.error("%s failed for %s: %s", action, username or "-", err)
        try:
            self.db.append_admin_log("error", action, username, str(err))
        except Exception as log_err:
            logger.warning("admin log unavailable: %s", log_err)

    # ---- history source ----
    def fetch_sleep_history(self, user: str, as_of_date: dt.date, limit: int = WINDOW_LIMIT) -> List[SleepRecord]:
        try:
            rows = self.db.get_sleep_records_for_user(user, as_of=as_of_date, limit=limit)
        except Exception as e:
            self._audit_error("fetch_sleep_history", user, e)
            raise RuntimeError(f"sleep history read failed: {e}") from e
        return [rec for rec in (self._row_to_sleep_record(r) for r in rows) if rec is not None]

    def fetch_checkins(self, user: str, as_of_date: dt.date, limit: int = WINDOW_LIMIT) -> List[CheckIn]:
        try:
            rows = self.db.get_checkins_for_user(user, as_of=as_of_date, limit=limit)
        except Exception as e:
            self._audit_error("fetch_checkins", user, e)
            raise RuntimeError(f"check-in read failed: {e}") from e
        return [c for c in (self._row_to_checkin(r) for r in rows) if c is not None]

    def fetch_profile(self, user: str) -> Optional[UserProfile]:
        try:
            row = self.db.get_profile(user)
        except Exception as e:
            self._audit_error("fetch_profile", user, e)
            raise RuntimeError(f"profile read failed: {e}") from e
        if not row:
            return None
        return self._row_to_profile(row)

    def list_usernames(self) -> List[str]:
        try:
            return self.db.list_usernames()
        except Exception as e:
            self._audit_error("list_usernames", "", e)
            return []

    # ---- writes ----
    def upsert_sleep_record(self, username: str, record: SleepRecord) -> None:
        data = {
            "duration_minutes": record.duration_minutes,
            "quality_rating": record.quality_rating,
            "bedtime": record.bedtime.isoformat() if record.bedtime else None,
            "wake_time": record.wake_time.isoformat() if record.wake_time else None,
            "caffeine_after_2pm": record.caffeine_after_2pm,
            "alcohol_tonight": record.alcohol_tonight,
            "exercise_today": record.exercise_today,
            "screen_time_minutes": record.screen_time_minutes,
            "nap_duration_minutes": record.nap_duration_minutes,
        }
        try:
            self.db.upsert_sleep_record(username, record.date, data)
        except Exception as e:
            self._audit_error("upsert_sleep_record", username, e)
            raise RuntimeError(f"sleep record save failed: {e}") from e

    def upsert_checkin(self, username: str, checkin: CheckIn) -> None:
        data = {
            "sleep_quality": checkin.sleep_quality,
            "mental_clarity": checkin.mental_clarity,
            "energy_rating": checkin.energy_rating,
            "stress_level": checkin.stress_level,
        }
        try:
            self.db.upsert_checkin(username, checkin.date, data)
        except Exception as e:
            self._audit_error("upsert_checkin", username, e)
            raise RuntimeError(f"check-in save failed: {e}") from e

    def upsert_profile(self, username: str, profile: UserProfile) -> None:
        data = {"timezone": profile.timezone, "chronotype": profile.chronotype, "age": profile.age}
        try:
            self.db.upsert_profile(username, data)
        except Exception as e:
            self._audit_error("upsert_profile", username, e)
            raise RuntimeError(f"profile save failed: {e}") from e

    # ---- predictions ----
    def save_prediction(self, outcome: PredictionOutcome) -> None:
        data = self._prediction_to_row(outcome)
        try:
            self.db.upsert_prediction(outcome.user, outcome.date, data)
        except Exception as e:
            self._audit_error("save_prediction", outcome.user, e)
            raise RuntimeError(f"prediction save failed: {e}") from e

    def get_prediction(self, username: str, date: dt.date) -> Optional[Dict[str, Any]]:
        """Stored payload dict, or None."""
        try:
            row = self.db.get_prediction(username, date)
        except Exception as e:
            self._audit_error("get_prediction", username, e)
            return None
        if not row:
            return None
        try:
            obj = json.loads(str(row.get("payload_json", "") or "{}"))
        except json.JSONDecodeError:
            obj = {}
        return obj if isinstance(obj, dict) else {}

    def get_recent_admin_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            return self.db.get_recent_admin_logs(limit=limit)
        except Exception as e:
            logger.warning("admin logs unavailable: %s", e)
            return []

    # ---- internal ----
    def _prediction_to_row(self, outcome: PredictionOutcome) -> Dict[str, Any]:
        if isinstance(outcome, InsufficientData):
            payload = {
                "state": outcome.state,
                "user": outcome.user,
                "date": outcome.date.isoformat(),
                "sleep_records_found": outcome.sleep_records_found,
                "required": outcome.required,
            }
            return {
                "state": outcome.state,
                "risk_level": "",
                "edge_score": "",
                "scoring_mode": "",
                "payload_json": json.dumps(payload),
            }
        return {
            "state": outcome.state,
            "risk_level": outcome.risk_level,
            "edge_score": outcome.edge_score,
            "scoring_mode": outcome.scoring_mode,
            "payload_json": json.dumps(outcome.to_dict(), ensure_ascii=False),
        }

    def _row_to_sleep_record(self, row: Dict[str, Any]) -> Optional[SleepRecord]:
        d = _coerce_date(row.get("date"))
        if d is None:
            return None
        return SleepRecord(
            date=d,
            duration_minutes=_coerce_int(row.get("duration_minutes")),
            quality_rating=_coerce_int(row.get("quality_rating")),
            bedtime=_coerce_datetime(row.get("bedtime")),
            wake_time=_coerce_datetime(row.get("wake_time")),
            caffeine_after_2pm=_coerce_bool(row.get("caffeine_after_2pm")),
            alcohol_tonight=_coerce_bool(row.get("alcohol_tonight")),
            exercise_today=_coerce_bool(row.get("exercise_today")),
            screen_time_minutes=_coerce_int(row.get("screen_time_minutes")),
            nap_duration_minutes=_coerce_int(row.get("nap_duration_minutes")),
        )

    def _row_to_checkin(self, row: Dict[str, Any]) -> Optional[CheckIn]:
        d = _coerce_date(row.get("date"))
        if d is None:
            return None
        return CheckIn(
            date=d,
            sleep_quality=_coerce_int(row.get("sleep_quality")),
            mental_clarity=_coerce_int(row.get("mental_clarity")),
            energy_rating=_coerce_int(row.get("energy_rating")),
            stress_level=_coerce_int(row.get("stress_level")),
        )

    def _row_to_profile(self, row: Dict[str, Any]) -> UserProfile:
        # blank cells fall back to the dataclass defaults
        defaults = UserProfile()
        return UserProfile(
            timezone=str(row.get("timezone", "") or "").strip() or defaults.timezone,
            chronotype=str(row.get("chronotype", "") or "").strip().lower() or defaults.chronotype,
            age=_coerce_int(row.get("age")),
        )
