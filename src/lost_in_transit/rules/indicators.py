from __future__ import annotations

from datetime import date
from typing import Any, Iterable

import pandas as pd

from lost_in_transit.models import EligibilityRecord, EligibilityStatus

# Computed column names (used by the read API and tests)
DAYS_REMAINING = "days_remaining"
DAYS_SINCE_LAST_SCAN = "days_since_last_scan"

RECORD_COLS: tuple[str, ...] = (
    "shipment_id",
    "tracking_number",
    "carrier",
    "client_id",
    "is_international",
    "status",
    "eligible_after",
    "last_scan_date",
    "last_scan_description",
    "last_scan_location",
    "provider_tracking_id",
    "first_checked_at",
    "checked_at",
    "last_recheck_at",
)

# ---- Helpers -----------------------------------------------------------------


def _as_day_series(s: pd.Series) -> pd.Series:
    """Coerce datetimes/dates/strings to UTC-normalized midnight timestamps (NaT when blank)."""
    return pd.to_datetime(s, utc=True, errors="coerce").dt.normalize()


def _today_ts(today: date) -> pd.Timestamp:
    return pd.Timestamp(today).tz_localize("UTC")


def _nullable_int(s: pd.Series) -> pd.Series:
    return s.round().astype("Int64")


def records_frame(records: Iterable[EligibilityRecord]) -> pd.DataFrame:
    rows = [r.to_dict() for r in records]
    return pd.DataFrame(rows, columns=list(RECORD_COLS))


def apply_eligibility_columns(df: pd.DataFrame, *, today: date) -> pd.DataFrame:
    """
    Create/overwrite computed columns:
      - days_since_last_scan: whole days since last_scan_date (NA when never scanned)
      - days_remaining: days until eligible_after, floored at 0; only for at_risk rows
    """
    out = df.copy()
    n = len(out)
    t = _today_ts(today)

    if "last_scan_date" in out.columns:
        scans = _as_day_series(out["last_scan_date"])
        out[DAYS_SINCE_LAST_SCAN] = _nullable_int((t - scans).dt.days)
    else:
        out[DAYS_SINCE_LAST_SCAN] = pd.Series([pd.NA] * n, index=out.index, dtype="Int64")

    if "eligible_after" in out.columns and "status" in out.columns:
        deadline = _as_day_series(out["eligible_after"])
        remaining = (deadline - t).dt.days.clip(lower=0)
        at_risk = out["status"].astype("string") == EligibilityStatus.AT_RISK.value
        out[DAYS_REMAINING] = _nullable_int(remaining.where(at_risk))
    else:
        out[DAYS_REMAINING] = pd.Series([pd.NA] * n, index=out.index, dtype="Int64")

    return out


def status_counts(df: pd.DataFrame) -> dict[str, int]:
    """Count rows per eligibility status; every status is present (0 when absent)."""
    counts = {s.value: 0 for s in EligibilityStatus}
    if len(df) and "status" in df.columns:
        for k, v in df["status"].astype("string").value_counts().items():
            counts[str(k)] = int(v)
    return counts


def _py(v: Any) -> Any:
    """numpy/pandas scalar -> plain Python value (NA/NaT -> None)."""
    if v is None or (not isinstance(v, (list, dict)) and pd.isna(v)):
        return None
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    if hasattr(v, "item"):
        return v.item()
    return v


def to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as plain dicts."""
    return [
        {k: _py(v) for k, v in row.items()}
        for row in df.to_dict(orient="records")
    ]


def eligibility_view(
    records: Iterable[EligibilityRecord],
    *,
    today: date,
) -> list[dict[str, Any]]:
    """Records with computed day columns, as dicts."""
    return to_records(apply_eligibility_columns(records_frame(records), today=today))
