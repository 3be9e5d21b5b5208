# src/lost_in_transit/api/normalize.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from lost_in_transit.models import Checkpoint, TrackingSnapshot


def _parse_ts(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish timestamp to an aware UTC datetime; None when unparseable."""
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _text_says_delivered(text: str) -> bool:
    t = (text or "").lower()
    if "delivery has been arranged" in t:
        return True
    return "delivered" in t and "undelivered" not in t


def is_delivery_checkpoint(cp: Checkpoint) -> bool:
    """A checkpoint is a delivery if its status is 'delivered' or its text says so."""
    if (cp.delivery_status or "").strip().lower() == "delivered":
        return True
    return _text_says_delivered(cp.status_text)


def _unwrap_tracking(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Accept the provider envelope ({"meta":..., "data": [...] | {...}}) or a bare
    tracking object; return the first tracking dict, or {}.
    """
    if not isinstance(payload, dict):
        return {}
    if "data" in payload:
        data = payload["data"]
    elif "meta" in payload:
        # error envelope without a body
        return {}
    else:
        data = payload
    if isinstance(data, list):
        data = data[0] if data else {}
    return data if isinstance(data, dict) else {}


def _location_of(raw: Dict[str, Any]) -> Optional[str]:
    loc = raw.get("location")
    if loc:
        return str(loc)
    parts = [str(raw[k]) for k in ("city", "state", "country_iso2") if raw.get(k)]
    return ", ".join(parts) if parts else None


def _checkpoints(tracking: Dict[str, Any]) -> List[Checkpoint]:
    """Merge origin + destination trackinfo, newest first; undated entries are dropped."""
    out: List[Checkpoint] = []
    for side in ("origin_info", "destination_info"):
        info = tracking.get(side) or {}
        if not isinstance(info, dict):
            continue
        for raw in info.get("trackinfo") or []:
            if not isinstance(raw, dict):
                continue
            ts = _parse_ts(raw.get("checkpoint_date"))
            if ts is None:
                continue
            out.append(Checkpoint(
                timestamp=ts,
                status_text=str(raw.get("tracking_detail") or ""),
                delivery_status=str(raw.get("checkpoint_delivery_status") or ""),
                location=_location_of(raw),
            ))
    out.sort(key=lambda c: c.timestamp, reverse=True)
    return out


def normalize_trackingmore(
    payload: Dict[str, Any],
    *,
    tracking_number: Optional[str] = None,
    carrier_code: Optional[str] = None,
) -> Optional[TrackingSnapshot]:
    """
    Turn a TrackingMore v4 body into a TrackingSnapshot.

    Returns None when the payload carries no tracking object at all (the
    gateway treats that as "unavailable").
    """
    tracking = _unwrap_tracking(payload)
    if not tracking:
        return None

    checkpoints = _checkpoints(tracking)
    status = tracking.get("delivery_status") or tracking.get("status")
    latest_event = str(tracking.get("latest_event") or "")

    delivered_at: Optional[datetime] = None
    for cp in checkpoints:
        if is_delivery_checkpoint(cp):
            delivered_at = cp.timestamp
            break

    is_delivered = (
        delivered_at is not None
        or str(status or "").lower() == "delivered"
        or _text_says_delivered(latest_event)
    )

    return TrackingSnapshot(
        tracking_number=str(tracking.get("tracking_number") or tracking_number or ""),
        carrier_code=tracking.get("courier_code") or carrier_code,
        provider_id=str(tracking["id"]) if tracking.get("id") else None,
        carrier_status=str(status) if status is not None else None,
        checkpoints=tuple(checkpoints),
        latest_event_text=latest_event,
        latest_checkpoint_time=_parse_ts(tracking.get("latest_checkpoint_time")),
        is_delivered=is_delivered,
        delivered_at=delivered_at,
        raw=payload,
    )
