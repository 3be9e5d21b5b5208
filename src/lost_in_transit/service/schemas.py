from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class VerifyResponse(BaseModel):
    eligible: bool
    can_proceed: bool
    reason: str
    status: Optional[str] = None
    days_remaining: Optional[int] = None
    days_since_last_scan: Optional[int] = None
    required_days: Optional[int] = None
    is_international: Optional[bool] = None
    last_scan_date: Optional[datetime] = None
    last_scan_description: Optional[str] = None
    last_scan_location: Optional[str] = None
    from_cache: bool = False
    previous_check_date: Optional[datetime] = None
    error: Optional[str] = None


class EligibilityItem(BaseModel):
    shipment_id: str
    tracking_number: str
    carrier: Optional[str] = None
    client_id: str
    is_international: bool
    status: str
    eligible_after: Optional[date] = None
    last_scan_date: Optional[datetime] = None
    last_scan_description: Optional[str] = None
    last_scan_location: Optional[str] = None
    provider_tracking_id: Optional[str] = None
    first_checked_at: Optional[datetime] = None
    checked_at: Optional[datetime] = None
    last_recheck_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    days_since_last_scan: Optional[int] = None


class EligibilityStats(BaseModel):
    total: int
    at_risk: int
    eligible: int
    claim_filed: int
    missed_window: int


class RecheckResponse(BaseModel):
    total_checked: int
    now_eligible: int
    now_eligible_via_lost_status: int
    now_delivered: int
    missed_window: int
    still_at_risk: int
    still_eligible: int
    claim_filed: int
    archived_checked: int
    errors: list[str]
    skipped: bool
    duration_ms: int


class EnrollResponse(BaseModel):
    total_candidates: int
    at_risk: int
    eligible: int
    claim_filed: int
    missed_window: int
    delivered: int
    skipped: int
    errors: list[str]
    duration_ms: int


class Health(BaseModel):
    status: str
    database: str
