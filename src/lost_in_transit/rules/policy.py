# src/lost_in_transit/rules/policy.py
"""
Eligibility state machine.

`evaluate(current, signals, config)` is a pure function: given the record's
current status (None when the shipment is not monitored yet) and everything
known about the shipment right now, it returns the next Decision. Callers
own all I/O (fetching, claim-ledger lookups, persistence).

Precedence:
  0) terminal states only leave on delivery
  1) delivered -> delete
  2) window age > max window -> missed_window (even from eligible)
  3) carrier-admitted loss -> eligible / claim_filed
  4) days since signal >= required days -> eligible / claim_filed
  5) otherwise at_risk (eligible never regresses)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from lost_in_transit.models import EligibilityStatus, EnvCfg, TrackingSnapshot
from lost_in_transit.utils.dates import as_utc, days_between
from .lost_status import is_lost_status

# signal_source values
SOURCE_CHECKPOINT = "checkpoint"
SOURCE_LAST_SCAN = "last_scan"
SOURCE_LABEL = "label"


@dataclass(frozen=True)
class PolicyConfig:
    required_days_domestic: int = 15
    required_days_international: int = 20
    max_window_days_domestic: int = 45
    max_window_days_international: int = 50
    label_grace_days: int = 7

    @classmethod
    def from_env(cls, cfg: EnvCfg) -> "PolicyConfig":
        return cls(
            required_days_domestic=cfg.LIT_DOMESTIC_DAYS,
            required_days_international=cfg.LIT_INTERNATIONAL_DAYS,
            max_window_days_domestic=cfg.LIT_DOMESTIC_MAX_WINDOW_DAYS,
            max_window_days_international=cfg.LIT_INTERNATIONAL_MAX_WINDOW_DAYS,
            label_grace_days=cfg.LIT_LABEL_GRACE_DAYS,
        )

    def required_days(self, is_international: bool) -> int:
        return self.required_days_international if is_international else self.required_days_domestic

    def max_window_days(self, is_international: bool) -> int:
        return self.max_window_days_international if is_international else self.max_window_days_domestic


@dataclass(frozen=True)
class Signals:
    now: datetime
    is_international: bool
    snapshot: Optional[TrackingSnapshot] = None
    stored_last_scan: Optional[datetime] = None
    stored_scan_description: Optional[str] = None
    stored_scan_location: Optional[str] = None
    stored_eligible_after: Optional[date] = None
    label_created_at: Optional[datetime] = None
    has_claim: bool = False


@dataclass(frozen=True)
class Decision:
    # None means "delete the record" (delivery confirmed)
    status: Optional[EligibilityStatus]
    required_days: int
    max_window_days: int
    days_since_signal: Optional[int] = None
    signal_source: Optional[str] = None
    window_age: Optional[int] = None
    eligible_after: Optional[date] = None
    last_scan_date: Optional[datetime] = None
    last_scan_description: Optional[str] = None
    last_scan_location: Optional[str] = None
    via_lost_status: bool = False
    never_scanned: bool = False
    delivered_at: Optional[datetime] = None

    @property
    def delete(self) -> bool:
        return self.status is None

    @property
    def eligible(self) -> bool:
        return self.status == EligibilityStatus.ELIGIBLE

    @property
    def days_remaining(self) -> Optional[int]:
        if self.days_since_signal is None:
            return None
        return max(0, self.required_days - self.days_since_signal)


def next_eligible_after(
    stored: Optional[date],
    last_scan: Optional[datetime],
    label_created_at: Optional[datetime],
    required_days: int,
) -> Optional[date]:
    """Deadline from the newest signal; never earlier than the stored one."""
    anchor = last_scan or label_created_at
    candidate = (as_utc(anchor).date() + timedelta(days=required_days)) if anchor else None
    if stored is None:
        return candidate
    if candidate is None:
        return stored
    return max(stored, candidate)


def _scan_fields(signals: Signals) -> tuple[Optional[datetime], Optional[str], Optional[str], Optional[str]]:
    """
    (last_scan_date, description, location, source) after merging the snapshot
    with what is stored. A snapshot only replaces stored values when it carries
    a strictly later checkpoint.
    """
    stored_at = as_utc(signals.stored_last_scan)
    snap = signals.snapshot
    snap_at = as_utc(snap.last_checkpoint_at) if snap is not None else None

    if snap_at is not None and (stored_at is None or snap_at > stored_at):
        cp = snap.last_checkpoint
        description = (cp.status_text if cp else "") or snap.latest_text or None
        location = cp.location if cp else None
        return snap_at, description, location, SOURCE_CHECKPOINT
    if stored_at is not None:
        return stored_at, signals.stored_scan_description, signals.stored_scan_location, SOURCE_LAST_SCAN
    return None, None, None, None


def evaluate(
    current: Optional[EligibilityStatus],
    signals: Signals,
    config: PolicyConfig,
) -> Decision:
    intl = signals.is_international
    required = config.required_days(intl)
    max_window = config.max_window_days(intl)
    snap = signals.snapshot
    now = signals.now

    last_scan, description, location, source = _scan_fields(signals)
    label_at = as_utc(signals.label_created_at)

    if last_scan is not None:
        days_since = days_between(now, last_scan)
        window_age: Optional[int] = days_since
    elif label_at is not None:
        # silent since labeling; the window allows for carrier scan latency
        days_since = days_between(now, label_at)
        window_age = days_since - config.label_grace_days
        source = SOURCE_LABEL
    else:
        days_since = None
        window_age = None

    never_scanned = last_scan is None and (snap is None or snap.never_scanned)
    eligible_after = next_eligible_after(signals.stored_eligible_after, last_scan, label_at, required)

    def decide(status: Optional[EligibilityStatus], **extra) -> Decision:
        return Decision(
            status=status,
            required_days=required,
            max_window_days=max_window,
            days_since_signal=days_since,
            signal_source=source,
            window_age=window_age,
            eligible_after=eligible_after,
            last_scan_date=last_scan,
            last_scan_description=description,
            last_scan_location=location,
            never_scanned=never_scanned,
            **extra,
        )

    # 0/1) delivery wins over everything, terminal states included
    if snap is not None and snap.is_delivered:
        return decide(None, delivered_at=snap.delivered_at or now)

    if current is not None and current.is_terminal:
        return Decision(
            status=current,
            required_days=required,
            max_window_days=max_window,
            days_since_signal=days_since,
            signal_source=source,
            window_age=window_age,
            eligible_after=signals.stored_eligible_after,
            last_scan_date=as_utc(signals.stored_last_scan),
            last_scan_description=signals.stored_scan_description,
            last_scan_location=signals.stored_scan_location,
            never_scanned=never_scanned,
        )

    promoted = EligibilityStatus.CLAIM_FILED if signals.has_claim else EligibilityStatus.ELIGIBLE

    # 2) eligibility does not extend the filing deadline
    if window_age is not None and window_age > max_window:
        return decide(EligibilityStatus.MISSED_WINDOW)

    # 3) carrier admitted the loss
    latest_text = (snap.latest_text if snap is not None else "") or description
    if is_lost_status(latest_text):
        return decide(promoted, via_lost_status=True)

    # 4) silence threshold
    if days_since is not None and days_since >= required:
        return decide(promoted)

    # 5) not yet; an eligible record keeps its status and only refreshes scan data
    if current == EligibilityStatus.ELIGIBLE:
        return decide(promoted)
    return decide(EligibilityStatus.AT_RISK)
