# src/lost_in_transit/pipelines/verifier.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from lost_in_transit.api.gateway import TrackingGateway
from lost_in_transit.config.logging_config import component_logger
from lost_in_transit.errors import AccessDenied, ShipmentNotFound, TrackingUnavailable
from lost_in_transit.models import EligibilityRecord, EligibilityStatus
from lost_in_transit.rules.policy import SOURCE_LABEL, Decision, PolicyConfig
from lost_in_transit.store.repository import ClaimLedger, EligibilityStore, ShipmentSource
from lost_in_transit.utils.dates import days_between, days_until, utcnow
from .evaluation import build_signals, guarded_evaluate, record_from_decision

DELIVERED_INTERNAL = (
    "This package has been marked as delivered. "
    "Lost in Transit claims cannot be filed for delivered packages."
)
DELIVERED_CARRIER = (
    "Carrier records show this package has been delivered. "
    "Lost in Transit claims cannot be filed for delivered packages."
)
NO_TRACKING = "This shipment does not have a tracking number. Unable to verify carrier status."
CLAIM_ALREADY_FILED = "A Lost in Transit claim has already been filed for this shipment."


def _days(n: int) -> str:
    return f"{n} day{'' if n == 1 else 's'}"


def _scope(is_international: bool) -> str:
    return "international" if is_international else "domestic"


@dataclass(frozen=True)
class VerifyResult:
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

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class OnDemandVerifier:
    """
    Fresh eligibility check for one shipment, run when a user starts a claim.

    Cost control: terminal records and at_risk records whose deadline is still
    ahead are answered from the store without calling the tracking provider.
    """

    def __init__(
        self,
        *,
        shipments: ShipmentSource,
        store: EligibilityStore,
        ledger: ClaimLedger,
        gateway: TrackingGateway,
        config: Optional[PolicyConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.shipments = shipments
        self.store = store
        self.ledger = ledger
        self.gateway = gateway
        self.config = config or PolicyConfig()
        self.logger = logger or component_logger("pipelines.verifier")

    def verify(
        self,
        shipment_id: str,
        caller_client_ids: Optional[Iterable[str]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> VerifyResult:
        """`caller_client_ids=None` means an internal caller with access to every tenant."""
        now = now or utcnow()

        shipment = self.shipments.get(shipment_id)
        if shipment is None:
            raise ShipmentNotFound(shipment_id)
        if caller_client_ids is not None and shipment.client_id not in set(caller_client_ids):
            raise AccessDenied(shipment_id)

        if shipment.delivered_at is not None:
            return VerifyResult(eligible=False, can_proceed=False, reason=DELIVERED_INTERNAL)
        if not (shipment.tracking_number or "").strip():
            return VerifyResult(eligible=False, can_proceed=False, reason=NO_TRACKING)

        existing = self.store.get(shipment_id)
        intl = existing.is_international if existing is not None else shipment.is_international
        if existing is not None:
            cached = self._cached(existing, now)
            if cached is not None:
                self.logger.info("Verify %s answered from cache (%s)", shipment_id, existing.status.value)
                return cached

        error: Optional[str] = None
        try:
            snapshot = self.gateway.fetch(shipment.tracking_number, shipment.carrier)
        except TrackingUnavailable as ex:
            self.logger.warning("Verify %s: tracking unavailable (%s); using stored/label signals",
                                shipment_id, ex.reason)
            snapshot = None
            error = ex.reason

        signals = build_signals(now=now, is_international=intl, record=existing,
                                shipment=shipment, snapshot=snapshot)
        decision = guarded_evaluate(existing.status if existing else None, signals,
                                    self.config, self.ledger, shipment_id)

        if decision.delete:
            self.store.delete(shipment_id)
            self.shipments.mark_delivered(shipment_id, decision.delivered_at or now)
            self.logger.info("Verify %s: delivered per carrier; monitoring removed", shipment_id)
            return VerifyResult(eligible=False, can_proceed=False, reason=DELIVERED_CARRIER,
                                is_international=intl)

        if decision.days_since_signal is None and snapshot is not None:
            # provider answered but nothing dates the package; do not persist a guess
            status_text = snapshot.carrier_status or "unknown"
            return VerifyResult(
                eligible=False, can_proceed=False, is_international=intl,
                required_days=decision.required_days, error=error,
                reason=(f'Unable to determine last carrier scan date. The tracking status is "{status_text}". '
                        "Please try again later or contact support if this persists."),
            )

        record = record_from_decision(decision, now=now, shipment=shipment, record=existing,
                                      snapshot=snapshot, is_international=intl)
        self.store.upsert(record)
        self.logger.info("Verify %s -> %s (days_since=%s source=%s)", shipment_id,
                         decision.status.value, decision.days_since_signal, decision.signal_source)

        return VerifyResult(
            eligible=decision.eligible,
            can_proceed=decision.eligible,
            reason=self._reason(decision, intl, unavailable=error is not None),
            status=decision.status.value,
            days_remaining=None if decision.eligible else decision.days_remaining,
            days_since_last_scan=decision.days_since_signal,
            required_days=decision.required_days,
            is_international=intl,
            last_scan_date=decision.last_scan_date,
            last_scan_description=decision.last_scan_description,
            last_scan_location=decision.last_scan_location,
            previous_check_date=existing.checked_at if existing else None,
            error=error,
        )

    def _cached(self, rec: EligibilityRecord, now: datetime) -> Optional[VerifyResult]:
        required = self.config.required_days(rec.is_international)
        since = days_between(now, rec.last_scan_date) if rec.last_scan_date else None
        common = dict(
            status=rec.status.value,
            required_days=required,
            is_international=rec.is_international,
            days_since_last_scan=since,
            last_scan_date=rec.last_scan_date,
            last_scan_description=rec.last_scan_description,
            last_scan_location=rec.last_scan_location,
            from_cache=True,
            previous_check_date=rec.checked_at,
        )

        if rec.status == EligibilityStatus.CLAIM_FILED:
            return VerifyResult(eligible=False, can_proceed=False, reason=CLAIM_ALREADY_FILED, **common)
        if rec.status == EligibilityStatus.MISSED_WINDOW:
            limit = self.config.max_window_days(rec.is_international)
            return VerifyResult(
                eligible=False, can_proceed=False,
                reason=(f"The claim window for this shipment has closed. Lost in Transit claims for "
                        f"{_scope(rec.is_international)} shipments must be filed within {limit} days "
                        "of the last carrier scan."),
                **common,
            )
        if rec.status == EligibilityStatus.AT_RISK and rec.eligible_after is not None:
            remaining = days_until(rec.eligible_after, now.date())
            if remaining > 0:
                return VerifyResult(
                    eligible=False, can_proceed=False, days_remaining=remaining,
                    reason=(f"{_scope(rec.is_international).capitalize()} shipments require {required} days "
                            f"of carrier inactivity. Check back in {_days(remaining)}."),
                    **common,
                )
        return None

    def _reason(self, d: Decision, intl: bool, *, unavailable: bool) -> str:
        prefix = "Unable to retrieve carrier tracking data. " if unavailable else ""
        since = d.days_since_signal or 0
        scope = _scope(intl)

        if d.status == EligibilityStatus.CLAIM_FILED:
            return CLAIM_ALREADY_FILED
        if d.status == EligibilityStatus.MISSED_WINDOW:
            return (f"{prefix}The claim window for this shipment has closed: {_days(d.window_age or since)} "
                    f"since the last carrier signal exceeds the {d.max_window_days}-day limit for "
                    f"{scope} shipments.")

        if d.signal_source == SOURCE_LABEL:
            opener = prefix or "The carrier has no record of receiving this package. "
            if d.eligible:
                return (f"{opener}It was labeled {_days(since)} ago and was never scanned by the carrier. "
                        "You can file a Lost in Transit claim.")
            return (f"{opener}It was labeled {_days(since)} ago. Lost in Transit claims for {scope} "
                    f"shipments require {d.required_days} days. Please check back in "
                    f"{_days(d.days_remaining or 0)}.")

        if d.eligible and d.via_lost_status:
            quoted = f' ("{d.last_scan_description}")' if d.last_scan_description else ""
            return (f"{prefix}The carrier reports this package as lost{quoted}. "
                    "You can file a Lost in Transit claim.")
        if d.eligible:
            return (f"{prefix}No carrier activity for {_days(since)}. {scope.capitalize()} shipments are "
                    f"eligible after {d.required_days} days of carrier inactivity. "
                    "You can file a Lost in Transit claim.")
        if d.days_since_signal is None:
            return (f"{prefix}Unable to determine the last carrier scan date. "
                    "Please try again later or contact support.")
        return (f"{prefix}{scope.capitalize()} shipments require {d.required_days} days of carrier "
                f"inactivity. Check back in {_days(d.days_remaining or 0)}.")
