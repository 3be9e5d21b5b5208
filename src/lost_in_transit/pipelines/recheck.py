# src/lost_in_transit/pipelines/recheck.py
"""
Periodic sweep over active eligibility records.

Each record produces one outcome variant; the run summary is a fold over the
sequence of outcomes, so a failing record only contributes an `Errored`.
"""
from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional, Union

from lost_in_transit.api.gateway import TrackingGateway
from lost_in_transit.config.logging_config import component_logger
from lost_in_transit.errors import TrackingUnavailable
from lost_in_transit.models import EligibilityRecord, EligibilityStatus, TrackingSnapshot
from lost_in_transit.rules.policy import PolicyConfig, evaluate
from lost_in_transit.store.repository import ClaimLedger, EligibilityStore, ShipmentSource
from lost_in_transit.utils.dates import utcnow
from .evaluation import build_signals, guarded_evaluate, record_from_decision

LEASE_NAME = "recheck"


# ---- outcome variants ---------------------------------------------------------

@dataclass(frozen=True)
class Promoted:
    shipment_id: str
    via_lost_status: bool = False


@dataclass(frozen=True)
class Delivered:
    shipment_id: str


@dataclass(frozen=True)
class MissedWindow:
    shipment_id: str
    without_fetch: bool = False


@dataclass(frozen=True)
class ClaimFiled:
    shipment_id: str


@dataclass(frozen=True)
class Unchanged:
    shipment_id: str
    status: EligibilityStatus


@dataclass(frozen=True)
class Errored:
    shipment_id: str
    error: str


Outcome = Union[Promoted, Delivered, MissedWindow, ClaimFiled, Unchanged, Errored]


@dataclass(frozen=True)
class RecheckSummary:
    total_checked: int = 0
    now_eligible: int = 0
    now_eligible_via_lost_status: int = 0
    now_delivered: int = 0
    missed_window: int = 0
    still_at_risk: int = 0
    still_eligible: int = 0
    claim_filed: int = 0
    archived_checked: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
    skipped: bool = False
    duration_ms: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["errors"] = list(self.errors)
        return d


def summarize(
    outcomes: Iterable[Outcome],
    archived: Iterable[Outcome] = (),
    *,
    duration_ms: int = 0,
) -> RecheckSummary:
    counts = {
        "now_eligible": 0,
        "now_eligible_via_lost_status": 0,
        "now_delivered": 0,
        "missed_window": 0,
        "still_at_risk": 0,
        "still_eligible": 0,
        "claim_filed": 0,
    }
    errors: list[str] = []

    def fold(o: Outcome) -> None:
        if isinstance(o, Promoted):
            counts["now_eligible"] += 1
            if o.via_lost_status:
                counts["now_eligible_via_lost_status"] += 1
        elif isinstance(o, Delivered):
            counts["now_delivered"] += 1
        elif isinstance(o, MissedWindow):
            counts["missed_window"] += 1
        elif isinstance(o, ClaimFiled):
            counts["claim_filed"] += 1
        elif isinstance(o, Unchanged):
            if o.status == EligibilityStatus.AT_RISK:
                counts["still_at_risk"] += 1
            elif o.status == EligibilityStatus.ELIGIBLE:
                counts["still_eligible"] += 1
        elif isinstance(o, Errored):
            errors.append(f"{o.shipment_id}: {o.error}")

    main = tuple(outcomes)
    swept = tuple(archived)
    for o in main + swept:
        fold(o)

    return RecheckSummary(
        total_checked=len(main),
        archived_checked=len(swept),
        errors=tuple(errors),
        duration_ms=duration_ms,
        **counts,
    )


# ---- scheduler ----------------------------------------------------------------

class RecheckScheduler:
    def __init__(
        self,
        *,
        store: EligibilityStore,
        shipments: ShipmentSource,
        ledger: ClaimLedger,
        gateway: TrackingGateway,
        config: Optional[PolicyConfig] = None,
        batch_size: int = 300,
        archive_batch_size: int = 30,
        lease_seconds: int = 600,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.shipments = shipments
        self.ledger = ledger
        self.gateway = gateway
        self.config = config or PolicyConfig()
        self.batch_size = batch_size
        self.archive_batch_size = archive_batch_size
        self.lease_seconds = lease_seconds
        self.logger = logger or component_logger("pipelines.recheck")
        self.host = f"{socket.gethostname()}:{os.getpid()}"

    def _new_holder(self) -> str:
        # new token per run; only that run may extend or release the lease
        return f"{self.host}:{uuid.uuid4().hex}"

    def run(self, now: Optional[datetime] = None) -> RecheckSummary:
        started = time.monotonic()
        now = now or utcnow()
        holder = self._new_holder()

        if not self.store.acquire_lease(LEASE_NAME, holder, now=now, ttl_seconds=self.lease_seconds):
            self.logger.info("Recheck skipped: another run holds the lease")
            return RecheckSummary(skipped=True)

        try:
            records = self.store.select_for_recheck(self.batch_size)
            self.logger.info("Rechecking %d active records", len(records))
            outcomes = tuple(self._guarded(self.recheck_one, rec, now) for rec in records)

            archived = self.store.select_archived(self.archive_batch_size)
            self.logger.info("Sweeping %d missed-window records for late delivery", len(archived))
            swept = tuple(self._guarded(self.sweep_archived, rec, now) for rec in archived)
        finally:
            self.store.release_lease(LEASE_NAME, holder)

        summary = summarize(outcomes, swept, duration_ms=int((time.monotonic() - started) * 1000))
        self.logger.info(
            "Recheck done: checked=%d eligible=%d (lost=%d) delivered=%d missed=%d at_risk=%d "
            "still_eligible=%d claim_filed=%d archived=%d errors=%d",
            summary.total_checked, summary.now_eligible, summary.now_eligible_via_lost_status,
            summary.now_delivered, summary.missed_window, summary.still_at_risk,
            summary.still_eligible, summary.claim_filed, summary.archived_checked, len(summary.errors),
        )
        return summary

    def _guarded(self, fn, rec: EligibilityRecord, now: datetime) -> Outcome:
        try:
            return fn(rec, now)
        except Exception as ex:
            self.logger.exception("Recheck failed for %s", rec.shipment_id)
            try:
                self.store.touch_recheck(rec.shipment_id, now)
            except Exception:
                self.logger.exception("Could not touch last_recheck_at for %s", rec.shipment_id)
            return Errored(rec.shipment_id, str(ex) or type(ex).__name__)

    def _fetch(self, rec: EligibilityRecord) -> Optional[TrackingSnapshot]:
        try:
            return self.gateway.fetch(rec.tracking_number, rec.carrier)
        except TrackingUnavailable as ex:
            self.logger.info("%s: tracking unavailable (%s)", rec.shipment_id, ex.reason)
            return None

    def _deliver(self, rec: EligibilityRecord, delivered_at: datetime) -> Delivered:
        self.store.delete(rec.shipment_id)
        self.shipments.mark_delivered(rec.shipment_id, delivered_at)
        self.logger.info("%s DELIVERED; removed from monitoring", rec.shipment_id)
        return Delivered(rec.shipment_id)

    def recheck_one(self, rec: EligibilityRecord, now: datetime) -> Outcome:
        shipment = self.shipments.get(rec.shipment_id)
        if shipment is not None and shipment.delivered_at is not None:
            return self._deliver(rec, shipment.delivered_at)

        intl = rec.is_international or (shipment.is_international if shipment is not None else False)
        signals = build_signals(now=now, is_international=intl, record=rec, shipment=shipment)

        # free check first: stored scan date (or label fallback) may already close the window
        free = evaluate(rec.status, signals, self.config)
        if free.status == EligibilityStatus.MISSED_WINDOW:
            self.store.upsert(record_from_decision(free, now=now, record=rec, rechecked=True))
            self.logger.info("%s MISSED WINDOW (%s days via %s > %s max)", rec.shipment_id,
                             free.window_age, free.signal_source, free.max_window_days)
            return MissedWindow(rec.shipment_id, without_fetch=True)

        snapshot = self._fetch(rec)
        decision = guarded_evaluate(rec.status, replace(signals, snapshot=snapshot),
                                    self.config, self.ledger, rec.shipment_id)
        if decision.delete:
            return self._deliver(rec, decision.delivered_at or now)

        updated = record_from_decision(decision, now=now, record=rec, snapshot=snapshot, rechecked=True)
        if updated.is_international != intl:
            updated = replace(updated, is_international=intl)
        self.store.upsert(updated)

        status = decision.status
        if status == EligibilityStatus.MISSED_WINDOW:
            self.logger.info("%s MISSED WINDOW (%s days > %s max)", rec.shipment_id,
                             decision.window_age, decision.max_window_days)
            return MissedWindow(rec.shipment_id)
        if status == EligibilityStatus.CLAIM_FILED:
            self.logger.info("%s has an existing claim; marked claim_filed", rec.shipment_id)
            return ClaimFiled(rec.shipment_id)
        if status == EligibilityStatus.ELIGIBLE and rec.status != EligibilityStatus.ELIGIBLE:
            self.logger.info("%s NOW ELIGIBLE (%s)", rec.shipment_id,
                             "lost status" if decision.via_lost_status else f"{decision.days_since_signal} days")
            return Promoted(rec.shipment_id, via_lost_status=decision.via_lost_status)
        return Unchanged(rec.shipment_id, status)

    def sweep_archived(self, rec: EligibilityRecord, now: datetime) -> Outcome:
        """Late-delivery check for a closed window; never re-promotes."""
        snapshot = self._fetch(rec)
        if snapshot is not None and snapshot.is_delivered:
            return self._deliver(rec, snapshot.delivered_at or now)
        self.store.touch_recheck(rec.shipment_id, now)
        return Unchanged(rec.shipment_id, rec.status)
