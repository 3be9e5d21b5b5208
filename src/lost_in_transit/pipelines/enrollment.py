# src/lost_in_transit/pipelines/enrollment.py
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from lost_in_transit.api.gateway import TrackingGateway
from lost_in_transit.config.logging_config import component_logger
from lost_in_transit.errors import TrackingUnavailable
from lost_in_transit.models import EligibilityStatus, ShipmentRecord
from lost_in_transit.rules.policy import PolicyConfig
from lost_in_transit.store.repository import ClaimLedger, EligibilityStore, ShipmentSource
from lost_in_transit.utils.dates import utcnow
from .evaluation import build_signals, guarded_evaluate, record_from_decision


@dataclass(frozen=True)
class EnrollmentSummary:
    total_candidates: int = 0
    at_risk: int = 0
    eligible: int = 0
    claim_filed: int = 0
    missed_window: int = 0
    delivered: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["errors"] = list(self.errors)
        return d


class MonitoringEnrollment:
    """
    Daily intake: shipments old enough to be at risk that are not monitored
    yet get one (paid) provider lookup and, unless delivered, a new record.
    Lookups that fail are skipped and retried on the next run.
    """

    def __init__(
        self,
        *,
        shipments: ShipmentSource,
        store: EligibilityStore,
        ledger: ClaimLedger,
        gateway: TrackingGateway,
        config: Optional[PolicyConfig] = None,
        limit: int = 500,
        min_days_old: int = 15,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.shipments = shipments
        self.store = store
        self.ledger = ledger
        self.gateway = gateway
        self.config = config or PolicyConfig()
        self.limit = limit
        self.min_days_old = min_days_old
        self.logger = logger or component_logger("pipelines.enrollment")

    def _enroll_one(self, shipment: ShipmentRecord, now: datetime) -> str:
        """Return the bucket this shipment lands in (a status value or 'delivered')."""
        snapshot = self.gateway.fetch(shipment.tracking_number or "", shipment.carrier)

        intl = shipment.is_international
        signals = build_signals(now=now, is_international=intl, shipment=shipment, snapshot=snapshot)
        decision = guarded_evaluate(None, signals, self.config, self.ledger, shipment.shipment_id)

        if decision.delete:
            self.shipments.mark_delivered(shipment.shipment_id, decision.delivered_at or now)
            return "delivered"

        self.store.upsert(record_from_decision(decision, now=now, shipment=shipment,
                                               snapshot=snapshot, is_international=intl))
        return decision.status.value

    def run(
        self,
        now: Optional[datetime] = None,
        *,
        limit: Optional[int] = None,
        min_days_old: Optional[int] = None,
    ) -> EnrollmentSummary:
        started = time.monotonic()
        now = now or utcnow()
        candidates = self.shipments.enrollment_candidates(
            now=now,
            min_days_old=self.min_days_old if min_days_old is None else min_days_old,
            limit=self.limit if limit is None else limit,
        )
        self.logger.info("Found %d new candidates to enroll", len(candidates))

        buckets: list[str] = []
        errors: list[str] = []
        for shipment in candidates:
            try:
                bucket = self._enroll_one(shipment, now)
            except TrackingUnavailable as ex:
                self.logger.info("%s skipped: %s", shipment.shipment_id, ex.reason)
                errors.append(f"{shipment.shipment_id}: {ex}")
                bucket = "skipped"
            except Exception as ex:
                self.logger.exception("Enrollment failed for %s", shipment.shipment_id)
                errors.append(f"{shipment.shipment_id}: {ex}")
                bucket = "skipped"
            buckets.append(bucket)
            self.logger.info("%s -> %s", shipment.shipment_id, bucket)

        summary = EnrollmentSummary(
            total_candidates=len(candidates),
            at_risk=buckets.count(EligibilityStatus.AT_RISK.value),
            eligible=buckets.count(EligibilityStatus.ELIGIBLE.value),
            claim_filed=buckets.count(EligibilityStatus.CLAIM_FILED.value),
            missed_window=buckets.count(EligibilityStatus.MISSED_WINDOW.value),
            delivered=buckets.count("delivered"),
            skipped=buckets.count("skipped"),
            errors=tuple(errors),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        self.logger.info(
            "Enrollment done: %d at-risk, %d eligible, %d claim_filed, %d missed, %d delivered, %d skipped",
            summary.at_risk, summary.eligible, summary.claim_filed, summary.missed_window,
            summary.delivered, summary.skipped,
        )
        return summary
