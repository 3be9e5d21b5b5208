# src/lost_in_transit/pipelines/evaluation.py
"""Glue between the pure policy and the stores, shared by every pipeline."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from lost_in_transit.models import (
    EligibilityRecord,
    EligibilityStatus,
    ShipmentRecord,
    TrackingSnapshot,
)
from lost_in_transit.rules.policy import Decision, PolicyConfig, Signals, evaluate
from lost_in_transit.store.repository import ClaimLedger


def build_signals(
    *,
    now: datetime,
    is_international: bool,
    record: Optional[EligibilityRecord] = None,
    shipment: Optional[ShipmentRecord] = None,
    snapshot: Optional[TrackingSnapshot] = None,
) -> Signals:
    return Signals(
        now=now,
        is_international=is_international,
        snapshot=snapshot,
        stored_last_scan=record.last_scan_date if record else None,
        stored_scan_description=record.last_scan_description if record else None,
        stored_scan_location=record.last_scan_location if record else None,
        stored_eligible_after=record.eligible_after if record else None,
        label_created_at=shipment.label_created_at if shipment else None,
    )


def guarded_evaluate(
    current: Optional[EligibilityStatus],
    signals: Signals,
    config: PolicyConfig,
    ledger: ClaimLedger,
    shipment_id: str,
) -> Decision:
    """
    Evaluate, and when the result would promote to eligible, consult the claim
    ledger right away so an existing claim yields claim_filed instead. Call this
    immediately before persisting.
    """
    decision = evaluate(current, replace(signals, has_claim=False), config)
    if decision.eligible and ledger.exists(shipment_id):
        decision = evaluate(current, replace(signals, has_claim=True), config)
    return decision


def record_from_decision(
    decision: Decision,
    *,
    now: datetime,
    shipment: Optional[ShipmentRecord] = None,
    record: Optional[EligibilityRecord] = None,
    snapshot: Optional[TrackingSnapshot] = None,
    is_international: bool = False,
    rechecked: bool = False,
) -> EligibilityRecord:
    """New/updated EligibilityRecord reflecting `decision` (not valid for delete decisions)."""
    if decision.status is None:
        raise ValueError("delete decisions have no record")

    provider_id = snapshot.provider_id if snapshot is not None and snapshot.provider_id else None
    if record is not None:
        return replace(
            record,
            status=decision.status,
            eligible_after=decision.eligible_after,
            last_scan_date=decision.last_scan_date,
            last_scan_description=decision.last_scan_description,
            last_scan_location=decision.last_scan_location,
            provider_tracking_id=provider_id or record.provider_tracking_id,
            checked_at=now,
            last_recheck_at=now if rechecked else record.last_recheck_at,
        )

    if shipment is None:
        raise ValueError("a new record needs its shipment")
    return EligibilityRecord(
        shipment_id=shipment.shipment_id,
        tracking_number=(shipment.tracking_number or "").strip(),
        carrier=shipment.carrier,
        client_id=shipment.client_id,
        is_international=is_international,
        status=decision.status,
        eligible_after=decision.eligible_after,
        last_scan_date=decision.last_scan_date,
        last_scan_description=decision.last_scan_description,
        last_scan_location=decision.last_scan_location,
        provider_tracking_id=provider_id,
        first_checked_at=now,
        checked_at=now,
        last_recheck_at=now if rechecked else None,
    )
