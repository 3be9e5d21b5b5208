# src/lost_in_transit/store/repository.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from lost_in_transit.errors import PersistenceConflict
from lost_in_transit.models import (
    ACTIVE_STATUSES,
    EligibilityRecord,
    EligibilityStatus,
    ShipmentRecord,
)
from lost_in_transit.utils.dates import as_utc
from .tables import CareTicketRow, EligibilityCheckRow, JobLeaseRow, ShipmentRow

LOSS_ISSUE_TYPE = "Loss"


def _to_shipment(row: ShipmentRow) -> ShipmentRecord:
    return ShipmentRecord(
        shipment_id=row.shipment_id,
        client_id=row.client_id,
        tracking_number=row.tracking_number,
        carrier=row.carrier,
        origin_country=row.origin_country,
        destination_country=row.destination_country,
        label_created_at=as_utc(row.label_created_at),
        delivered_at=as_utc(row.delivered_at),
        delivery_status=row.delivery_status,
    )


def _to_record(row: EligibilityCheckRow) -> EligibilityRecord:
    return EligibilityRecord(
        shipment_id=row.shipment_id,
        tracking_number=row.tracking_number,
        carrier=row.carrier,
        client_id=row.client_id,
        is_international=bool(row.is_international),
        status=EligibilityStatus(row.claim_eligibility_status),
        eligible_after=row.eligible_after,
        last_scan_date=as_utc(row.last_scan_date),
        last_scan_description=row.last_scan_description,
        last_scan_location=row.last_scan_location,
        provider_tracking_id=row.provider_tracking_id,
        first_checked_at=as_utc(row.first_checked_at),
        checked_at=as_utc(row.checked_at),
        last_recheck_at=as_utc(row.last_recheck_at),
    )


def _copy_into(row: EligibilityCheckRow, rec: EligibilityRecord) -> None:
    row.tracking_number = rec.tracking_number
    row.carrier = rec.carrier
    row.client_id = rec.client_id
    row.is_international = rec.is_international
    row.claim_eligibility_status = rec.status.value
    row.eligible_after = rec.eligible_after
    row.last_scan_date = as_utc(rec.last_scan_date)
    row.last_scan_description = rec.last_scan_description
    row.last_scan_location = rec.last_scan_location
    row.provider_tracking_id = rec.provider_tracking_id
    row.checked_at = as_utc(rec.checked_at)
    row.last_recheck_at = as_utc(rec.last_recheck_at)
    if row.first_checked_at is None:
        row.first_checked_at = as_utc(rec.first_checked_at or rec.checked_at)


class EligibilityStore:
    """Durable per-shipment eligibility state; every write is a single row keyed on shipment_id."""

    def __init__(self, session_factory: sessionmaker, *, logger: Optional[logging.Logger] = None) -> None:
        self._sf = session_factory
        self.logger = logger or logging.getLogger("lost_in_transit.store")

    def get(self, shipment_id: str) -> Optional[EligibilityRecord]:
        with self._sf() as s:
            row = s.scalar(select(EligibilityCheckRow).where(EligibilityCheckRow.shipment_id == shipment_id))
            return _to_record(row) if row is not None else None

    def _write(self, s: Session, rec: EligibilityRecord) -> EligibilityRecord:
        row = s.scalar(select(EligibilityCheckRow).where(EligibilityCheckRow.shipment_id == rec.shipment_id))
        if row is None:
            row = EligibilityCheckRow(shipment_id=rec.shipment_id)
            s.add(row)
        _copy_into(row, rec)
        s.commit()
        return _to_record(row)

    def upsert(self, rec: EligibilityRecord) -> EligibilityRecord:
        """Insert or update by shipment_id; a unique-key race is retried once (last writer wins)."""
        for attempt in (1, 2):
            with self._sf() as s:
                try:
                    return self._write(s, rec)
                except IntegrityError as ex:
                    s.rollback()
                    self.logger.warning(
                        "Upsert conflict for %s (attempt %d): %s", rec.shipment_id, attempt, ex.orig)
        raise PersistenceConflict(rec.shipment_id)

    def delete(self, shipment_id: str) -> bool:
        with self._sf() as s:
            res = s.execute(delete(EligibilityCheckRow).where(EligibilityCheckRow.shipment_id == shipment_id))
            s.commit()
            return bool(res.rowcount)

    def touch_recheck(self, shipment_id: str, at: datetime) -> None:
        with self._sf() as s:
            s.execute(
                update(EligibilityCheckRow)
                .where(EligibilityCheckRow.shipment_id == shipment_id)
                .values(last_recheck_at=as_utc(at))
            )
            s.commit()

    def _select(self, stmt) -> List[EligibilityRecord]:
        with self._sf() as s:
            return [_to_record(r) for r in s.scalars(stmt).all()]

    def select_for_recheck(self, limit: int) -> List[EligibilityRecord]:
        """Active records, least recently rechecked first (never rechecked before all others)."""
        stmt = (
            select(EligibilityCheckRow)
            .where(EligibilityCheckRow.claim_eligibility_status.in_([s.value for s in ACTIVE_STATUSES]))
            .order_by(EligibilityCheckRow.last_recheck_at.asc().nulls_first(), EligibilityCheckRow.id.asc())
            .limit(limit)
        )
        return self._select(stmt)

    def select_archived(self, limit: int) -> List[EligibilityRecord]:
        """missed_window records still tracked by the provider (late-delivery sweep)."""
        stmt = (
            select(EligibilityCheckRow)
            .where(
                EligibilityCheckRow.claim_eligibility_status == EligibilityStatus.MISSED_WINDOW.value,
                EligibilityCheckRow.provider_tracking_id.is_not(None),
            )
            .order_by(EligibilityCheckRow.last_recheck_at.asc().nulls_first(), EligibilityCheckRow.id.asc())
            .limit(limit)
        )
        return self._select(stmt)

    def list(
        self,
        *,
        client_ids: Optional[Iterable[str]] = None,
        status: Optional[EligibilityStatus] = None,
    ) -> List[EligibilityRecord]:
        stmt = select(EligibilityCheckRow)
        if client_ids is not None:
            stmt = stmt.where(EligibilityCheckRow.client_id.in_(list(client_ids)))
        if status is not None:
            stmt = stmt.where(EligibilityCheckRow.claim_eligibility_status == status.value)
        return self._select(stmt.order_by(EligibilityCheckRow.eligible_after.asc(), EligibilityCheckRow.id.asc()))

    # ---- run lease ----------------------------------------------------------

    def acquire_lease(self, name: str, holder: str, *, now: datetime, ttl_seconds: int) -> bool:
        """Take the named lease when it is free, expired, or already ours."""
        now = as_utc(now)
        expires = now + timedelta(seconds=ttl_seconds)
        with self._sf() as s:
            res = s.execute(
                update(JobLeaseRow)
                .where(
                    JobLeaseRow.name == name,
                    (JobLeaseRow.expires_at <= now) | (JobLeaseRow.holder == holder),
                )
                .values(holder=holder, expires_at=expires)
            )
            if res.rowcount:
                s.commit()
                return True
            s.rollback()

        with self._sf() as s:
            try:
                s.add(JobLeaseRow(name=name, holder=holder, expires_at=expires))
                s.commit()
                return True
            except IntegrityError:
                s.rollback()
                return False

    def release_lease(self, name: str, holder: str) -> None:
        with self._sf() as s:
            s.execute(delete(JobLeaseRow).where(JobLeaseRow.name == name, JobLeaseRow.holder == holder))
            s.commit()


class ShipmentSource:
    """Read access to shipments plus the delivery-field write-back."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._sf = session_factory

    def get(self, shipment_id: str) -> Optional[ShipmentRecord]:
        with self._sf() as s:
            row = s.get(ShipmentRow, shipment_id)
            return _to_shipment(row) if row is not None else None

    def mark_delivered(self, shipment_id: str, delivered_at: datetime) -> None:
        with self._sf() as s:
            s.execute(
                update(ShipmentRow)
                .where(ShipmentRow.shipment_id == shipment_id)
                .values(delivered_at=as_utc(delivered_at), delivery_status="Delivered")
            )
            s.commit()

    def enrollment_candidates(self, *, now: datetime, min_days_old: int, limit: int) -> List[ShipmentRecord]:
        """Undelivered, tracked shipments labelled at least `min_days_old` days ago with no record yet."""
        cutoff = as_utc(now) - timedelta(days=min_days_old)
        monitored = exists().where(EligibilityCheckRow.shipment_id == ShipmentRow.shipment_id)
        stmt = (
            select(ShipmentRow)
            .where(
                ShipmentRow.delivered_at.is_(None),
                ShipmentRow.tracking_number.is_not(None),
                func.length(func.trim(ShipmentRow.tracking_number)) > 0,
                ShipmentRow.label_created_at.is_not(None),
                ShipmentRow.label_created_at <= cutoff,
                ~monitored,
            )
            .order_by(ShipmentRow.label_created_at.asc())
            .limit(limit)
        )
        with self._sf() as s:
            return [_to_shipment(r) for r in s.scalars(stmt).all()]


class ClaimLedger:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._sf = session_factory

    def exists(self, shipment_id: str) -> bool:
        with self._sf() as s:
            stmt = select(
                exists().where(
                    CareTicketRow.shipment_id == shipment_id,
                    CareTicketRow.issue_type == LOSS_ISSUE_TYPE,
                )
            )
            return bool(s.scalar(stmt))
