# src/lost_in_transit/store/tables.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ShipmentRow(Base):
    # Owned by fulfillment sync; this engine only writes the delivery fields
    __tablename__ = "shipments"
    shipment_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    client_id: Mapped[str] = mapped_column(String(64), index=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    origin_country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    destination_country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    label_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivery_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class EligibilityCheckRow(Base):
    __tablename__ = "lost_in_transit_checks"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shipment_id: Mapped[str] = mapped_column(String(64), unique=True)
    tracking_number: Mapped[str] = mapped_column(String(64))
    carrier: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    client_id: Mapped[str] = mapped_column(String(64), index=True)
    is_international: Mapped[bool] = mapped_column(Boolean, default=False)
    claim_eligibility_status: Mapped[str] = mapped_column(String(20), default="at_risk")
    eligible_after: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_scan_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_scan_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_scan_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider_tracking_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    first_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_recheck_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_lit_status_recheck", "claim_eligibility_status", "last_recheck_at"),
    )


class CareTicketRow(Base):
    # Claim tickets live in the support workflow; read here only
    __tablename__ = "care_tickets"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shipment_id: Mapped[str] = mapped_column(String(64), index=True)
    issue_type: Mapped[str] = mapped_column(String(32))
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class JobLeaseRow(Base):
    __tablename__ = "job_leases"
    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    holder: Mapped[str] = mapped_column(String(128))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
