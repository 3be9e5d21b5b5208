from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class EligibilityStatus(str, Enum):
    AT_RISK = "at_risk"
    ELIGIBLE = "eligible"
    CLAIM_FILED = "claim_filed"
    MISSED_WINDOW = "missed_window"

    @property
    def is_terminal(self) -> bool:
        return self in (EligibilityStatus.CLAIM_FILED, EligibilityStatus.MISSED_WINDOW)


# Statuses the recheck sweep keeps polling
ACTIVE_STATUSES: tuple[EligibilityStatus, ...] = (
    EligibilityStatus.AT_RISK,
    EligibilityStatus.ELIGIBLE,
)


@dataclass(frozen=True)
class ShipmentRecord:
    """Shipment as owned by fulfillment sync; only delivery fields are written here."""
    shipment_id: str
    client_id: str
    tracking_number: Optional[str]
    carrier: Optional[str]
    origin_country: Optional[str]
    destination_country: Optional[str]
    label_created_at: Optional[datetime]
    delivered_at: Optional[datetime] = None
    delivery_status: Optional[str] = None

    @property
    def is_international(self) -> bool:
        return (self.origin_country or "").upper() != (self.destination_country or "").upper()


@dataclass(frozen=True)
class EligibilityRecord:
    shipment_id: str
    tracking_number: str
    carrier: Optional[str]
    client_id: str
    is_international: bool
    status: EligibilityStatus = EligibilityStatus.AT_RISK
    eligible_after: Optional[date] = None
    last_scan_date: Optional[datetime] = None
    last_scan_description: Optional[str] = None
    last_scan_location: Optional[str] = None
    provider_tracking_id: Optional[str] = None
    first_checked_at: Optional[datetime] = None
    checked_at: Optional[datetime] = None
    last_recheck_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d
