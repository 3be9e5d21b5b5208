from __future__ import annotations
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Optional

# Provider statuses meaning the carrier has no scan on file yet
NEVER_SCANNED_STATUSES: frozenset[str] = frozenset(
    {"", "pending", "notfound", "inforeceived"})


@dataclass(frozen=True)
class Checkpoint:
    timestamp: datetime
    status_text: str
    delivery_status: str = ""
    location: Optional[str] = None


@dataclass(frozen=True)
class TrackingSnapshot:
    # identity/context
    tracking_number: str
    carrier_code: Optional[str]
    provider_id: Optional[str]        # provider's own tracking id
    carrier_status: Optional[str]     # e.g. "transit", "pending", "delivered"

    # merged origin + destination checkpoints, most recent first
    checkpoints: tuple[Checkpoint, ...] = ()
    latest_event_text: str = ""
    latest_checkpoint_time: Optional[datetime] = None

    # delivery, resolved by the normalizer
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None

    # raw payload for audit/debugging
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def last_checkpoint(self) -> Optional[Checkpoint]:
        return self.checkpoints[0] if self.checkpoints else None

    @property
    def last_checkpoint_at(self) -> Optional[datetime]:
        """Provider's latest_checkpoint_time wins; otherwise the newest checkpoint."""
        if self.latest_checkpoint_time is not None:
            return self.latest_checkpoint_time
        cp = self.last_checkpoint
        return cp.timestamp if cp else None

    @property
    def never_scanned(self) -> bool:
        if self.checkpoints:
            return False
        return (self.carrier_status or "").strip().lower() in NEVER_SCANNED_STATUSES

    @property
    def latest_text(self) -> str:
        """Latest event text, falling back to the newest checkpoint detail."""
        if self.latest_event_text:
            return self.latest_event_text
        cp = self.last_checkpoint
        return cp.status_text if cp else ""

    def to_dict(self) -> dict[str, Any]:
        """Convenience for logging/tests (drops the raw payload)."""
        d = asdict(self)
        d.pop("raw", None)
        return d
