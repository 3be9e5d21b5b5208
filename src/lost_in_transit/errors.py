# src/lost_in_transit/errors.py
from __future__ import annotations


class LostInTransitError(Exception):
    """Base class for engine errors."""


class TrackingUnavailable(LostInTransitError):
    """The tracking provider could not produce a snapshot (error, timeout, no data).

    Callers degrade to stored/label-date reasoning; this is never fatal.
    """

    def __init__(self, tracking_number: str, reason: str) -> None:
        super().__init__(f"tracking unavailable for {tracking_number}: {reason}")
        self.tracking_number = tracking_number
        self.reason = reason


class ShipmentNotFound(LostInTransitError):
    def __init__(self, shipment_id: str) -> None:
        super().__init__(f"Shipment not found: {shipment_id}")
        self.shipment_id = shipment_id


class AccessDenied(LostInTransitError):
    def __init__(self, shipment_id: str) -> None:
        super().__init__(f"Access denied to shipment {shipment_id}")
        self.shipment_id = shipment_id


class PersistenceConflict(LostInTransitError):
    """A keyed upsert kept colliding with a concurrent writer."""

    def __init__(self, shipment_id: str) -> None:
        super().__init__(f"Concurrent write conflict for shipment {shipment_id}")
        self.shipment_id = shipment_id


__all__ = [
    "LostInTransitError",
    "TrackingUnavailable",
    "ShipmentNotFound",
    "AccessDenied",
    "PersistenceConflict",
]
