# src/lost_in_transit/api/gateway.py
from __future__ import annotations

import logging
from typing import Optional

from lost_in_transit.errors import TrackingUnavailable
from lost_in_transit.models import TrackingSnapshot
from .carriers import resolve_courier
from .client import TrackingClient
from .normalize import normalize_trackingmore
from .rate_limit import IntervalGate


class TrackingGateway:
    """Fetch + normalize in one call; provider and payload failures surface as TrackingUnavailable.

    The gate is applied before each provider call, so callers never need their
    own delays between records.
    """

    def __init__(
        self,
        client: TrackingClient,
        gate: Optional[IntervalGate] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.gate = gate
        self.logger = logger or logging.getLogger("lost_in_transit.api.gateway")

    def fetch(self, tracking_number: str, carrier: Optional[str]) -> TrackingSnapshot:
        tn = (tracking_number or "").strip()
        if not tn:
            raise TrackingUnavailable(tracking_number or "", "missing tracking number")

        courier = resolve_courier(tn, carrier)
        if courier is None:
            self.logger.info("Unsupported carrier %r for %s", carrier, tn)
            raise TrackingUnavailable(tn, f"unsupported carrier: {carrier or 'unknown'}")

        if self.gate is not None:
            self.gate.wait()

        payload = self.client.get_tracking(tn, courier)
        snapshot = normalize_trackingmore(payload, tracking_number=tn, carrier_code=courier)
        if snapshot is None:
            self.logger.warning("Empty tracking payload for %s (%s)", tn, courier)
            raise TrackingUnavailable(tn, "no tracking data returned")

        self.logger.debug(
            "Fetched %s (%s): status=%s checkpoints=%d delivered=%s",
            tn, courier, snapshot.carrier_status, len(snapshot.checkpoints), snapshot.is_delivered,
        )
        return snapshot
