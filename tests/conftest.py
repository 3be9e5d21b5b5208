# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from lost_in_transit.api.gateway import TrackingGateway
from lost_in_transit.errors import TrackingUnavailable
from lost_in_transit.models import EligibilityRecord, EligibilityStatus, EnvCfg
from lost_in_transit.service.container import build_services
from lost_in_transit.store.db import create_engine_from_url, init_models, make_session_factory
from lost_in_transit.store.repository import EligibilityStore
from lost_in_transit.store.tables import CareTicketRow, ShipmentRow

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)
USPS_TN = "9400100000000000000001"


def days_ago(n: float, *, now: datetime = NOW) -> datetime:
    return now - timedelta(days=n)


def build_payload(
    tracking_number: str,
    *,
    events: tuple = (),
    status: str = "transit",
    latest_event: Optional[str] = None,
    courier_code: str = "usps",
    provider_id: Optional[str] = "tm-001",
    envelope: bool = True,
) -> dict[str, Any]:
    """TrackingMore v4 body. `events` holds (timestamp, detail[, checkpoint_delivery_status]) tuples."""
    trackinfo = []
    for ev in events:
        ts, text = ev[0], ev[1]
        ds = ev[2] if len(ev) > 2 else "transit"
        trackinfo.append({
            "checkpoint_date": ts.isoformat(),
            "tracking_detail": text,
            "checkpoint_delivery_status": ds,
            "location": "CHICAGO, IL",
        })
    newest = max(events, key=lambda e: e[0])[1] if events else ""
    tracking = {
        "id": provider_id,
        "tracking_number": tracking_number,
        "courier_code": courier_code,
        "delivery_status": status,
        "latest_event": newest if latest_event is None else latest_event,
        "origin_info": {"trackinfo": trackinfo},
        "destination_info": {"trackinfo": []},
    }
    if not envelope:
        return tracking
    return {"meta": {"code": 200, "message": "Request response is successful"}, "data": [tracking]}


class FakeTrackingClient:
    """In-memory provider: tracking number -> payload (or an exception to raise)."""

    def __init__(self) -> None:
        self.payloads: dict[str, Any] = {}
        self.calls: list[tuple[str, str]] = []

    def set(self, tracking_number: str, payload: Any) -> None:
        self.payloads[tracking_number] = payload

    def get_tracking(self, tracking_number: str, courier_code: str) -> dict[str, Any]:
        self.calls.append((tracking_number, courier_code))
        value = self.payloads.get(tracking_number)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise TrackingUnavailable(tracking_number, "not found")
        return value


class Seeder:
    def __init__(self, session_factory) -> None:
        self.sf = session_factory
        self.store = EligibilityStore(session_factory)

    def shipment(
        self,
        shipment_id: str,
        *,
        client_id: str = "client-1",
        tracking_number: Optional[str] = USPS_TN,
        carrier: Optional[str] = "USPS",
        origin: str = "US",
        destination: str = "US",
        label_created_at: Optional[datetime] = None,
        delivered_at: Optional[datetime] = None,
    ) -> None:
        with self.sf() as s:
            s.add(ShipmentRow(
                shipment_id=shipment_id,
                client_id=client_id,
                tracking_number=tracking_number,
                carrier=carrier,
                origin_country=origin,
                destination_country=destination,
                label_created_at=label_created_at,
                delivered_at=delivered_at,
            ))
            s.commit()

    def ticket(self, shipment_id: str, issue_type: str = "Loss") -> None:
        with self.sf() as s:
            s.add(CareTicketRow(shipment_id=shipment_id, issue_type=issue_type, created_at=NOW))
            s.commit()

    def check(self, shipment_id: str, **fields: Any) -> EligibilityRecord:
        base = dict(
            shipment_id=shipment_id,
            tracking_number=USPS_TN,
            carrier="USPS",
            client_id="client-1",
            is_international=False,
            status=EligibilityStatus.AT_RISK,
            checked_at=days_ago(3),
        )
        base.update(fields)
        return self.store.upsert(EligibilityRecord(**base))

    def shipment_row(self, shipment_id: str) -> Optional[ShipmentRow]:
        with self.sf() as s:
            return s.get(ShipmentRow, shipment_id)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    eng = create_engine_from_url("sqlite://")
    init_models(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def fake_client() -> FakeTrackingClient:
    return FakeTrackingClient()


@pytest.fixture
def gateway(fake_client) -> TrackingGateway:
    return TrackingGateway(fake_client)


@pytest.fixture
def env_cfg() -> EnvCfg:
    return EnvCfg(TRACKINGMORE_API_KEY="test-key", RECHECK_SECRET="s3cret", DATABASE_URL="sqlite://")


@pytest.fixture
def services(env_cfg, session_factory, gateway):
    return build_services(env_cfg, session_factory=session_factory, gateway=gateway)


@pytest.fixture
def make_payload():
    return build_payload


@pytest.fixture
def ago():
    return days_ago


@pytest.fixture
def usps_tn() -> str:
    return USPS_TN
