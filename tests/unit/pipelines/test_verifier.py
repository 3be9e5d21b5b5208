from datetime import timedelta

import pytest

from lost_in_transit.errors import AccessDenied, ShipmentNotFound, TrackingUnavailable
from lost_in_transit.models import EligibilityStatus
from lost_in_transit.pipelines.verifier import (
    CLAIM_ALREADY_FILED,
    DELIVERED_CARRIER,
    DELIVERED_INTERNAL,
    NO_TRACKING,
)


@pytest.fixture
def verifier(services):
    return services.verifier


def test_never_scanned_label_uses_label_age_when_provider_unavailable(verifier, seed, fake_client, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(16))
    fake_client.set(usps_tn, TrackingUnavailable(usps_tn, "carrier lookup timed out"))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.eligible and r.can_proceed
    assert r.status == "eligible"
    assert r.days_since_last_scan == 16
    assert "never scanned" in r.reason
    assert r.reason.startswith("Unable to retrieve carrier tracking data.")
    assert r.error == "carrier lookup timed out"
    assert seed.store.get("S1").status == EligibilityStatus.ELIGIBLE


def test_never_scanned_label_with_pending_payload(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(16))
    fake_client.set(usps_tn, make_payload(usps_tn, status="pending"))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.eligible
    assert r.days_since_last_scan == 16
    assert "never scanned" in r.reason
    assert r.error is None
    assert seed.store.get("S1").provider_tracking_id == "tm-001"


def test_international_needs_twenty_days(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", destination="CA", label_created_at=ago(25))
    fake_client.set(usps_tn, make_payload(usps_tn, events=((ago(18), "Departed USPS Regional Facility"),)))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert not r.eligible
    assert r.status == "at_risk"
    assert r.is_international
    assert r.required_days == 20
    assert r.days_since_last_scan == 18
    assert r.days_remaining == 2
    assert "2 days" in r.reason

    rec = seed.store.get("S1")
    assert rec.is_international
    assert rec.eligible_after == ago(18).date() + timedelta(days=20)
    assert rec.last_scan_description == "Departed USPS Regional Facility"


def test_at_risk_with_future_deadline_is_answered_from_cache(verifier, seed, fake_client, now, ago):
    seed.shipment("S1", label_created_at=ago(12))
    seed.check("S1", eligible_after=now.date() + timedelta(days=5), last_scan_date=ago(10))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.from_cache
    assert r.days_remaining == 5
    assert r.days_since_last_scan == 10
    assert r.previous_check_date == ago(3)
    assert fake_client.calls == []


@pytest.mark.parametrize("status", [EligibilityStatus.CLAIM_FILED, EligibilityStatus.MISSED_WINDOW])
def test_terminal_records_are_answered_from_cache(verifier, seed, fake_client, now, ago, status):
    seed.shipment("S1", label_created_at=ago(60))
    seed.check("S1", status=status, last_scan_date=ago(50))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.from_cache
    assert not r.eligible and not r.can_proceed
    assert r.status == status.value
    assert fake_client.calls == []


def test_stale_at_risk_deadline_triggers_fresh_lookup(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(30))
    seed.check("S1", eligible_after=now.date() - timedelta(days=1), last_scan_date=ago(16))
    fake_client.set(usps_tn, make_payload(usps_tn, events=((ago(16), "In transit"),)))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert not r.from_cache
    assert r.eligible
    assert fake_client.calls == [(usps_tn, "usps")]


def test_existing_claim_yields_claim_filed(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(25))
    seed.ticket("S1")
    fake_client.set(usps_tn, make_payload(usps_tn, events=((ago(20), "In transit"),)))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert not r.eligible
    assert r.status == "claim_filed"
    assert r.reason == CLAIM_ALREADY_FILED
    assert seed.store.get("S1").status == EligibilityStatus.CLAIM_FILED


def test_carrier_delivery_removes_monitoring(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(25))
    seed.check("S1", eligible_after=now.date() - timedelta(days=2))
    fake_client.set(usps_tn, make_payload(
        usps_tn, status="delivered",
        events=((ago(4), "In transit"), (ago(1), "Delivered, In/At Mailbox", "delivered"))))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.reason == DELIVERED_CARRIER
    assert not r.eligible
    assert seed.store.get("S1") is None
    row = seed.shipment_row("S1")
    assert row.delivery_status == "Delivered"
    assert row.delivered_at is not None


def test_internally_delivered_shipment(verifier, seed, fake_client, now, ago):
    seed.shipment("S1", label_created_at=ago(25), delivered_at=ago(2))
    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.reason == DELIVERED_INTERNAL
    assert fake_client.calls == []


def test_missing_tracking_number(verifier, seed, now, ago):
    seed.shipment("S1", tracking_number=None, label_created_at=ago(25))
    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.reason == NO_TRACKING
    assert not r.can_proceed


def test_unknown_shipment(verifier, now):
    with pytest.raises(ShipmentNotFound):
        verifier.verify("nope", ["client-1"], now=now)


def test_other_tenant_is_denied(verifier, seed, now, ago):
    seed.shipment("S1", client_id="client-2", label_created_at=ago(25))
    with pytest.raises(AccessDenied):
        verifier.verify("S1", ["client-1"], now=now)
    # internal callers see every tenant
    assert verifier.verify("S1", None, now=now).status is not None


def test_undated_provider_answer_is_not_persisted(verifier, seed, fake_client, make_payload, now, usps_tn):
    seed.shipment("S1", label_created_at=None)
    fake_client.set(usps_tn, make_payload(usps_tn, status="transit"))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert not r.can_proceed
    assert r.reason.startswith("Unable to determine last carrier scan date")
    assert seed.store.get("S1") is None


def test_lost_status_is_eligible_immediately(verifier, seed, fake_client, make_payload, now, ago, usps_tn):
    seed.shipment("S1", label_created_at=ago(6))
    fake_client.set(usps_tn, make_payload(usps_tn, events=((ago(2), "Lost,CHICAGO,IL,US,60601"),)))

    r = verifier.verify("S1", ["client-1"], now=now)
    assert r.eligible
    assert "reports this package as lost" in r.reason
    assert r.days_since_last_scan == 2
