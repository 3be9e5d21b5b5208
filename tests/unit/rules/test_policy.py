from datetime import date, timedelta

import pytest

from lost_in_transit.models import Checkpoint, EligibilityStatus, EnvCfg, TrackingSnapshot
from lost_in_transit.rules.policy import (
    SOURCE_CHECKPOINT,
    SOURCE_LABEL,
    SOURCE_LAST_SCAN,
    PolicyConfig,
    Signals,
    evaluate,
    next_eligible_after,
)

CFG = PolicyConfig()


def _snap(*events, status="transit", latest=None, delivered=False, delivered_at=None):
    cps = tuple(sorted(
        (Checkpoint(timestamp=ts, status_text=text, location="CHICAGO, IL") for ts, text in events),
        key=lambda c: c.timestamp, reverse=True,
    ))
    return TrackingSnapshot(
        tracking_number="TN1",
        carrier_code="usps",
        provider_id="tm-1",
        carrier_status=status,
        checkpoints=cps,
        latest_event_text=latest if latest is not None else (cps[0].status_text if cps else ""),
        is_delivered=delivered,
        delivered_at=delivered_at,
    )


def _signals(now, **kw):
    kw.setdefault("is_international", False)
    return Signals(now=now, **kw)


def test_policy_config_from_env_and_thresholds():
    cfg = PolicyConfig.from_env(EnvCfg(LIT_DOMESTIC_DAYS=10, LIT_INTERNATIONAL_MAX_WINDOW_DAYS=60))
    assert cfg.required_days(False) == 10
    assert cfg.required_days(True) == 20
    assert cfg.max_window_days(False) == 45
    assert cfg.max_window_days(True) == 60


def test_recent_checkpoint_stays_at_risk_with_deadline(now, ago):
    scan = ago(5)
    d = evaluate(None, _signals(now, snapshot=_snap((scan, "In transit"))), CFG)
    assert d.status == EligibilityStatus.AT_RISK
    assert d.days_since_signal == 5
    assert d.days_remaining == 10
    assert d.signal_source == SOURCE_CHECKPOINT
    assert d.eligible_after == scan.date() + timedelta(days=15)
    assert d.last_scan_description == "In transit"
    assert d.last_scan_location == "CHICAGO, IL"


def test_threshold_reached_promotes(now, ago):
    d = evaluate(EligibilityStatus.AT_RISK, _signals(now, snapshot=_snap((ago(15), "Arrived at facility"))), CFG)
    assert d.status == EligibilityStatus.ELIGIBLE
    assert d.eligible
    assert not d.via_lost_status


def test_international_needs_twenty_days(now, ago):
    d = evaluate(None, _signals(now, is_international=True, snapshot=_snap((ago(18), "Departed"))), CFG)
    assert d.status == EligibilityStatus.AT_RISK
    assert d.required_days == 20
    assert d.days_remaining == 2


def test_delivery_deletes_from_any_state(now, ago):
    snap = _snap((ago(1), "Delivered, In/At Mailbox"), delivered=True, delivered_at=ago(1))
    for current in (None, *EligibilityStatus):
        d = evaluate(current, _signals(now, snapshot=snap), CFG)
        assert d.delete
        assert d.status is None
        assert d.delivered_at == ago(1)


@pytest.mark.parametrize("current", [None, EligibilityStatus.AT_RISK, EligibilityStatus.ELIGIBLE])
def test_window_dominates_even_when_eligible(now, ago, current):
    d = evaluate(current, _signals(now, snapshot=_snap((ago(46), "In transit"))), CFG)
    assert d.status == EligibilityStatus.MISSED_WINDOW


def test_window_boundary_is_exclusive(now, ago):
    d = evaluate(None, _signals(now, snapshot=_snap((ago(45), "In transit"))), CFG)
    assert d.status == EligibilityStatus.ELIGIBLE


def test_label_fallback_uses_grace_for_window_only(now, ago):
    # 50 days since label, minus 7 grace = 43 (inside window), but 50 >= 15 for eligibility
    d = evaluate(None, _signals(now, label_created_at=ago(50)), CFG)
    assert d.signal_source == SOURCE_LABEL
    assert d.days_since_signal == 50
    assert d.window_age == 43
    assert d.status == EligibilityStatus.ELIGIBLE
    assert d.never_scanned

    d = evaluate(None, _signals(now, label_created_at=ago(53)), CFG)
    assert d.status == EligibilityStatus.MISSED_WINDOW


def test_stored_scan_used_without_snapshot(now, ago):
    d = evaluate(
        EligibilityStatus.AT_RISK,
        _signals(now, stored_last_scan=ago(50), stored_scan_description="In transit",
                 label_created_at=ago(55)),
        CFG,
    )
    assert d.signal_source == SOURCE_LAST_SCAN
    assert d.status == EligibilityStatus.MISSED_WINDOW


def test_lost_status_overrides_day_threshold(now, ago):
    snap = _snap((ago(1), "Lost,CHICAGO,IL,US,60601"))
    d = evaluate(None, _signals(now, snapshot=snap, label_created_at=ago(1)), CFG)
    assert d.status == EligibilityStatus.ELIGIBLE
    assert d.via_lost_status


def test_lost_status_with_claim_is_claim_filed(now, ago):
    snap = _snap((ago(1), "Lost,CHICAGO,IL,US,60601"))
    d = evaluate(None, _signals(now, snapshot=snap, has_claim=True), CFG)
    assert d.status == EligibilityStatus.CLAIM_FILED


@pytest.mark.parametrize("current", [None, EligibilityStatus.AT_RISK, EligibilityStatus.ELIGIBLE])
@pytest.mark.parametrize("age", [1, 15, 30])
def test_existing_claim_never_yields_eligible(now, ago, current, age):
    snap = _snap((ago(age), "In transit"))
    for _ in range(3):
        d = evaluate(current, _signals(now, snapshot=snap, has_claim=True), CFG)
        assert d.status != EligibilityStatus.ELIGIBLE
        current = d.status


def test_eligible_does_not_regress_on_fresh_scan(now, ago):
    d = evaluate(
        EligibilityStatus.ELIGIBLE,
        _signals(now, stored_last_scan=ago(20), snapshot=_snap((ago(2), "Out for delivery"))),
        CFG,
    )
    assert d.status == EligibilityStatus.ELIGIBLE
    assert d.last_scan_description == "Out for delivery"
    assert d.days_since_signal == 2


@pytest.mark.parametrize("terminal", [EligibilityStatus.MISSED_WINDOW, EligibilityStatus.CLAIM_FILED])
def test_terminal_states_hold_without_delivery(now, ago, terminal):
    snap = _snap((ago(1), "Lost,CHICAGO,IL,US"))
    stored = date(2026, 1, 1)
    d = evaluate(terminal, _signals(now, snapshot=snap, stored_eligible_after=stored,
                                    stored_last_scan=ago(60)), CFG)
    assert d.status == terminal
    assert d.eligible_after == stored
    assert d.last_scan_date == ago(60)


def test_stale_snapshot_does_not_move_scan_backwards(now, ago):
    d = evaluate(
        EligibilityStatus.AT_RISK,
        _signals(now, stored_last_scan=ago(3), stored_scan_description="Arrived",
                 stored_eligible_after=(ago(3) + timedelta(days=15)).date(),
                 snapshot=_snap((ago(8), "Accepted"))),
        CFG,
    )
    assert d.last_scan_date == ago(3)
    assert d.last_scan_description == "Arrived"
    assert d.eligible_after == (ago(3) + timedelta(days=15)).date()


def test_eligible_after_is_monotonic_across_updates(now, ago):
    deadline = None
    scans = [ago(10), ago(12), ago(6), ago(6), ago(9), ago(2)]
    seen = []
    for scan in scans:
        deadline = next_eligible_after(deadline, scan, ago(20), 15)
        seen.append(deadline)
    assert seen == sorted(seen)
    assert seen[-1] == ago(2).date() + timedelta(days=15)


def test_no_signal_at_all_is_at_risk_without_deadline(now):
    d = evaluate(None, _signals(now, snapshot=_snap(status="pending")), CFG)
    assert d.status == EligibilityStatus.AT_RISK
    assert d.days_since_signal is None
    assert d.eligible_after is None
    assert d.days_remaining is None
    assert d.never_scanned
