import json
from pathlib import Path

import pytest

from lost_in_transit.api.client import ReplayClient
from lost_in_transit.errors import TrackingUnavailable


def test_replay_client_indexes_combined_json(tmp_path: Path):
    a = {"meta": {"code": 200}, "data": [{"tracking_number": "TN123", "delivery_status": "transit"}]}
    b = {"tracking_number": "TN456", "delivery_status": "pending"}

    file_path = tmp_path / "combined.json"
    file_path.write_text(json.dumps([a, b]), encoding="utf-8")

    client = ReplayClient(file_path)

    # envelope shape
    assert client.get_tracking("TN123", "usps") == a
    # bare tracking object
    assert client.get_tracking("TN456", "usps") == b

    with pytest.raises(TrackingUnavailable):
        client.get_tracking("UNKNOWN", "usps")


def test_replay_client_single_object(tmp_path: Path):
    f = tmp_path / "one.json"
    f.write_text(json.dumps({"tracking_number": "TN1"}), encoding="utf-8")
    assert ReplayClient(f).get_tracking("TN1", "ups") == {"tracking_number": "TN1"}


def test_replay_client_rejects_missing_and_directories(tmp_path: Path):
    with pytest.raises(ValueError):
        ReplayClient(tmp_path / "nope.json")
    with pytest.raises(ValueError):
        ReplayClient(tmp_path)
