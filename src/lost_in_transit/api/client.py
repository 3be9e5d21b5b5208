# src/lost_in_transit/api/client.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Any, List
import json

from lost_in_transit.errors import TrackingUnavailable


class TrackingClient(Protocol):
    def get_tracking(self, tracking_number: str, courier_code: str) -> dict[str, Any]:
        ...


@dataclass
class ReplayClient:
    """Replay client backed by a single JSON file of TrackingMore tracking bodies.

    The file may hold one object or an array (bare tracking objects or full
    `{"meta":..., "data": [...]}` envelopes). Entries are indexed by every
    `tracking_number` they mention. Unknown numbers raise TrackingUnavailable,
    the same way the live client reports a provider miss.
    """

    replay_file: Path
    _index: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.replay_file = Path(self.replay_file)
        if not self.replay_file.exists():
            raise ValueError(f"Replay file does not exist: {self.replay_file}")
        if not self.replay_file.is_file():
            raise ValueError(
                "ReplayClient requires a single JSON file containing one or more tracking bodies."
            )

        raw = json.loads(self.replay_file.read_text(encoding="utf-8"))
        entries: List[Any] = raw if isinstance(raw, list) else [raw]

        idx: dict[str, Any] = {}
        for entry in entries:
            for tn in self._extract_tracking_numbers(entry):
                idx.setdefault(tn, entry)

        self._index = idx

    def _extract_tracking_numbers(self, payload: Any) -> List[str]:
        results: List[str] = []

        def recurse(obj: Any) -> None:
            if isinstance(obj, dict):
                for k, v in obj.items():
                    if k == "tracking_number" and isinstance(v, str) and v.strip():
                        results.append(v.strip())
                    else:
                        recurse(v)
            elif isinstance(obj, list):
                for e in obj:
                    recurse(e)

        recurse(payload)

        seen: set[str] = set()
        out_list: List[str] = []
        for r in results:
            if r not in seen:
                seen.add(r)
                out_list.append(r)
        return out_list

    def get_tracking(self, tracking_number: str, courier_code: str) -> dict[str, Any]:
        payload = (self._index or {}).get(str(tracking_number))
        if payload is None:
            raise TrackingUnavailable(tracking_number, "no replay entry")
        return payload
