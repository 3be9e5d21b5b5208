from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import requests

from lost_in_transit.errors import TrackingUnavailable
from lost_in_transit.models.env_cfg import DEFAULT_TRACKINGMORE_BASE_URL
from .transport import RequestsTransport

# TrackingMore answers HTTP 200 for most failures; meta.code carries the verdict.
_OK_CODES = (200, 201)


@dataclass
class TrackingMoreConfig:
    api_key: str
    base_url: str = DEFAULT_TRACKINGMORE_BASE_URL


def _truncate(text: Optional[str], limit: int = 2000) -> Optional[str]:
    if text and len(text) > limit:
        return text[:limit] + "..."
    return text


class TrackingMoreClient:
    """Minimal TrackingMore v4 client.

    - get_tracking(): GET /trackings/get for an already registered tracking
      (free); when the provider has none, POST /trackings/realtime which
      registers and fetches in one (billed) call.

    Every failure is logged and raised as TrackingUnavailable so callers can
    degrade instead of failing their workflow.
    """

    def __init__(
        self,
        cfg: TrackingMoreConfig,
        transport: Optional[RequestsTransport] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.transport = transport or RequestsTransport()
        self.logger: logging.Logger = logger or logging.getLogger(
            "lost_in_transit.api.trackingmore"
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Tracking-Api-Key": self.cfg.api_key,
        }

    def _url(self, path: str) -> str:
        return self.cfg.base_url.rstrip("/") + path

    def _call(self, method: str, path: str, tracking_number: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        try:
            if method == "GET":
                resp = self.transport.get(url, headers=self._headers(), **kwargs)
            else:
                resp = self.transport.post(url, headers=self._headers(), **kwargs)
        except requests.Timeout as ex:
            self.logger.warning("TrackingMore %s %s timed out for %s: %s",
                                method, path, tracking_number, ex)
            raise TrackingUnavailable(
                tracking_number, "carrier lookup timed out") from ex
        except requests.RequestException as ex:
            self.logger.warning("TrackingMore %s %s failed for %s: %s",
                                method, path, tracking_number, ex)
            raise TrackingUnavailable(
                tracking_number, "failed to connect to tracking provider") from ex

        try:
            body = resp.json()
        except ValueError as ex:
            self.logger.warning(
                "TrackingMore %s %s returned non-JSON status=%s body=%s",
                method, path, resp.status_code, _truncate(resp.text))
            raise TrackingUnavailable(
                tracking_number, f"unreadable provider response (HTTP {resp.status_code})") from ex

        if not isinstance(body, dict):
            raise TrackingUnavailable(tracking_number, "unexpected provider response shape")

        meta = body.get("meta") or {}
        self.logger.debug("TrackingMore %s %s status=%s code=%s message=%s",
                          method, path, resp.status_code, meta.get("code"), meta.get("message"))
        return body

    def get_existing(self, tracking_number: str, courier_code: str) -> Optional[Dict[str, Any]]:
        """Registered tracking object, or None when the provider has none."""
        body = self._call(
            "GET", "/trackings/get", tracking_number,
            params={"tracking_numbers": tracking_number, "courier_code": courier_code},
        )
        meta = body.get("meta") or {}
        data = body.get("data")
        if meta.get("code") == 200 and isinstance(data, list) and data:
            return data[0]
        return None

    def create_realtime(self, tracking_number: str, courier_code: str) -> Dict[str, Any]:
        body = self._call(
            "POST", "/trackings/realtime", tracking_number,
            json={"tracking_number": tracking_number, "courier_code": courier_code},
        )
        meta = body.get("meta") or {}
        data = body.get("data")
        if meta.get("code") in _OK_CODES and isinstance(data, dict) and data:
            return data
        message = meta.get("message") or "failed to create tracking"
        self.logger.warning("TrackingMore realtime failed for %s (%s): code=%s message=%s",
                            tracking_number, courier_code, meta.get("code"), message)
        raise TrackingUnavailable(tracking_number, str(message))

    def get_tracking(self, tracking_number: str, courier_code: str) -> Dict[str, Any]:
        if not self.cfg.api_key:
            raise TrackingUnavailable(tracking_number, "tracking provider API key not configured")

        existing = self.get_existing(tracking_number, courier_code)
        if existing is not None:
            return existing

        self.logger.info(
            "No registered tracking for %s (%s); using realtime endpoint", tracking_number, courier_code)
        return self.create_realtime(tracking_number, courier_code)
