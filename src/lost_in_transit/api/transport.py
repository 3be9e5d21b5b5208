from __future__ import annotations

from typing import Any, Dict, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class RequestsTransport:
    """Requests session with retry/backoff and a hard per-call timeout.

    Connection errors and 429/5xx responses are retried by urllib3; anything
    that still fails surfaces as a requests exception for the caller to map.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_factor: float = 0.3,
        *,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.session = requests.Session()
        self.timeout = timeout
        if default_headers:
            self.session.headers.update(default_headers)

        retry = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET", "POST"),
            respect_retry_after_header=True,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def get(self, url: str, *, headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, Any]] = None):
        return self.session.get(url, headers=headers, params=params, timeout=self.timeout)

    def post(self, url: str, *, headers: Optional[Dict[str, str]] = None, json: Any = None):
        return self.session.post(url, headers=headers, json=json, timeout=self.timeout)

    def close(self) -> None:
        self.session.close()
