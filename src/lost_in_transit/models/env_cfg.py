from __future__ import annotations
from dataclasses import dataclass

DEFAULT_TRACKINGMORE_BASE_URL = "https://api.trackingmore.com/v4"
DEFAULT_DATABASE_URL = "sqlite:///lost_in_transit.db"


@dataclass(frozen=True)
class EnvCfg:
    """Typed view of the environment the engine runs with."""
    TRACKINGMORE_API_KEY: str = ""
    RECHECK_SECRET: str = ""
    TRACKINGMORE_BASE_URL: str = DEFAULT_TRACKINGMORE_BASE_URL
    DATABASE_URL: str = DEFAULT_DATABASE_URL

    TRACKING_TIMEOUT_SECONDS: float = 10.0
    TRACKING_CALL_INTERVAL_SECONDS: float = 0.5
    RECHECK_BATCH_SIZE: int = 300
    ARCHIVE_BATCH_SIZE: int = 30
    RECHECK_LEASE_SECONDS: int = 600

    LIT_DOMESTIC_DAYS: int = 15
    LIT_INTERNATIONAL_DAYS: int = 20
    LIT_DOMESTIC_MAX_WINDOW_DAYS: int = 45
    LIT_INTERNATIONAL_MAX_WINDOW_DAYS: int = 50
    LIT_LABEL_GRACE_DAYS: int = 7
