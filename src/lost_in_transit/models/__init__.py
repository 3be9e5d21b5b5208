from .env_cfg import EnvCfg
from .records import (
    ACTIVE_STATUSES,
    EligibilityRecord,
    EligibilityStatus,
    ShipmentRecord,
)
from .tracking import Checkpoint, TrackingSnapshot

__all__ = [
    "EnvCfg",
    "ACTIVE_STATUSES",
    "EligibilityRecord",
    "EligibilityStatus",
    "ShipmentRecord",
    "Checkpoint",
    "TrackingSnapshot",
]
