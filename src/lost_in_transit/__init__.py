# src/lost_in_transit/__init__.py
from .models import EligibilityRecord, EligibilityStatus, TrackingSnapshot
from .rules.policy import Decision, PolicyConfig, Signals, evaluate

__all__ = [
    "EligibilityRecord",
    "EligibilityStatus",
    "TrackingSnapshot",
    "Decision",
    "PolicyConfig",
    "Signals",
    "evaluate",
]
