# src/lost_in_transit/rules/lost_status.py
from __future__ import annotations

import re

# Carrier phrases that admit the package is lost (case-insensitive).
# "lost," is anchored to the start: USPS reports "Lost,CHICAGO,IL,US,...".
LOST_STATUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*lost,", re.IGNORECASE),
    re.compile(r"unable to locate", re.IGNORECASE),
    re.compile(r"cannot be located", re.IGNORECASE),
    re.compile(r"missing mail search", re.IGNORECASE),
    re.compile(r"package is lost", re.IGNORECASE),
    re.compile(r"declared lost", re.IGNORECASE),
    re.compile(r"presumed lost", re.IGNORECASE),
)


def is_lost_status(text: str | None) -> bool:
    if not text:
        return False
    return any(p.search(text) for p in LOST_STATUS_PATTERNS)
