# src/lost_in_transit/api/carriers.py
"""Carrier name -> provider courier code resolution."""
from __future__ import annotations

import re
from typing import Optional

# Checked in order; "upsmi" must be tested before "ups".
_NAME_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("upsmi", "mail innovations"), "ups-mi"),
    (("smartpost",), "fedex"),
    (("usps",), "usps"),
    (("ups",), "ups"),
    (("fedex",), "fedex"),
    (("dhl ecommerce", "dhl-ecommerce", "dhlecommerce"), "dhl-ecommerce"),
    (("dhl",), "dhl"),
    (("ontrac",), "ontrac"),
    (("amazon",), "amazon-us"),
    (("veho",), "veho"),
    (("lasership",), "lasership"),
    (("spee-dee", "speedee"), "speedee"),
    (("cirro", "gofo"), "gofoexpress"),
    (("bettertrucks", "better trucks"), "bettertrucks"),
    (("osm",), "osmworldwide"),
    (("uniuni",), "uniuni"),
    (("passport",), "passport"),
    (("apc",), "apc"),
)

# Internal / freight carriers the provider cannot track
_UNTRACKABLE_HINTS: tuple[str, ...] = ("shipbob", "prepaid", "kitting")

# Order matters: USPS prefixes are tested before the generic FedEx lengths.
_NUMBER_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^1Z[0-9A-Z]{16}$"), "ups"),
    (re.compile(r"^(94|93|92|91|70|01|02)\d{18,20}$"), "usps"),
    (re.compile(r"^\d{12}$"), "fedex"),
    (re.compile(r"^\d{15}$"), "fedex"),
    (re.compile(r"^(7|96)\d{19,21}$"), "fedex"),
    (re.compile(r"^\d{20,22}$"), "usps"),
    (re.compile(r"^\d{10}$"), "dhl"),
    (re.compile(r"^[CD]\d{13,14}$"), "ontrac"),
)


def courier_code_for(carrier: Optional[str]) -> Optional[str]:
    """Map a free-text carrier name to a courier code, or None when unsupported."""
    name = (carrier or "").strip().lower()
    if not name:
        return None
    if any(h in name for h in _UNTRACKABLE_HINTS):
        return None
    for hints, code in _NAME_HINTS:
        if any(h in name for h in hints):
            return code
    return None


def detect_courier_from_number(tracking_number: Optional[str]) -> Optional[str]:
    tn = (tracking_number or "").strip().upper()
    if not tn:
        return None
    for pattern, code in _NUMBER_PATTERNS:
        if pattern.match(tn):
            return code
    return None


def resolve_courier(tracking_number: str, carrier: Optional[str]) -> Optional[str]:
    """Carrier name first, tracking-number shape as the fallback."""
    return courier_code_for(carrier) or detect_courier_from_number(tracking_number)
