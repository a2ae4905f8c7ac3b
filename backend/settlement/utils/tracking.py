from __future__ import annotations

import re

_PATTERNS = {
    "dhl": re.compile(r"^(\d{12,14}|JJD\d{20})$"),
    "dpd": re.compile(r"^\d{14}$"),
    "hermes": re.compile(r"^\d{16}$"),
    "ups": re.compile(r"^1Z[0-9A-Z]{16}$"),
    "fedex": re.compile(r"^\d{12,14}$"),
}

_URLS = {
    "dhl": "https://www.dhl.de/de/privatkunden/pakete-empfangen/verfolgen.html?piececode={}",
    "dpd": "https://tracking.dpd.de/parcelstatus?query={}&locale=de_DE",
    "hermes": "https://www.myhermes.de/empfangen/sendungsverfolgung/sendungsinformation/#{}",
    "ups": "https://www.ups.com/track?tracknum={}",
    "fedex": "https://www.fedex.com/fedextrack/?tracknumbers={}",
}

SUPPORTED_CARRIERS = tuple(_PATTERNS.keys())


def normalize_tracking_number(tracking_number: str) -> str:
    return re.sub(r"\s+", "", tracking_number or "").upper()


def validate_tracking_number(tracking_number: str, carrier: str) -> bool:
    """Carrier specific format check; unknown carriers only need a non-empty value."""
    cleaned = normalize_tracking_number(tracking_number)
    if not cleaned:
        return False
    pattern = _PATTERNS.get((carrier or "").strip().lower())
    if pattern is None:
        return True
    return bool(pattern.match(cleaned))


def tracking_url(carrier: str, tracking_number: str) -> str | None:
    template = _URLS.get((carrier or "").strip().lower())
    if not template:
        return None
    return template.format(normalize_tracking_number(tracking_number))
