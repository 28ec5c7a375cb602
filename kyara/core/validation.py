from __future__ import annotations

import re
from urllib.parse import urlparse

_REQ_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-_.]{7,63}$")

MAX_URL_LENGTH = 2048


def is_valid_request_id(value: str) -> bool:
    return bool(_REQ_ID_RE.fullmatch(value))


def normalize_public_url(url: str | None, *, max_length: int = MAX_URL_LENGTH) -> str | None:
    """Return ``url`` stripped if it is an absolute http(s) URL, else None."""
    if not isinstance(url, str):
        return None
    value = url.strip()
    if not value or len(value) > max_length:
        return None
    if any(ch in value for ch in ("\r", "\n", "\t")):
        return None

    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return value
