import math
from typing import Any, Optional
from urllib.parse import urlparse


# Parse a feed value into a finite float; returns None for blanks and junk like 'bogus' or 'NaN'
def to_float(value: Any) -> Optional[float]:
    s = str(value if value is not None else "").strip()
    if not s:
        return None
    try:
        v = float(s)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


# Parse a feed quantity into an int, falling back to `default` when absent or non-numeric
def to_int(value: Any, default: int) -> int:
    v = to_float(value)
    if v is None:
        return default
    return int(v)


def is_absolute_http_url(value: Any) -> bool:
    """True only for absolute http(s) URLs with a host, e.g. 'https://cdn.example.com/a.jpg'.
    Bare file names ('a.jpg') and relative paths ('/img/a.jpg') are rejected.
    """
    if not isinstance(value, str) or not value.strip():
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


# SQLite binds OFFSET as a signed 64-bit integer
MAX_OFFSET = 2**63 - 1


# Clamp user-supplied page/limit query values into a usable (page, limit, offset) triple
def paginate(page: Any, limit: Any, default_limit: int, max_limit: int) -> tuple[int, int, int]:
    size = to_int(limit, default_limit)
    size = max(1, min(max_limit, size))
    p = max(1, min(to_int(page, 1), MAX_OFFSET // size + 1))
    return p, size, (p - 1) * size
