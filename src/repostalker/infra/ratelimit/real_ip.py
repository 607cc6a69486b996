"""Client key extraction for rate limiting behind a proxy.

The key is the caller's IP, taken from proxy headers in priority order:

1. ``X-Forwarded-For``, leftmost entry
2. ``X-Real-IP``
3. the literal ``"unknown"``

Callers without either header share the ``"unknown"`` bucket.  That is
accepted: the edge proxy always sets ``X-Forwarded-For`` in production,
so the sentinel only groups direct local traffic.
"""

from __future__ import annotations

from fastapi import Request

_FORWARDED_FOR_HEADER = "x-forwarded-for"
_REAL_IP_HEADER = "x-real-ip"

UNKNOWN_CLIENT = "unknown"


def get_client_key(request: Request) -> str:
    """Extract the rate-limit client key from the request.

    Usable as a FastAPI dependency::

        client_key: str = Depends(get_client_key)
    """
    forwarded = request.headers.get(_FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get(_REAL_IP_HEADER)
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT
