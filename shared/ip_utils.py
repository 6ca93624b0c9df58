"""
Client IP resolution for FastAPI requests.

The resolved address is stored on refresh-token records (created_by_ip,
revoked_by_ip) for diagnostics only; nothing authorizes on it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

# Proxy headers, most specific first. X-Forwarded-For may carry a chain;
# the left-most entry is the original client.
PROXY_IP_HEADERS = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def get_client_ip(request: Request) -> Optional[str]:
    """Best-effort client address, or None when the request carries none."""
    for header in PROXY_IP_HEADERS:
        candidate = (request.headers.get(header) or "").split(",")[0].strip()
        if candidate:
            return candidate

    if request.client and request.client.host:
        return request.client.host
    return None
