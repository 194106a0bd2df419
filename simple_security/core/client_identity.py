"""Client identity resolution shared by the scan filter and the rate limiter.

Proxy headers are trusted as-is: there is no trusted-proxy chain validation,
so a client can pick its own key by sending ``X-Forwarded-For``.
"""

from __future__ import annotations

import uuid
from typing import Mapping

FORWARDED_FOR_HEADER = "X-Forwarded-For"


def header_value(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup returning "" when absent.

    Starlette ``Headers`` are already case-insensitive; plain dicts are
    searched by lower-cased name as a fallback.
    """

    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), None)
    return value or ""


def joined_header_values(headers: Mapping[str, str], name: str) -> str:
    """All values of a possibly repeated header, comma-joined.

    A request may carry the same header on several lines; the scan filter
    has to see every one of them, not only the first.
    """

    getlist = getattr(headers, "getlist", None)
    if getlist is None:
        return header_value(headers, name)
    return ",".join(getlist(name))


def resolve_client_key(
    headers: Mapping[str, str],
    remote_address: str | None,
    *,
    fallback: str | None = None,
) -> str:
    """Derive the per-client key for a request.

    Args:
        headers: Request headers.
        remote_address: Transport-level peer address, if known.
        fallback: Value to use when nothing identifies the client. When
            omitted a random uuid4 is generated, which means such requests
            never share a rate-limit bucket.

    Returns:
        First ``X-Forwarded-For`` entry, else the remote address, else the
        fallback.

    Examples:
        >>> resolve_client_key({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, "10.0.0.2")
        '203.0.113.7'
        >>> resolve_client_key({}, "10.0.0.2")
        '10.0.0.2'
        >>> resolve_client_key({}, None, fallback="unknown")
        'unknown'
    """

    forwarded = header_value(headers, FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first

    if remote_address:
        return remote_address

    return fallback if fallback is not None else str(uuid.uuid4())
