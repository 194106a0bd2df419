"""Blocklist classifier rejecting common attack probes and crawlers.

This is basic protection meant to discourage automated scanners: requests
for script/config file extensions, or carrying well-known attack payloads in
the path, query string or a few headers, are answered with 403.

Used together with the rate limiter it provides a cheap first line of
defence; it is not a WAF.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import unquote_plus

from fastapi import Request

from simple_security.core.client_identity import (
    FORWARDED_FOR_HEADER,
    header_value,
    joined_header_values,
    resolve_client_key,
)
from simple_security.core.decisions import Continue, Decision, Respond

logger = logging.getLogger(__name__)

# Initialized once at import time and never mutated.
BLOCKED_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".php", ".cgi", ".asp", ".aspx", ".ashx", ".asmx", ".axd", ".config", ".env",
        ".exe", ".dll", ".bat", ".cmd", ".sh", ".jar", ".jsp", ".jspx", ".war",
        ".pl", ".py", ".rb", ".htaccess", ".htpasswd", ".ini", ".cfg", ".xml", ".conf",
    }
)

# Not exhaustive; extend as new probes show up. Entries must be lower case.
BLOCKED_PATTERNS: frozenset[str] = frozenset(
    {
        # Path traversal
        "../../", "../", "..\\", "%2e%2e", "%252e", "..;", "%c0%ae",

        # XSS
        "<script", "javascript:", "onload=", "onerror=", "onmouseover=",
        "onfocus=", "onblur=", "alert(", "confirm(", "prompt(",
        "document.cookie", "document.domain", "document.write",

        # File inclusion/disclosure
        ".htaccess", "etc/passwd", "win.ini", "web.config", ".env",
        "wp-config", "config.php", "phpinfo", ".git/", ".svn/",

        # Command injection
        "; ls", "; dir", "|ls", "|dir", "&&ls", "&&dir", "||ls", "||dir",
        "`ls`", "`dir`", "$(ls)", "$(dir)", "&lt;!--#exec",

        # NoSQL injection
        "$where:", "$gt:", "$lt:", "$ne:", "$in:", "$regex:",

        # Template injection
        "{{", "${", "#{", "<%= ", "[% ", "<? ", "<%",
    }
)

# str.endswith accepts a tuple, which avoids a Python-level loop per request
_EXTENSION_SUFFIXES: tuple[str, ...] = tuple(BLOCKED_EXTENSIONS)


def request_path(request: Request) -> str:
    """Decoded request path exactly as routed to the application.

    ``request.url`` re-parses the path, so a decoded ``#`` or ``?`` (sent as
    ``%23``/``%3F``) would cut it short; the ASGI scope path is used as is.
    """

    return request.scope["path"]


@dataclass(frozen=True)
class RequestMetadata:
    """The parts of an HTTP request the guard looks at.

    Absent headers are represented as empty strings. Repeated scanned headers
    are comma-joined; the client key still comes from the first
    ``X-Forwarded-For`` entry.
    """

    path: str
    query_string: str = ""
    referer: str = ""
    cookie: str = ""
    forwarded_for: str = ""
    forwarded_host: str = ""
    user_agent: str = ""
    remote_address: str | None = None

    @classmethod
    def from_headers(
        cls,
        path: str,
        query_string: str,
        headers: Mapping[str, str],
        remote_address: str | None = None,
    ) -> "RequestMetadata":
        """Build metadata from a raw path, query string and header mapping."""

        return cls(
            path=path,
            query_string=query_string,
            referer=joined_header_values(headers, "Referer"),
            cookie=joined_header_values(headers, "Cookie"),
            forwarded_for=joined_header_values(headers, FORWARDED_FOR_HEADER),
            forwarded_host=joined_header_values(headers, "X-Forwarded-Host"),
            user_agent=header_value(headers, "User-Agent"),
            remote_address=remote_address,
        )

    @classmethod
    def from_request(cls, request: Request) -> "RequestMetadata":
        """Build metadata from a Starlette/FastAPI request."""

        return cls.from_headers(
            path=request_path(request),
            query_string=request.scope.get("query_string", b"").decode("latin-1"),
            headers=request.headers,
            remote_address=request.client.host if request.client else None,
        )

    def client_key(self, *, fallback: str | None = None) -> str:
        return resolve_client_key(
            {FORWARDED_FOR_HEADER: self.forwarded_for},
            self.remote_address,
            fallback=fallback,
        )


def _contains_blocked_pattern(value: str) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(pattern in lowered for pattern in BLOCKED_PATTERNS)


def is_blocked(request: RequestMetadata) -> bool:
    """Return True when the request matches a blocked extension or pattern.

    The path is checked for a blocked extension suffix first. Otherwise the
    path, the query string (raw and percent-decoded) and the Referer, Cookie,
    X-Forwarded-For and X-Forwarded-Host headers are searched for any blocked
    pattern. All comparisons are case-insensitive.

    Args:
        request: Request metadata to classify.

    Returns:
        True if the request must be rejected.
    """

    path = request.path.lower()

    if path.endswith(_EXTENSION_SUFFIXES):
        return True

    query = request.query_string.lower()
    values_to_check = (
        path,
        query,
        # decoded form as well: ASGI hands the query string over still encoded
        unquote_plus(query) if "%" in query or "+" in query else "",
        request.referer,
        request.cookie,
        request.forwarded_for,
        request.forwarded_host,
    )

    return any(_contains_blocked_pattern(value) for value in values_to_check)


class ScanningFilter:
    """Reject scanner and attack traffic with 403 Forbidden."""

    def evaluate(self, request: RequestMetadata) -> Decision:
        """Classify a request and log it when blocked.

        Args:
            request: Request metadata.

        Returns:
            ``Respond(403)`` with an empty body when blocked, else ``Continue()``.
        """

        if not is_blocked(request):
            return Continue()

        logger.warning(
            "scan_filter.blocked",
            extra={
                "client_key": request.client_key(fallback="unknown"),
                "path": request.path,
                "user_agent": request.user_agent,
            },
        )
        return Respond(status_code=403)
