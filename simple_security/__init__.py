"""Request-admission guard: attack pattern filtering and per-client rate limiting."""

from simple_security.core.security_filter import add_simple_security_filter

__all__ = ["add_simple_security_filter"]
