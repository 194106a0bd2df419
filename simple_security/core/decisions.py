"""Outcome of a guard stage: let the request through or answer it now.

Each guard component returns one of these instead of touching the response
itself; the middleware layer turns ``Respond`` into an HTTP response and
skips the downstream application.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Continue:
    """Forward the request to the next pipeline stage unchanged."""


@dataclass(frozen=True)
class Respond:
    """Short-circuit the pipeline with the given status and plain-text body."""

    status_code: int
    body: str = ""


Decision = Union[Continue, Respond]
