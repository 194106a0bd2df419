"""Pytest configuration and fixtures shared across all test modules.

Environment variables are pinned here, before any test module imports
``simple_security.core.config`` and builds the global settings.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SECURITY_FILTER_PATTERNS_ENABLED", "true")
os.environ.setdefault("SECURITY_RATE_LIMIT_ENABLED", "false")
