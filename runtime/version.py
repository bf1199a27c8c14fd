"""Runtime version metadata for eznoprimes.

This module is import-safe and exposes version identifiers for other
runtime modules without executing side effects on import.
"""

from __future__ import annotations

PROJECT_NAME = "eznoprimes"
VERSION = "v1.1.0"
BUILD = "2026.10"
LICENSE = "Proprietary"

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "BUILD",
    "LICENSE",
    "as_string",
]


def as_string() -> str:
    """Return a concise version string."""

    return f"{PROJECT_NAME} {VERSION} (Build {BUILD})"
