"""
Upstream API errors.
"""

from __future__ import annotations

from typing import Any


class OpenProHttpError(Exception):
    """Non-2xx response. body is the decoded JSON when possible, else the raw text."""

    def __init__(self, message: str, status: int, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class OpenProApiError(Exception):
    """2xx response whose envelope does not report ok=1."""
