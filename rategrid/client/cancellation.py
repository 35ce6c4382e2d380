"""
Cooperative cancellation of in-flight supplier loads.
"""

from __future__ import annotations

import threading


class LoadCancelled(Exception):
    """A load was superseded or aborted. Never surfaced to the operator."""


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise LoadCancelled("load cancelled")