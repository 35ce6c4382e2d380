"""
Inline cell editing: at most one price or minimum-stay session per grid.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import AbstractSet, Callable, Optional

logger = logging.getLogger("rategrid.core.editing")

PRICE = "price"
MINIMUM_STAY = "minimumStay"

COMMIT_KEYS = ("Enter", "Tab")
CANCEL_KEY = "Escape"

_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class EditingStateError(RuntimeError):
    """A caller drove the editing controller through an invalid transition."""


@dataclass(frozen=True)
class EditingSession:
    kind: str
    accommodation_id: int
    date: str
    raw_input: str = ""


def parse_price(text: str) -> Optional[float]:
    """Leading decimal number of text, or None ("120.5€" -> 120.5)."""
    match = _LEADING_FLOAT.match(text or "")
    if not match:
        return None
    value = float(match.group(1))
    if math.isinf(value) or math.isnan(value):
        return None
    return value


def parse_minimum_stay(text: str) -> Optional[int]:
    """Leading integer of text, or None ("3 nights" -> 3)."""
    match = _LEADING_INT.match(text or "")
    if not match:
        return None
    return int(match.group(1))


def price_seed(price: Optional[float]) -> str:
    if price is None:
        return ""
    # Half-up, like the grid's displayed rounding.
    return str(int(math.floor(price + 0.5)))


def minimum_stay_seed(value: Optional[int]) -> str:
    if value is not None and value > 0:
        return str(value)
    return ""


class CellEditingController:
    """
    Guards the single active EditingSession of a grid.

    on_price_commit(price) and on_minimum_stay_commit(value_or_None) act on
    the caller's current selection; they receive no cell coordinates.
    """

    def __init__(
        self,
        on_price_commit: Callable[[float], None],
        on_minimum_stay_commit: Callable[[Optional[int]], None],
    ) -> None:
        self._on_price_commit = on_price_commit
        self._on_minimum_stay_commit = on_minimum_stay_commit
        self._session: Optional[EditingSession] = None

    @property
    def session(self) -> Optional[EditingSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None

    def _start(
        self,
        kind: str,
        accommodation_id: int,
        iso_date: str,
        seed: str,
        selected_dates: AbstractSet[str],
    ) -> bool:
        if iso_date not in selected_dates:
            return False
        if self._session is not None:
            logger.debug(f"Discarding open {self._session.kind} edit on {self._session.date}")
        self._session = EditingSession(kind, accommodation_id, iso_date, seed)
        return True

    def start_price_edit(
        self,
        accommodation_id: int,
        iso_date: str,
        current_price: Optional[float],
        selected_dates: AbstractSet[str],
    ) -> bool:
        """Open a price edit seeded with the rounded price. False if the date is not selected."""
        return self._start(PRICE, accommodation_id, iso_date, price_seed(current_price), selected_dates)

    def start_minimum_stay_edit(
        self,
        accommodation_id: int,
        iso_date: str,
        current_value: Optional[int],
        selected_dates: AbstractSet[str],
    ) -> bool:
        return self._start(
            MINIMUM_STAY, accommodation_id, iso_date, minimum_stay_seed(current_value), selected_dates
        )

    def set_input(self, text: str) -> None:
        if self._session is None:
            raise EditingStateError("no edit session is open")
        self._session = replace(self._session, raw_input=text)

    def commit(self) -> None:
        """
        Close the session, invoking the matching callback when the input is
        valid. Invalid input is dropped and the session still closes.
        """
        session, self._session = self._session, None
        if session is None:
            return

        if session.kind == PRICE:
            price = parse_price(session.raw_input)
            if price is None or price < 0:
                logger.debug(f"Discarding invalid price input {session.raw_input!r}")
                return
            self._on_price_commit(price)
            return

        text = session.raw_input.strip()
        if not text:
            self._on_minimum_stay_commit(None)
            return
        value = parse_minimum_stay(text)
        if value is None or value <= 0:
            logger.debug(f"Discarding invalid minimum stay input {session.raw_input!r}")
            return
        self._on_minimum_stay_commit(value)

    def cancel(self) -> bool:
        """Discard the session. Returns True when one was open."""
        session, self._session = self._session, None
        return session is not None

    def handle_key(self, key: str) -> bool:
        """Enter/Tab commit, Escape cancels. Returns True when the key was consumed."""
        if self._session is None:
            return False
        if key in COMMIT_KEYS:
            self.commit()
            return True
        if key == CANCEL_KEY:
            self.cancel()
            return True
        return False
