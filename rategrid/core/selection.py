"""
Date-column selection by click and drag.

The transition functions are pure: each takes the current PointerState and
returns a Transition carrying the next state plus an optional selection
update. GridSelectionController wires them to a viewport, a hit-test and a
selection-change callback.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple, Union

from rategrid.core.dates import date_range_strings
from rategrid.core.drag_scope import DragListenerScope, Viewport

logger = logging.getLogger("rategrid.core.selection")

DRAG_THRESHOLD = 5.0
SUPPRESS_CLICK_SECONDS = 0.1
PRIMARY_BUTTON = 0

SelectionSet = FrozenSet[str]
SelectionUpdate = Union[SelectionSet, Callable[[SelectionSet], SelectionSet]]
HitTest = Callable[[float, float], Optional[str]]


def apply_selection_update(current: Iterable[str], update: SelectionUpdate) -> SelectionSet:
    """Resolve either update style against the current selection."""
    previous = frozenset(current)
    if callable(update):
        return frozenset(update(previous))
    return frozenset(update)


@dataclass(frozen=True)
class PointerEvent:
    x: float
    y: float
    button: int = PRIMARY_BUTTON
    ctrl_key: bool = False
    meta_key: bool = False

    @property
    def replace_selection(self) -> bool:
        return self.ctrl_key or self.meta_key


@dataclass(frozen=True)
class DragSession:
    anchor_date: str
    current_date: str
    armed: bool
    anchor_position: Tuple[float, float]

    def displacement(self, x: float, y: float) -> float:
        ax, ay = self.anchor_position
        return math.hypot(x - ax, y - ay)


@dataclass(frozen=True)
class PointerState:
    drag: Optional[DragSession] = None
    suppressed_until: float = float("-inf")

    def clicks_suppressed(self, now: float) -> bool:
        if now < self.suppressed_until:
            return True
        return self.drag is not None and self.drag.armed


@dataclass(frozen=True)
class Transition:
    state: PointerState
    selection: Optional[SelectionUpdate] = None


def toggle_date(iso_date: str) -> Callable[[SelectionSet], SelectionSet]:
    def _toggle(previous: SelectionSet) -> SelectionSet:
        if iso_date in previous:
            return previous - {iso_date}
        return previous | {iso_date}

    return _toggle


def union_dates(dates: Iterable[str]) -> Callable[[SelectionSet], SelectionSet]:
    added = frozenset(dates)

    def _union(previous: SelectionSet) -> SelectionSet:
        return previous | added

    return _union


def press(state: PointerState, iso_date: str, event: PointerEvent, *, editing: bool = False) -> Transition:
    """Open a drag session anchored at iso_date. Ignored while editing."""
    if editing or event.button != PRIMARY_BUTTON:
        return Transition(state)
    session = DragSession(
        anchor_date=iso_date,
        current_date=iso_date,
        armed=False,
        anchor_position=(event.x, event.y),
    )
    return Transition(replace(state, drag=session))


def move(state: PointerState, event: PointerEvent, hit_test: HitTest) -> Transition:
    drag = state.drag
    if drag is None:
        return Transition(state)

    if not drag.armed:
        if drag.displacement(event.x, event.y) > DRAG_THRESHOLD:
            return Transition(replace(state, drag=replace(drag, armed=True)))
        return Transition(state)

    # Off-grid positions keep the last resolved date.
    hovered = hit_test(event.x, event.y)
    if hovered is None or hovered == drag.current_date:
        return Transition(state)
    return Transition(replace(state, drag=replace(drag, current_date=hovered)))


def release(state: PointerState, event: PointerEvent, *, now: float) -> Transition:
    """
    Close the drag session.

    An unarmed session, or one released within the threshold of its anchor,
    toggles the anchor date. An armed one selects the anchor..current range,
    replacing the selection when Ctrl/Meta is held and extending it
    otherwise. The drag is always cleared and trailing clicks are suppressed
    for SUPPRESS_CLICK_SECONDS.
    """
    drag = state.drag
    if drag is None:
        return Transition(state)

    next_state = PointerState(drag=None, suppressed_until=now + SUPPRESS_CLICK_SECONDS)
    if not drag.armed or drag.displacement(event.x, event.y) < DRAG_THRESHOLD:
        return Transition(next_state, toggle_date(drag.anchor_date))

    dates = date_range_strings(drag.anchor_date, drag.current_date)
    if event.replace_selection:
        return Transition(next_state, frozenset(dates))
    return Transition(next_state, union_dates(dates))


def click_header(state: PointerState, iso_date: str, *, now: float) -> Transition:
    if state.clicks_suppressed(now):
        return Transition(state)
    return Transition(state, toggle_date(iso_date))


class GridSelectionController:
    """
    Stateful wrapper around the pointer transitions for one grid instance.

    on_selection_change receives a SelectionUpdate; hit_test maps viewport
    coordinates to the ISO date of the cell under the pointer (or None).
    """

    def __init__(
        self,
        on_selection_change: Callable[[SelectionUpdate], None],
        hit_test: HitTest,
        viewport: Optional[Viewport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_selection_change = on_selection_change
        self._hit_test = hit_test
        self._viewport = viewport
        self._clock = clock
        self._state = PointerState()
        self._scope: Optional[DragListenerScope] = None

    @property
    def state(self) -> PointerState:
        return self._state

    @property
    def dragging(self) -> bool:
        return self._state.drag is not None

    def _emit(self, transition: Transition) -> None:
        self._state = transition.state
        if transition.selection is not None:
            self._on_selection_change(transition.selection)

    def pointer_down(self, iso_date: str, event: PointerEvent, *, editing: bool = False) -> None:
        if self._state.drag is not None:
            # A missed pointer-up left a session open; drop it first.
            self._state = replace(self._state, drag=None)
            self._close_scope()
        transition = press(self._state, iso_date, event, editing=editing)
        self._state = transition.state
        if self._state.drag is not None and self._viewport is not None:
            scope = DragListenerScope(self._viewport, self.pointer_move, self.pointer_up)
            try:
                scope.open()
            except Exception:
                self._state = replace(self._state, drag=None)
                raise
            self._scope = scope

    def pointer_move(self, event: PointerEvent) -> None:
        self._emit(move(self._state, event, self._hit_test))

    def pointer_up(self, event: PointerEvent) -> None:
        try:
            self._emit(release(self._state, event, now=self._clock()))
        finally:
            if self._state.drag is not None:
                self._state = replace(self._state, drag=None)
            self._close_scope()

    def click_header(self, iso_date: str) -> None:
        self._emit(click_header(self._state, iso_date, now=self._clock()))

    def clicks_suppressed(self) -> bool:
        return self._state.clicks_suppressed(self._clock())

    def clear_selection(self) -> None:
        self._on_selection_change(frozenset())

    def dragging_dates(self) -> List[str]:
        """The range highlighted while an armed drag is in progress."""
        drag = self._state.drag
        if drag is None or not drag.armed:
            return []
        return date_range_strings(drag.anchor_date, drag.current_date)

    def _close_scope(self) -> None:
        scope, self._scope = self._scope, None
        if scope is not None:
            scope.close()

    def close(self) -> None:
        """Tear down any open drag without touching the selection."""
        if self._state.drag is not None:
            logger.debug(f"Discarding open drag anchored at {self._state.drag.anchor_date}")
        self._state = replace(self._state, drag=None)
        self._close_scope()
