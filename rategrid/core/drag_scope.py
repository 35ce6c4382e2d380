"""
Scoped acquisition of viewport-wide pointer listeners for a drag.

Listeners are attached when a drag opens and detached on every exit path:
normal release, grid teardown, or an exception raised while the drag is
being processed.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

POINTER_MOVE = "pointermove"
POINTER_UP = "pointerup"


class DragScopeError(RuntimeError):
    """Raised when the scope is opened twice without being closed."""


class Viewport(Protocol):
    def add_listener(self, event: str, handler: Callable[[Any], None]) -> None: ...

    def remove_listener(self, event: str, handler: Callable[[Any], None]) -> None: ...


class DragListenerScope:
    def __init__(
        self,
        viewport: Viewport,
        on_move: Callable[[Any], None],
        on_up: Callable[[Any], None],
    ) -> None:
        self._viewport = viewport
        self._on_move = on_move
        self._on_up = on_up
        self._attached = False

    @property
    def active(self) -> bool:
        return self._attached

    def open(self) -> None:
        if self._attached:
            raise DragScopeError("drag listeners are already attached")
        self._viewport.add_listener(POINTER_MOVE, self._on_move)
        try:
            self._viewport.add_listener(POINTER_UP, self._on_up)
        except Exception:
            self._viewport.remove_listener(POINTER_MOVE, self._on_move)
            raise
        self._attached = True

    def close(self) -> None:
        if not self._attached:
            return
        self._attached = False
        try:
            self._viewport.remove_listener(POINTER_MOVE, self._on_move)
        finally:
            self._viewport.remove_listener(POINTER_UP, self._on_up)

    def __enter__(self) -> "DragListenerScope":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None
