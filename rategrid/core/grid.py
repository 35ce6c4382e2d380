"""
CalendarGrid: one supplier's grid, wiring pointer, keyboard and edit
intents into the selection and editing controllers.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from rategrid.core.bulk_edit import SupplierGridState, apply_minimum_stay, apply_price
from rategrid.core.drag_scope import Viewport
from rategrid.core.editing import CANCEL_KEY, CellEditingController, EditingSession
from rategrid.core.selection import (
    GridSelectionController,
    HitTest,
    PointerEvent,
    SelectionUpdate,
    apply_selection_update,
)

logger = logging.getLogger("rategrid.core.grid")


class CalendarGrid:
    def __init__(
        self,
        state: SupplierGridState,
        hit_test: HitTest,
        viewport: Optional[Viewport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.state = state
        self.selection = GridSelectionController(
            on_selection_change=self._on_selection_change,
            hit_test=hit_test,
            viewport=viewport,
            clock=clock,
        )
        self.editing = CellEditingController(
            on_price_commit=self._on_price_commit,
            on_minimum_stay_commit=self._on_minimum_stay_commit,
        )

    # -- callbacks -----------------------------------------------------------

    def _on_selection_change(self, update: SelectionUpdate) -> None:
        self.state.selected_dates = apply_selection_update(self.state.selected_dates, update)

    def _on_price_commit(self, price: float) -> None:
        touched = apply_price(self.state, price)
        logger.info(f"Supplier {self.state.supplier_id}: price {price} applied to {touched} cell(s)")

    def _on_minimum_stay_commit(self, value: Optional[int]) -> None:
        touched = apply_minimum_stay(self.state, value)
        logger.info(f"Supplier {self.state.supplier_id}: minimum stay {value} applied to {touched} cell(s)")

    # -- pointer -------------------------------------------------------------

    def pointer_down(self, iso_date: str, event: PointerEvent) -> None:
        self.selection.pointer_down(iso_date, event, editing=self.editing.active)

    def pointer_move(self, event: PointerEvent) -> None:
        self.selection.pointer_move(event)

    def pointer_up(self, event: PointerEvent) -> None:
        self.selection.pointer_up(event)

    def header_click(self, iso_date: str) -> None:
        self.selection.click_header(iso_date)

    def dragging_dates(self) -> List[str]:
        return self.selection.dragging_dates()

    # -- editing -------------------------------------------------------------

    def price_cell_click(self, accommodation_id: int, iso_date: str) -> bool:
        if self.selection.clicks_suppressed():
            return False
        current = self.state.projection.price(accommodation_id, iso_date, self.state.active_rate_type_id)
        return self.editing.start_price_edit(accommodation_id, iso_date, current, self.state.selected_dates)

    def minimum_stay_cell_click(self, accommodation_id: int, iso_date: str) -> bool:
        if self.selection.clicks_suppressed():
            return False
        current = self.state.projection.minimum_stay(accommodation_id, iso_date)
        return self.editing.start_minimum_stay_edit(
            accommodation_id, iso_date, current, self.state.selected_dates
        )

    def set_input(self, text: str) -> None:
        self.editing.set_input(text)

    def blur(self) -> None:
        self.editing.commit()

    @property
    def editing_session(self) -> Optional[EditingSession]:
        return self.editing.session

    # -- keyboard ------------------------------------------------------------

    def key_down(self, key: str) -> bool:
        """
        Enter/Tab commit and Escape cancels an open edit. With no edit open,
        Escape clears the date selection.
        """
        if self.editing.handle_key(key):
            return True
        if key == CANCEL_KEY:
            self.selection.clear_selection()
            return True
        return False

    def close(self) -> None:
        self.selection.close()
        self.editing.cancel()
