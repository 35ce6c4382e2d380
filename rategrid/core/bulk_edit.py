"""
Bulk edits over the accommodation x date selection of one supplier grid,
with tracking of locally modified cells until the next reload.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from rategrid.core.models import AccommodationUnit
from rategrid.core.projection import Projection

logger = logging.getLogger("rategrid.core.bulk_edit")

PriceKey = Tuple[int, str, int]
StayKey = Tuple[int, str]


@dataclass
class SupplierGridState:
    supplier_id: int
    projection: Projection
    selected_accommodations: Set[int] = field(default_factory=set)
    selected_dates: FrozenSet[str] = frozenset()
    active_rate_type_id: Optional[int] = None
    modified_prices: Set[PriceKey] = field(default_factory=set)
    modified_minimum_stays: Set[StayKey] = field(default_factory=set)

    @property
    def has_changes(self) -> bool:
        return bool(self.modified_prices or self.modified_minimum_stays)

    def _targets(self) -> List[Tuple[int, str]]:
        return [
            (acc_id, iso_date)
            for acc_id in sorted(self.selected_accommodations)
            for iso_date in sorted(self.selected_dates)
        ]


def apply_price(state: SupplierGridState, price: float) -> int:
    """
    Write price for the active rate type on every selected cell.
    Returns the number of cells touched (0 when no rate type is active).
    """
    rate_type_id = state.active_rate_type_id
    if rate_type_id is None:
        logger.debug(f"Supplier {state.supplier_id}: price edit ignored, no active rate type")
        return 0
    targets = state._targets()
    for acc_id, iso_date in targets:
        state.projection.set_price(acc_id, iso_date, rate_type_id, price)
        state.modified_prices.add((acc_id, iso_date, rate_type_id))
    return len(targets)


def apply_minimum_stay(state: SupplierGridState, value: Optional[int]) -> int:
    targets = state._targets()
    for acc_id, iso_date in targets:
        state.projection.set_minimum_stay(acc_id, iso_date, value)
        state.modified_minimum_stays.add((acc_id, iso_date))
    return len(targets)


def build_bulk_update(state: SupplierGridState) -> Dict[str, Any]:
    """
    Group modified cells into the bulk-update request body.

    Each date entry carries one rate type and its price. A modified minimum
    stay is written on every rate type priced that day, keeping each price;
    when the day has no price at all, the entry holds only dureeMin. A
    price-only change carries its own rate type's minimum stay.
    """
    projection = state.projection
    entries: Dict[int, Dict[str, List[Dict[str, Any]]]] = {}

    def _entry(acc_id: int, iso_date: str, rate_type_id: int, price: float) -> Dict[str, Any]:
        if (acc_id, iso_date) in state.modified_minimum_stays:
            minimum_stay = projection.minimum_stay(acc_id, iso_date)
        else:
            minimum_stay = projection.rate_type_minimum_stay(acc_id, iso_date, rate_type_id)
        return {"date": iso_date, "rateTypeId": rate_type_id, "price": price, "dureeMin": minimum_stay}

    written: Set[PriceKey] = set()
    for acc_id, iso_date, rate_type_id in sorted(state.modified_prices):
        price = projection.price(acc_id, iso_date, rate_type_id)
        if price is None:
            continue
        entries.setdefault(acc_id, {}).setdefault(iso_date, []).append(
            _entry(acc_id, iso_date, rate_type_id, price)
        )
        written.add((acc_id, iso_date, rate_type_id))

    for acc_id, iso_date in sorted(state.modified_minimum_stays):
        rows = entries.setdefault(acc_id, {}).setdefault(iso_date, [])
        prices = projection.day(acc_id, iso_date).price_by_rate_type
        if not prices:
            rows.append({"date": iso_date, "dureeMin": projection.minimum_stay(acc_id, iso_date)})
            continue
        for rate_type_id, price in sorted(prices.items()):
            if (acc_id, iso_date, rate_type_id) not in written:
                rows.append(_entry(acc_id, iso_date, rate_type_id, price))

    return {
        "accommodations": [
            {
                "idHebergement": acc_id,
                "dates": [
                    row
                    for iso_date in sorted(dates)
                    for row in sorted(dates[iso_date], key=lambda r: r.get("rateTypeId", 0))
                ],
            }
            for acc_id, dates in sorted(entries.items())
        ]
    }


def _format_price(price: float) -> str:
    return str(int(math.floor(price + 0.5)))


def format_selection_summary(
    state: SupplierGridState,
    accommodations: Iterable[AccommodationUnit],
) -> str:
    """
    One line per selected date, chronological:
        2025-03-01, Chalet - 120€*, Gîte - -
    '*' marks a modified price, '-' an unknown one.
    """
    selected = [a for a in accommodations if a.id in state.selected_accommodations]
    if not state.selected_dates or not selected:
        return ""
    selected.sort(key=lambda a: a.display_name)
    rate_type_id = state.active_rate_type_id

    lines: List[str] = []
    for iso_date in sorted(state.selected_dates):
        parts = [iso_date]
        for acc in selected:
            price = state.projection.price(acc.id, iso_date, rate_type_id)
            if price is None:
                parts.append(f"{acc.display_name} - -")
                continue
            marker = "*" if (acc.id, iso_date, rate_type_id) in state.modified_prices else ""
            parts.append(f"{acc.display_name} - {_format_price(price)}€{marker}")
        lines.append(", ".join(parts))
    return "\n".join(lines)


def reset_after_reload(
    state: SupplierGridState,
    projection: Projection,
    accommodations: Iterable[AccommodationUnit],
) -> None:
    """Install freshly loaded data: clears modifications, reselects every accommodation."""
    state.projection = projection
    state.modified_prices.clear()
    state.modified_minimum_stays.clear()
    state.selected_accommodations = {a.id for a in accommodations}
    state.active_rate_type_id = projection.default_rate_type_id(state.active_rate_type_id)


def new_grid_state(
    supplier_id: int,
    projection: Projection,
    accommodations: Iterable[AccommodationUnit],
) -> SupplierGridState:
    state = SupplierGridState(supplier_id=supplier_id, projection=projection)
    reset_after_reload(state, projection, accommodations)
    return state
