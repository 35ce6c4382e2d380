"""
Interval projection: flatten interval-valued rate periods into a per-day grid.

Rules applied per covered day, in input order:
  - price per rate type: last period processed wins
  - promotion: sticky once set
  - labels: first two distinct labels are kept
  - minimum stay: maximum of every positive contribution, None when none

Periods are clipped to the query window first; days outside the window
never get a cell.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rategrid.core.dates import DateWindow, format_date, iter_days, parse_date
from rategrid.core.models import (
    DailyProjection,
    OccupancyPrice,
    RatePeriod,
    RateType,
    is_placeholder_label,
    placeholder_label,
)

logger = logging.getLogger("rategrid.core.projection")

MAX_LABELS_PER_DAY = 2
PREFERRED_OCCUPANCY = 2


def resolve_price(period: RatePeriod) -> Optional[float]:
    """
    Pick the single displayed price of a period.

    The 2-occupant price wins, then the first occupancy entry that carries a
    price, then the flat price.
    """
    priced = [o for o in period.occupancy_prices if o.price is not None]
    for occ in priced:
        if occ.occupant_count == PREFERRED_OCCUPANCY:
            return occ.price
    if priced:
        return priced[0].price
    return period.flat_price


class RateTypeCatalog:
    """Deduplicated rate types in discovery order."""

    def __init__(self) -> None:
        self._entries: Dict[int, RateType] = {}

    def __contains__(self, rate_type_id: int) -> bool:
        return rate_type_id in self._entries

    def admit(
        self,
        rate_type_id: int,
        label: Optional[str] = None,
        order: Optional[int] = None,
        description: Optional[str] = None,
    ) -> RateType:
        label = (label or "").strip() or None
        existing = self._entries.get(rate_type_id)
        if existing is None:
            entry = RateType(
                id=rate_type_id,
                label=label or placeholder_label(rate_type_id),
                order=order,
                description=description,
            )
            self._entries[rate_type_id] = entry
            return entry

        # Only a generated placeholder is ever replaced.
        if existing.is_placeholder and not is_placeholder_label(label, rate_type_id):
            existing.label = label
        if existing.order is None and order is not None:
            existing.order = order
        if existing.description is None and description:
            existing.description = description
        return existing

    def label(self, rate_type_id: int) -> str:
        entry = self._entries.get(rate_type_id)
        return entry.label if entry else placeholder_label(rate_type_id)

    def ordered(self) -> List[RateType]:
        # sorted() is stable, so unordered entries keep their discovery order.
        return sorted(
            self._entries.values(),
            key=lambda rt: (rt.order is None, rt.order if rt.order is not None else 0),
        )


@dataclass
class Projection:
    window: DateWindow
    daily: Dict[int, Dict[str, DailyProjection]] = field(default_factory=dict)
    rate_type_catalog: List[RateType] = field(default_factory=list)

    def day(self, accommodation_id: int, iso_date: str) -> DailyProjection:
        cell = self.daily.get(accommodation_id, {}).get(iso_date)
        return cell if cell is not None else DailyProjection()

    def price(self, accommodation_id: int, iso_date: str, rate_type_id: Optional[int]) -> Optional[float]:
        if rate_type_id is None:
            return None
        return self.day(accommodation_id, iso_date).price_by_rate_type.get(rate_type_id)

    def minimum_stay(self, accommodation_id: int, iso_date: str) -> Optional[int]:
        return self.day(accommodation_id, iso_date).minimum_stay

    def rate_type_minimum_stay(self, accommodation_id: int, iso_date: str, rate_type_id: int) -> Optional[int]:
        """Minimum stay of one rate type's own periods on that day."""
        return self.day(accommodation_id, iso_date).minimum_stay_by_rate_type.get(rate_type_id)

    def rate_type_labels(self) -> Dict[int, str]:
        return {rt.id: rt.label for rt in self.rate_type_catalog}

    def default_rate_type_id(self, current: Optional[int] = None) -> Optional[int]:
        ids = [rt.id for rt in self.rate_type_catalog]
        if current is not None and current in ids:
            return current
        return ids[0] if ids else None

    def _cell(self, accommodation_id: int, iso_date: str) -> DailyProjection:
        return self.daily.setdefault(accommodation_id, {}).setdefault(iso_date, DailyProjection())

    def set_price(self, accommodation_id: int, iso_date: str, rate_type_id: int, price: float) -> None:
        self._cell(accommodation_id, iso_date).price_by_rate_type[rate_type_id] = price

    def set_minimum_stay(self, accommodation_id: int, iso_date: str, value: Optional[int]) -> None:
        """Set the day's minimum stay on every rate type priced that day."""
        cell = self._cell(accommodation_id, iso_date)
        cell.minimum_stay = value
        for rate_type_id in cell.price_by_rate_type:
            if value is None:
                cell.minimum_stay_by_rate_type.pop(rate_type_id, None)
            else:
                cell.minimum_stay_by_rate_type[rate_type_id] = value


def _is_usable(period: Any) -> bool:
    return (
        isinstance(period, RatePeriod)
        and isinstance(period.start, date)
        and isinstance(period.end, date)
        and period.start <= period.end
    )


def project(
    periods: Iterable[RatePeriod],
    window: DateWindow,
    known_rate_types: Iterable[RateType] = (),
) -> Projection:
    """
    Project rate periods onto every day of window.

    known_rate_types (the supplier listing and linked rate types) are
    admitted to the catalog before any period is scanned.
    """
    catalog = RateTypeCatalog()
    for rate_type in known_rate_types:
        catalog.admit(rate_type.id, rate_type.label, rate_type.order, rate_type.description)

    result = Projection(window=window)
    skipped = 0
    for period in periods:
        if not _is_usable(period):
            skipped += 1
            continue

        rate_type_id = period.rate_type_id
        if rate_type_id is not None:
            catalog.admit(rate_type_id, period.label)

        span = window.clip(period.start, period.end)
        if span is None:
            continue

        price = resolve_price(period)
        label = period.label
        if not label and rate_type_id is not None:
            label = catalog.label(rate_type_id)

        days = result.daily.setdefault(period.accommodation_id, {})
        for day in iter_days(span.start, span.end):
            cell = days.setdefault(format_date(day), DailyProjection())
            if rate_type_id is not None and price is not None:
                cell.price_by_rate_type[rate_type_id] = price
            if period.has_promotion:
                cell.has_promotion = True
            if label and label not in cell.rate_type_labels and len(cell.rate_type_labels) < MAX_LABELS_PER_DAY:
                cell.rate_type_labels.append(label)
            if period.minimum_stay is not None and period.minimum_stay > 0:
                current = cell.minimum_stay
                cell.minimum_stay = period.minimum_stay if current is None else max(current, period.minimum_stay)
                if rate_type_id is not None:
                    own = cell.minimum_stay_by_rate_type.get(rate_type_id)
                    cell.minimum_stay_by_rate_type[rate_type_id] = (
                        period.minimum_stay if own is None else max(own, period.minimum_stay)
                    )

    if skipped:
        logger.debug(f"Projection skipped {skipped} unusable period(s)")

    result.rate_type_catalog = catalog.ordered()
    return result


def to_wire(projection: Projection, accommodation_id: int) -> Dict[str, Any]:
    """Per-accommodation maps in the shape served to the grid front end."""
    rates: Dict[str, Dict[int, float]] = {}
    promo: Dict[str, bool] = {}
    rate_types: Dict[str, List[str]] = {}
    minimum_stay: Dict[str, Optional[int]] = {}
    for iso_date, cell in sorted(projection.daily.get(accommodation_id, {}).items()):
        if cell.price_by_rate_type:
            rates[iso_date] = dict(cell.price_by_rate_type)
        if cell.has_promotion:
            promo[iso_date] = True
        if cell.rate_type_labels:
            rate_types[iso_date] = list(cell.rate_type_labels)
        minimum_stay[iso_date] = cell.minimum_stay
    return {
        "rates": rates,
        "promo": promo,
        "rateTypes": rate_types,
        "dureeMin": minimum_stay,
    }


@dataclass(frozen=True)
class DayValue:
    """One edited day for one rate type, as sent back to the upstream API."""

    date: str
    rate_type_id: int
    price: float
    minimum_stay: Optional[int] = None


def collapse_to_periods(accommodation_id: int, days: Iterable[DayValue]) -> List[RatePeriod]:
    """
    Group contiguous days carrying the same (rate type, price, minimum stay)
    into interval records. Unparsable dates are dropped.
    """
    by_type: Dict[int, Dict[date, DayValue]] = {}
    for value in days:
        day = parse_date(value.date)
        if day is None:
            continue
        # The later edit of the same day wins.
        by_type.setdefault(value.rate_type_id, {})[day] = value

    periods: List[RatePeriod] = []
    for rate_type_id in sorted(by_type):
        rows: List[Tuple[date, DayValue]] = sorted(by_type[rate_type_id].items())
        current: Optional[RatePeriod] = None
        for day, value in rows:
            if (
                current is not None
                and (day - current.end).days == 1
                and resolve_price(current) == value.price
                and current.minimum_stay == value.minimum_stay
            ):
                current.end = day
                continue
            current = RatePeriod(
                accommodation_id=accommodation_id,
                start=day,
                end=day,
                rate_type_id=rate_type_id,
                occupancy_prices=[OccupancyPrice(PREFERRED_OCCUPANCY, value.price)],
                minimum_stay=value.minimum_stay,
            )
            periods.append(current)
    return periods
