"""
Typed records shared by the projector, the controllers and the loaders.

Raw upstream payloads are converted into these shapes by
rategrid.core.normalize before anything else touches them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Supplier:
    id: int
    name: str


@dataclass(frozen=True)
class AccommodationUnit:
    id: int
    display_name: str


@dataclass
class RateType:
    id: int
    label: str
    order: Optional[int] = None
    description: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder_label(self.label, self.id)


@dataclass(frozen=True)
class OccupancyPrice:
    occupant_count: Optional[int]
    price: Optional[float]


@dataclass
class RatePeriod:
    """One interval-valued rate record. start/end are inclusive."""

    accommodation_id: int
    start: date
    end: date
    rate_type_id: Optional[int] = None
    occupancy_prices: List[OccupancyPrice] = field(default_factory=list)
    flat_price: Optional[float] = None
    minimum_stay: Optional[int] = None
    has_promotion: bool = False
    label: Optional[str] = None


@dataclass
class DailyProjection:
    price_by_rate_type: Dict[int, float] = field(default_factory=dict)
    minimum_stay: Optional[int] = None
    minimum_stay_by_rate_type: Dict[int, int] = field(default_factory=dict)
    has_promotion: bool = False
    rate_type_labels: List[str] = field(default_factory=list)


def placeholder_label(rate_type_id: int) -> str:
    return f"Type {rate_type_id}"


def is_placeholder_label(label: Optional[str], rate_type_id: int) -> bool:
    return not label or label == placeholder_label(rate_type_id)
