"""
Per-supplier loaders: fetch raw upstream payloads, normalize them and feed
the projector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rategrid.client.cancellation import CancellationToken, LoadCancelled
from rategrid.client.openpro import OpenProClient
from rategrid.core.cache import compute_cache_key, get_cached, set_cached
from rategrid.core.dates import DateWindow
from rategrid.core.models import AccommodationUnit, RatePeriod, RateType, Supplier, placeholder_label
from rategrid.core.normalize import (
    normalize_accommodations,
    normalize_linked_rate_type_ids,
    normalize_rate_periods,
    normalize_rate_types,
    normalize_stock,
)
from rategrid.core.projection import Projection, project

logger = logging.getLogger("rategrid.client.loaders")


@dataclass
class SupplierData:
    supplier: Supplier
    accommodations: List[AccommodationUnit]
    projection: Projection
    stock: Dict[int, Dict[str, int]] = field(default_factory=dict)
    rate_types: List[RateType] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def load_accommodations(
    client: OpenProClient,
    supplier_id: int,
    token: Optional[CancellationToken] = None,
) -> List[AccommodationUnit]:
    return normalize_accommodations(client.list_accommodations(supplier_id, token=token))


def load_stock(
    client: OpenProClient,
    supplier_id: int,
    accommodation_id: int,
    window: DateWindow,
    token: Optional[CancellationToken] = None,
) -> Dict[str, int]:
    payload = client.get_stock(supplier_id, accommodation_id, window.debut, window.fin, token=token)
    return normalize_stock(payload)


def load_rate_types(
    client: OpenProClient,
    supplier_id: int,
    token: Optional[CancellationToken] = None,
) -> List[RateType]:
    """Supplier rate-type listing. Empty (with a warning) when the listing fails."""
    try:
        return normalize_rate_types(client.list_rate_types(supplier_id, token=token))
    except LoadCancelled:
        raise
    except Exception as exc:
        logger.warning(f"Supplier {supplier_id}: rate type listing failed: {exc}")
        return []


def load_linked_rate_type_ids(
    client: OpenProClient,
    supplier_id: int,
    accommodation_id: int,
    token: Optional[CancellationToken] = None,
) -> List[int]:
    try:
        payload = client.list_accommodation_rate_type_links(supplier_id, accommodation_id, token=token)
    except LoadCancelled:
        raise
    except Exception as exc:
        logger.debug(f"Accommodation {accommodation_id}: rate type links unavailable: {exc}")
        return []
    return normalize_linked_rate_type_ids(payload)


def _fetch_rates_payload(
    client: OpenProClient,
    supplier_id: int,
    accommodation_id: int,
    window: DateWindow,
    token: Optional[CancellationToken],
    cache_client: Any,
    cache_ttl_minutes: int,
) -> Any:
    cache_key = compute_cache_key(supplier_id, accommodation_id, window.debut, window.fin)
    if cache_client is not None:
        try:
            cached = get_cached(cache_client, cache_key)
        except Exception as exc:
            logger.warning(f"Rate cache read failed for accommodation {accommodation_id}: {exc}")
            cached = None
        if cached is not None:
            logger.debug(f"Accommodation {accommodation_id}: cache hit for key={cache_key[:12]}...")
            return cached

    payload = client.get_rates(
        supplier_id,
        accommodation_id,
        {"debut": window.debut, "fin": window.fin},
        token=token,
    )

    if cache_client is not None and isinstance(payload, dict):
        try:
            set_cached(cache_client, cache_key, supplier_id, payload, ttl_minutes=cache_ttl_minutes)
        except Exception as exc:
            logger.warning(f"Rate cache write failed for accommodation {accommodation_id}: {exc}")
    return payload


def load_rates(
    client: OpenProClient,
    supplier_id: int,
    accommodation_id: int,
    window: DateWindow,
    token: Optional[CancellationToken] = None,
    cache_client: Any = None,
    cache_ttl_minutes: int = 60,
) -> List[RatePeriod]:
    payload = _fetch_rates_payload(
        client, supplier_id, accommodation_id, window, token, cache_client, cache_ttl_minutes
    )
    return normalize_rate_periods(payload, accommodation_id)


def load_supplier_data(
    client: OpenProClient,
    supplier: Supplier,
    window: DateWindow,
    token: Optional[CancellationToken] = None,
    cache_client: Any = None,
    cache_ttl_minutes: int = 60,
) -> SupplierData:
    """
    Load everything one supplier grid needs.

    A failing accommodation (stock or rates) is logged and recorded in
    warnings; the others still load. Cancellation propagates.
    """
    accommodations = load_accommodations(client, supplier.id, token)
    rate_types = load_rate_types(client, supplier.id, token)
    known = {rt.id: rt for rt in rate_types}

    periods: List[RatePeriod] = []
    stock: Dict[int, Dict[str, int]] = {}
    warnings: List[str] = []
    for acc in accommodations:
        if token is not None:
            token.raise_if_cancelled()

        for rate_type_id in load_linked_rate_type_ids(client, supplier.id, acc.id, token):
            if rate_type_id not in known:
                known[rate_type_id] = RateType(id=rate_type_id, label=placeholder_label(rate_type_id))

        try:
            stock[acc.id] = load_stock(client, supplier.id, acc.id, window, token)
        except LoadCancelled:
            raise
        except Exception as exc:
            logger.warning(f"Supplier {supplier.id}: stock failed for accommodation {acc.id}: {exc}")
            warnings.append(f"Stock indisponible pour {acc.display_name} ({acc.id})")
            stock[acc.id] = {}

        try:
            periods.extend(
                load_rates(client, supplier.id, acc.id, window, token, cache_client, cache_ttl_minutes)
            )
        except LoadCancelled:
            raise
        except Exception as exc:
            logger.warning(f"Supplier {supplier.id}: rates failed for accommodation {acc.id}: {exc}")
            warnings.append(f"Tarifs indisponibles pour {acc.display_name} ({acc.id})")

    projection = project(periods, window, known.values())
    logger.info(
        f"Supplier {supplier.id} ({supplier.name}): {len(accommodations)} accommodation(s), "
        f"{len(periods)} rate period(s), {len(projection.rate_type_catalog)} rate type(s)"
    )
    return SupplierData(
        supplier=supplier,
        accommodations=accommodations,
        projection=projection,
        stock=stock,
        rate_types=projection.rate_type_catalog,
        warnings=warnings,
    )
