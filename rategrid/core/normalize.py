"""
Normalization of raw OpenPro payloads into strict records.

The upstream API (and its stub server) uses several field names for the
same concept and mixes plain strings with multilingual lists. Everything
loosely typed is resolved here so the projector only sees RatePeriod,
RateType and AccommodationUnit values.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from rategrid.core.dates import format_date, parse_date
from rategrid.core.models import (
    AccommodationUnit,
    OccupancyPrice,
    RatePeriod,
    RateType,
    placeholder_label,
)

logger = logging.getLogger("rategrid.core.normalize")

PROMOTION_KEYS = ("promotion", "promo", "promotionActive", "hasPromo")


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except Exception:
        return None
    if number != number:
        return None
    return number


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None:
        return None
    try:
        return int(number)
    except (OverflowError, ValueError):
        return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def extract_text(field: Any, lang: str = "fr") -> Optional[str]:
    """
    Resolve a possibly multilingual field to a single string.

    Accepts a plain string, a list of {langue, texte} entries (the requested
    language wins, else the first entry carrying text) or a mapping keyed by
    language code.
    """
    if isinstance(field, str):
        return field
    if isinstance(field, list):
        entries = [e for e in field if isinstance(e, dict)]
        for entry in entries:
            if _first(entry, "langue", "Langue") == lang:
                text = _first(entry, "texte", "Texte")
                if text:
                    return str(text)
        for entry in entries:
            text = _first(entry, "texte", "Texte")
            if text:
                return str(text)
        return None
    if isinstance(field, dict):
        text = _first(field, lang, lang.upper(), "default")
        return str(text) if text else None
    return None


def _rate_type_id(raw: Dict[str, Any]) -> Optional[int]:
    value = _first(raw, "idTypeTarif")
    if value is None:
        value = _as_dict(raw.get("typeTarif")).get("idTypeTarif")
    rate_type_id = _to_int(value)
    if not rate_type_id:
        return None
    return rate_type_id


def _period_label(raw: Dict[str, Any]) -> Optional[str]:
    type_block = _as_dict(raw.get("typeTarif"))
    candidate = _first(type_block, "libelle", "Libelle")
    if candidate is None:
        candidate = _first(raw, "libelle", "Libelle")
    text = extract_text(candidate)
    return text.strip() if text and text.strip() else None


def _occupancy_prices(raw: Dict[str, Any]) -> List[OccupancyPrice]:
    pax = _as_dict(_first(raw, "tarifPax", "prixPax"))
    occupancies = _first(pax, "listeTarifPaxOccupation")
    if occupancies is None:
        occupancies = raw.get("listeTarifPaxOccupation")
    if not isinstance(occupancies, list):
        return []
    out: List[OccupancyPrice] = []
    for occ in occupancies:
        if not isinstance(occ, dict):
            continue
        out.append(
            OccupancyPrice(
                occupant_count=_to_int(occ.get("nbPers")),
                price=_to_float(occ.get("prix")),
            )
        )
    return out


def _flat_price(raw: Dict[str, Any]) -> Optional[float]:
    pax = _as_dict(_first(raw, "tarifPax", "prixPax"))
    price = _to_float(pax.get("prix"))
    if price is None:
        price = _to_float(raw.get("prix"))
    return price


def normalize_rate_period(raw: Any, accommodation_id: int) -> Optional[RatePeriod]:
    """Convert one raw tarif record. None when its dates cannot be resolved."""
    if not isinstance(raw, dict):
        return None
    start = parse_date(_first(raw, "debut", "dateDebut"))
    end = parse_date(_first(raw, "fin", "dateFin"))
    if start is None or end is None or end < start:
        logger.debug(
            f"Skipping rate period for accommodation {accommodation_id}: "
            f"unusable dates {raw.get('debut') or raw.get('dateDebut')!r}"
            f"..{raw.get('fin') or raw.get('dateFin')!r}"
        )
        return None

    minimum_stay = _to_int(_first(raw, "dureeMin", "dureeMinimale"))
    if minimum_stay is not None and minimum_stay <= 0:
        minimum_stay = None

    return RatePeriod(
        accommodation_id=accommodation_id,
        start=start,
        end=end,
        rate_type_id=_rate_type_id(raw),
        occupancy_prices=_occupancy_prices(raw),
        flat_price=_flat_price(raw),
        minimum_stay=minimum_stay,
        has_promotion=any(bool(raw.get(k)) for k in PROMOTION_KEYS),
        label=_period_label(raw),
    )


def normalize_rate_periods(payload: Any, accommodation_id: int) -> List[RatePeriod]:
    body = _as_dict(payload)
    records = _first(body, "tarifs", "periodes")
    if not isinstance(records, list):
        return []
    periods: List[RatePeriod] = []
    skipped = 0
    for raw in records:
        period = normalize_rate_period(raw, accommodation_id)
        if period is None:
            skipped += 1
            continue
        periods.append(period)
    if skipped:
        logger.debug(f"Accommodation {accommodation_id}: skipped {skipped} malformed rate period(s)")
    return periods


def normalize_rate_type(raw: Any) -> Optional[RateType]:
    if not isinstance(raw, dict):
        return None
    rate_type_id = _to_int(raw.get("idTypeTarif"))
    if not rate_type_id:
        return None
    libelle = extract_text(_first(raw, "libelle", "Libelle"))
    description = extract_text(_first(raw, "description", "Description"))
    label = description or libelle or placeholder_label(rate_type_id)
    return RateType(
        id=rate_type_id,
        label=label,
        order=_to_int(_first(raw, "ordre", "order")),
        description=description,
    )


def normalize_rate_types(payload: Any) -> List[RateType]:
    body = _as_dict(payload)
    records = _first(body, "typeTarifs", "typeTarif")
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list):
        return []
    out: List[RateType] = []
    for raw in records:
        rate_type = normalize_rate_type(raw)
        if rate_type is not None:
            out.append(rate_type)
    return out


def normalize_linked_rate_type_ids(payload: Any) -> List[int]:
    links = _as_dict(payload).get("liaisonHebergementTypeTarifs")
    if not isinstance(links, list):
        return []
    ids: List[int] = []
    for link in links:
        rate_type_id = _to_int(_as_dict(link).get("idTypeTarif"))
        if rate_type_id and rate_type_id not in ids:
            ids.append(rate_type_id)
    return ids


def normalize_accommodations(payload: Any) -> List[AccommodationUnit]:
    body = _as_dict(payload)
    records = _first(body, "hebergements", "listeHebergement")
    if not isinstance(records, list):
        return []
    out: List[AccommodationUnit] = []
    for raw in records:
        item = _as_dict(raw)
        raw_id = item.get("idHebergement")
        if raw_id is None:
            raw_id = _as_dict(item.get("cleHebergement")).get("idHebergement")
        acc_id = _to_int(raw_id)
        if acc_id is None:
            continue
        name = _first(item, "nomHebergement", "nom") or ""
        out.append(AccommodationUnit(id=acc_id, display_name=str(name)))
    return out


def normalize_stock(payload: Any) -> Dict[str, int]:
    body = _as_dict(payload)
    days = _first(body, "jours", "stock")
    if not isinstance(days, list):
        return {}
    out: Dict[str, int] = {}
    for raw in days:
        item = _as_dict(raw)
        day = parse_date(_first(item, "date", "jour"))
        if day is None:
            continue
        out[format_date(day)] = _to_int(_first(item, "dispo", "stock")) or 0
    return out


DEFAULT_MAX_STAY = 14


def period_to_tarif(period: RatePeriod, max_stay: int = DEFAULT_MAX_STAY) -> Dict[str, Any]:
    """Render a RatePeriod as an upstream tarif write record."""
    occupancies = [
        {"nbPers": occ.occupant_count, "prix": occ.price}
        for occ in period.occupancy_prices
        if occ.occupant_count is not None and occ.price is not None
    ]
    return {
        "idTypeTarif": period.rate_type_id,
        "debut": format_date(period.start),
        "fin": format_date(period.end),
        "ouvert": True,
        "dureeMin": period.minimum_stay or 1,
        "dureeMax": max(max_stay, period.minimum_stay or 1),
        "arriveeAutorisee": True,
        "departAutorise": True,
        "tarifPax": {"listeTarifPaxOccupation": occupancies},
    }
