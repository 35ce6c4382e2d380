"""
RateGrid API: FastAPI service exposing projected OpenPro supplier data to
the rate grid front end.

Endpoints:
  GET  /health
  GET  /api/suppliers/{id}/accommodations
  GET  /api/suppliers/{id}/accommodations/{acc}/rates?debut&fin
  GET  /api/suppliers/{id}/accommodations/{acc}/stock?debut&fin
  GET  /api/suppliers/{id}/supplier-data?debut&fin
  POST /api/suppliers/{id}/bulk-update
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from rategrid import config
from rategrid.client.errors import OpenProApiError, OpenProHttpError
from rategrid.client.loaders import (
    load_accommodations,
    load_rate_types,
    load_rates,
    load_stock,
    load_supplier_data,
)
from rategrid.client.openpro import OpenProClient
from rategrid.core import db as db_helpers
from rategrid.core.cache import invalidate_supplier
from rategrid.core.dates import DateWindow, parse_date
from rategrid.core.models import Supplier
from rategrid.core.normalize import period_to_tarif
from rategrid.core.projection import DayValue, collapse_to_periods, project, to_wire

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("rategrid.backend")

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(title="RateGrid API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

UPSTREAM_ERRORS = (OpenProHttpError, OpenProApiError, httpx.HTTPError)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

_openpro_client: Optional[OpenProClient] = None
_cache_client: Any = None
_cache_checked = False


def get_openpro_client() -> OpenProClient:
    global _openpro_client
    if _openpro_client is None:
        _openpro_client = OpenProClient(
            config.OPENPRO_BASE_URL,
            config.OPENPRO_API_KEY,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    return _openpro_client


def get_cache_client() -> Any:
    """Supabase client for the rate cache, or None when it is not configured."""
    global _cache_client, _cache_checked
    if not _cache_checked:
        _cache_checked = True
        try:
            _cache_client = db_helpers.get_optional_client()
        except Exception as exc:
            logger.warning(f"Rate cache disabled: {exc}")
            _cache_client = None
    return _cache_client


# ---------------------------------------------------------------------------
# Request / Response schemas (Pydantic)
# ---------------------------------------------------------------------------


class AccommodationOut(BaseModel):
    idHebergement: int
    nomHebergement: str


class RateTypeOut(BaseModel):
    idTypeTarif: int
    label: str
    ordre: Optional[int] = None
    description: Optional[str] = None


class RatesOut(BaseModel):
    rates: Dict[str, Dict[int, float]]
    promo: Dict[str, bool]
    rateTypes: Dict[str, List[str]]
    dureeMin: Dict[str, Optional[int]]


class SupplierDataOut(BaseModel):
    accommodations: List[AccommodationOut]
    stock: Dict[int, Dict[str, int]]
    rates: Dict[int, Dict[str, Dict[int, float]]]
    promo: Dict[int, Dict[str, bool]]
    rateTypes: Dict[int, Dict[str, List[str]]]
    dureeMin: Dict[int, Dict[str, Optional[int]]]
    rateTypeLabels: Dict[int, str]
    rateTypesList: List[RateTypeOut]
    warnings: List[str] = Field(default_factory=list)


class DateUpdate(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN, description="YYYY-MM-DD")
    rateTypeId: Optional[int] = Field(default=None, ge=1)
    price: Optional[float] = Field(default=None, ge=0)
    dureeMin: Optional[int] = Field(default=None, ge=1)


class AccommodationUpdate(BaseModel):
    idHebergement: int
    dates: List[DateUpdate]


class BulkUpdateRequest(BaseModel):
    accommodations: List[AccommodationUpdate]


class BulkUpdateResponse(BaseModel):
    ok: bool = True
    written: int = Field(description="Number of rate periods sent upstream")
    skipped: int = Field(description="Date entries without a rate type and price")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _window(debut: str, fin: str) -> DateWindow:
    start = parse_date(debut)
    end = parse_date(fin)
    if start is None or end is None:
        raise HTTPException(status_code=422, detail="debut and fin must be valid YYYY-MM-DD dates")
    if end < start:
        raise HTTPException(status_code=422, detail="debut must not be after fin")
    return DateWindow(start, end)


def _supplier(supplier_id: int) -> Supplier:
    for supplier in config.SUPPLIERS:
        if supplier.id == supplier_id:
            return supplier
    return Supplier(id=supplier_id, name=f"Fournisseur {supplier_id}")


def _upstream_failure(action: str, exc: Exception) -> HTTPException:
    logger.error(f"{action} failed: {exc}")
    status = getattr(exc, "status", None)
    detail = f"Upstream error during {action}"
    if status:
        detail += f" (HTTP {status})"
    return HTTPException(status_code=502, detail=detail)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "service": "rategrid"}


@app.get("/api/suppliers/{supplier_id}/accommodations", response_model=List[AccommodationOut])
def list_accommodations(supplier_id: int, client: OpenProClient = Depends(get_openpro_client)):
    try:
        units = load_accommodations(client, supplier_id)
    except UPSTREAM_ERRORS as exc:
        raise _upstream_failure(f"accommodation listing for supplier {supplier_id}", exc)
    return [AccommodationOut(idHebergement=u.id, nomHebergement=u.display_name) for u in units]


@app.get(
    "/api/suppliers/{supplier_id}/accommodations/{accommodation_id}/rates",
    response_model=RatesOut,
)
def get_rates(
    supplier_id: int,
    accommodation_id: int,
    debut: str = Query(..., pattern=DATE_PATTERN),
    fin: str = Query(..., pattern=DATE_PATTERN),
    client: OpenProClient = Depends(get_openpro_client),
    cache_client: Any = Depends(get_cache_client),
):
    window = _window(debut, fin)
    try:
        rate_types = load_rate_types(client, supplier_id)
        periods = load_rates(
            client,
            supplier_id,
            accommodation_id,
            window,
            cache_client=cache_client,
            cache_ttl_minutes=config.RATE_CACHE_TTL_MINUTES,
        )
    except UPSTREAM_ERRORS as exc:
        raise _upstream_failure(f"rates for accommodation {accommodation_id}", exc)
    return to_wire(project(periods, window, rate_types), accommodation_id)


@app.get("/api/suppliers/{supplier_id}/accommodations/{accommodation_id}/stock")
def get_stock(
    supplier_id: int,
    accommodation_id: int,
    debut: str = Query(..., pattern=DATE_PATTERN),
    fin: str = Query(..., pattern=DATE_PATTERN),
    client: OpenProClient = Depends(get_openpro_client),
) -> Dict[str, int]:
    window = _window(debut, fin)
    try:
        return load_stock(client, supplier_id, accommodation_id, window)
    except UPSTREAM_ERRORS as exc:
        raise _upstream_failure(f"stock for accommodation {accommodation_id}", exc)


@app.get("/api/suppliers/{supplier_id}/supplier-data", response_model=SupplierDataOut)
def get_supplier_data(
    supplier_id: int,
    debut: str = Query(..., pattern=DATE_PATTERN),
    fin: str = Query(..., pattern=DATE_PATTERN),
    client: OpenProClient = Depends(get_openpro_client),
    cache_client: Any = Depends(get_cache_client),
):
    window = _window(debut, fin)
    try:
        data = load_supplier_data(
            client,
            _supplier(supplier_id),
            window,
            cache_client=cache_client,
            cache_ttl_minutes=config.RATE_CACHE_TTL_MINUTES,
        )
    except UPSTREAM_ERRORS as exc:
        raise _upstream_failure(f"supplier data for {supplier_id}", exc)

    rates: Dict[int, Any] = {}
    promo: Dict[int, Any] = {}
    rate_types: Dict[int, Any] = {}
    minimum_stay: Dict[int, Any] = {}
    for unit in data.accommodations:
        wire = to_wire(data.projection, unit.id)
        rates[unit.id] = wire["rates"]
        promo[unit.id] = wire["promo"]
        rate_types[unit.id] = wire["rateTypes"]
        minimum_stay[unit.id] = wire["dureeMin"]

    return SupplierDataOut(
        accommodations=[
            AccommodationOut(idHebergement=u.id, nomHebergement=u.display_name) for u in data.accommodations
        ],
        stock=data.stock,
        rates=rates,
        promo=promo,
        rateTypes=rate_types,
        dureeMin=minimum_stay,
        rateTypeLabels=data.projection.rate_type_labels(),
        rateTypesList=[
            RateTypeOut(idTypeTarif=rt.id, label=rt.label, ordre=rt.order, description=rt.description)
            for rt in data.rate_types
        ],
        warnings=data.warnings,
    )


@app.post("/api/suppliers/{supplier_id}/bulk-update", response_model=BulkUpdateResponse)
def bulk_update(
    supplier_id: int,
    req: BulkUpdateRequest,
    client: OpenProClient = Depends(get_openpro_client),
    cache_client: Any = Depends(get_cache_client),
):
    """
    Collapse per-day edits into contiguous rate periods and write them
    upstream, one request per accommodation.
    """
    written = 0
    skipped = 0
    for acc in req.accommodations:
        days: List[DayValue] = []
        for entry in acc.dates:
            if entry.rateTypeId is None or entry.price is None:
                skipped += 1
                continue
            days.append(DayValue(entry.date, entry.rateTypeId, entry.price, entry.dureeMin))
        periods = collapse_to_periods(acc.idHebergement, days)
        if not periods:
            continue
        try:
            client.set_rates(supplier_id, acc.idHebergement, [period_to_tarif(p) for p in periods])
        except UPSTREAM_ERRORS as exc:
            raise _upstream_failure(f"rate write for accommodation {acc.idHebergement}", exc)
        except Exception as exc:
            logger.error(f"Bulk update failed: {exc}\n{traceback.format_exc()}")
            raise HTTPException(status_code=500, detail=f"Bulk update failed: {str(exc)}")
        written += len(periods)

    if skipped:
        logger.warning(f"Supplier {supplier_id}: {skipped} bulk entries without rate type or price skipped")

    if cache_client is not None and written:
        try:
            invalidate_supplier(cache_client, supplier_id)
        except Exception as exc:
            logger.warning(f"Rate cache invalidation failed for supplier {supplier_id}: {exc}")

    return BulkUpdateResponse(written=written, skipped=skipped)
