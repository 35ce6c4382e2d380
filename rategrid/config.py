"""
Environment configuration shared by the loader process and the backend.

Environment variables: see .env.example
"""

from __future__ import annotations

import json
import logging
import os
from typing import List

from dotenv import load_dotenv

from rategrid.core.models import Supplier

# Load .env from the package directory or the working directory
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))
load_dotenv()

logger = logging.getLogger("rategrid.config")

OPENPRO_BASE_URL = os.getenv("OPENPRO_BASE_URL", "http://localhost:3000").rstrip("/")
OPENPRO_API_KEY = os.getenv("OPENPRO_API_KEY", "dev-key")
GRID_MONTHS = int(os.getenv("GRID_MONTHS", "1"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
RATE_CACHE_TTL_MINUTES = int(os.getenv("RATE_CACHE_TTL_MINUTES", "60"))
ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:4321,http://localhost:3000").split(",")
    if o.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_SUPPLIERS = [
    Supplier(id=47186, name="La Becterie"),
    Supplier(id=55123, name="Gîte en Cotentin"),
]


def parse_suppliers(raw: str) -> List[Supplier]:
    """
    Parse a JSON list of {idFournisseur, nom}. Falls back to the built-in
    development suppliers when raw is empty, invalid or yields nothing.
    """
    if not raw or not raw.strip():
        return list(DEFAULT_SUPPLIERS)
    try:
        items = json.loads(raw)
    except ValueError as exc:
        logger.warning(f"OPENPRO_SUPPLIERS is not valid JSON ({exc}), using defaults")
        return list(DEFAULT_SUPPLIERS)
    if not isinstance(items, list):
        logger.warning("OPENPRO_SUPPLIERS must be a JSON list, using defaults")
        return list(DEFAULT_SUPPLIERS)

    suppliers: List[Supplier] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            supplier_id = int(item.get("idFournisseur"))
        except (TypeError, ValueError):
            continue
        name = str(item.get("nom") or f"Fournisseur {supplier_id}")
        suppliers.append(Supplier(id=supplier_id, name=name))
    return suppliers or list(DEFAULT_SUPPLIERS)


SUPPLIERS = parse_suppliers(os.getenv("OPENPRO_SUPPLIERS", ""))
