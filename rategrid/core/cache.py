"""
Cache key computation and get/set helpers for raw rate payloads.

Uses the rate_cache table. Key = stable hash of
(supplier, accommodation, debut, fin). TTL defaults to 60 minutes.
Entries of a supplier are dropped after a successful bulk save.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from supabase import Client

CACHE_TABLE = "rate_cache"
CACHE_TTL_MINUTES = 60


def compute_cache_key(
    supplier_id: int,
    accommodation_id: int,
    debut: str,
    fin: str,
) -> str:
    """
    Compute a stable cache key from the rate query.
    Canonical JSON ensures deterministic ordering.
    """
    payload = {
        "idFournisseur": supplier_id,
        "idHebergement": accommodation_id,
        "debut": debut,
        "fin": fin,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:32]


def get_cached(client: Client, cache_key: str) -> Optional[Dict[str, Any]]:
    """
    Look up a valid (non-expired) cache entry.
    Returns the raw rate payload or None.
    """
    now_iso = datetime.now(timezone.utc).isoformat()
    result = (
        client.table(CACHE_TABLE)
        .select("payload")
        .eq("cache_key", cache_key)
        .gt("expires_at", now_iso)
        .limit(1)
        .execute()
    )
    rows = result.data
    if rows and len(rows) > 0:
        return rows[0]["payload"]
    return None


def set_cached(
    client: Client,
    cache_key: str,
    supplier_id: int,
    payload: Dict[str, Any],
    ttl_minutes: int = CACHE_TTL_MINUTES,
) -> None:
    """
    Insert or update a cache entry. Upserts on cache_key.
    """
    expires_at = (datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)).isoformat()
    row = {
        "cache_key": cache_key,
        "supplier_id": supplier_id,
        "expires_at": expires_at,
        "payload": payload,
    }
    client.table(CACHE_TABLE).upsert(row, on_conflict="cache_key").execute()


def invalidate_supplier(client: Client, supplier_id: int) -> None:
    client.table(CACHE_TABLE).delete().eq("supplier_id", supplier_id).execute()
