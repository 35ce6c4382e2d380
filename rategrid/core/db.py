"""
Supabase client helpers.

All cache access uses the service role key, which bypasses RLS.
This key must NEVER be exposed to the frontend.
"""

from __future__ import annotations

import os
from typing import Optional

from supabase import create_client, Client


def get_client() -> Client:
    """Create a Supabase client using the service role key."""
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_ROLE_KEY"]
    return create_client(url, key)


def get_optional_client() -> Optional[Client]:
    """Supabase client when SUPABASE_URL and the service role key are set, else None."""
    if not os.getenv("SUPABASE_URL") or not os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
        return None
    return get_client()
