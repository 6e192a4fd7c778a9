"""Lazy Supabase client singleton. Returns None when the store is not configured."""
from __future__ import annotations

import logging

from app.config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)

_client = None


def get_supabase():
    global _client
    if _client is None:
        if not SUPABASE_URL or not SUPABASE_KEY:
            return None
        from supabase import create_client
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
        logger.info("Supabase client created for %s", SUPABASE_URL)
    return _client


def reset_supabase() -> None:
    """Drop the cached client so the next call opens fresh connections.

    Pooled HTTP/2 connections that sat idle can fail their first read; a new
    client is the cheapest way back to a working pool.
    """
    global _client
    _client = None
