"""
Database Module - Supabase and Redis Clients

Provides lazy singleton instances of:
- Sync Supabase client for the stored-cart table
- Sync Upstash Redis client for live cart sessions and event streams
"""

import os

from supabase import Client, create_client
from upstash_redis import Redis

from shoppingcart.config import SESSION_TTL

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_supabase_client: Client | None = None
_redis_client: Redis | None = None


def get_supabase_sync() -> Client:
    """
    Get synchronous Supabase client (singleton).
    """
    global _supabase_client

    if _supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_client


def get_redis_sync() -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN

    Used for:
    - Live cart session state
    - Cart event streams
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key prefixes for different data types."""

    CART_SESSION = "cart:session:"  # cart:session:{session_id}:{instance}
    CART_EVENTS = "stream:cart:events"

    @staticmethod
    def cart_session_key(session_id: str, instance: str) -> str:
        return f"{RedisKeys.CART_SESSION}{session_id}:{instance}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = SESSION_TTL
