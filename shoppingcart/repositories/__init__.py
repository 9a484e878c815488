"""Supabase-backed repositories."""
from .base import BaseRepository
from .cart_repo import SupabaseCartRepository

__all__ = [
    "BaseRepository",
    "SupabaseCartRepository",
]
