"""Stored-cart Repository - Supabase table keyed by (identifier, instance).

Expected table (unique constraint on identifier + instance):

    create table shoppingcart (
        identifier text not null,
        instance   text not null,
        content    jsonb not null,
        tax_rate   numeric,
        discount   jsonb,
        created_at timestamptz not null,
        updated_at timestamptz not null,
        primary key (identifier, instance)
    );
"""

from postgrest.exceptions import APIError

from shoppingcart.cart.storage import CartRecordStore, StoredCart
from shoppingcart.config import CART_TABLE
from shoppingcart.errors import AlreadyStoredError
from shoppingcart.logging import get_logger, sanitize_id_for_logging

from .base import BaseRepository

logger = get_logger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseCartRepository(BaseRepository, CartRecordStore):
    """Stored cart database operations."""

    def __init__(self, client=None, table: str = CART_TABLE) -> None:
        if client is None:
            from shoppingcart.db import get_supabase_sync

            client = get_supabase_sync()
        super().__init__(client)
        self.table = table

    def find(self, identifier: str, instance: str) -> StoredCart | None:
        """Get the stored cart for (identifier, instance)."""
        result = (
            self.client.table(self.table)
            .select("*")
            .eq("identifier", identifier)
            .eq("instance", instance)
            .limit(1)
            .execute()
        )
        return StoredCart(**result.data[0]) if result.data else None

    def insert(self, record: StoredCart) -> StoredCart:
        """Insert a new stored cart; the table's unique key rejects duplicates."""
        try:
            result = self.client.table(self.table).insert(record.model_dump(mode="json")).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AlreadyStoredError(record.identifier) from e
            raise
        logger.info(
            "Stored cart %s/%s", sanitize_id_for_logging(record.identifier), record.instance
        )
        return StoredCart(**result.data[0]) if result.data else record

    def update(self, record: StoredCart) -> StoredCart:
        """Overwrite content and timestamps of an existing stored cart."""
        data = record.model_dump(mode="json", exclude={"identifier", "instance"})
        result = (
            self.client.table(self.table)
            .update(data)
            .eq("identifier", record.identifier)
            .eq("instance", record.instance)
            .execute()
        )
        return StoredCart(**result.data[0]) if result.data else record

    def delete(self, identifier: str, instance: str) -> None:
        """Delete the stored cart if present."""
        (
            self.client.table(self.table)
            .delete()
            .eq("identifier", identifier)
            .eq("instance", instance)
            .execute()
        )
