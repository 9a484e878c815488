"""Base repository with shared Supabase client."""

from supabase import Client


class BaseRepository:
    """Base class for all repositories.

    Takes the sync Client; cart operations are synchronous.
    """

    def __init__(self, client: Client) -> None:
        self.client = client
