# app/store.py
"""API key lookup and result persistence backed by Supabase."""
import logging
from typing import Any

from supabase import acreate_client

from .config import Settings
from .schemas import StoredResult

logger = logging.getLogger(__name__)

class PersistenceError(Exception):
    """A stored result could not be written."""

class SupabaseStore:
    """Key store and results table on a Supabase project."""

    def __init__(self, client: Any, api_key_table: str = "api_key", results_table: str = "request_data"):
        self._client = client
        self.api_key_table = api_key_table
        self.results_table = results_table

    @classmethod
    async def connect(cls, settings: Settings) -> "SupabaseStore":
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        client = await acreate_client(settings.supabase_url, settings.supabase_key)
        return cls(client, api_key_table=settings.api_key_table, results_table=settings.results_table)

    async def verify_api_key(self, apikey: str) -> bool:
        """True only if exactly this key exists; lookup errors count as invalid."""
        try:
            res = await (
                self._client.table(self.api_key_table)
                .select("*")
                .eq("key", apikey)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("API key verification error: %s", e)
            return False
        return bool(res.data)

    async def insert_result(self, result: StoredResult) -> list:
        try:
            res = await self._client.table(self.results_table).insert([result.model_dump()]).execute()
        except Exception as e:
            logger.error("Supabase storage error: %s", e)
            raise PersistenceError(str(e)) from e
        return res.data or []
