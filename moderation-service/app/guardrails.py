# app/guardrails.py
"""Request guardrails applied before any classification work."""
from fastapi import HTTPException
from typing import Any, Optional

from .store import SupabaseStore

def require_content(content: Any) -> str:
    """Rejects anything but a non-empty string."""
    if not content or not isinstance(content, str):
        raise HTTPException(status_code=400, detail="Valid content string is required")
    return content

async def require_api_key(apikey: Any, store: Optional[SupabaseStore]) -> str:
    """Checks the key is present (401) and known to the key store (403)."""
    if not apikey:
        raise HTTPException(status_code=401, detail="API key is required")
    if store is None:
        raise RuntimeError("Key store is not configured")
    if not isinstance(apikey, str) or not await store.verify_api_key(apikey):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return apikey
