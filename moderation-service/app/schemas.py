# app/schemas.py
"""Data schemas (Pydantic models) for the API and the stored result."""
from pydantic import BaseModel
from typing import Any, Optional

class ContentRequest(BaseModel):
    """Request body for /test/moderate. Fields are checked by the guardrails, not by pydantic."""
    content: Any = None

class ModerateRequest(ContentRequest):
    """Request body for /moderate."""
    apikey: Any = None

class FlagRecord(BaseModel):
    """Score for a single flag type, as returned to the caller."""
    flag_type: str
    value: float

class DominantFlag(BaseModel):
    """The highest-scoring flag of a request."""
    type: Optional[str] = None
    score: float
    flagged: bool

class StoredResult(BaseModel):
    """Row written to the results table once per moderated request."""
    api_key: str
    content: str
    content_type: str = "text"
    flags: DominantFlag
    user_id: Optional[str] = None
    status: str           # "clean" | "borderline" | "flagged"

class ErrorResponse(BaseModel):
    """Error payload for 4xx and 5xx responses."""
    error: str
    details: Optional[Any] = None
