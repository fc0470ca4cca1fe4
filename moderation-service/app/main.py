# app/main.py
"""
Core FastAPI application, including middleware, endpoints, error rendering and audit logging.
"""
import logging
import hashlib
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

# Local module imports
from . import config, guardrails, models, schemas, scoring
from .store import SupabaseStore

load_dotenv()

# --- Logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
audit_log = logging.getLogger("audit")

_HASHED_FIELDS = ("text", "apikey")

_ERROR_RESPONSES = {code: {"model": schemas.ErrorResponse} for code in (400, 401, 403, 500)}

def audit_event(settings: config.Settings, kind: str, payload: dict):
    """Logs an audit event if enabled. Text and keys are logged as SHA-256 digests."""
    if not settings.audit_log:
        return
    payload = dict(payload)
    for name in _HASHED_FIELDS:
        if name in payload:
            payload[f"{name}_sha256"] = hashlib.sha256(payload.pop(name).encode()).hexdigest()
    payload["ts"] = int(time.time())
    audit_log.info({"event": kind, **payload})

def _internal_error(exc: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": "Internal server error", "details": str(exc)})

# --- App Setup ---
def create_app(
    settings: Optional[config.Settings] = None,
    classifier: Optional[models.ScoreClassifier] = None,
    store: Optional[SupabaseStore] = None,
) -> FastAPI:
    """Builds the app; collaborators not passed in are created from settings at startup."""
    settings = settings or config.load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_classifier = app.state.classifier is None
        if owns_classifier:
            app.state.classifier = models.ScoreClassifier(settings)
        if app.state.store is None:
            if settings.supabase_url and settings.supabase_key:
                app.state.store = await SupabaseStore.connect(settings)
            else:
                logger.warning("Supabase is not configured; /moderate will fail until it is")
        logger.info("Moderation service ready (model=%s)", settings.classifier_model)
        yield
        if owns_classifier:
            await app.state.classifier.aclose()

    app = FastAPI(title="Moderation Service", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.classifier = classifier
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(StarletteHTTPException)
    def http_error_handler(request: Request, exc: StarletteHTTPException):
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    # --- Endpoints ---
    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/moderate", response_model=List[schemas.FlagRecord], responses=_ERROR_RESPONSES)
    async def moderate(req: schemas.ModerateRequest, request: Request):
        """Scores content for an API key holder and stores the dominant flag."""
        state = request.app.state
        try:
            content = guardrails.require_content(req.content)
            apikey = await guardrails.require_api_key(req.apikey, state.store)

            scores = await models.score_content(state.classifier, content)
            flags = scoring.format_flags(scores)

            dominant, status = scoring.derive_status(flags)
            await state.store.insert_result(schemas.StoredResult(
                api_key=apikey,
                content=content,
                flags=dominant,
                status=status,
            ))
        except HTTPException as e:
            if e.status_code in (401, 403):
                audit_event(settings, "rejected", {"status": e.status_code})
            raise
        except Exception as e:
            logger.exception("Moderation error")
            raise _internal_error(e) from e

        audit_event(settings, "moderate", {"text": content, "apikey": apikey, "type": dominant.type, "status": status})
        return flags

    @app.post("/test/moderate", response_model=List[schemas.FlagRecord], responses={code: _ERROR_RESPONSES[code] for code in (400, 500)})
    async def test_moderate(req: schemas.ContentRequest, request: Request):
        """Scores content without a key and without storing anything."""
        try:
            content = guardrails.require_content(req.content)
            scores = await models.score_content(request.app.state.classifier, content)
            flags = scoring.format_flags(scores)
        except HTTPException:
            raise
        except Exception as e:
            logger.exception("Moderation error")
            raise _internal_error(e) from e

        audit_event(settings, "test_moderate", {"text": content})
        return flags

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
