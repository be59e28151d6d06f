"""campus-pulse: FastAPI Application Entry Point."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from campus_pulse.config import settings
from campus_pulse.database import engine, Base, SessionLocal
from campus_pulse.middleware.rate_limit import limiter
from campus_pulse.routers import analysis, auth
from campus_pulse.services.ai_client import AIClient
from campus_pulse.services.analysis_pipeline import AnalysisClients
from campus_pulse.services.seed import ensure_admin
from campus_pulse.services.sheets_client import SheetsClient

logger = logging.getLogger("campus_pulse")

# ── CORS origins from env (supports dev localhost + production domain) ──────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="campus-pulse",
    description="Session attendance, feedback and quiz analytics for campus administrators.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(analysis.router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query params are client errors (400), not 422."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.on_event("startup")
async def on_startup():
    """Configure logging, create tables, seed the admin and build the external clients."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    Base.metadata.create_all(bind=engine)

    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        db = SessionLocal()
        try:
            ensure_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
        finally:
            db.close()

    ai = AIClient(settings)
    sheets = SheetsClient(settings)
    app.state.ai_client = ai
    app.state.analysis_clients = AnalysisClients(session_factory=SessionLocal, ai=ai, sheets=sheets)

    provider = ai.provider_name()
    if provider == "none":
        logger.warning(
            "AI NOT CONFIGURED: summaries will read 'Error generating summary.' until "
            "ORACLE_GENAI_COMPARTMENT_ID or ANTHROPIC_API_KEY is set. Visit /api/health/ai to verify."
        )
    else:
        logger.info("AI provider: %s", provider)
    if not sheets.configured:
        logger.warning("Sheets export disabled: GOOGLE_SHEET_ID not set")


@app.on_event("shutdown")
async def on_shutdown():
    ai = getattr(app.state, "ai_client", None)
    if ai is not None:
        await ai.aclose()


@app.get("/")
def root():
    return {
        "name": "campus-pulse API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/health/ai")
async def health_ai(request: Request):
    """Live connectivity test for the configured AI provider.

    Returns:
        provider: which AI is active
        status:   "ok" | "error" | "unconfigured"
        test_reply / error: result of a tiny test call
    """
    return await request.app.state.ai_client.health_check()
