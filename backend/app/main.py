import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.exceptions import register_exception_handlers
from app.routers import health, onboarding, session, workspaces
from app.services.wizard_sessions import WizardSessionRegistry

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="CareOps",
    description="Small-business operations console: workspace onboarding & activation",
    version="0.1.0",
)

# Open wizard views, keyed by session id (process memory only)
app.state.wizard_sessions = WizardSessionRegistry()

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(session.router, prefix="/api/session", tags=["session"])
app.include_router(workspaces.router, prefix="/api/workspaces", tags=["workspaces"])
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])
