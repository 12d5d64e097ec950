"""
rewear.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn rewear.api.main:app --reload --port 8000

or ``python -m rewear.api`` to use the port from ``config.yaml``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from rewear import __version__  # noqa: E402
from rewear.api.deps import get_config, get_engine  # noqa: E402
from rewear.api.errors import register_exception_handlers  # noqa: E402
from rewear.api.rate_limit import build_rate_limiters  # noqa: E402
from rewear.api.routes.admin import router as admin_router  # noqa: E402
from rewear.api.routes.items import router as items_router  # noqa: E402
from rewear.api.routes.swaps import router as swaps_router  # noqa: E402
from rewear.api.routes.users import router as users_router  # noqa: E402
from rewear.database.engine import init_db  # noqa: E402

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Root logging setup; ``LOG_LEVEL`` env var overrides the default INFO."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    # SQLAlchemy is very chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — schema, settings seed, rate limiters."""
    configure_logging()
    cfg = get_config()
    engine = get_engine()
    init_db(engine)
    app.state.rate_limiters = build_rate_limiters(engine, cfg)
    logger.info("%s API started — engine ready (%s)", cfg.marketplace_name, engine.url.database)
    yield
    logger.info("%s API shutting down", cfg.marketplace_name)


app = FastAPI(
    title="ReWear API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Mount routers
app.include_router(swaps_router, prefix="/api")
app.include_router(items_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
