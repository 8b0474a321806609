import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from assetstore.adapters.sweep_scheduler import SweepScheduler
from assetstore.api.deps import get_context, get_rules, get_settings
from assetstore.app_shell.config import validate_data_dir

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = get_rules()
        validate_data_dir(settings)
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Startup validation failed: %s", e)
        sys.exit(1)

    ctx = get_context()
    applied = ctx.migrate()
    if applied:
        logger.info("Applied migrations: %s", ", ".join(applied))
    ctx.storage.ensure_dirs()

    scheduler: SweepScheduler | None = None
    if rules.retention.run_in_process:
        scheduler = SweepScheduler(ctx.sweeper, rules.retention.sweep_interval_seconds)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()
    ctx.close()


app = FastAPI(
    title="Asset Storage API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from assetstore.api.routes import assets, public  # noqa: E402

app.include_router(assets.router, prefix="/api/files", tags=["Files"])
app.include_router(public.router, prefix="", tags=["Files Public"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "assets"}
