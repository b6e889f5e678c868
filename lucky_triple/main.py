"""
Main FastAPI application for the Lucky Triple betting game API.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.config import settings
from lucky_triple.core.database import get_db, init_db
from lucky_triple.core.errors import register_exception_handlers
from lucky_triple.core.logging import configure_logging, get_logger
from lucky_triple.core.middleware import CorrelationIdMiddleware
from lucky_triple.core.rate_limit import limiter
from lucky_triple.api.routes import admin, auth, game, payments, withdrawals
from lucky_triple.repositories import OutboxRepository

# Load environment variables from .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# JSON logs everywhere except local development
configure_logging(
    level=settings.LOG_LEVEL,
    json_output=not settings.is_development(),
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()

    from lucky_triple.core.scheduler import start_scheduler
    await start_scheduler()

    if not settings.sms_enabled:
        logger.warning("PAYLOQA_API_KEY / PAYLOQA_PLATFORM_ID not set - queued SMS will not be delivered")
    logger.info(f"Payment webhook URL: {settings.BACKEND_URL.rstrip('/')}/api/payments/webhook")

    yield

    from lucky_triple.core.scheduler import stop_scheduler
    await stop_scheduler()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Three-digit guessing game with wallet, withdrawals and SMS notifications",
    lifespan=lifespan,
)
app.state.limiter = limiter
register_exception_handlers(app)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be registered before the routes
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(payments.router)
app.include_router(withdrawals.router)
app.include_router(game.router)
app.include_router(admin.router)


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Liveness probe."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
    }


@app.get("/api/health")
@limiter.limit("60/minute")
async def api_health(request: Request, db: Session = Depends(get_db)):
    """Database connectivity, outbox depth and scheduler state."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "components": {},
    }

    try:
        db.execute(text("SELECT 1"))
        pending = OutboxRepository(db).pending_count()
        metrics.outbox_pending.set(pending)
        health_status["components"]["database"] = {"status": "connected"}
        health_status["components"]["outbox"] = {"pending": pending}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    from lucky_triple.core.scheduler import get_scheduler
    scheduler = get_scheduler()
    health_status["components"]["scheduler"] = {
        "status": "running" if scheduler and scheduler.running else "stopped"
    }
    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("lucky_triple.main:app", host=settings.HOST, port=settings.PORT)
