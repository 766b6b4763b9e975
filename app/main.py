"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from uuid import uuid4
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sqlalchemy import text

from app.config import get_settings
from app.database import init_db, close_db, async_session_maker
from app.api.routes import api_router
from app.services.blob_store import BlobStoreClient
from app.services.file_fetcher import RemoteFileFetcher
from app.services.orchestrator import OrchestratorNotifier
from app.services.scheduler import AsyncioTaskScheduler
from app.services.webhook_repository import WebhookRepository
from app.services.webhook_service import WebhookService
from app.utils.exceptions import WebhookServiceException

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


def build_webhook_service(scheduler: AsyncioTaskScheduler) -> WebhookService:
    """Wire the processing engine from settings."""
    fetcher = RemoteFileFetcher(settings.SCRATCH_DIR, timeout=settings.FETCH_TIMEOUT)
    fetcher.ensure_scratch_dir()

    return WebhookService(
        repository=WebhookRepository(async_session_maker),
        fetcher=fetcher,
        blob_store=BlobStoreClient(
            connection_string=settings.AZURE_BLOB_CONNECTION_STRING,
            container=settings.AZURE_BLOB_CONTAINER,
            account_name=settings.AZURE_STORAGE_ACCOUNT,
            account_key=settings.AZURE_STORAGE_KEY,
        ),
        notifier=OrchestratorNotifier.from_settings(settings),
        scheduler=scheduler,
        max_retry_attempts=settings.MAX_RETRY_ATTEMPTS,
        retry_delay_seconds=settings.RETRY_DELAY_SECONDS,
        signed_url_expires_seconds=settings.SIGNED_URL_EXPIRES_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    await init_db()
    logger.info("Database initialized")

    scheduler = AsyncioTaskScheduler()
    app.state.scheduler = scheduler
    app.state.webhook_service = build_webhook_service(scheduler)
    logger.info("Webhook processing engine started")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await scheduler.shutdown()
    logger.info("Pending processing cycles cancelled")

    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## Sintegre Webhook Service API

Receives Sintegre webhooks, downloads the referenced report files, stores
them in blob storage and triggers the Airflow DAG that processes them.

### Lifecycle
`PENDING` → `SUCCESS` (file stored) → `PROCESSED` (Airflow triggered).
Failures move the webhook to `FAILED` and are retried automatically a
limited number of times; after that a manual retry is required.
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler for service exceptions
@app.exception_handler(WebhookServiceException)
async def service_exception_handler(request: Request, exc: WebhookServiceException):
    """Handle service-level exceptions with standardized error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Request ID middleware for tracing
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint with database connectivity verification.

    Returns service status, database connection health and the number of
    processing cycles waiting in the scheduler.
    """
    db_healthy = False
    db_error = None

    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
            db_healthy = True
    except Exception as e:
        db_error = str(e)

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_stats = scheduler.get_stats() if scheduler else {"pending_tasks": 0}

    status_value = "healthy" if db_healthy else "degraded"

    return {
        "status": status_value,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {
            "database": {
                "healthy": db_healthy,
                "error": db_error,
            },
            "scheduler": scheduler_stats,
        }
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
