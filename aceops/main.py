"""
aceops/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes and error handlers
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from aceops.core.config import settings, validate_settings
from aceops.core.errors import add_exception_handlers
from aceops.core.logging import setup_logging, get_logger
from aceops.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from aceops.db.indexes import create_indexes
from aceops.services.whitebooks_client import close_whitebooks_client
from aceops.api import (
    auth,
    companies,
    einvoice,
    events,
    files,
    invoices,
    leads,
    tasks,
    tracking,
    users,
    vendors,
)

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

SLOW_REQUEST_SECONDS = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting Ace Ops API...")

    try:
        validate_settings()
        logger.info("Configuration validated")

        await connect_to_mongo()
        await create_indexes()

        if not await check_database_health():
            logger.warning("Database health check failed during startup")
        else:
            logger.info("Database health check passed")

        logger.info(f"Ace Ops API started (environment={settings.ENVIRONMENT}, debug={settings.DEBUG})")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    logger.info("Shutting down Ace Ops API...")

    try:
        await close_whitebooks_client()
        logger.info("Whitebooks client closed")

        await close_mongo_connection()
        logger.info("Ace Ops API shut down")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="Ace Ops",
    description="CRM, invoicing and GST e-invoicing backend for Ace Print Pack",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    if process_time > SLOW_REQUEST_SECONDS:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path}
        )

    return response


add_exception_handlers(app)

app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Auth"])
app.include_router(users.router, prefix=settings.API_PREFIX, tags=["Users"])
app.include_router(companies.router, prefix=settings.API_PREFIX, tags=["Companies"])
app.include_router(vendors.router, prefix=settings.API_PREFIX, tags=["Vendors"])
app.include_router(leads.router, prefix=settings.API_PREFIX, tags=["Potential Clients"])
app.include_router(events.router, prefix=settings.API_PREFIX, tags=["Events"])
app.include_router(files.router, prefix=settings.API_PREFIX, tags=["Files"])
app.include_router(invoices.router, prefix=settings.API_PREFIX, tags=["Invoices"])
app.include_router(einvoice.router, prefix=settings.API_PREFIX, tags=["E-Invoice"])
app.include_router(tasks.router, prefix=settings.API_PREFIX, tags=["Tasks"])
app.include_router(tracking.android_router, prefix=settings.API_PREFIX, tags=["Tracking"])
app.include_router(tracking.admin_router, prefix=settings.API_PREFIX, tags=["Tracking"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": "Ace Ops API",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Checks database connectivity and service status.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
        "checks": {}
    }

    try:
        db_healthy = await check_database_health()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
        if not db_healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    # Whitebooks is only contacted on demand
    health_status["checks"]["whitebooks"] = "not_checked"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


@app.get("/ready", tags=["Health"])
async def readiness_check():
    try:
        if await check_database_health():
            return {"status": "ready"}
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "database_unavailable"}
        )
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": str(e)}
        )


@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "aceops.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
