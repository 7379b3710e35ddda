"""Civic API - Main FastAPI application."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from civic_api.errors import WorkflowError
from civic_api.middleware.correlation import CorrelationIDMiddleware
from civic_api.routes import admin, applications, audit
from civic_api.settings import get_settings

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Civic API...")
    try:
        settings.validate_production_settings()
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    yield
    logger.info("Shutting down Civic API...")


# Create FastAPI app
app = FastAPI(
    title="Civic API",
    description="Civic application workflow and audit core",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(applications.router)
app.include_router(audit.router)
app.include_router(admin.router)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Render workflow failures with their mapped status code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported like any other validation failure."""
    errors = []
    for item in exc.errors():
        field = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        errors.append({"field": field, "message": item.get("msg")})
    return JSONResponse(
        status_code=400,
        content={"detail": "Request validation failed", "error": "ValidationError", "errors": errors},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "civic-api",
        "version": "0.1.0",
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint (verifies database and migrations)."""
    from alembic.config import Config
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    from civic_api.db.session import SessionLocal

    checks = {
        "database": False,
        "migrations": False,
    }

    # Check database connectivity
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True

        # Check Alembic migrations are at head
        try:
            context = MigrationContext.configure(db.connection())
            current_rev = context.get_current_revision()

            alembic_ini_path = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
            script = ScriptDirectory.from_config(Config(alembic_ini_path))
            head_rev = script.get_current_head()

            if current_rev == head_rev:
                checks["migrations"] = True
            else:
                logger.warning(f"Migrations not at head: current={current_rev}, head={head_rev}")
        except Exception as e:
            logger.error(f"Migration check failed: {e}")
    except Exception as e:
        logger.error(f"Database check failed: {e}")
    finally:
        db.close()

    all_ready = all(checks.values())
    return JSONResponse(
        content={
            "status": "ready" if all_ready else "not_ready",
            "checks": checks,
        },
        status_code=200 if all_ready else 503,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Civic API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
