"""
ParcelOps API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from core.config import get_settings
from core.errors import (
    ConfigurationError,
    DomainViolationError,
    InvalidArgumentError,
    NotFoundError,
    ParcelOpsError,
)

settings = get_settings()
logger = structlog.get_logger()

ERROR_STATUS_CODES: dict[type[ParcelOpsError], int] = {
    NotFoundError: 404,
    InvalidArgumentError: 400,
    DomainViolationError: 409,
    ConfigurationError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("ParcelOps API starting up", version=settings.app_version)
    yield
    logger.info("ParcelOps API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Parcel delivery lifecycle and settlement platform",
    lifespan=lifespan,
)


@app.exception_handler(ParcelOpsError)
async def domain_error_handler(request: Request, exc: ParcelOpsError):
    """Map domain errors to HTTP responses. Configuration errors are deployment defects."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        400,
    )
    if isinstance(exc, ConfigurationError):
        logger.error("api.configuration_error", path=request.url.path, error=exc.message, **exc.context)
        return JSONResponse(status_code=status_code, content={"detail": "Service misconfigured", "error": exc.message})

    logger.info(
        "api.domain_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (
    couriers,
    ledger,
    payouts,
    shipments,
    statuses,
    warehouse,
)

app.include_router(statuses.router)
app.include_router(shipments.router)
app.include_router(warehouse.router)
app.include_router(payouts.router)
app.include_router(couriers.router)
app.include_router(ledger.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
