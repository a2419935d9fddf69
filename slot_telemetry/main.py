from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import structlog
import time

from slot_telemetry.core.config import settings
from slot_telemetry.core.storage import build_storage
from slot_telemetry.api import events, stats
from slot_telemetry.api.deps import attach_state
from slot_telemetry.middleware.guards import block_scanners_middleware, body_size_middleware
from slot_telemetry.middleware.rate_limit import rate_limit_middleware
from slot_telemetry.services.event_store import EventStore
from slot_telemetry.services.validation import EventRejected, RejectionReason, REJECTION_MESSAGES

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events"""
    logger.info("application_startup", app_name=settings.app_name)
    attach_state(app, EventStore.from_settings(settings), build_storage(settings))
    logger.info("event_store_ready", **app.state.store.counts())
    yield
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan
)


# Middleware, innermost first
app.middleware("http")(rate_limit_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"]
)
app.middleware("http")(body_size_middleware)
app.middleware("http")(block_scanners_middleware)


# Middleware for logging requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


# Error handlers: generic messages only, never exception detail
@app.exception_handler(EventRejected)
async def event_rejected_handler(request: Request, exc: EventRejected):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.message, "code": exc.reason.value}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    reason = RejectionReason.INVALID_REQUEST
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": REJECTION_MESSAGES[reason], "code": reason.value}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = "Not found" if exc.status_code == status.HTTP_404_NOT_FOUND else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"}
    )


# Include routers
app.include_router(events.router)
app.include_router(stats.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "app": settings.app_name}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": settings.app_name,
        "endpoints": {
            "health": "/health",
            "track": "/track",
            "stats": "/stats",
            "sessions": "/sessions",
            "spins": "/spins",
            "bigwins": "/bigwins",
            "docs": "/docs"
        }
    }
