"""
FastAPI application main module.
Middleware, error translation, health checks and router wiring.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid
import os
from contextlib import asynccontextmanager
from mailslot.api.v1 import api_router
from mailslot.utils import bind_request_id, get_logger, reset_request_id, setup_logging
from mailslot.database import engine, Base
from mailslot.exceptions import BookingEngineError, ConfigurationError
from mailslot.config import PAYMENT_SETTINGS
import mailslot.models.db  # noqa: F401

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/app.log"),
    enable_console=True
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Application startup initiated")
    try:
        logger.info("Creating database tables")
        Base.metadata.create_all(bind=engine)
        logger.info(
            "Application startup completed successfully",
            payment_provider=PAYMENT_SETTINGS["provider"]
        )
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown completed")

app = FastAPI(
    title="Mailslot Booking Engine",
    description="""
    Slot booking, pricing and allocation for shared direct-mail campaigns.

    ## Features
    * **Exclusive slots** - one business per campaign, route and industry
    * **Rule-based pricing** - tiered base prices, bulk and loyalty discounts
    * **Payments** - hosted checkout with idempotent confirmation
    * **Refunds** - automatic full refund up to 7 days before the print deadline
    * **Waitlist** - customers are notified when a slot is released

    ## Authentication
    Use Bearer token authentication with your API key:
    ```
    Authorization: Bearer your_api_key_here
    ```
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.start_time = time.time()
    token = bind_request_id(request_id)

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("User-Agent"),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)

    process_time = time.time() - request.state.start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )

    return response

@app.exception_handler(BookingEngineError)
async def booking_engine_exception_handler(request: Request, exc: BookingEngineError):
    """Translate domain errors into the JSON error envelope."""
    request_id = getattr(request.state, "request_id", "unknown")
    log = logger.error if isinstance(exc, ConfigurationError) else logger.warning
    log(
        "Booking engine error",
        error_type=type(exc).__name__,
        code=exc.code,
        error=exc.message,
        details=exc.details,
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({
            "success": False,
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
            "request_id": request_id
        })
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "Request validation failed",
        errors=str(exc.errors()),
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({
            "success": False,
            "message": "Request validation failed",
            "code": "VALIDATION_ERROR",
            "details": exc.errors(),
            "request_id": request_id
        })
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "request_id": request_id
        },
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=request_id,
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "request_id": request_id
        }
    )

@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Health check with a database probe."""
    checks = {}
    status_value = "healthy"
    try:
        from sqlalchemy import text
        from mailslot import database
        db = database.SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        checks["database"] = "healthy"
    except Exception as e:
        logger.warning("Health check database probe failed", error=str(e))
        checks["database"] = f"unhealthy: {e}"
        status_value = "degraded"
    return {
        "status": status_value,
        "service": "mailslot-booking-engine",
        "version": "1.0.0",
        "timestamp": time.time(),
        "payment_provider": PAYMENT_SETTINGS["provider"],
        "checks": checks,
    }

@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "Mailslot Booking Engine API",
        "version": "1.0.0",
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }

app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "mailslot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["mailslot"],
        log_level="info",
        access_log=True
    )
