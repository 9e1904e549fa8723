"""
Task API - Main application module.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.database import create_tables_with_retry
from .core.events import event_publisher
from .core.middleware import error_body, register_middleware
from .routers import analytics, auth, folders, health, tasks, users

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Task API",
    description="Task management API with JWT authentication, folders and analytics",
    version=settings.service_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Added first so CORS and GZip wrap the rate limiter and its 429 responses
register_middleware(app)

app.add_middleware(
    GZipMiddleware,
    minimum_size=1000
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, "http_error", jsonable_encoder(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 with the offending fields"""
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    body = error_body(request, status.HTTP_400_BAD_REQUEST, "validation_error", "Validation failed")
    body["error"]["details"] = details
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            str(exc) if settings.debug else "Internal server error"
        )
    )


# Include routers
app.include_router(auth.router, prefix=settings.api_prefix + "/auth", tags=["authentication"])
app.include_router(users.router, prefix=settings.api_prefix + "/users", tags=["users"])
app.include_router(tasks.router, prefix=settings.api_prefix + "/tasks", tags=["tasks"])
app.include_router(folders.router, prefix=settings.api_prefix + "/folders", tags=["folders"])
app.include_router(analytics.router, prefix=settings.api_prefix + "/analytics", tags=["analytics"])
app.include_router(health.metrics_router, prefix=settings.api_prefix, tags=["health"])
app.include_router(health.router, prefix="/health", tags=["health"])


@app.on_event("startup")
async def startup_event():
    """Initialize database and event publisher on startup"""
    logger.info("Starting Task API...")
    create_tables_with_retry(settings.db_connect_retries, settings.db_connect_delay)

    if settings.events_enabled:
        if event_publisher.connect():
            logger.info("RabbitMQ connection established")
        else:
            logger.warning("RabbitMQ connection failed - events will not be published")

    logger.info("Task API startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down Task API...")
    event_publisher.close()
    logger.info("Task API shutdown completed")


@app.get("/", tags=["service"])
async def root():
    """Root endpoint"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "status": "running",
        "message": "Task API is operational",
        "docs": "/docs"
    }
