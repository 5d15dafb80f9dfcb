# booking_api/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from booking_api.config import settings
from booking_api.middleware.cors import setup_cors
from booking_api.database.connection import DatabaseConnection
from booking_api.newsletter.exceptions import NewsletterError
from booking_api.realtime.manager import ConnectionManager
from booking_api.utils.responses import error_response, success_response

import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "newsletter", "description": "Subscriptions, campaigns, templates and analytics"},
    {"name": "newsletter-public", "description": "Unsubscribe and resubscribe forms, forwarded to the newsletter API"},
    {"name": "uploads", "description": "File uploads stored per resource type and served from /uploads"},
    {"name": "realtime", "description": "WebSocket notification channel"},
    {"name": "health", "description": "Liveness and database status"},
]

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Facility Booking API...")
    try:
        await DatabaseConnection.get_pool()
        logger.info("Database connection pool initialized")
    except Exception as e:
        if settings.environment == "development":
            logger.warning(f"Database connection failed (development mode): {e}")
        else:
            logger.error(f"Failed to initialize database: {e}")
            raise

    yield

    # Shutdown
    logger.info("Shutting down Facility Booking API...")
    try:
        await DatabaseConnection.close_pool()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database connections: {e}")

def create_app() -> FastAPI:
    app = FastAPI(
        title="Facility Booking API",
        description="Multi-tenant facility and inventory booking platform API",
        version="1.0.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan
    )

    # One connection manager per application instance
    app.state.connections = ConnectionManager()

    # Setup CORS
    setup_cors(app)

    from booking_api.routes.newsletter import router as newsletter_router
    app.include_router(newsletter_router)

    from booking_api.routes.newsletter_proxy import router as newsletter_proxy_router
    app.include_router(newsletter_proxy_router)

    from booking_api.routes.realtime import router as realtime_router
    app.include_router(realtime_router)

    from booking_api.routes.uploads import upload_routers
    for upload_router in upload_routers():
        app.include_router(upload_router)

    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_root, check_dir=False),
        name="uploads"
    )

    register_exception_handlers(app)
    register_health_routes(app)
    return app

def register_health_routes(app: FastAPI):
    @app.get("/", tags=["health"])
    async def root():
        return {"message": "Facility Booking API", "status": "healthy"}

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check including database"""
        try:
            pool = await DatabaseConnection.get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval('SELECT 1')
            db_healthy = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_healthy = False

        return success_response("Service status", {
            "status": "healthy" if db_healthy else "degraded",
            "environment": settings.environment,
            "databaseHealthy": db_healthy,
            "realtimeConnections": app.state.connections.active_connections,
        })

def register_exception_handlers(app: FastAPI):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            return error_response(
                exc.detail.get("message", "Request failed"),
                status_code=exc.status_code,
                errors=exc.detail.get("errors")
            )
        return error_response(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.warning(f"Validation failed for {request.url.path}: {errors}")
        return error_response("Validation failed", status_code=422, errors=errors)

    @app.exception_handler(NewsletterError)
    async def newsletter_exception_handler(request: Request, exc: NewsletterError):
        return error_response(
            exc.message,
            status_code=exc.status_code,
            errors=getattr(exc, "errors", None)
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return error_response("Internal server error", status_code=500)

app = create_app()
