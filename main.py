import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import auth as auth_routes
from app.api.routes import health as health_routes
from app.api.routes import users as user_routes
from app.core.config import Settings, get_settings
from app.core.db import Database
from app.core.errors import InternalError, ServiceError
from app.core.logging import configure_logging
from app.schemas.envelope import Envelope
from app.services.otp_gateway import OtpGatewayClient
from app.utils.middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def _envelope_response(status_code: int, message: str, error: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=Envelope.fail(message, error).model_dump())


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, extra={"error_type": exc.code})
        message = exc.default_message
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message, extra={"error_type": exc.code})
        message = exc.message
    return _envelope_response(exc.status_code, message, exc.to_error())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.warning("%s %s invalid request", request.method, request.url.path, extra={"details": details})
    return _envelope_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        {"type": "VALIDATION_ERROR", "details": details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope_response(exc.status_code, str(exc.detail), {"type": "HTTP_ERROR"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalError()
    return _envelope_response(error.status_code, error.message, error.to_error())


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.database_url, echo=settings.db_echo)
        try:
            await db.connect(settings.db_connect_retries, settings.db_connect_delay_s)
            if settings.db_create_tables:
                await db.create_all()
        except Exception:
            await db.dispose()
            raise
        gateway = OtpGatewayClient(settings.otp_service_url, timeout=settings.otp_service_timeout_s)

        app.state.db = db
        app.state.otp_gateway = gateway
        app.state.started_at = time.monotonic()
        logger.info("User data service started", extra={"version": settings.api_version})
        try:
            yield
        finally:
            await gateway.aclose()
            await db.dispose()
            logger.info("User data service stopped")

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(user_routes.router, prefix=settings.api_prefix)
    app.include_router(auth_routes.router, prefix=settings.api_prefix)
    app.include_router(health_routes.router)

    return app


app = create_app()
