"""FastAPI application for the game portal backend."""
import logging
import sys
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from telegram.error import TelegramError
from telegram.ext import Application
from freakslots.core.config import settings
from freakslots.core.database import create_engine, init_db
from freakslots.core.errors import (
    ConfigError,
    FreakSlotsError,
    GeoLookupError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    TemporarilyUnavailable,
    Unauthorized,
    UpstreamError,
)
from freakslots.providers import CatalogProvider
from freakslots.providers.slotslaunch import SlotsLaunchProvider
from freakslots.services.catalog_service import CatalogService
from freakslots.services.curation_service import CurationService
from freakslots.services.geo_service import GeoService
from freakslots.services.sync_service import CatalogSyncEngine
from freakslots.storage import StorageGateway
from freakslots.storage.sql import SqlStorageGateway
from freakslots.bot.main import build_application, webhook_path

# Import routers
from freakslots.api.routes import admin, catalog, geo, health, telegram

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


# Most specific first; the first matching class decides the status
ERROR_STATUS = (
    (Unauthorized, 401),
    (NotFoundError, 404),
    (TemporarilyUnavailable, 503),
    (QuotaExceededError, 503),
    (UpstreamError, 502),
    (GeoLookupError, 502),
    (ConfigError, 500),
    (StorageError, 500),
)


def status_for(exc: BaseException) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@dataclass
class AppServices:
    """Process-scoped collaborators shared by every request."""
    storage: StorageGateway
    provider: CatalogProvider
    sync_engine: CatalogSyncEngine
    catalog: CatalogService
    curation: CurationService
    geo: GeoService
    telegram: Optional[Application] = None

    async def close(self):
        await self.provider.close()
        await self.geo.close()
        await self.storage.close()


def build_services(storage: StorageGateway, provider: Optional[CatalogProvider] = None) -> AppServices:
    """Wire the services around one storage gateway and one upstream provider."""
    provider = provider or SlotsLaunchProvider()
    return AppServices(
        storage=storage,
        provider=provider,
        sync_engine=CatalogSyncEngine(provider, storage),
        catalog=CatalogService(storage),
        curation=CurationService(provider, storage),
        geo=GeoService(),
    )


async def start_telegram(storage: StorageGateway) -> Optional[Application]:
    """Start the bot in webhook mode when it is configured; None otherwise."""
    if not settings.telegram_bot_token or not settings.telegram_webhook_secret:
        logger.info("Telegram bot disabled (TELEGRAM_BOT_TOKEN/TELEGRAM_WEBHOOK_SECRET not set)")
        return None

    application = build_application(storage, with_updater=False)
    await application.initialize()
    await application.start()

    if settings.public_base_url:
        url = f"{settings.public_base_url}{webhook_path(settings.telegram_webhook_secret)}"
        try:
            await application.bot.set_webhook(url=url)
            logger.info(f"Telegram webhook set to: {settings.public_base_url}/telegram/webhook/***")
        except TelegramError as e:
            logger.error(f"Failed to set Telegram webhook: {e}", exc_info=True)
    else:
        logger.warning("PUBLIC_BASE_URL not set, Telegram webhook not registered")

    return application


async def stop_telegram(application: Optional[Application]):
    if application is None:
        return
    await application.stop()
    await application.shutdown()


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI app.

    With ``services`` given, startup uses them as-is; otherwise the lifespan
    opens the database, wires the services and starts the bot.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        if services is None:
            engine = create_engine()
            await init_db(engine)
            app.state.services = build_services(SqlStorageGateway(engine))
            app.state.services.telegram = await start_telegram(app.state.services.storage)
        else:
            app.state.services = services
        logger.info("Application startup complete")

        yield

        logger.info("Application shutting down...")
        await stop_telegram(app.state.services.telegram)
        await app.state.services.close()

    app = FastAPI(title="FreakSlots API", version="1.0.0", lifespan=lifespan)

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests and responses."""
        start_time = time.time()

        logger.info(f"→ {request.method} {request.url.path}")
        logger.debug(f"  Query params: {dict(request.query_params)}")

        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(f"← {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s")
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(f"← {request.method} {request.url.path} - ERROR after {process_time:.3f}s: {str(e)}")
            raise

    @app.exception_handler(GeoLookupError)
    async def geo_exception_handler(request: Request, exc: GeoLookupError):
        """Provider diagnostics travel with the 502."""
        return JSONResponse(status_code=502, content={"ok": False, "error": str(exc), **exc.details})

    @app.exception_handler(FreakSlotsError)
    async def app_exception_handler(request: Request, exc: FreakSlotsError):
        """Map application errors to a status and ``{"error": message}``."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"error": "Invalid request", "details": exc.errors()})

    # Add global exception handler to ensure CORS headers are sent even on errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions and ensure CORS headers are sent."""
        logger.error(f"Unhandled exception in {request.method} {request.url.path}")
        logger.error(f"Exception type: {type(exc).__name__}")
        logger.error(f"Exception message: {str(exc)}", exc_info=True)

        return JSONResponse(
            status_code=500,
            content={"error": str(exc)},
            headers={"Access-Control-Allow-Origin": request.headers.get("origin", "*")}
        )

    # Configure CORS
    logger.info(f"Configuring CORS with origins: {settings.cors_origins_list}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(admin.router)
    app.include_router(geo.router)
    app.include_router(telegram.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.backend_port)
