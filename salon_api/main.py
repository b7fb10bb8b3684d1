import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth import ensure_default_admin
from .config import ALLOWED_ORIGINS, GOOGLE_CALENDAR_ID
from .database import Base, SessionLocal, engine
from .domain.bookings.errors import BookingError
from .domain.bookings.router import router as bookings_router
from .domain.calendars.router import router as calendars_router
from .domain.calendars.service import ensure_default_target
from .domain.clients.router import router as clients_router
from .domain.sync.router import router as sync_router
from .routes.activity import router as activity_router
from .routes.auth import router as auth_router
from .routes.config import router as config_router
from .routes.slots import router as slots_router
from .services.google_calendar_service import CalendarGateway, GoogleCalendarGateway
from .services.salon_config_service import get_or_create_config, get_working_hours
from .services.sync_scheduler import SyncJob
from .services.whatsapp_service import WhatsAppSender

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def _seed(session_factory: Callable[[], Session]) -> None:
    db = session_factory()
    try:
        ensure_default_admin(db)
        ensure_default_target(db, GOOGLE_CALENDAR_ID)
        get_or_create_config(db)
        get_working_hours(db)
    finally:
        db.close()


def create_app(
    gateway: Optional[CalendarGateway] = None,
    whatsapp: Optional[WhatsAppSender] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    bind=None,
) -> FastAPI:
    """
    Build the API. Collaborators not passed in are created in the lifespan and
    closed on shutdown.
    """
    session_factory = session_factory or SessionLocal
    bind = bind or engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        try:
            Base.metadata.create_all(bind=bind, checkfirst=True)
            logger.info("Database tables created successfully")
        except Exception as e:
            error_msg = str(e)
            if "already exists" in error_msg or "duplicate key" in error_msg:
                logger.info("Database tables already exist (created by another worker)")
            else:
                logger.error(f"Failed to create database tables: {e}")

        _seed(session_factory)

        owned = []
        if getattr(app.state, "calendar_gateway", None) is None:
            app.state.calendar_gateway = GoogleCalendarGateway()
            owned.append(app.state.calendar_gateway)
            if not app.state.calendar_gateway.configured:
                logger.warning("⚠️ Google Calendar credentials missing; calendar writes will fail softly")
        if getattr(app.state, "whatsapp_sender", None) is None:
            app.state.whatsapp_sender = WhatsAppSender()
            owned.append(app.state.whatsapp_sender)
            logger.info(f"📱 WhatsApp provider: {app.state.whatsapp_sender.provider_info()}")
        app.state.sync_job = SyncJob(app.state.calendar_gateway, session_factory=session_factory)

        try:
            from .rate_limiter import get_redis_client

            if get_redis_client() is not None:
                logger.info("Redis connection established")
            else:
                logger.warning("Redis unavailable - rate limiting will use in-memory fallback")
        except Exception as e:
            logger.warning(f"Redis connection failed - rate limiting will use in-memory fallback: {e}")

        yield

        logger.info("Application shutting down...")
        for resource in owned:
            await resource.aclose()

    app = FastAPI(title="Salon Booking API", version="1.0.0", lifespan=lifespan)
    if gateway is not None:
        app.state.calendar_gateway = gateway
    if whatsapp is not None:
        app.state.whatsapp_sender = whatsapp

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        logger.info(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.message,
                "code": exc.code,
                "details": jsonable_encoder(exc.details),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "Invalid request data",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise

    logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(bookings_router)
    app.include_router(clients_router)
    app.include_router(slots_router)
    app.include_router(config_router)
    app.include_router(calendars_router)
    app.include_router(sync_router)
    app.include_router(activity_router)

    @app.get("/")
    def root():
        return {"message": "Salon Booking API is running"}

    @app.get("/health")
    def health(request: Request):
        job = getattr(request.app.state, "sync_job", None)
        return {
            "status": "healthy",
            "lastSync": job.last_run.finished_at if job and job.last_run else None,
        }

    return app


app = create_app()
