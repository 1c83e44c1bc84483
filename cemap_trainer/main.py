"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging
import random
import time
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .core.config import Settings, get_settings
from .core.database import create_db_engine, create_session_factory, init_db, utcnow
from .core.exceptions import TrainerError
from .services.payments import PaymentGateway, StripeGateway
from .services.question_bank import QuestionBank
from .api.questions import router as questions_router
from .api.auth import router as auth_router
from .api.payments import router as payments_router
from .api.scores import router as scores_router
from .api.admin import router as admin_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def init_sentry(settings: Settings) -> None:
    if not settings.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


def _error(status_code: int, message, error_type: str, **extra) -> JSONResponse:
    body = {"message": message, "type": error_type, "status_code": status_code}
    body.update(extra)
    return JSONResponse(status_code=status_code, content={"error": body})


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """
    Build the application and its app-scoped collaborators.

    Anything not passed in is built from settings: the engine from
    DATABASE_URL, the Stripe gateway from STRIPE_SECRET_KEY (payments
    answer 503 without one), the RNG from RANDOM_SEED.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    init_sentry(settings)

    engine = engine or create_db_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    if payment_gateway is None and settings.STRIPE_SECRET_KEY is not None:
        payment_gateway = StripeGateway(settings.STRIPE_SECRET_KEY.get_secret_value())
    if payment_gateway is None:
        logger.warning("STRIPE_SECRET_KEY not set; payment endpoints are disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s %s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
        init_db(engine)
        logger.info("Database initialized")

        yield

        logger.info("Shutting down %s...", settings.APP_NAME)
        engine.dispose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url=settings.DOCS_URL if not settings.is_production() else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.question_bank = QuestionBank.load_default(settings.QUESTION_BANK_PATH)
    app.state.rng = rng or random.Random(settings.RANDOM_SEED)
    app.state.clock = clock
    app.state.payment_gateway = payment_gateway

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, duration_ms)
        return response

    # Exception handlers
    @app.exception_handler(TrainerError)
    async def trainer_exception_handler(request: Request, exc: TrainerError):
        """Handle domain errors."""
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return _error(exc.status_code, exc.message, exc.error_type)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error(exc.status_code, exc.detail, "http_error")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            "validation_error",
            details=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message, "internal_error")

    # Health check endpoints
    @app.get("/health", tags=["Health"])
    def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "questions": len(app.state.question_bank),
        }

    # Include API routers
    app.include_router(questions_router, prefix=settings.API_PREFIX, tags=["questions"])
    app.include_router(auth_router, prefix=settings.API_PREFIX, tags=["auth"])
    app.include_router(payments_router, prefix=settings.API_PREFIX, tags=["payments"])
    app.include_router(scores_router, prefix=settings.API_PREFIX, tags=["leaderboard"])
    app.include_router(admin_router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "cemap_trainer.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
