"""
Velora Chat - FastAPI application entry point.

Backend for an embeddable AI chat widget:
- Email/password accounts with signed bearer tokens
- Owner-scoped conversations and message history
- Streaming relay to an OpenAI-compatible completion provider
- Security hardening (CORS, headers, optional rate limiting)

Run with ``uvicorn velora.main:app``.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from velora.api.routes import api_router
from velora.core.config import Settings, get_settings
from velora.services.auth_service import AuthService
from velora.services.chat_relay import ReplyTasks
from velora.services.conversation_store import ConversationStore
from velora.services.database import Database
from velora.services.jwt_service import JWTService
from velora.services.llm_provider import CompletionProvider
from velora.services.rate_limiter import RateLimiter, rate_limit_middleware
from velora.services.redis_cache import RedisCache

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("velora")

STATIC_DIR = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    - Connect the database (conversation persistence, accounts)
    - Connect Redis when rate limiting is enabled

    Shutdown:
    - Close the provider client and storage connections
    """
    settings: Settings = app.state.settings
    logger.info("Starting up %s...", settings.PROJECT_NAME)

    if not await app.state.database.connect():
        logger.warning("Database not available - accounts disabled, chat runs in guest mode only")

    if settings.ENABLE_RATE_LIMITING:
        if await app.state.redis_cache.connect():
            logger.info("Redis connected for rate limiting at %s", settings.sanitize_url(settings.REDIS_URL))
        else:
            logger.error("Rate limiting enabled but Redis is unavailable")

    if app.state.completion_provider is not None:
        logger.info("Completion provider: %s (%s)", settings.OPENAI_BASE_URL, settings.OPENAI_MODEL)

    yield

    logger.info("Shutting down...")

    # Replies keep being read after their client disconnects; let them finish
    await app.state.reply_tasks.wait(timeout=settings.OPENAI_TIMEOUT_SECONDS)

    if app.state.completion_provider is not None:
        await app.state.completion_provider.close()
    await app.state.redis_cache.close()
    await app.state.database.close()

    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application around an explicit settings object.

    Shared services are created here and stored on ``app.state``; request
    handlers reach them only through ``velora.api.deps``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Backend for an embeddable AI chat widget with streaming replies",
        version="0.1.0",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    database = Database(settings)
    jwt_service = JWTService(settings)
    redis_cache = RedisCache(settings)

    app.state.settings = settings
    app.state.database = database
    app.state.jwt_service = jwt_service
    app.state.auth_service = AuthService(database, jwt_service, bcrypt_rounds=settings.BCRYPT_ROUNDS)
    app.state.conversation_store = ConversationStore(database, default_title=settings.DEFAULT_CONVERSATION_TITLE)
    app.state.completion_provider = CompletionProvider.from_settings(settings)
    app.state.redis_cache = redis_cache
    app.state.rate_limiter = RateLimiter.from_settings(settings, redis_cache)
    app.state.reply_tasks = ReplyTasks()

    # =========================================================================
    # Security Middleware
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """
        Add security headers to all responses.

        Headers:
        - X-Content-Type-Options: Prevent MIME type sniffing
        - X-Frame-Options: Prevent clickjacking
        - Referrer-Policy: Control referrer information
        - Cache-Control: Prevent caching of API responses
        """
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith(settings.API_PREFIX):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"

        return response

    # Rate limiting middleware (applies to API routes only)
    app.middleware("http")(rate_limit_middleware)

    @app.middleware("http")
    async def catch_exceptions_middleware(request: Request, call_next):
        """
        Global exception handler to prevent internal error details leaking.

        Logs full exception for debugging, returns generic error to client.
        """
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled exception during request to %s", request.url.path)
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"},
            )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are client errors: answer 400 with the details."""
        return JSONResponse(
            status_code=400,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    # =========================================================================
    # Routes
    # =========================================================================

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/", include_in_schema=False)
    async def landing_page():
        """Landing page with the chat widget embedded."""
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        health_status = {
            "status": "healthy",
            "database_connected": app.state.database.is_available,
            "chat_enabled": app.state.completion_provider is not None,
        }
        if settings.ENABLE_RATE_LIMITING:
            health_status["redis_connected"] = app.state.redis_cache.is_available
        return health_status

    return app


app = create_app()
