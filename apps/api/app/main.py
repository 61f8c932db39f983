from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.core.config import get_settings
from app.core.limiter import limiter
from app.core.middleware import RequestIdMiddleware
from app.github.errors import BrokerError
from app.github.router import broker_error_handler
from app.github.router import router as github_router


def create_app() -> FastAPI:
    settings = get_settings()

    _app = FastAPI(
        title="Installation Broker API",
        description="Lists repositories accessible to a GitHub App installation",
        version="0.1.0",
    )

    # ---------------------------------------------------------------------------
    # Error mapping: broker failures become {"success": false, "error": ...}
    # ---------------------------------------------------------------------------
    _app.add_exception_handler(BrokerError, broker_error_handler)

    # ---------------------------------------------------------------------------
    # Rate limiter state — SlowAPI reads limiter from app.state
    # ---------------------------------------------------------------------------
    _app.state.limiter = limiter
    _app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------------------------------------------------------------------------
    # Middleware (registered outermost → innermost; executed innermost → outermost)
    # ---------------------------------------------------------------------------

    # The frontend runs on a different origin.
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _app.add_middleware(SlowAPIMiddleware)

    _app.add_middleware(RequestIdMiddleware)

    # ---------------------------------------------------------------------------
    # Sentry — initialised here so it captures startup errors too
    # ---------------------------------------------------------------------------
    from app.core.sentry import init_sentry

    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )

    # ---------------------------------------------------------------------------
    # Logging — configure structlog before any routers log anything
    # ---------------------------------------------------------------------------
    from app.core.logging import configure_structlog

    configure_structlog(debug=settings.debug)

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(github_router)

    return _app


app = create_app()
