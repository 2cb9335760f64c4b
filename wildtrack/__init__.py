"""Wildlife tracker FastAPI application package."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from .api import api_router
from .core.config import settings
from .core.errors import register_exception_handlers
from .core.logging_config import setup_logging
from .core.security import RateLimiter
from .db.session import get_engine, init_db
from .services.passcodes import build_passcode_store


def create_app() -> FastAPI:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Initializing %s (%s)", settings.app_name, settings.environment)

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.api_limiter = RateLimiter(
        settings.rate_limit_max_requests, settings.rate_limit_window_seconds
    )
    app.state.auth_limiter = RateLimiter(
        settings.auth_rate_limit_max_requests, settings.rate_limit_window_seconds
    )
    engine = get_engine() if settings.passcode_backend == "database" else None
    app.state.passcode_store = build_passcode_store(engine)

    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    app.mount("/metrics", make_asgi_app())

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Provide a friendly landing response for the bare hostname."""

        return {
            "message": (
                f"{settings.app_name} is online. Try GET "
                f"{settings.api_prefix}/health for a health check."
            )
        }

    @app.on_event("startup")
    def _bootstrap_storage() -> None:
        init_db()

    return app


app = create_app()
