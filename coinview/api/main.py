"""
CoinView API main application.
Composition root: builds the dashboard state and serves it over HTTP.
"""
# Standard library imports
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

# Third-party imports
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local application imports
from coinview.shared.config import settings
from coinview.shared.sentry_init import init_sentry
from .dependencies import DashboardState, build_state
from .errors import register_exception_handlers
from .routes import router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(state_factory: Optional[Callable[[], DashboardState]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        state_factory: Builds the DashboardState at startup (tests inject fakes here)
    """
    factory = state_factory or build_state

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        configure_logging()
        settings.validate_production_settings()
        init_sentry()
        state = factory()
        app.state.dashboard = state
        logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} ({settings.ENVIRONMENT})")
        await state.poller.start()

        yield

        # Shutdown
        logger.info("Shutting down CoinView...")
        await state.close()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        version=settings.APP_VERSION,
        description="Crypto market dashboard: filtered views, rankings, live stats and portfolio simulations",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Market", "description": "Filtered assets, rankings and live stats"},
            {"name": "Preferences", "description": "Favorites, search history, filters and live updates"},
            {"name": "Wizard", "description": "Step-by-step simulation request builder"},
            {"name": "Simulation", "description": "Validation, option catalogues and history"},
            {"name": "Health", "description": "Health check and system status"},
        ],
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
