from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from datetime import datetime, timezone
from typing import Optional
import logging

# Load environment variables as early as possible
load_dotenv()

from .application.ports.snapshot_repo import SnapshotRepository
from .application.services.analysis_store import AnalysisStore
from .config import Settings, get_settings
from .exceptions import http_exception_handler
from .infrastructure.persistence.factory import build_snapshot_repository
from .middleware import LoggingMiddleware, ErrorHandlingMiddleware
from .routers import analysis_router, store_router

logger = logging.getLogger(__name__)


def build_store(settings: Settings, repository: Optional[SnapshotRepository] = None) -> AnalysisStore:
    """Construct the store without hydrating it; the app lifespan rehydrates."""
    if repository is None:
        repository = build_snapshot_repository(settings)
    return AnalysisStore(
        repository=repository,
        name=settings.STORE_NAME,
        version=settings.STORE_VERSION,
        recompute_on_update=settings.RECOMPUTE_STATS_ON_UPDATE,
        skip_hydration=True,
    )


def create_app(settings: Optional[Settings] = None, store: Optional[AnalysisStore] = None) -> FastAPI:
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.APP_NAME}...")
        app.state.store.rehydrate()
        yield
        # Shutdown
        if not app.state.store.flush():
            logger.error("Final snapshot flush failed")
        logger.info(f"Shutting down {settings.APP_NAME}...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )
    app.state.settings = settings
    app.state.store = store or build_store(settings)

    app.add_exception_handler(HTTPException, http_exception_handler)

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analysis_router.router)
    app.include_router(store_router.router)

    @app.get("/health")
    def health_check():
        store = app.state.store
        state = store.get_state()
        return {
            "status": "healthy" if state.error is None else "degraded",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store": {
                "name": store.name,
                "version": store.version,
                "backend": settings.SNAPSHOT_BACKEND,
                "hydrated": store.has_hydrated(),
                "analyses": len(state.analysis_history),
                "error": state.error,
            },
        }

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)
