import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dermascan import __version__
from dermascan.api.v1.analysis import router as analysis_router
from dermascan.core.config import Settings, get_settings
from dermascan.services.ai.analysis.cache import AnalysisCache

logger = logging.getLogger(__name__)


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    settings = get_settings()
    _setup_logging(settings)

    app = FastAPI(
        title="dermascan API",
        version=__version__,
        docs_url="/docs" if settings.docs_enabled else None,
        openapi_url="/openapi.json" if settings.openapi_enabled else None,
    )
    app.state.analysis_cache = AnalysisCache(settings.analysis_cache_ttl_seconds)

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "Accept"],
        )

    app.include_router(analysis_router, prefix="/api/v1", tags=["analysis"])

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Hide internal details for 5xx in production unless explicitly enabled.
        if exc.status_code >= 500 and not settings.expose_error_details:
            return JSONResponse(status_code=exc.status_code, content={"detail": "Interner Fehler"})
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        if settings.expose_error_details:
            return JSONResponse(status_code=500, content={"detail": str(exc)})
        return JSONResponse(status_code=500, content={"detail": "Interner Fehler"})

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
