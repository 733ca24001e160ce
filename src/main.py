"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import load_transcoder
from .api.routes import health, rpc
from .config.settings import get_settings
from .core.errors import ConfigurationError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the effective configuration on startup and verifies the
    transcoder once. Missing AI credentials or a broken FFmpeg install
    are reported but don't stop the service: document generation works
    without either, and readiness reports them.
    """
    settings = get_settings()

    logger.info(
        "RPA Video Analyzer starting",
        extra={
            "version": settings.api_version,
            "ai_provider": settings.ai_provider,
            "transcoder_mock_mode": settings.transcoder_mock_mode,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    try:
        await load_transcoder(settings)
    except ConfigurationError as e:
        logger.error("Transcoder unavailable", extra={"error": e.message})

    yield

    logger.info("RPA Video Analyzer shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup in production, and once per test that needs a
    fresh app.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Turns screen recordings of business processes into RPA functional
        analysis documents.

        ## Methods (POST /mcp, JSON-RPC 2.0)

        - **analyze_video_for_rpa**: sample frames, analyze them with a
          vision model and write the functional analysis document
        - **generate_rpa_document**: write a document from existing
          analysis data
        - **extract_video_frames**: sample frames and describe them
        - **inspect_video**: check a recording and estimate processing time
        - **list_document_templates**: describe the document templates
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        rpc.router,
        prefix="/mcp",
        tags=["RPC"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
            "rpc": "/mcp",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. The full error is
        logged server-side and a generic message returned.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
