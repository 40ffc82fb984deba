"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clippilot.config import Settings, settings
from clippilot.db.database import close_db, init_db
from clippilot.api.routes import router
from clippilot.errors import ClipPilotError, ErrorKind, to_error_payload
from clippilot.pipeline.media import MediaExtractor, MediaInspector
from clippilot.pipeline.orchestrator import PipelineOrchestrator
from clippilot.pipeline.renderer import ClipRenderer
from clippilot.pipeline.scoring import HeuristicScorer
from clippilot.pipeline.transcription import create_transcript_provider
from clippilot.services.job_store import JobStore
from clippilot.services.source_service import SourceService
from clippilot.workers.job_runner import job_runner

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SOURCE_MISSING: 410,
    ErrorKind.RENDER_FAILED: 500,
    ErrorKind.INTERNAL: 500,
}


def status_code_for(kind: ErrorKind) -> int:
    """HTTP status for an error kind; client errors default to 400."""
    return STATUS_CODES.get(kind, 400)


def build_orchestrator(config: Settings = settings) -> PipelineOrchestrator:
    """Wire the pipeline from configuration."""
    store = JobStore()
    return PipelineOrchestrator(
        store=store,
        inspector=MediaInspector(),
        extractor=MediaExtractor(config.audio_dir),
        provider=create_transcript_provider(config.transcript_provider, config),
        renderer=ClipRenderer(store, config.renders_dir),
        scorer=HeuristicScorer(),
        runner=job_runner,
        settings=config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    
    await init_db()
    logger.info("Database initialized")
    
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(settings)
    if getattr(app.state, "source_service", None) is None:
        app.state.source_service = SourceService()
    logger.info(f"Transcript provider: {app.state.orchestrator.provider.name}")
    
    yield
    
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await app.state.orchestrator.runner.shutdown()
    await close_db()
    logger.info("Shutdown complete")


async def clippilot_error_handler(request: Request, exc: ClipPilotError):
    if exc.kind == ErrorKind.INTERNAL:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code_for(exc.kind), content=to_error_payload(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = f"Invalid request: {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"errorCode": ErrorKind.INVALID_SOURCE.value, "message": message},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} crashed: {exc}")
    return JSONResponse(status_code=500, content=to_error_payload(exc))


def create_app(
    orchestrator: Optional[PipelineOrchestrator] = None,
    source_service: Optional[SourceService] = None,
) -> FastAPI:
    """
    Create the FastAPI app.
    
    Args:
        orchestrator: Pre-wired orchestrator; built from settings at startup if omitted
        source_service: Upload/URL resolver; defaults to the configured directories
    """
    app = FastAPI(
        title=settings.app_name,
        description="Turns long videos into short, captioned clips",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator
    app.state.source_service = source_service
    
    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.add_exception_handler(ClipPilotError, clippilot_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    
    # Include API routes
    app.include_router(router, prefix="/api")
    
    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.app_name,
            "version": "1.0.0",
            "api": "/api",
            "docs": "/docs"
        }
    
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clippilot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
