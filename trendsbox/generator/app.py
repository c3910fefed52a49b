"""
FastAPI application for the Trends Box service.

Provides REST endpoints to generate content, browse and delete the caller's
history, check the daily quota and leave feedback. The caller is identified
by the ``X-User-Id`` header set by the upstream auth layer.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from trendsbox.core import repositories
from trendsbox.core.database import build_engine, build_sessionmaker, check_db, create_all, init_db
from trendsbox.core.logging import get_logger, setup_logging
from trendsbox.core.settings import Settings, get_settings
from .errors import GenerationError, PersistenceError, QuotaExceededError
from .images import create_image_generator
from .llm_provider import LLMProviderFactory
from .models import Category, ContentType, GenerationRecord, GenerationRequest, OrchestratorConfig, RecordStatus
from .orchestrator import GenerationOrchestrator
from .search import create_search_provider

SERVICE_NAME = "trendsbox"
API_VERSION = "1.0.0"

logger = get_logger(__name__)


@dataclass
class Components:
    """Everything a running app needs, built once per app instance."""
    engine: AsyncEngine
    session_factory: async_sessionmaker
    http_client: httpx.AsyncClient
    orchestrator: GenerationOrchestrator


def build_components(settings: Settings) -> Components:
    """Wire engine, HTTP client and collaborators from settings."""
    engine = build_engine(settings.db_url, echo=settings.debug)
    session_factory = build_sessionmaker(engine)
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        headers={"User-Agent": f"TrendsBox/{API_VERSION}"},
    )

    llm = LLMProviderFactory.create_provider(
        settings.llm_provider,
        client=http_client,
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
    )
    orchestrator = GenerationOrchestrator(
        llm=llm,
        session_factory=session_factory,
        config=OrchestratorConfig.from_settings(settings),
        search=create_search_provider(http_client, settings.tavily_api_key, settings.tavily_base_url),
        images=create_image_generator(
            http_client,
            settings.gemini_api_key,
            model=settings.image_model,
            base_url=settings.gemini_base_url,
        ),
    )
    return Components(engine, session_factory, http_client, orchestrator)


# Request/Response Models
class UsageResponse(BaseModel):
    """Today's quota for the caller."""
    used: int
    limit: int
    remaining: int


class FeedbackRequest(BaseModel):
    """Feedback on a generation."""
    generation_id: Optional[str] = Field(None, description="History item the feedback refers to")
    rating: Optional[int] = Field(None, ge=1, le=5, description="1-5 stars")
    comment: Optional[str] = Field(None, max_length=2000)


class FeedbackResponse(BaseModel):
    id: int
    generation_id: Optional[str] = None
    rating: Optional[int] = None
    comment: Optional[str] = None
    created_at: datetime


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    components: Dict[str, str] = Field(..., description="Component status")


# Dependencies
def get_components(request: Request) -> Components:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return components


def get_orchestrator(components: Components = Depends(get_components)) -> GenerationOrchestrator:
    return components.orchestrator


async def get_session(components: Components = Depends(get_components)) -> AsyncGenerator[AsyncSession, None]:
    async with components.session_factory() as session:
        yield session


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity forwarded by the auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def record_from_row(item) -> GenerationRecord:
    return GenerationRecord(status=RecordStatus.CONFIRMED, **repositories.history_row_to_dict(item))


def create_app(settings: Optional[Settings] = None, components: Optional[Components] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use (environment when None)
        components: Pre-built components; when given the lifespan does not
            build or close anything
    """
    settings = settings or get_settings()
    setup_logging(SERVICE_NAME)
    owns_components = components is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_components:
            app.state.components = build_components(settings)
            if settings.create_tables:
                await create_all(app.state.components.engine)
            await init_db(app.state.components.engine)
        logger.info("Starting Trends Box service", extra={"service": SERVICE_NAME, "version": API_VERSION})
        try:
            yield
        finally:
            if owns_components:
                await app.state.components.http_client.aclose()
                await app.state.components.engine.dispose()
                app.state.components = None

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Generate blog and social posts from the latest news",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Trends Box API",
            "version": API_VERSION,
            "service": SERVICE_NAME,
            "categories": [c.value for c in Category],
            "content_types": [t.value for t in ContentType],
            "daily_limit": settings.daily_limit,
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "generate": "/generate",
                "history": "/history",
                "usage": "/usage",
                "feedback": "/feedback",
            }
        }

    @app.get("/healthz", tags=["System"])
    async def health_check_legacy():
        """Liveness endpoint."""
        return {"ok": True, "service": SERVICE_NAME}

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(components: Components = Depends(get_components)):
        """Component health, including a database probe."""
        db_ok = await check_db(components.engine)
        orchestrator = components.orchestrator
        llm_health = await orchestrator.llm.health_check()

        return HealthResponse(
            status="healthy" if db_ok else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=API_VERSION,
            components={
                "database": "healthy" if db_ok else "error",
                "llm_provider": f"{orchestrator.llm.provider_name} ({llm_health.get('status', 'unknown')})",
                "search": type(orchestrator.search).__name__ if orchestrator.search else "disabled",
                "images": type(orchestrator.images).__name__ if orchestrator.images else "placeholder",
            }
        )

    @app.post("/generate", response_model=GenerationRecord, status_code=201, tags=["Generation"])
    async def generate(
        request: GenerationRequest,
        user_id: str = Depends(get_current_user_id),
        orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    ):
        """
        Generate a blog or social post.

        Without guidance the latest news in the category is searched first.
        The returned record is already stored (status ``confirmed``).
        """
        start_time = datetime.now()
        record = await orchestrator.generate(user_id, request)
        processing_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"Generated '{record.title}' for {user_id} in {processing_time:.2f}s")
        return record

    @app.get("/history", response_model=List[GenerationRecord], tags=["History"])
    async def list_history(
        limit: int = Query(50, ge=1, le=200),
        user_id: str = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ):
        """The caller's records, newest first."""
        items = await repositories.list_history(session, user_id, limit=limit)
        return [record_from_row(item) for item in items]

    @app.get("/history/{item_id}", response_model=GenerationRecord, tags=["History"])
    async def get_history_item(
        item_id: str,
        user_id: str = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ):
        item = await repositories.get_history_item(session, user_id, item_id)
        if item is None:
            raise HTTPException(status_code=404, detail="History item not found")
        return record_from_row(item)

    @app.delete("/history/{item_id}", status_code=204, tags=["History"])
    async def delete_history_item(
        item_id: str,
        user_id: str = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ):
        deleted = await repositories.delete_history_item(session, user_id, item_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="History item not found")
        return Response(status_code=204)

    @app.get("/usage", response_model=UsageResponse, tags=["Usage"])
    async def get_usage(
        user_id: str = Depends(get_current_user_id),
        orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    ):
        return UsageResponse(**await orchestrator.remaining_quota(user_id))

    @app.post("/feedback", response_model=FeedbackResponse, status_code=201, tags=["Feedback"])
    async def submit_feedback(
        feedback: FeedbackRequest,
        user_id: str = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ):
        try:
            item = await repositories.add_feedback(
                session,
                user_id,
                generation_id=feedback.generation_id,
                rating=feedback.rating,
                comment=feedback.comment,
            )
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return FeedbackResponse.model_validate(item, from_attributes=True)

    @app.get("/feedback", response_model=List[FeedbackResponse], tags=["Feedback"])
    async def list_feedback(
        user_id: str = Depends(get_current_user_id),
        session: AsyncSession = Depends(get_session),
    ):
        items = await repositories.list_feedback(session, user_id)
        return [FeedbackResponse.model_validate(item, from_attributes=True) for item in items]

    # Error handlers
    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
        return JSONResponse(
            status_code=429,
            content={
                "error": "Daily generation limit reached. Please try again tomorrow.",
                "used": exc.used,
                "limit": exc.limit,
            }
        )

    @app.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError):
        logger.error(f"Generation failed: {exc}")
        return JSONResponse(
            status_code=502,
            content={"error": "Failed to generate content. Please try again."}
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        return JSONResponse(
            status_code=503,
            content={"error": "Generated content could not be saved. Please try again.",
                     "status": RecordStatus.FAILED.value}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": "An unexpected error occurred"}
        )

    return app


app = create_app()


def main():
    """Console entry point."""
    settings = get_settings()
    logger.info("Starting Trends Box service via uvicorn")
    uvicorn.run(
        "trendsbox.generator.app:app",
        host=settings.service_host,
        port=settings.service_port or 8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
