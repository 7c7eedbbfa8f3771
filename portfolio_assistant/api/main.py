"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session
from starlette.responses import Response

from portfolio_assistant.api.middleware import MetricsMiddleware, RequestIDMiddleware
from portfolio_assistant.api.v1 import chat, extractions, suggestions
from portfolio_assistant.config import AssistantConfig, settings
from portfolio_assistant.domain.chat import ChatSession
from portfolio_assistant.domain.enrichment import HoldingsEnrichmentService
from portfolio_assistant.domain.executor import ActionExecutor
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager
from portfolio_assistant.domain.preview import ExtractionPipeline
from portfolio_assistant.infrastructure.clients.backend import BackendClient
from portfolio_assistant.infrastructure.database.models import Base
from portfolio_assistant.infrastructure.database.repositories import SqlChatStore
from portfolio_assistant.infrastructure.database.session import SessionLocal, engine
from portfolio_assistant.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def create_tables(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


def create_app(
    backend: Optional[BackendClient] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    config: Optional[AssistantConfig] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        backend: Portfolio backend commands (defaults to the HTTP client)
        session_factory: Session factory for chat persistence; when omitted the
            configured database is used and its tables created on startup
        config: Assistant settings threaded through chat and execution
    """
    app = FastAPI(
        title="Portfolio Assistant Gateway",
        description="AI portfolio assistant with confirm-before-execute suggestions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=create_tables if session_factory is None else None,
    )

    backend = backend or BackendClient()
    config = config or AssistantConfig.from_settings()
    store = SqlChatStore(session_factory or SessionLocal)
    enrichment = HoldingsEnrichmentService(backend)
    manager = SuggestionLifecycleManager(store, ActionExecutor(backend, config, enrichment))

    app.state.config = config
    app.state.manager = manager
    app.state.pipeline = ExtractionPipeline(enrichment, config)
    app.state.chat = ChatSession(store, backend, manager, config)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(chat.router, prefix="/v1", tags=["chat"])
    app.include_router(suggestions.router, prefix="/v1", tags=["suggestions"])
    app.include_router(extractions.router, prefix="/v1", tags=["extractions"])

    return app


app = create_app()
