"""
E-stock Support Bot - Main FastAPI Application
"""

import logging
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import auth_router, chat_router, feedback_router, admin_router, stateless_router
from .agents.recovery import recover_abandoned_sessions
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services import Services, build_services, get_services, init_services

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    services = init_services(build_services(settings))
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path} (cache: {settings.local_cache_path})")
    logger.info(
        f"LLM provider: {settings.llm_provider} "
        f"({'configured' if services.is_llm_configured() else 'missing API key'})"
    )

    # Commit sessions abandoned by a previous run
    recovered = await recover_abandoned_sessions(services.autosave, services.knowledge_store)
    if recovered:
        logger.info(f"Recovered {len(recovered)} abandoned session(s)")

    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI technical support assistant for the e-stock pharmacy system",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(feedback_router)
app.include_router(admin_router)
app.include_router(stateless_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check(services: Services = Depends(get_services)):
    """
    Health check endpoint.
    A missing model key is reported as degraded: sessions still open, but only
    with the configuration error message.
    """
    llm_ready = services.is_llm_configured()
    return {
        "status": "healthy" if llm_ready else "degraded",
        "llmProvider": services.settings.llm_provider,
        "llmConfigured": llm_ready,
        "activeSessions": services.orchestrator.active_session_count,
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "estock_support.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
