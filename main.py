"""
FastAPI Application for the Clinic Management backend.

Exposes the clinic REST API, the AI assistant endpoints and the realtime
chat relay websocket.
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings

from auth import IdentityProvider
from azure_client import client_manager
from clinic.assistant import HealthAssistant
from clinic.domain import SessionLifecycle
from clinic.profiles import ProfileDirectory
from clinic.relay import ChatRelay
from clinic.routes import register_exception_handlers, router
from clinic.storage import ClinicStorage
from shared import COSMOS_ENDPOINT, DATABASE_NAME, is_document_db_configured

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce Azure SDK logging verbosity
logging.getLogger("azure.cosmos").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    logger.info("Starting Clinic Management backend...")

    # Record store: one instance for the process, shared through app.state
    app.state.storage = ClinicStorage(seed_sample_news=settings.seed_sample_news)
    logger.info("In-memory record store initialized")

    app.state.identity = IdentityProvider(session_ttl_hours=settings.session_ttl_hours)
    app.state.session_lifecycle = SessionLifecycle()
    app.state.relay = ChatRelay()

    app.state.assistant = HealthAssistant(
        client_provider=client_manager.get_client,
        deployment=settings.azure_openai_deployment,
        timeout_seconds=settings.ai_timeout_seconds,
        history_limit=settings.ai_history_limit,
    )
    logger.info(f"Health assistant using deployment {settings.azure_openai_deployment}")

    if is_document_db_configured():
        app.state.profiles = ProfileDirectory.from_endpoint(COSMOS_ENDPOINT, DATABASE_NAME)
    else:
        app.state.profiles = None
        logger.info("COSMOS_ENDPOINT not set; profile documents are disabled")

    yield

    # Cleanup
    logger.info("Shutting down...")
    await client_manager.close()


def create_app() -> FastAPI:
    """Build the FastAPI application with routes, middleware and handlers."""
    app = FastAPI(
        title="Clinic Management API",
        description="Appointments, telemedicine, realtime chat and an AI health assistant",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "azure_openai_configured": bool(settings.azure_openai_endpoint),
            "profile_store_configured": is_document_db_configured(),
            "realtime_connections": app.state.relay.connection_count,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
