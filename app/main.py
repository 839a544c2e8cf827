"""
Knowledge API - Main Application Entry Point

This file configures and initializes the FastAPI application, including:
- Setting up the application lifecycle (startup/shutdown events).
- Configuring CORS middleware.
- Including the versioned API router.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from agent_knowledge_core.server import ControllerPool
from agent_knowledge_core.storage import BaseKeyValueStore, JsonFileStore
from agent_knowledge_core.utils.config_utils import KnowledgeSettings, load_settings, setup_logging

from app.v1.endpoints import router as v1_router


def create_app(
    settings: Optional[KnowledgeSettings] = None,
    store: Optional[BaseKeyValueStore] = None,
) -> FastAPI:
    """Build the application; tests pass their own settings and store."""
    settings = settings or load_settings()

    # --- Application Lifecycle ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manages application startup and shutdown events.
        """
        logger.info("--- Starting Knowledge API ---")
        setup_logging(settings.log_dir)
        backing_store = store or JsonFileStore(settings.data_dir)
        app.state.pool = ControllerPool(backing_store, settings)
        logger.info("Application startup tasks complete.")

        yield

        logger.info("--- Shutting Down Knowledge API ---")
        # Pending snapshots are flushed before the process exits
        await app.state.pool.close()

    app = FastAPI(
        title="Knowledge API",
        description="API for adding, tracking and removing agent knowledge.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # --- Middleware Configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Adjust in production for security
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    # --- API Router Inclusion ---
    # All V1 endpoints are available under /v1 (e.g., /v1/agents/{agent_id}/knowledge).
    app.include_router(v1_router, prefix="/v1", tags=["V1"])

    # --- Health Check Endpoint ---
    @app.get("/health", tags=["Monitoring"])
    async def health_check():
        """
        A simple health check endpoint for the root application.
        """
        return {"status": "ok", "message": "API is running.", "agents": len(app.state.pool)}

    return app


app = create_app()


# --- Main Execution Block ---
if __name__ == "__main__":
    import uvicorn

    # Example: uvicorn app.main:app --host 0.0.0.0 --port 8087 --reload
    uvicorn.run("app.main:app", host="0.0.0.0", port=8087)
