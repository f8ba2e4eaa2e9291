"""
Suggestions Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from suggestion_backend.routers import config, documents
from suggestion_backend.services.config_manager import ConfigManager

logger = logging.getLogger("suggestion_backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    config_manager = ConfigManager.get_instance()
    logging.basicConfig(
        level=config_manager.get("logLevel", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("[Backend] Starting Suggestions Backend...")
    logger.info(f"[Backend] ConfigManager initialized ({config_manager.config_file})")

    yield
    documents.workspaces.clear()
    logger.info("[Backend] Shutting down Suggestions Backend...")


app = FastAPI(
    title="Suggestions Backend",
    description="AI editing suggestions rendered as reviewable CriticMarkup hunks",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents.router, prefix="/api/documents", tags=["documents"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "suggestion-backend"}


if __name__ == "__main__":
    import uvicorn

    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "0.0.0.0"), port=server.get("port", 8000))
