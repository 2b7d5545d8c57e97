"""
Prompt Library Backend - FastAPI Application Entry Point
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from routers import ai, config, diff, prompts, recycle_bin, transfer
from services.config_manager import ConfigManager
from services.prompt_store import get_prompt_store

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("prompt_library")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("[Backend] Starting Prompt Library Backend...")
    ConfigManager.get_instance()
    store = get_prompt_store()
    store.ensure_dirs()
    logger.info("[Backend] Prompts: %s, recycle bin: %s", store.prompts_dir, store.recycle_dir)

    yield
    logger.info("[Backend] Shutting down Prompt Library Backend...")


app = FastAPI(
    title="Prompt Library Backend",
    description="Personal prompt library with version history, recycle bin and AI optimization",
    version="1.0.0",
    lifespan=lifespan,
)

# The browser UI is served from a different origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s - %d (%.0fms)", request.method, request.url.path, response.status_code, duration_ms)
    return response


# Include routers
app.include_router(prompts.router, prefix="/api/prompts", tags=["prompts"])
app.include_router(recycle_bin.router, prefix="/api/recycle-bin", tags=["recycle-bin"])
app.include_router(diff.router, prefix="/api/diff", tags=["diff"])
app.include_router(transfer.router, prefix="/api/transfer", tags=["transfer"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "prompt-library-backend"}


if __name__ == "__main__":
    import uvicorn

    server = ConfigManager.get_instance().get_config().get("server", {})
    uvicorn.run(app, host=server.get("host", "127.0.0.1"), port=server.get("port", 3000))
