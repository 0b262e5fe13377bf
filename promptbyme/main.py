"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promptbyme.api.execute import router as execute_router
from promptbyme.api.router import api_router
from promptbyme.config import get_settings
from promptbyme.core.errors import ExecutionError
from promptbyme.core.providers import get_provider_registry
from promptbyme.db.client import get_supabase_client
from promptbyme.utils.logging import setup_logging

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("promptbyme.starting", port=settings.port)

    get_supabase_client()
    logger.info("promptbyme.supabase_connected")

    yield

    await get_provider_registry().aclose()
    logger.info("promptbyme.shutdown")


app = FastAPI(
    title="PromptByMe",
    description="Prompt library with versioning, flows, and AI provider execution",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExecutionError)
async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    """Render service errors as ``{"success": false, "error": ...}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


app.include_router(execute_router)
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Service info endpoint."""
    return {"service": "promptbyme", "version": VERSION}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "promptbyme", "version": VERSION}
