"""
FastAPI entrypoint for Tago backend application.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tago.core.config import settings
from tago.core.exceptions import TagoError
from tago.core.utils import format_error
from tago.api.router import api_router
from tago.services.connection_registry import ConnectionRegistry

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Close every open SSE stream so clients reconnect to the next process
    app.state.connection_registry.close_all()


app = FastAPI(
    title="Tago API",
    description="Backend API for taxi pooling: settlements and notifications",
    version="1.0.0",
    lifespan=lifespan
)

app.state.connection_registry = ConnectionRegistry()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TagoError)
async def tago_error_handler(request: Request, exc: TagoError):
    """Map domain errors to their HTTP status."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(exc.message, type(exc).__name__)
    )


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Tago API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "sse_connections": app.state.connection_registry.connection_count()
    }
