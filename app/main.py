"""
Main FastAPI application entry point.
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
import uvicorn

from .core.config import settings
from .core.database import SessionLocal, create_tables
from .core.exceptions import AppError
from .core.error_handler import (
    setup_error_logging,
    app_error_handler,
    global_exception_handler,
    validation_exception_handler
)
from .api.routes import documents, query, status, health
from .services.container import ServiceContainer

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.project_name,
    description="Question answering over uploaded documents with cited sources",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_error_logging()

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

for router in (health.router, documents.router, query.router, status.router):
    app.include_router(router, prefix=settings.api_v1_str)


@app.on_event("startup")
async def startup_event():
    """Create tables, then build and start the services."""
    logger.info(f"Starting {settings.project_name}")
    create_tables()

    # tests install their own container before startup
    if not getattr(app.state, "services", None):
        app.state.services = ServiceContainer.build(settings, SessionLocal)
    app.state.services.start()

    logger.info(
        f"Ready: uploads in {settings.upload_dir}, vectors in {settings.chroma_persist_directory}, "
        f"chunking {settings.chunk_size}/{settings.chunk_overlap}, "
        f"{settings.ingestion_workers} ingestion workers"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the ingestion workers and drop cached answers."""
    logger.info(f"Shutting down {settings.project_name}")
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.stop()


@app.get("/")
async def root():
    """Root endpoint with basic API information."""
    return {
        "name": settings.project_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
        "health": f"{settings.api_v1_str}/health",
        "status_stream": f"{settings.api_v1_str}/status/stream",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
