"""
Global error handling and logging utilities.
"""
import logging
import os
import traceback
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from fastapi import Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse
from .config import settings
from .exceptions import AppError

logger = logging.getLogger(__name__)


ERROR_LOG_FILE = "errors.log"


def setup_error_logging() -> str:
    """
    Route error reports according to settings.error_logging.

    Returns:
        str: "sentry", "file" or "disabled"
    """
    if settings.error_logging == 2 and settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            integrations=[FastApiIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=0.1,
            environment="development" if settings.debug else "production",
        )
        logger.info("Sentry error reporting enabled")
        return "sentry"

    if settings.error_logging == 1:
        setup_file_logging(Path(settings.error_log_dir))
        logger.info(f"Errors are written to {Path(settings.error_log_dir) / ERROR_LOG_FILE}")
        return "file"

    logger.info("Error reporting disabled")
    return "disabled"


def setup_file_logging(log_dir: Path) -> logging.Handler:
    """Attach an ERROR-level file handler to the root logger (once)."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = os.path.abspath(log_dir / ERROR_LOG_FILE)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_file:
            return handler

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.ERROR)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(file_handler)
    return file_handler


def log_error(
    error: Exception,
    request: Optional[Request] = None,
    extra_data: Optional[dict] = None
):
    """Log error to configured destination."""
    error_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }

    if request:
        error_data.update({
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        })

    if extra_data:
        error_data.update(extra_data)

    if settings.error_logging == 2 and settings.sentry_dsn:
        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_tag("method", request.method)
                scope.set_tag("url", str(request.url))
            if extra_data:
                scope.set_context("extra", extra_data)
            sentry_sdk.capture_exception(error)

    elif settings.error_logging == 1:
        log_file = Path(settings.error_log_dir) / ERROR_LOG_FILE
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(error_data, indent=2) + "\n" + "-" * 80 + "\n")
        except OSError as e:
            logger.error(f"Failed to write error to log file: {e}")

    logger.error(f"Error occurred: {error}", exc_info=error)


def error_body(message: str, status_code: int, **extra) -> dict:
    return {"error": {"message": message, "status_code": status_code, **extra}}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map application errors to their status codes."""
    if exc.status_code >= 500:
        log_error(exc, request)
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.status_code))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for FastAPI."""
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), exc.status_code),
        )

    log_error(exc, request)

    # For unhandled exceptions, return generic error in production
    if settings.debug:
        return JSONResponse(
            status_code=500,
            content=error_body(str(exc), 500, type=type(exc).__name__),
        )
    return JSONResponse(
        status_code=500,
        content=error_body("An unexpected error occurred. Please try again later.", 500),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle request validation exceptions."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc}")
    details = exc.errors() if hasattr(exc, "errors") else str(exc)

    return JSONResponse(
        status_code=422,
        content=error_body("Validation error", 422, details=json.loads(json.dumps(details, default=str))),
    )
