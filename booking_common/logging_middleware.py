"""HTTP audit logging middleware shared by services."""
from __future__ import annotations

import logging
from pathlib import Path
from time import time

from fastapi import FastAPI, Request

from .config import get_settings
from .rate_limit import client_key


def _log_dir() -> Path:
    log_dir = Path(get_settings().log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(_log_dir() / f"{service_name}.log")
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Console logging for the application loggers (``booking_common.*``, ``services.*``)."""

    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    """Write one audit line per request, keyed by the same caller id as the rate limiter."""

    logger = _build_logger(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        started = time()
        response = await call_next(request)
        elapsed_ms = (time() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s | status=%s | caller=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            client_key(request),
            elapsed_ms,
        )
        return response
