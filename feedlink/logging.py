"""Structured JSON logging for the connection pool.

Every module logs through the shared ``logger`` using event-style names with
keyword fields, e.g. ``logger.info("connection_opened", id=conn_id)``.
"""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for JSON formatted logs."""

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.contextvars.merge_contextvars,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
    )


configure_logging()
logger = structlog.get_logger("feedlink")
