"""Monitoring utilities for the connection pool."""

from .api import create_health_app, health_report
from .metrics import Metrics

__all__ = [
    "Metrics",
    "create_health_app",
    "health_report",
]
