"""REST API exposing pool health and metrics."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

if TYPE_CHECKING:  # pragma: no cover
    from ..pool import ConnectionPool


def health_report(pool: "ConnectionPool") -> dict:
    connections = []
    for info in pool.get_connections():
        stats = pool.get_stats(info.id)
        connections.append(
            {
                "id": info.id,
                "url": info.url,
                "status": info.status.value,
                "subscriptions": sorted(pool.get_subscriptions(info.id) or ()),
                "stats": stats.as_dict() if stats else {},
            }
        )
    return {
        "max_connections": pool.config.max_connections,
        "active": len(connections),
        "connections": connections,
    }


def create_health_app(pool: "ConnectionPool") -> FastAPI:
    """Create a FastAPI app exposing health endpoints."""

    app = FastAPI()

    @app.get("/health")
    @app.get("/status")
    async def health() -> dict:
        return health_report(pool)

    @app.get("/metrics")
    def metrics() -> Response:
        data = generate_latest()
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app
