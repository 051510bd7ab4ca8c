"""Typer-based command line interface for feedlink."""

from __future__ import annotations

import asyncio
import json
from typing import List, Optional

import typer

from .config import PoolConfig, load_pool_config
from .events import (
    ConnectedEvent,
    ErrorEvent,
    MessageEvent,
    PoolEvent,
    RateLimitedEvent,
    ReconnectFailedEvent,
    ReconnectingEvent,
)
from .exceptions import ConfigurationError
from .logging import configure_logging
from .pool import ConnectionPool


app = typer.Typer(add_completion=False, help="feedlink command line interface")


def _event_line(event: PoolEvent) -> str:
    if isinstance(event, MessageEvent):
        data = event.data
        if isinstance(data, bytes):
            data = data.hex()
        return json.dumps({"event": "message", "id": event.id, "data": data})
    if isinstance(event, ErrorEvent):
        return json.dumps({"event": "error", "id": event.id, "error": str(event.error)})
    if isinstance(event, ReconnectingEvent):
        return json.dumps(
            {
                "event": "reconnecting",
                "id": event.id,
                "attempt": event.attempt,
                "max_attempts": event.max_attempts,
            }
        )
    name = type(event).__name__.replace("Event", "").lower()
    return json.dumps({"event": name, "id": getattr(event, "id", None)})


async def run_watch(
    url: str,
    topics: List[str],
    config: PoolConfig,
    duration: float = 0.0,
    echo=typer.echo,
) -> None:
    """Stream ``url`` and echo events until ``duration`` elapses.

    Topics are re-sent after every successful (re)connect.
    """

    done = asyncio.Event()
    async with ConnectionPool(config=config) as pool:

        async def _on_connected(event: ConnectedEvent) -> None:
            for topic in topics:
                await pool.subscribe(event.id, topic)

        pool.add_listener(_on_connected, ConnectedEvent)
        pool.add_listener(
            lambda ev: echo(_event_line(ev)),
            ConnectedEvent,
            MessageEvent,
            ErrorEvent,
            RateLimitedEvent,
            ReconnectingEvent,
            ReconnectFailedEvent,
        )
        pool.add_listener(lambda _: done.set(), ReconnectFailedEvent)
        pool.connect(url)
        if duration > 0:
            try:
                await asyncio.wait_for(done.wait(), timeout=duration)
            except asyncio.TimeoutError:
                pass
        else:
            await done.wait()


@app.command("validate-config")
def cmd_validate_config(
    config: str = typer.Option(
        "config/feed_pool.yaml", "-c", "--config", help="Path to config file"
    ),
):
    """Validate a pool configuration file and print the resolved settings."""

    try:
        cfg = load_pool_config(config)
    except ConfigurationError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(cfg.model_dump(), indent=2))


@app.command("watch")
def cmd_watch(
    url: str = typer.Option(..., "--url", help="WebSocket URL of the feed"),
    topic: List[str] = typer.Option([], "--topic", "-t", help="Topic to subscribe"),
    config: Optional[str] = typer.Option(
        None, "-c", "--config", help="Path to config file"
    ),
    duration: float = typer.Option(
        0.0, "--duration", help="Seconds to stream; 0 streams until failure"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
):
    """Connect to a feed and print events as JSON lines."""

    configure_logging(log_level)
    try:
        cfg = load_pool_config(config) if config else PoolConfig()
    except ConfigurationError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)
    asyncio.run(run_watch(url, topic, cfg, duration))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
