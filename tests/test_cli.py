import asyncio
import json
from unittest.mock import AsyncMock, patch

import yaml
from typer.testing import CliRunner

from feedlink.cli import app, run_watch
from feedlink.config import PoolConfig
from feedlink.pool import ConnectionPool
from feedlink.transport import Transport


class ScriptedTransport(Transport):
    """Opens and delivers one message as soon as the loop gets a turn."""

    created = []

    def __init__(self, url, protocols, listener):
        super().__init__(url, protocols, listener)
        self.sent = []
        self._ready = False
        ScriptedTransport.created.append(self)

    @property
    def is_open(self):
        return self._ready

    def open(self):
        loop = asyncio.get_running_loop()
        loop.call_soon(self._deliver)

    def _deliver(self):
        self._ready = True
        self.listener.on_open(self)
        self.listener.on_message(self, '{"px": 1}')

    async def send(self, data):
        self.sent.append(data)

    def ping(self):
        pass

    def close(self):
        self._ready = False


def test_cli_validate_config(tmp_path):
    path = tmp_path / "feed_pool.yaml"
    path.write_text(yaml.safe_dump({"feed_pool": {"max_connections": 2}}))
    result = CliRunner().invoke(app, ["validate-config", "-c", str(path)])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["max_connections"] == 2


def test_cli_validate_config_rejects_bad_values(tmp_path):
    path = tmp_path / "feed_pool.yaml"
    path.write_text(yaml.safe_dump({"feed_pool": {"max_connections": 0}}))
    result = CliRunner().invoke(app, ["validate-config", "-c", str(path)])
    assert result.exit_code == 1


def test_cli_watch_smoke():
    runner = CliRunner()
    with patch("feedlink.cli.run_watch", new_callable=AsyncMock) as mock_fn:
        result = runner.invoke(
            app,
            ["watch", "--url", "ws://feed", "-t", "trades", "-t", "quotes", "--duration", "1"],
        )
        assert result.exit_code == 0
        mock_fn.assert_awaited_once()
        args = mock_fn.call_args.args
        assert args[0] == "ws://feed"
        assert args[1] == ["trades", "quotes"]
        assert args[3] == 1.0


def test_run_watch_subscribes_and_prints():
    ScriptedTransport.created.clear()
    lines = []

    def make_pool(config):
        return ConnectionPool(config=config, transport_factory=ScriptedTransport)

    with patch("feedlink.cli.ConnectionPool", new=make_pool):
        asyncio.run(
            run_watch(
                "ws://feed",
                ["trades"],
                PoolConfig(environment="development"),
                duration=0.05,
                echo=lines.append,
            )
        )

    events = [json.loads(line) for line in lines]
    assert [e["event"] for e in events] == ["connected", "message"]
    assert events[1]["data"] == '{"px": 1}'
    sent = ScriptedTransport.created[0].sent
    assert json.loads(sent[0]) == {"method": "subscribe", "topic": "trades"}
