import asyncio

from fastapi.testclient import TestClient

from feedlink.monitoring import create_health_app


def test_health_api_endpoints(make_pool):
    h = make_pool(max_connections=3)

    async def run():
        conn_id = h.open("ws://feed/a")
        await h.pool.subscribe(conn_id, "trades")
        h.transport(conn_id).fire_message("tick")
        h.pool.connect("ws://feed/b")
        return conn_id

    conn_id = asyncio.run(run())
    client = TestClient(create_health_app(h.pool))

    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["max_connections"] == 3
    assert body["active"] == 2
    first = body["connections"][0]
    assert first["id"] == conn_id
    assert first["status"] == "connected"
    assert first["subscriptions"] == ["trades"]
    assert first["stats"]["messages_sent"] == 1
    assert first["stats"]["messages_received"] == 1
    assert body["connections"][1]["status"] == "connecting"

    status = client.get("/status")
    assert status.status_code == 200
    assert status.json() == body
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "feedlink_active_connections" in metrics.text
