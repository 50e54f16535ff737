"""Tests for GET /health."""

from __future__ import annotations

from httpx import ASGITransport, AsyncClient

from task_service.app.main import create_app


async def get_health(app) -> tuple[int, dict]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    return response.status_code, response.json()


async def test_healthy(counter_store, session_factory) -> None:
    app = create_app(store=counter_store)
    app.state.session_factory = session_factory

    status_code, body = await get_health(app)

    assert status_code == 200
    assert body["status"] == "healthy"
    assert body["checks"] == {"database": True, "counter_store": True}
    assert "timestamp" in body


async def test_counter_store_down_is_degraded(counter_store, fake_redis, session_factory) -> None:
    app = create_app(store=counter_store)
    app.state.session_factory = session_factory
    fake_redis.fail = True

    status_code, body = await get_health(app)

    assert status_code == 200
    assert body["status"] == "degraded"
    assert body["checks"]["counter_store"] is False


async def test_database_unavailable_is_unhealthy(counter_store) -> None:
    app = create_app(store=counter_store)

    status_code, body = await get_health(app)

    assert status_code == 503
    assert body["status"] == "unhealthy"
    assert body["checks"]["database"] is False


async def test_health_is_never_rate_limited(counter_store, session_factory, fake_redis) -> None:
    app = create_app(store=counter_store)
    app.state.session_factory = session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        for _ in range(3):
            assert (await ac.get("/health")).status_code == 200

    assert not any(name == "incr" for name, _ in fake_redis.commands)
