import pytest

from planwarden.web.app import create_app


@pytest.mark.integration
class TestAppFactory:
    async def test_app_creates_successfully(self, app) -> None:
        assert app is not None
        assert app.title == "Planwarden"

    async def test_app_builds_own_container(self) -> None:
        app = create_app()
        assert app.state.container.catalog is not None

    async def test_health_endpoint(self, client) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["catalog"] == "ready"

    async def test_health_degraded_without_default_plan(self, async_engine, settings) -> None:
        from httpx import ASGITransport, AsyncClient

        from planwarden.web.dependencies import build_container

        app = create_app(container=build_container(async_engine, settings))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/health")
        assert resp.json()["status"] == "degraded"
        assert resp.json()["catalog"] == "missing_default_plan"

    async def test_request_id_header(self, client) -> None:
        resp = await client.get("/api/health")
        assert "x-request-id" in resp.headers

    async def test_request_id_is_echoed(self, client) -> None:
        resp = await client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["x-request-id"] == "req-123"

    async def test_404_for_unknown_route(self, client) -> None:
        resp = await client.get("/api/nonexistent")
        assert resp.status_code == 404
