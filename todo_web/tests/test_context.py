from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from todo_app.context import ContextRegistry, build_context_factory
from todo_app.main import create_app


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_registry(settings, **kwargs):
    return ContextRegistry(build_context_factory(settings), **kwargs)


class TestContextRegistry:
    def test_same_id_returns_same_context(self, settings):
        registry = make_registry(settings)
        assert registry.get("a") is registry.get("a")
        assert len(registry) == 1

    def test_least_recently_used_is_evicted_over_the_cap(self, settings):
        clock = FakeClock()
        registry = make_registry(settings, max_contexts=2, clock=clock)
        first = registry.get("a")
        registry.get("b")
        registry.get("a")
        registry.get("c")

        assert len(registry) == 2
        assert "b" not in registry
        assert registry.get("a") is first

    def test_idle_contexts_expire(self, settings):
        clock = FakeClock()
        registry = make_registry(settings, ttl_seconds=60, clock=clock)
        stale = registry.get("a")
        clock.now = 30
        registry.get("b")
        clock.now = 61

        fresh = registry.get("c")
        assert "a" not in registry
        assert "b" in registry
        assert fresh is not stale

        clock.now = 200
        assert registry.get("a") is not stale
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_evicted_context_releases_its_subscription(self, settings):
        registry = make_registry(settings, max_contexts=1)
        ctx = registry.get("a")
        await ctx.session.initialize_session()
        gateway = ctx.session._gateway
        assert len(gateway._listeners) == 1

        registry.get("b")
        assert gateway._listeners == []

    def test_close_discards_everything(self, settings):
        registry = make_registry(settings)
        registry.get("a")
        registry.get("b")
        registry.close()
        assert len(registry) == 0


class TestContextLimitOverHttp:
    def test_cookieless_requests_stay_within_the_cap(self, settings):
        app = create_app(replace(settings, max_client_contexts=3))
        with TestClient(app) as client:
            for _ in range(10):
                client.cookies.clear()
                assert client.get("/api/v1/session").status_code == 200
            assert len(app.state.contexts) == 3

    def test_evicted_client_starts_over_as_guest(self, settings):
        app = create_app(replace(settings, max_client_contexts=1))
        with TestClient(app) as client:
            payload = {"email": "a@b.com", "password": "pw123456", "name": "Ann"}
            assert client.post("/api/v1/session/register", json=payload).status_code == 200
            TestClient(app).get("/api/v1/session")

            session = client.get("/api/v1/session").json()
            assert session["is_authenticated"] is False
