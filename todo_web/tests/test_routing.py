import pytest

from todo_app.routing import (
    DEFAULT_ROUTES,
    NavigationGuard,
    RouteMeta,
    RouteRecord,
    RouteTable,
    normalize_path,
)

NESTED_ROUTES = (
    RouteRecord("/login", name="login", meta=RouteMeta(requires_guest=True)),
    RouteRecord(
        "/",
        name="dashboard",
        meta=RouteMeta(requires_auth=True),
        children=(RouteRecord("settings", name="settings"), RouteRecord("about", name="about")),
    ),
    RouteRecord("/help", name="help"),
    RouteRecord("*", redirect="/"),
)


@pytest.fixture
def guard():
    return NavigationGuard(RouteTable(NESTED_ROUTES))


async def signed_in(session):
    await session.register("a@b.com", "pw123456", "Ann")


class TestRouteTable:
    def test_matches_chain_with_ancestors(self):
        chain = RouteTable(NESTED_ROUTES).match("/settings")
        assert [r.name for r in chain] == ["dashboard", "settings"]

    def test_unknown_path_hits_catch_all(self):
        chain = RouteTable(DEFAULT_ROUTES).match("/does/not/exist")
        assert len(chain) == 1
        assert chain[0].redirect == "/"

    def test_slashes_are_normalized(self):
        assert [r.name for r in RouteTable(DEFAULT_ROUTES).match("/login/")] == ["login"]
        assert normalize_path("") == "/"

    def test_no_catch_all(self):
        assert RouteTable((RouteRecord("/a"),)).match("/b") == ()


class TestGuard:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/", "/settings", "/about"])
    async def test_requires_auth_redirects_guests_to_login(self, guard, session, path):
        navigation = await guard.resolve(path, session)
        assert navigation.redirect == "/login"
        assert navigation.allowed is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/", "/settings", "/about"])
    async def test_requires_auth_allows_signed_in(self, guard, session, path):
        await signed_in(session)
        navigation = await guard.resolve(path, session)
        assert navigation.allowed

    @pytest.mark.asyncio
    async def test_requires_guest_redirects_signed_in_home(self, guard, session):
        await signed_in(session)
        navigation = await guard.resolve("/login", session)
        assert navigation.redirect == "/"

    @pytest.mark.asyncio
    async def test_requires_guest_allows_guests(self, guard, session):
        assert (await guard.resolve("/login", session)).allowed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signed", [False, True])
    async def test_open_route_always_allowed(self, guard, session, signed):
        if signed:
            await signed_in(session)
        assert (await guard.resolve("/help", session)).allowed

    @pytest.mark.asyncio
    async def test_unknown_path_redirects_home(self, session):
        navigation = await NavigationGuard().resolve("/nowhere", session)
        assert navigation.redirect == "/"

    @pytest.mark.asyncio
    async def test_waits_for_session_initialization(self, session):
        assert session.initialized is False
        await NavigationGuard().resolve("/", session)
        assert session.initialized is True

    @pytest.mark.asyncio
    async def test_uses_identity_already_known_to_gateway(self, gateway, session, directory):
        await gateway.create_account("a@b.com", "pw123456")
        navigation = await NavigationGuard().resolve("/", session)
        assert navigation.allowed
