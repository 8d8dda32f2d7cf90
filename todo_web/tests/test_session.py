from unittest.mock import AsyncMock

import pytest

from todo_app.exceptions import AUTH_ERROR_MESSAGES, UNKNOWN_ERROR_MESSAGE, GatewayError, get_error_message
from todo_app.gateway import InMemoryIdentityGateway
from todo_app.models import DEFAULT_DISPLAY_NAME
from todo_app.session import SessionState


async def _register(directory, email="a@b.com", password="pw123456"):
    return await InMemoryIdentityGateway(directory).create_account(email, password)


class TestInitialization:
    @pytest.mark.asyncio
    async def test_initialized_flips_once_and_stays(self, session, gateway):
        assert session.initialized is False
        first = await session.initialize_session()
        assert first is None
        assert session.initialized is True

        await session.initialize_session()
        await session.initialize_session()
        # Repeated calls share one subscription
        assert len(gateway._listeners) == 1

        await session.login("nobody@b.com", "pw123456")
        await session.logout()
        assert session.initialized is True

    @pytest.mark.asyncio
    async def test_initialize_reports_existing_sign_in(self, directory):
        gateway = InMemoryIdentityGateway(directory)
        await _register(directory)
        await gateway.authenticate("a@b.com", "pw123456")

        session = SessionState(gateway)
        identity = await session.initialize_session()
        assert identity is not None
        assert identity.email == "a@b.com"
        assert session.is_authenticated

    @pytest.mark.asyncio
    async def test_later_notifications_update_identity(self, session, gateway, directory):
        await session.initialize_session()
        await _register(directory)
        await gateway.authenticate("a@b.com", "pw123456")
        assert session.user_id == gateway.current_identity.uid
        await gateway.end_session()
        assert session.identity is None

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, session, gateway, directory):
        await session.initialize_session()
        session.close()
        session.close()
        assert gateway._listeners == []

        await _register(directory)
        await gateway.authenticate("a@b.com", "pw123456")
        assert session.identity is None


class TestLogin:
    @pytest.mark.asyncio
    async def test_wrong_password(self, session, directory):
        await _register(directory)
        await session.initialize_session()

        result = await session.login("a@b.com", "not-the-password")
        assert result.success is False
        assert result.error == "密碼錯誤"
        assert session.error == AUTH_ERROR_MESSAGES["auth/wrong-password"]
        assert session.identity is None
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_success(self, session, directory):
        await _register(directory)
        result = await session.login("a@b.com", "pw123456")
        assert result.success is True
        assert result.error is None
        assert session.identity.email == "a@b.com"
        assert session.loading is False
        assert session.display_name == "a@b.com"

    @pytest.mark.asyncio
    async def test_loading_while_in_flight_and_error_cleared(self, session, gateway):
        seen = {}

        async def authenticate(email, password):
            seen["loading"] = session.loading
            seen["error"] = session.error
            raise GatewayError("auth/too-many-requests")

        gateway.authenticate = AsyncMock(side_effect=authenticate)
        session.error = "stale"

        result = await session.login("a@b.com", "pw123456")
        assert seen == {"loading": True, "error": None}
        assert result.error == "請求過於頻繁，請稍後再試"
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_unknown_code_maps_to_generic(self, session, gateway):
        gateway.authenticate = AsyncMock(side_effect=GatewayError("auth/something-new"))
        result = await session.login("a@b.com", "pw123456")
        assert result.error == UNKNOWN_ERROR_MESSAGE


class TestRegister:
    @pytest.mark.asyncio
    async def test_success_sets_display_name(self, session):
        await session.initialize_session()
        result = await session.register("a@b.com", "pw123456", "Ann")
        assert result.success is True
        assert session.identity.display_name == "Ann"
        assert session.display_name == "Ann"
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_display_name_failure_fails_but_account_exists(self, session, gateway, directory):
        gateway.update_display_name = AsyncMock(side_effect=GatewayError("auth/network-request-failed"))

        result = await session.register("a@b.com", "pw123456", "Ann")
        assert result.success is False
        assert result.error == "網路連接失敗"
        assert session.error == "網路連接失敗"
        assert session.loading is False

        other = InMemoryIdentityGateway(directory)
        identity = await other.authenticate("a@b.com", "pw123456")
        assert identity.display_name is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email, password, message",
        [
            ("a@b.com", "123", "密碼強度不足"),
            ("not-an-email", "pw123456", "Email 格式不正確"),
        ],
    )
    async def test_rejected(self, session, email, password, message):
        result = await session.register(email, password, "Ann")
        assert result.success is False
        assert session.error == message
        assert session.identity is None

    @pytest.mark.asyncio
    async def test_email_in_use(self, session, directory):
        await _register(directory)
        result = await session.register("A@B.com", "pw123456", "Ann")
        assert result.error == "此 Email 已被使用"


class TestLogout:
    @pytest.mark.asyncio
    async def test_clears_identity(self, session):
        await session.register("a@b.com", "pw123456", "Ann")
        result = await session.logout()
        assert result.success is True
        assert session.identity is None
        assert session.loading is False
        assert session.display_name == DEFAULT_DISPLAY_NAME

    @pytest.mark.asyncio
    async def test_failure_keeps_identity(self, session, gateway):
        await session.register("a@b.com", "pw123456", "Ann")
        gateway.end_session = AsyncMock(side_effect=GatewayError("auth/network-request-failed"))
        result = await session.logout()
        assert result.success is False
        assert session.identity is not None
        assert session.error == "網路連接失敗"
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_success_does_not_clear_previous_error(self, session, directory):
        await _register(directory)
        await session.login("a@b.com", "wrong-password")
        await session.logout()
        assert session.error == "密碼錯誤"
        session.clear_error()
        assert session.error is None


@pytest.mark.parametrize("code, message", sorted(AUTH_ERROR_MESSAGES.items()))
def test_error_messages(code, message):
    assert get_error_message(code) == message


def test_error_message_default():
    assert get_error_message("") == UNKNOWN_ERROR_MESSAGE
    assert get_error_message("auth/user-disabled") == UNKNOWN_ERROR_MESSAGE
