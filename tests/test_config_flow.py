"""Tests for the Qingping Config Flow."""

from unittest.mock import AsyncMock, Mock, PropertyMock, patch

import httpx
import pytest
import voluptuous as vol
from homeassistant.data_entry_flow import FlowResultType

from custom_components.qingping_air import api
from custom_components.qingping_air.config_flow import (
    QingpingConfigFlow,
    QingpingOptionsFlow,
    auth_error_reason,
)
from custom_components.qingping_air.const import (
    CONF_APP_KEY,
    CONF_APP_SECRET,
    CONF_INTERVAL,
    CONF_TVOC_UNIT,
    DEFAULT_INTERVAL,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
)

USER_INPUT = {CONF_APP_KEY: "test_app_key", CONF_APP_SECRET: "test_app_secret"}


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    return Mock()


@pytest.fixture
def flow(mock_hass: Mock) -> QingpingConfigFlow:
    """Create a QingpingConfigFlow instance for testing."""
    flow_instance = QingpingConfigFlow()
    flow_instance.hass = mock_hass
    flow_instance.async_set_unique_id = AsyncMock()
    flow_instance._abort_if_unique_id_configured = Mock()
    flow_instance.async_create_entry = Mock(
        return_value={"type": FlowResultType.CREATE_ENTRY},
    )
    flow_instance.async_show_form = Mock(return_value={"type": FlowResultType.FORM})
    return flow_instance


def patch_token_manager(refresh: AsyncMock):
    """Patch the token manager used by the config flow."""
    manager = Mock()
    manager.async_refresh = refresh
    return patch(
        "custom_components.qingping_air.config_flow.api.TokenManager",
        return_value=manager,
    )


def auth_error_caused_by(cause: Exception | None) -> api.AuthError:
    """Create an AuthError chained to a cause."""
    error = api.AuthError("Token exchange failed")
    error.__cause__ = cause
    return error


class TestAuthErrorReason:
    """Tests for auth_error_reason function."""

    def test_timeout_maps_to_timeout_error(self) -> None:
        """Test that a timeout cause maps to the timeout error."""
        err = auth_error_caused_by(httpx.ReadTimeout("slow"))
        assert auth_error_reason(err) == ERROR_TIMEOUT

    def test_request_error_maps_to_cannot_connect(self) -> None:
        """Test that a transport cause maps to cannot connect."""
        err = auth_error_caused_by(httpx.ConnectError("refused"))
        assert auth_error_reason(err) == ERROR_CANNOT_CONNECT

    def test_rejected_credentials_map_to_invalid_auth(self) -> None:
        """Test that an error without transport cause maps to invalid auth."""
        assert auth_error_reason(auth_error_caused_by(None)) == ERROR_INVALID_AUTH


class TestQingpingConfigFlowAsyncStepUser:
    """Tests for async_step_user method."""

    @pytest.mark.asyncio
    async def test_async_step_user_shows_form_when_no_input(
        self,
        flow: QingpingConfigFlow,
    ) -> None:
        """Test that async_step_user shows form when no input provided."""
        result = await flow.async_step_user()
        flow.async_show_form.assert_called_once()
        assert flow.async_show_form.call_args[1]["errors"] == {}
        assert result["type"] == FlowResultType.FORM

    @pytest.mark.asyncio
    async def test_async_step_user_creates_entry_on_successful_auth(
        self,
        flow: QingpingConfigFlow,
    ) -> None:
        """Test that async_step_user creates entry on successful authentication."""
        with (
            patch(
                "custom_components.qingping_air.config_flow.get_async_client",
                return_value=Mock(),
            ),
            patch_token_manager(AsyncMock()),
        ):
            result = await flow.async_step_user(
                {CONF_APP_KEY: " test_app_key ", CONF_APP_SECRET: "test_app_secret"}
            )

        flow.async_set_unique_id.assert_called_once_with("test_app_key")
        flow._abort_if_unique_id_configured.assert_called_once()
        call_args = flow.async_create_entry.call_args
        assert call_args[1]["title"] == "Qingping (test_app_key)"
        assert call_args[1]["data"] == USER_INPUT
        assert result["type"] == FlowResultType.CREATE_ENTRY

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("side_effect", "expected_error"),
        [
            (auth_error_caused_by(None), ERROR_INVALID_AUTH),
            (auth_error_caused_by(httpx.ConnectError("refused")), ERROR_CANNOT_CONNECT),
            (auth_error_caused_by(httpx.ConnectTimeout("slow")), ERROR_TIMEOUT),
            (RuntimeError("boom"), ERROR_UNKNOWN),
        ],
    )
    async def test_async_step_user_shows_error(
        self,
        flow: QingpingConfigFlow,
        side_effect: Exception,
        expected_error: str,
    ) -> None:
        """Test that async_step_user maps failures to form errors."""
        with (
            patch(
                "custom_components.qingping_air.config_flow.get_async_client",
                return_value=Mock(),
            ),
            patch_token_manager(AsyncMock(side_effect=side_effect)),
        ):
            result = await flow.async_step_user(dict(USER_INPUT))

        call_args = flow.async_show_form.call_args
        assert call_args[1]["errors"]["base"] == expected_error
        flow.async_create_entry.assert_not_called()
        assert result["type"] == FlowResultType.FORM


@pytest.fixture
def options_flow() -> QingpingOptionsFlow:
    """Create an options flow for an entry without options."""
    entry = Mock()
    entry.options = {}
    flow_instance = QingpingOptionsFlow()
    flow_instance.async_create_entry = Mock(
        return_value={"type": FlowResultType.CREATE_ENTRY},
    )
    flow_instance.async_show_form = Mock(return_value={"type": FlowResultType.FORM})
    with patch.object(
        QingpingOptionsFlow,
        "config_entry",
        new_callable=PropertyMock,
        return_value=entry,
    ):
        yield flow_instance


class TestQingpingOptionsFlow:
    """Tests for the options flow."""

    @pytest.mark.asyncio
    async def test_init_shows_form_with_defaults(
        self,
        options_flow: QingpingOptionsFlow,
    ) -> None:
        """Test that the options form validates and fills in defaults."""
        await options_flow.async_step_init()

        schema = options_flow.async_show_form.call_args[1]["data_schema"]
        validated = schema({})
        assert validated[CONF_INTERVAL] == DEFAULT_INTERVAL
        assert validated[CONF_TVOC_UNIT] == "native"

    @pytest.mark.asyncio
    async def test_init_rejects_short_interval_and_unknown_unit(
        self,
        options_flow: QingpingOptionsFlow,
    ) -> None:
        """Test that the schema rejects invalid options."""
        await options_flow.async_step_init()
        schema = options_flow.async_show_form.call_args[1]["data_schema"]

        with pytest.raises(vol.Invalid):
            schema({CONF_INTERVAL: 10})
        with pytest.raises(vol.Invalid):
            schema({CONF_TVOC_UNIT: "mg"})

    @pytest.mark.asyncio
    async def test_init_creates_entry_with_input(
        self,
        options_flow: QingpingOptionsFlow,
    ) -> None:
        """Test that submitted options are stored."""
        user_input = {CONF_INTERVAL: 5000, CONF_TVOC_UNIT: "ppb"}
        result = await options_flow.async_step_init(user_input)

        options_flow.async_create_entry.assert_called_once_with(data=user_input)
        assert result["type"] == FlowResultType.CREATE_ENTRY
