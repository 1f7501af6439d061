"""Integration tests for tool routing in GDriveMCPServer.

Google APIs are faked through the patched ``httpx.AsyncClient``; everything
between the MCP call handler and the HTTP client runs for real.
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock

import pytest

from gdrive_mcp.config import ServerConfig
from gdrive_mcp.errors import ConfigurationError, ServiceNotConfigured
from gdrive_mcp.server import GDriveMCPServer, create_server
from gdrive_mcp.server.tools import ALL_TOOLS, DRIVE_TOOLS, GMAIL_TOOLS, required_arguments
from gdrive_mcp.services.http import DRIVE_API_BASE, GMAIL_API_BASE


def _text(result) -> str:
    return result.content[0].text


@pytest.fixture
def server(oauth_config) -> GDriveMCPServer:
    """Server with OAuth credentials and a canned access token."""
    instance = GDriveMCPServer(oauth_config)
    instance.oauth_provider.access_token = AsyncMock(return_value="tok")
    return instance


@pytest.mark.integration
class TestToolCatalog:
    """Verify the declared tools."""

    def test_should_declare_all_tools(self) -> None:
        """Verify 20 Drive and 9 Gmail tools with unique names."""
        names = [tool.name for tool in ALL_TOOLS]

        assert len(DRIVE_TOOLS) == 20
        assert len(GMAIL_TOOLS) == 9
        assert len(set(names)) == 29
        assert all(name.startswith("gdrive_") for name in names[:20])
        assert all(name.startswith("gmail_") for name in names[20:])

    def test_required_arguments_follow_schema(self) -> None:
        """Verify required arguments are read from the input schema."""
        assert required_arguments("gmail_send_message") == ["to", "subject", "body"]
        assert required_arguments("gdrive_get_about") == []


@pytest.mark.integration
class TestServerConstruction:
    """Verify provider and facade wiring."""

    def test_oauth_only(self, oauth_config) -> None:
        """Verify OAuth drives both Gmail and Drive."""
        server = GDriveMCPServer(oauth_config)

        assert server.gmail is not None
        assert server.service_provider is None
        assert server.drive.provider is server.oauth_provider

    def test_service_account_preferred_for_drive(self, full_config) -> None:
        """Verify Drive uses the service account when both are configured."""
        server = GDriveMCPServer(full_config)

        assert server.drive.provider is server.service_provider
        assert server.gmail is not None
        assert server.gmail.provider is server.oauth_provider
        assert server.drive.default_folder_id == "default-folder"

    def test_service_account_only(self, service_account_config) -> None:
        """Verify Gmail is disabled without OAuth."""
        server = GDriveMCPServer(service_account_config)

        assert server.gmail is None
        assert server.oauth_provider is None

    def test_should_require_credentials(self) -> None:
        """Verify a server cannot start without any credentials."""
        with pytest.raises(ConfigurationError):
            GDriveMCPServer(ServerConfig())

    def test_create_server_uses_given_config(self, oauth_config) -> None:
        """Verify the factory accepts an explicit configuration."""
        assert create_server(oauth_config).config is oauth_config


@pytest.mark.integration
class TestToolErrors:
    """Verify every failure becomes an error result."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server) -> None:
        result = await server.handle_call("nope", {})

        assert result.isError is True
        assert _text(result) == "Error: Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, server, mock_http_client) -> None:
        result = await server.handle_call("gdrive_get_file", {})

        assert result.isError is True
        assert _text(result) == "Error: Missing required argument(s) for gdrive_get_file: fileId"
        mock_http_client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_gmail_without_oauth(self, service_account_config, mock_http_client) -> None:
        """Verify Gmail tools stay listed but refuse to run."""
        server = GDriveMCPServer(service_account_config)

        result = await server.handle_call("gmail_get_profile", {})

        assert result.isError is True
        assert _text(result).startswith("Error: Gmail is not configured")
        mock_http_client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_gmail_handler_guard(self, service_account_config) -> None:
        """Verify Gmail handlers refuse to run without a Gmail facade."""
        server = GDriveMCPServer(service_account_config)

        with pytest.raises(ServiceNotConfigured, match="Gmail is not configured"):
            await server._gmail_get_profile({})

    @pytest.mark.asyncio
    async def test_remote_failure(self, server, mock_http_client, make_response) -> None:
        mock_http_client.request.return_value = make_response(
            {"error": {"code": 404, "message": "File not found: x."}}, status_code=404
        )

        result = await server.handle_call("gdrive_get_file", {"fileId": "x"})

        assert result.isError is True
        assert _text(result) == "Error: Failed to get file: File not found: x. (HTTP 404)"

    @pytest.mark.asyncio
    async def test_invalid_number(self, server, mock_http_client) -> None:
        result = await server.handle_call("gdrive_list_files", {"maxResults": "many"})

        assert result.isError is True
        assert "maxResults" in _text(result)

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, server) -> None:
        """Verify programming errors do not escape the handler."""
        server.drive.get_about = AsyncMock(side_effect=KeyError("user"))

        result = await server.handle_call("gdrive_get_about", {})

        assert result.isError is True
        assert _text(result).startswith("Error: ")


@pytest.mark.integration
class TestToolCalls:
    """Verify successful calls end to end."""

    @pytest.mark.asyncio
    async def test_list_files_returns_json(
        self, server, mock_http_client, make_response, recorded_request
    ) -> None:
        mock_http_client.request.return_value = make_response(
            {"files": [{"id": "f1", "name": "a.txt", "mimeType": "text/plain"}]}
        )

        result = await server.handle_call("gdrive_list_files", {"folderId": "folder123"})

        assert result.isError is False
        payload = json.loads(_text(result))
        assert payload == {
            "files": [{"id": "f1", "name": "a.txt", "mimeType": "text/plain"}],
            "totalCount": 1,
        }
        _, url, kwargs = recorded_request(mock_http_client)
        assert url == f"{DRIVE_API_BASE}/files"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_send_message_end_to_end(
        self, server, mock_http_client, make_response, recorded_request
    ) -> None:
        """Verify the exact RFC 2822 text posted to Gmail."""
        mock_http_client.request.return_value = make_response({"id": "sent1", "threadId": "t1"})

        result = await server.handle_call(
            "gmail_send_message", {"to": "a@b.com", "subject": "S", "body": "B"}
        )

        assert json.loads(_text(result)) == {"id": "sent1", "threadId": "t1"}
        method, url, kwargs = recorded_request(mock_http_client)
        assert method == "POST"
        assert url == f"{GMAIL_API_BASE}/users/me/messages/send"
        raw = kwargs["json"]["raw"]
        decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode("utf-8")
        assert decoded.split("\n") == ["To: a@b.com", "Subject: S", "", "B"]

    @pytest.mark.asyncio
    async def test_token_status(self, server) -> None:
        """Verify the status payload uses camelCase keys."""
        result = await server.handle_call("gmail_check_token_status", {})

        payload = json.loads(_text(result))
        assert payload == {
            "hasRefreshToken": True,
            "lastRefresh": None,
            "minutesSinceRefresh": None,
            "maintenanceActive": False,
        }

    @pytest.mark.asyncio
    async def test_search_messages_returns_list(
        self, server, mock_http_client, make_response
    ) -> None:
        mock_http_client.request.return_value = make_response({"resultSizeEstimate": 0})

        result = await server.handle_call("gmail_search_messages", {"query": "is:unread"})

        assert json.loads(_text(result)) == []


@pytest.mark.integration
class TestLifecycle:
    """Verify start/stop behavior."""

    def test_maintenance_requires_oauth(self, service_account_config) -> None:
        server = GDriveMCPServer(service_account_config)

        assert server.start_maintenance() is False

    def test_shutdown_is_idempotent(self, server) -> None:
        """Verify repeated shutdown requests are harmless."""
        server.shutdown()
        server.shutdown()

        assert not server.oauth_provider.maintenance_active
        assert server._shutdown_requested.is_set()

    @pytest.mark.asyncio
    async def test_close_releases_clients(self, server, mock_http_client, make_response) -> None:
        mock_http_client.request.return_value = make_response({})
        mock_http_client.aclose = AsyncMock()
        await server.handle_call("gdrive_get_about", {})
        await server.handle_call("gmail_get_profile", {})

        await server.close()

        assert mock_http_client.aclose.await_count == 2

    @pytest.mark.asyncio
    async def test_run_returns_on_shutdown_while_stdin_is_open(self, server) -> None:
        """Verify a shutdown request ends run() while the stdio loop is still waiting."""
        stdin_closed = asyncio.Event()
        server.serve_stdio = AsyncMock(side_effect=stdin_closed.wait)
        server._install_signal_handlers = lambda: None
        server.close = AsyncMock()
        server.oauth_provider._maintenance._renew = AsyncMock()
        asyncio.get_running_loop().call_later(0.01, server.shutdown)

        stopped_by_signal = await asyncio.wait_for(server.run(), timeout=5)

        assert stopped_by_signal is True
        assert not stdin_closed.is_set()
        server.close.assert_awaited_once()
        assert not server.oauth_provider.maintenance_active
        stdin_closed.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_run_returns_when_stdin_closes(self, service_account_config) -> None:
        server = GDriveMCPServer(service_account_config)
        server.serve_stdio = AsyncMock(return_value=None)
        server._install_signal_handlers = lambda: None
        server.close = AsyncMock()

        assert await server.run() is False
        server.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_propagates_stdio_failure(self, service_account_config) -> None:
        server = GDriveMCPServer(service_account_config)
        server.serve_stdio = AsyncMock(side_effect=RuntimeError("stdio closed"))
        server._install_signal_handlers = lambda: None
        server.close = AsyncMock()

        with pytest.raises(RuntimeError, match="stdio closed"):
            await server.run()
        server.close.assert_awaited_once()
