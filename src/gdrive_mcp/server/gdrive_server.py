"""Google Drive and Gmail MCP server.

Serves the tools declared in :mod:`gdrive_mcp.server.tools` over stdio.
Each call is routed to the Drive or Gmail facade; results are returned as
pretty-printed JSON and every failure becomes an error result, so a bad
call never stops the request loop.
"""

import asyncio
import json
import logging
import signal
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool

from gdrive_mcp.auth.providers import build_providers
from gdrive_mcp.config import ServerConfig
from gdrive_mcp.errors import GDriveMCPError, InvalidArguments, ServiceNotConfigured, UnknownOperation
from gdrive_mcp.server.tools import ALL_TOOLS, GMAIL_PREFIX, required_arguments
from gdrive_mcp.services.drive import DriveService
from gdrive_mcp.services.gmail import GmailService

logger = logging.getLogger(__name__)


def _text_result(text: str, is_error: bool = False) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def _int_arg(arguments: dict[str, Any], name: str, default: int) -> int:
    value = arguments.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidArguments(f"Argument '{name}' must be a number") from e


class GDriveMCPServer:
    """MCP server exposing Google Drive and Gmail tools.

    Drive uses the service account when one is configured and the OAuth
    credentials otherwise. Gmail is only available with OAuth; without it
    the ``gmail_*`` tools stay listed but answer with an error.

    Attributes:
        config: Server configuration.
        server: MCP Server instance.
        oauth_provider: OAuth credential provider, if configured.
        service_provider: Service account credential provider, if configured.
        drive: Drive facade.
        gmail: Gmail facade, None without OAuth credentials.
    """

    def __init__(self, config: ServerConfig) -> None:
        """Build providers and facades.

        Raises:
            ConfigurationError: If no complete credential set is configured.
        """
        self.config = config
        self.oauth_provider, self.service_provider = build_providers(config)

        self.gmail: GmailService | None = None
        if self.oauth_provider is not None:
            self.gmail = GmailService(self.oauth_provider)

        drive_provider = self.service_provider or self.oauth_provider
        self.drive = DriveService(
            drive_provider,  # type: ignore[arg-type]
            default_folder_id=config.default_folder_id,
            max_file_size=config.max_file_size,
        )
        logger.info(
            "Drive authentication: %s",
            "service account" if self.service_provider else "OAuth2",
        )

        self.server = Server(config.server_name, version=config.server_version)
        self._shutdown_requested = asyncio.Event()
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Register MCP tool handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return list of available tools."""
            return list(ALL_TOOLS)

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
            """Handle tool calls."""
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        """Route one tool call and wrap its outcome.

        Returns:
            A result whose text is the JSON payload, or ``Error: <message>``
            with ``isError`` set.
        """
        try:
            result = await self._dispatch_tool(name, arguments or {})
        except GDriveMCPError as e:
            logger.error("Tool %s failed: %s", name, e)
            return _text_result(f"Error: {e}", is_error=True)
        except Exception as e:
            logger.exception("Unexpected error calling tool %s", name)
            return _text_result(f"Error: {str(e) or type(e).__name__}", is_error=True)

        return _text_result(json.dumps(result, indent=2, default=str))

    async def _dispatch_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Dispatch tool call to appropriate handler.

        Raises:
            UnknownOperation: If tool name is not recognized.
            ServiceNotConfigured: For Gmail tools without OAuth credentials.
            InvalidArguments: If a required argument is missing.
        """
        handlers = {
            # Drive
            "gdrive_list_files": self._gdrive_list_files,
            "gdrive_get_file": self._gdrive_get_file,
            "gdrive_download_file": self._gdrive_download_file,
            "gdrive_upload_file": self._gdrive_upload_file,
            "gdrive_update_file": self._gdrive_update_file,
            "gdrive_delete_file": self._gdrive_delete_file,
            "gdrive_copy_file": self._gdrive_copy_file,
            "gdrive_move_file": self._gdrive_move_file,
            "gdrive_create_folder": self._gdrive_create_folder,
            "gdrive_get_folder_info": self._gdrive_get_folder_info,
            "gdrive_share_file": self._gdrive_share_file,
            "gdrive_get_permissions": self._gdrive_get_permissions,
            "gdrive_remove_permission": self._gdrive_remove_permission,
            "gdrive_search": self._gdrive_search,
            "gdrive_get_recent_files": self._gdrive_get_recent_files,
            "gdrive_get_comments": self._gdrive_get_comments,
            "gdrive_add_comment": self._gdrive_add_comment,
            "gdrive_get_revisions": self._gdrive_get_revisions,
            "gdrive_get_about": self._gdrive_get_about,
            "gdrive_empty_trash": self._gdrive_empty_trash,
            # Gmail
            "gmail_list_messages": self._gmail_list_messages,
            "gmail_get_message": self._gmail_get_message,
            "gmail_send_message": self._gmail_send_message,
            "gmail_mark_as_read": self._gmail_mark_as_read,
            "gmail_mark_as_unread": self._gmail_mark_as_unread,
            "gmail_search_messages": self._gmail_search_messages,
            "gmail_get_profile": self._gmail_get_profile,
            "gmail_check_token_status": self._gmail_check_token_status,
            "gmail_refresh_token": self._gmail_refresh_token,
        }

        handler = handlers.get(name)
        if handler is None:
            raise UnknownOperation(name)

        if name.startswith(GMAIL_PREFIX) and self.gmail is None:
            raise ServiceNotConfigured(
                "Gmail",
                "Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN to enable it.",
            )

        missing = [arg for arg in required_arguments(name) if arguments.get(arg) is None]
        if missing:
            raise InvalidArguments(f"Missing required argument(s) for {name}: {', '.join(missing)}")

        return await handler(arguments)

    # =========================================================================
    # Drive handlers
    # =========================================================================

    async def _gdrive_list_files(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.list_files(
            folder_id=arguments.get("folderId"),
            query=arguments.get("query"),
            max_results=_int_arg(arguments, "maxResults", 100),
            include_shared=arguments.get("includeShared", True),
        )
        return result.to_dict()

    async def _gdrive_get_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_file(
            arguments["fileId"], include_content=bool(arguments.get("includeContent", False))
        )
        return result.to_dict()

    async def _gdrive_download_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.download_file(arguments["fileId"], arguments.get("format"))
        return result.to_dict()

    async def _gdrive_upload_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.upload_file(
            name=arguments["name"],
            content=arguments["content"],
            mime_type=arguments.get("mimeType") or "text/plain",
            parent_id=arguments.get("parentId"),
        )
        return result.to_dict()

    async def _gdrive_update_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.update_file(
            arguments["fileId"],
            name=arguments.get("name"),
            content=arguments.get("content"),
            mime_type=arguments.get("mimeType"),
        )
        return result.to_dict()

    async def _gdrive_delete_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.delete_file(
            arguments["fileId"], permanent=bool(arguments.get("permanent", False))
        )
        return result.to_dict()

    async def _gdrive_copy_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.copy_file(
            arguments["fileId"], name=arguments.get("name"), parent_id=arguments.get("parentId")
        )
        return result.to_dict()

    async def _gdrive_move_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.move_file(
            arguments["fileId"],
            arguments["newParentId"],
            remove_from_parents=arguments.get("removeFromParents"),
        )
        return result.to_dict()

    async def _gdrive_create_folder(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.create_folder(arguments["name"], arguments.get("parentId"))
        return result.to_dict()

    async def _gdrive_get_folder_info(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_folder_info(
            arguments["folderId"], include_files=bool(arguments.get("includeFiles", True))
        )
        return result.to_dict()

    async def _gdrive_share_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.share_file(
            arguments["fileId"],
            email=arguments.get("email"),
            role=arguments.get("role") or "reader",
            permission_type=arguments.get("type") or "user",
            send_notification_email=bool(arguments.get("sendNotificationEmail", True)),
        )
        return result.to_dict()

    async def _gdrive_get_permissions(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_permissions(arguments["fileId"])
        return result.to_dict()

    async def _gdrive_remove_permission(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.remove_permission(arguments["fileId"], arguments["permissionId"])
        return result.to_dict()

    async def _gdrive_search(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.search(
            query=arguments.get("query"),
            mime_type=arguments.get("mimeType"),
            modified_time=arguments.get("modifiedTime"),
            owner=arguments.get("owner"),
            max_results=_int_arg(arguments, "maxResults", 100),
        )
        return result.to_dict()

    async def _gdrive_get_recent_files(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_recent_files(
            max_results=_int_arg(arguments, "maxResults", 20),
            days_back=_int_arg(arguments, "daysBack", 7),
        )
        return result.to_dict()

    async def _gdrive_get_comments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_comments(
            arguments["fileId"], include_deleted=bool(arguments.get("includeDeleted", False))
        )
        return result.to_dict()

    async def _gdrive_add_comment(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.add_comment(
            arguments["fileId"], arguments["content"], anchor=arguments.get("anchor")
        )
        return result.to_dict()

    async def _gdrive_get_revisions(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_revisions(arguments["fileId"])
        return result.to_dict()

    async def _gdrive_get_about(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.get_about()
        return result.to_dict()

    async def _gdrive_empty_trash(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self.drive.empty_trash()
        return result.to_dict()

    # =========================================================================
    # Gmail handlers
    # =========================================================================

    @property
    def _mail(self) -> GmailService:
        if self.gmail is None:
            raise ServiceNotConfigured("Gmail")
        return self.gmail

    async def _gmail_list_messages(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.list_messages(
            query=arguments.get("query"), max_results=_int_arg(arguments, "maxResults", 10)
        )
        return result.to_dict()

    async def _gmail_get_message(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.get_message(arguments["messageId"])
        return result.to_dict()

    async def _gmail_send_message(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.send_message(
            to=arguments["to"],
            subject=arguments["subject"],
            body=arguments["body"],
            sender=arguments.get("from"),
        )
        return result.to_dict()

    async def _gmail_mark_as_read(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.mark_as_read(arguments["messageId"])
        return result.to_dict()

    async def _gmail_mark_as_unread(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.mark_as_unread(arguments["messageId"])
        return result.to_dict()

    async def _gmail_search_messages(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        summaries = await self._mail.search_messages(
            arguments["query"], max_results=_int_arg(arguments, "maxResults", 50)
        )
        return [summary.to_dict() for summary in summaries]

    async def _gmail_get_profile(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.get_profile()
        return result.to_dict()

    async def _gmail_check_token_status(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return self._mail.token_status().model_dump(mode="json", by_alias=True)

    async def _gmail_refresh_token(self, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._mail.refresh_token()
        return result.model_dump(mode="json", by_alias=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start_maintenance(self) -> bool:
        """Start background token renewal for the OAuth provider, if any."""
        if self.oauth_provider is None:
            return False
        return self.oauth_provider.start_maintenance()

    def stop_maintenance(self) -> None:
        if self.oauth_provider is not None:
            self.oauth_provider.stop_maintenance()

    def shutdown(self) -> None:
        """Stop token maintenance and ask :meth:`run` to return.

        Installed as the SIGINT/SIGTERM handler. Safe to call repeatedly.
        """
        if self._shutdown_requested.is_set():
            return
        logger.info("Shutting down...")
        self.stop_maintenance()
        self._shutdown_requested.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported by the Windows event loop
                logger.debug("Signal handler for %s not installed", sig.name)

    async def close(self) -> None:
        """Stop maintenance and release HTTP resources."""
        self.stop_maintenance()
        await self.drive.close()
        if self.gmail is not None:
            await self.gmail.close()

    async def serve_stdio(self) -> None:
        """Serve MCP requests until the client closes stdin."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    async def run(self) -> bool:
        """Run the MCP server using stdio transport.

        Returns when the client closes stdin or when :meth:`shutdown` is
        called, whichever happens first. In the second case the stdin reader
        thread is still blocked and the stdio task is left pending; the
        caller has to end the process without waiting for it.

        Returns:
            True if the server was stopped by :meth:`shutdown`.
        """
        self._install_signal_handlers()
        self.start_maintenance()

        logger.info(
            "%s v%s running on stdio",
            self.config.server_name,
            self.config.server_version,
        )
        serve_task = asyncio.create_task(self.serve_stdio())
        shutdown_task = asyncio.create_task(self._shutdown_requested.wait())
        try:
            done, _ = await asyncio.wait(
                {serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            shutdown_task.cancel()
            await self.close()

        if serve_task in done:
            serve_task.result()
            return False
        return True
