"""MCP server implementation for Google Drive and Gmail.

Drive Tools (20):
- List, search and inspect files and folders
- Upload, update, copy, move and delete files
- Download files, exporting Google Docs/Sheets/Slides
- Sharing and permission management
- Comments, revisions, account info and trash

Gmail Tools (9):
- List, get and search messages
- Send messages and toggle read state
- Profile, token status and manual token refresh

Transport: Stdio
Authentication: OAuth 2.0 refresh token and/or service account
"""

from gdrive_mcp.config import ServerConfig, load_config
from gdrive_mcp.server.gdrive_server import GDriveMCPServer


def create_server(config: ServerConfig | None = None) -> GDriveMCPServer:
    """Create a server from the given or environment configuration.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return GDriveMCPServer(config or load_config())


__all__ = ["GDriveMCPServer", "create_server"]
