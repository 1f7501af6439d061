"""Google Drive and Gmail MCP Server.

Exposes Drive file operations and Gmail message operations as MCP tools
over stdio, authenticating with an OAuth refresh token, a service account,
or both.
"""

from gdrive_mcp.__version__ import __version__

__all__ = ["__version__"]
