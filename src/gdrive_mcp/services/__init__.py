"""Google Drive and Gmail API facades."""

from gdrive_mcp.services.drive import DriveService
from gdrive_mcp.services.gmail import GmailService
from gdrive_mcp.services.http import GoogleApiClient, remote_operation

__all__ = ["DriveService", "GmailService", "GoogleApiClient", "remote_operation"]
