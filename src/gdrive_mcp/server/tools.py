"""MCP tool declarations.

Argument names are camelCase, matching the Google API field names they map
to. The ``required`` list of each schema is also what the server checks
before dispatching a call.
"""

from mcp.types import Tool

from gdrive_mcp.services.drive import PERMISSION_ROLES, PERMISSION_TYPES

GMAIL_PREFIX = "gmail_"


def _schema(properties: dict, required: list[str] | None = None) -> dict:
    return {"type": "object", "properties": properties, "required": required or []}


_FILE_ID = {"type": "string", "description": "ID of the file"}
_MESSAGE_ID = {"type": "string", "description": "ID of the message"}


DRIVE_TOOLS = [
    Tool(
        name="gdrive_list_files",
        description="List files and folders in Google Drive",
        inputSchema=_schema(
            {
                "folderId": {
                    "type": "string",
                    "description": "ID of the folder to list files from (optional)",
                },
                "query": {
                    "type": "string",
                    "description": "Text matched against file names and content",
                },
                "maxResults": {
                    "type": "number",
                    "description": "Maximum number of files to return (default: 100)",
                    "default": 100,
                },
                "includeShared": {
                    "type": "boolean",
                    "description": "Include files shared with you (default: true)",
                    "default": True,
                },
            }
        ),
    ),
    Tool(
        name="gdrive_get_file",
        description="Get metadata for a file, optionally including its text content",
        inputSchema=_schema(
            {
                "fileId": _FILE_ID,
                "includeContent": {
                    "type": "boolean",
                    "description": "Include file content for text files (default: false)",
                    "default": False,
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_download_file",
        description=(
            "Download a file. Google Docs, Sheets and Slides are exported "
            "(DOCX, XLSX and PPTX by default)"
        ),
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to download"},
                "format": {
                    "type": "string",
                    "description": "Export MIME type for Google Workspace files (optional)",
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_upload_file",
        description="Upload a new text file to Google Drive",
        inputSchema=_schema(
            {
                "name": {"type": "string", "description": "Name of the file"},
                "content": {"type": "string", "description": "File content"},
                "mimeType": {
                    "type": "string",
                    "description": "MIME type of the file (default: text/plain)",
                    "default": "text/plain",
                },
                "parentId": {
                    "type": "string",
                    "description": "ID of the parent folder (optional)",
                },
            },
            ["name", "content"],
        ),
    ),
    Tool(
        name="gdrive_update_file",
        description="Rename a file and/or replace its content",
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to update"},
                "name": {"type": "string", "description": "New file name (optional)"},
                "content": {"type": "string", "description": "New file content (optional)"},
                "mimeType": {
                    "type": "string",
                    "description": "MIME type of the new content (optional)",
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_delete_file",
        description="Move a file to the trash, or delete it permanently",
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to delete"},
                "permanent": {
                    "type": "boolean",
                    "description": "Delete permanently instead of trashing (default: false)",
                    "default": False,
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_copy_file",
        description="Create a copy of a file",
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to copy"},
                "name": {"type": "string", "description": "Name of the copy (optional)"},
                "parentId": {
                    "type": "string",
                    "description": "Folder to place the copy in (optional)",
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_move_file",
        description="Move a file to a different folder",
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to move"},
                "newParentId": {"type": "string", "description": "ID of the destination folder"},
                "removeFromParents": {
                    "type": "string",
                    "description": (
                        "Comma-separated parent IDs to remove (optional, "
                        "defaults to all current parents)"
                    ),
                },
            },
            ["fileId", "newParentId"],
        ),
    ),
    Tool(
        name="gdrive_create_folder",
        description="Create a new folder",
        inputSchema=_schema(
            {
                "name": {"type": "string", "description": "Name of the folder"},
                "parentId": {
                    "type": "string",
                    "description": "ID of the parent folder (optional)",
                },
            },
            ["name"],
        ),
    ),
    Tool(
        name="gdrive_get_folder_info",
        description="Get folder metadata and, optionally, the files it contains",
        inputSchema=_schema(
            {
                "folderId": {"type": "string", "description": "ID of the folder"},
                "includeFiles": {
                    "type": "boolean",
                    "description": "Include the files in the folder (default: true)",
                    "default": True,
                },
            },
            ["folderId"],
        ),
    ),
    Tool(
        name="gdrive_share_file",
        description="Share a file with a user, group, domain or anyone",
        inputSchema=_schema(
            {
                "fileId": {"type": "string", "description": "ID of the file to share"},
                "email": {
                    "type": "string",
                    "description": "Email address to share with (for type 'user')",
                },
                "role": {
                    "type": "string",
                    "enum": list(PERMISSION_ROLES),
                    "description": "Permission role (default: reader)",
                    "default": "reader",
                },
                "type": {
                    "type": "string",
                    "enum": list(PERMISSION_TYPES),
                    "description": "Grantee type (default: user)",
                    "default": "user",
                },
                "sendNotificationEmail": {
                    "type": "boolean",
                    "description": "Send a notification email (default: true)",
                    "default": True,
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_get_permissions",
        description="List the permissions of a file",
        inputSchema=_schema({"fileId": _FILE_ID}, ["fileId"]),
    ),
    Tool(
        name="gdrive_remove_permission",
        description="Remove a permission from a file",
        inputSchema=_schema(
            {
                "fileId": _FILE_ID,
                "permissionId": {
                    "type": "string",
                    "description": "ID of the permission to remove",
                },
            },
            ["fileId", "permissionId"],
        ),
    ),
    Tool(
        name="gdrive_search",
        description="Search files by text, MIME type, modification time and owner",
        inputSchema=_schema(
            {
                "query": {
                    "type": "string",
                    "description": "Text matched against file names and content",
                },
                "mimeType": {"type": "string", "description": "Filter by MIME type"},
                "modifiedTime": {
                    "type": "string",
                    "description": "Only files modified after this RFC 3339 timestamp",
                },
                "owner": {"type": "string", "description": "Filter by owner email"},
                "maxResults": {
                    "type": "number",
                    "description": "Maximum number of results (default: 100)",
                    "default": 100,
                },
            }
        ),
    ),
    Tool(
        name="gdrive_get_recent_files",
        description="Get recently modified files",
        inputSchema=_schema(
            {
                "maxResults": {
                    "type": "number",
                    "description": "Maximum number of files (default: 20)",
                    "default": 20,
                },
                "daysBack": {
                    "type": "number",
                    "description": "How many days back to look (default: 7)",
                    "default": 7,
                },
            }
        ),
    ),
    Tool(
        name="gdrive_get_comments",
        description="List the comments on a file",
        inputSchema=_schema(
            {
                "fileId": _FILE_ID,
                "includeDeleted": {
                    "type": "boolean",
                    "description": "Include deleted comments (default: false)",
                    "default": False,
                },
            },
            ["fileId"],
        ),
    ),
    Tool(
        name="gdrive_add_comment",
        description="Add a comment to a file",
        inputSchema=_schema(
            {
                "fileId": _FILE_ID,
                "content": {"type": "string", "description": "Comment text"},
                "anchor": {
                    "type": "string",
                    "description": "Region of the document the comment refers to (optional)",
                },
            },
            ["fileId", "content"],
        ),
    ),
    Tool(
        name="gdrive_get_revisions",
        description="List the revisions of a file",
        inputSchema=_schema({"fileId": _FILE_ID}, ["fileId"]),
    ),
    Tool(
        name="gdrive_get_about",
        description="Get Drive account information and storage quota",
        inputSchema=_schema({}),
    ),
    Tool(
        name="gdrive_empty_trash",
        description="Permanently delete all files in the trash",
        inputSchema=_schema({}),
    ),
]


GMAIL_TOOLS = [
    Tool(
        name="gmail_list_messages",
        description="List Gmail messages, optionally filtered by a search query",
        inputSchema=_schema(
            {
                "query": {
                    "type": "string",
                    "description": "Gmail search query (e.g. 'is:unread', 'from:someone@example.com')",
                },
                "maxResults": {
                    "type": "number",
                    "description": "Maximum number of messages (default: 10)",
                    "default": 10,
                },
            }
        ),
    ),
    Tool(
        name="gmail_get_message",
        description="Get the full content of a Gmail message",
        inputSchema=_schema({"messageId": _MESSAGE_ID}, ["messageId"]),
    ),
    Tool(
        name="gmail_send_message",
        description="Send a plain-text email",
        inputSchema=_schema(
            {
                "to": {"type": "string", "description": "Recipient email address"},
                "subject": {"type": "string", "description": "Email subject"},
                "body": {"type": "string", "description": "Email body"},
                "from": {"type": "string", "description": "Sender address (optional)"},
            },
            ["to", "subject", "body"],
        ),
    ),
    Tool(
        name="gmail_mark_as_read",
        description="Mark a message as read",
        inputSchema=_schema({"messageId": _MESSAGE_ID}, ["messageId"]),
    ),
    Tool(
        name="gmail_mark_as_unread",
        description="Mark a message as unread",
        inputSchema=_schema({"messageId": _MESSAGE_ID}, ["messageId"]),
    ),
    Tool(
        name="gmail_search_messages",
        description="Search messages and return subject, sender, date and body text",
        inputSchema=_schema(
            {
                "query": {"type": "string", "description": "Gmail search query"},
                "maxResults": {
                    "type": "number",
                    "description": "Maximum number of messages (default: 50)",
                    "default": 50,
                },
            },
            ["query"],
        ),
    ),
    Tool(
        name="gmail_get_profile",
        description="Get the Gmail profile of the authenticated user",
        inputSchema=_schema({}),
    ),
    Tool(
        name="gmail_check_token_status",
        description="Report the health of the Gmail OAuth token",
        inputSchema=_schema({}),
    ),
    Tool(
        name="gmail_refresh_token",
        description="Force a Gmail OAuth token refresh",
        inputSchema=_schema({}),
    ),
]


ALL_TOOLS = DRIVE_TOOLS + GMAIL_TOOLS
TOOLS_BY_NAME = {tool.name: tool for tool in ALL_TOOLS}


def required_arguments(name: str) -> list[str]:
    """Names of the required arguments of a tool, empty if unknown."""
    tool = TOOLS_BY_NAME.get(name)
    if tool is None:
        return []
    return list(tool.inputSchema.get("required") or [])
