"""Google Drive operations for the MCP server.

Drive works with either credential variant. Listing and search build a
Drive query expression from optional filters; each present filter adds one
clause and all clauses are joined with ``and``.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from gdrive_mcp.auth.providers import CredentialProvider
from gdrive_mcp.config import DEFAULT_MAX_FILE_SIZE
from gdrive_mcp.errors import ConfigurationError, InvalidArguments
from gdrive_mcp.logging_config import log_drive
from gdrive_mcp.services.http import (
    DRIVE_API_BASE,
    DRIVE_UPLOAD_BASE,
    GoogleApiClient,
    remote_operation,
)
from gdrive_mcp.services.models import (
    AboutInfo,
    Comment,
    CommentList,
    DownloadedFile,
    DriveFile,
    FileList,
    FolderInfo,
    OperationStatus,
    Permission,
    PermissionList,
    RevisionList,
    SearchResult,
)

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_APPS_PREFIX = "application/vnd.google-apps."
MAX_PAGE_SIZE = 1000

# Export formats used when downloading Google Workspace files without an explicit format
DEFAULT_EXPORT_FORMATS = {
    "application/vnd.google-apps.document": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
    "application/vnd.google-apps.spreadsheet": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    ),
    "application/vnd.google-apps.presentation": (
        "application/vnd.openxmlformats-officedocument.presentationml.presentation"
    ),
    "application/vnd.google-apps.drawing": "image/png",
    "application/vnd.google-apps.script": "application/vnd.google-apps.script+json",
}
FALLBACK_EXPORT_FORMAT = "application/pdf"

TEXT_MIME_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
}

PERMISSION_ROLES = ("owner", "organizer", "fileOrganizer", "writer", "commenter", "reader")
PERMISSION_TYPES = ("user", "group", "domain", "anyone")

LIST_FIELDS = (
    "nextPageToken, files(id, name, mimeType, size, modifiedTime, createdTime, "
    "parents, owners, shared, webViewLink, webContentLink)"
)
SEARCH_FIELDS = (
    "nextPageToken, files(id, name, mimeType, size, modifiedTime, createdTime, "
    "owners, webViewLink)"
)
FILE_FIELDS = (
    "id, name, mimeType, size, modifiedTime, createdTime, parents, owners, shared, "
    "webViewLink, webContentLink, description, properties"
)


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _text_clause(query: str) -> str:
    escaped = escape_query_value(query)
    return f"(name contains '{escaped}' or fullText contains '{escaped}')"


def build_list_query(
    folder_id: str | None = None,
    query: str | None = None,
    include_shared: bool = True,
) -> str:
    """Build the Drive ``q`` expression for listing files.

    Args:
        folder_id: Restrict to direct children of this folder.
        query: Substring matched against name or full text.
        include_shared: When False, only files owned by the user.
    """
    clauses = ["trashed=false"]
    if folder_id:
        clauses.append(f"'{escape_query_value(folder_id)}' in parents")
    if query:
        clauses.append(_text_clause(query))
    if not include_shared:
        clauses.append("'me' in owners")
    return " and ".join(clauses)


def build_search_query(
    query: str | None = None,
    mime_type: str | None = None,
    modified_time: str | None = None,
    owner: str | None = None,
) -> str:
    """Build the Drive ``q`` expression for an advanced search."""
    clauses = ["trashed=false"]
    if query:
        clauses.append(_text_clause(query))
    if mime_type:
        clauses.append(f"mimeType='{escape_query_value(mime_type)}'")
    if modified_time:
        clauses.append(f"modifiedTime > '{escape_query_value(modified_time)}'")
    if owner:
        clauses.append(f"'{escape_query_value(owner)}' in owners")
    return " and ".join(clauses)


def is_google_workspace_file(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.startswith(GOOGLE_APPS_PREFIX)  # type: ignore[union-attr]


def default_export_format(mime_type: str) -> str:
    """Export MIME type used for a Workspace file when none is requested."""
    return DEFAULT_EXPORT_FORMATS.get(mime_type, FALLBACK_EXPORT_FORMAT)


def is_text_file(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    return mime_type.startswith("text/") or mime_type in TEXT_MIME_TYPES


def _decode_content(data: bytes) -> tuple[str, str]:
    try:
        return data.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(data).decode("ascii"), "base64"


def _rfc3339(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DriveService:
    """File Operations Facade.

    Attributes:
        provider: Credential provider used for every call.
        api: Authenticated HTTP client.
        default_folder_id: Parent used for uploads and new folders when
            none is given.
        max_file_size: Largest upload or download in bytes.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        default_folder_id: str | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        """Initialize the Drive facade.

        Raises:
            ConfigurationError: If no credential provider is given.
        """
        if provider is None:
            raise ConfigurationError(
                "Google Drive requires credentials. Set GOOGLE_SERVICE_ACCOUNT_EMAIL and "
                "GOOGLE_PRIVATE_KEY, or GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and "
                "GOOGLE_REFRESH_TOKEN."
            )
        self.provider = provider
        self.api = GoogleApiClient(provider)
        self.default_folder_id = default_folder_id
        self.max_file_size = max_file_size

    async def close(self) -> None:
        await self.api.close()

    def _check_size(self, size: int, what: str) -> None:
        if size > self.max_file_size:
            raise InvalidArguments(
                f"{what} is {size} bytes, which exceeds the maximum file size "
                f"of {self.max_file_size} bytes"
            )

    # =========================================================================
    # Listing and search
    # =========================================================================

    async def _list(
        self, q: str, max_results: int, fields: str, order_by: str | None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": q,
            "pageSize": min(max_results, MAX_PAGE_SIZE),
            "fields": fields,
        }
        if order_by:
            params["orderBy"] = order_by
        log_drive(logger, "Listing files: %s", q)
        return await self.api.request("GET", f"{DRIVE_API_BASE}/files", params=params)

    async def _list_files(
        self,
        folder_id: str | None = None,
        query: str | None = None,
        max_results: int = 100,
        include_shared: bool = True,
    ) -> FileList:
        q = build_list_query(folder_id, query, include_shared)
        # Drive rejects orderBy on fullText queries
        order_by = None if query else "modifiedTime desc"
        response = await self._list(q, max_results, LIST_FIELDS, order_by)

        files = [DriveFile.model_validate(item) for item in response.get("files") or []]
        return FileList(
            files=files,
            next_page_token=response.get("nextPageToken"),
            total_count=len(files),
        )

    @remote_operation("list files")
    async def list_files(
        self,
        folder_id: str | None = None,
        query: str | None = None,
        max_results: int = 100,
        include_shared: bool = True,
    ) -> FileList:
        """List non-trashed files, optionally within a folder or matching text.

        Args:
            folder_id: Folder whose children to list.
            query: Text matched against file name or content.
            max_results: Page size, capped at 1000.
            include_shared: Include files shared with the user.
        """
        return await self._list_files(folder_id, query, max_results, include_shared)

    @remote_operation("search files")
    async def search(
        self,
        query: str | None = None,
        mime_type: str | None = None,
        modified_time: str | None = None,
        owner: str | None = None,
        max_results: int = 100,
    ) -> SearchResult:
        """Advanced search over non-trashed files.

        Args:
            query: Text matched against file name or content.
            mime_type: Exact MIME type.
            modified_time: RFC 3339 timestamp; only files modified after it.
            owner: Owner email address.
            max_results: Page size, capped at 1000.
        """
        q = build_search_query(query, mime_type, modified_time, owner)
        response = await self._list(q, max_results, SEARCH_FIELDS, "relevance")

        files = [DriveFile.model_validate(item) for item in response.get("files") or []]
        return SearchResult(files=files, query=q, total_count=len(files))

    async def get_recent_files(self, max_results: int = 20, days_back: int = 7) -> SearchResult:
        """Files modified within the last ``days_back`` days."""
        since = datetime.now(timezone.utc) - timedelta(days=days_back)
        return await self.search(modified_time=_rfc3339(since), max_results=max_results)

    # =========================================================================
    # Single files
    # =========================================================================

    @remote_operation("get file")
    async def get_file(self, file_id: str, include_content: bool = False) -> DriveFile:
        """Get file metadata, and the body for text files when requested."""
        url = f"{DRIVE_API_BASE}/files/{file_id}"
        metadata = await self.api.request("GET", url, params={"fields": FILE_FIELDS})
        drive_file = DriveFile.model_validate(metadata)

        if include_content and is_text_file(drive_file.mime_type):
            try:
                response = await self.api.raw_request("GET", url, params={"alt": "media"})
                drive_file.content = response.text
            except httpx.HTTPError as e:
                logger.warning("Failed to retrieve content of %s: %s", file_id, e)
                drive_file.content_error = "Failed to retrieve file content"

        return drive_file

    @remote_operation("download file")
    async def download_file(self, file_id: str, export_format: str | None = None) -> DownloadedFile:
        """Download file bytes, exporting Google Workspace files.

        Args:
            file_id: File to download.
            export_format: Export MIME type for Workspace files. Defaults per
                source type, falling back to PDF.
        """
        url = f"{DRIVE_API_BASE}/files/{file_id}"
        info = await self.api.request("GET", url, params={"fields": "mimeType, name, size"})
        mime_type = info.get("mimeType")

        if info.get("size"):
            self._check_size(int(info["size"]), "File")

        target_format: str | None = None
        if is_google_workspace_file(mime_type):
            target_format = export_format or default_export_format(mime_type)
            log_drive(logger, "Exporting %s as %s", file_id, target_format)
            response = await self.api.raw_request(
                "GET", f"{url}/export", params={"mimeType": target_format}, timeout=60.0
            )
        else:
            response = await self.api.raw_request(
                "GET", url, params={"alt": "media"}, timeout=60.0
            )

        data = response.content
        self._check_size(len(data), "File")
        content, encoding = _decode_content(data)

        return DownloadedFile(
            file_name=info.get("name"),
            mime_type=mime_type,
            export_mime_type=target_format,
            content=content,
            encoding=encoding,
            size=len(data),
        )

    async def _multipart_upload(
        self,
        method: str,
        url: str,
        metadata: dict[str, Any],
        content: str,
        mime_type: str,
        fields: str,
    ) -> dict[str, Any]:
        self._check_size(len(content.encode("utf-8")), "Content")

        boundary = "gdrive_mcp_boundary"
        body_parts = [
            f"--{boundary}",
            "Content-Type: application/json; charset=UTF-8",
            "",
            json.dumps(metadata),
            f"--{boundary}",
            f"Content-Type: {mime_type}",
            "",
            content,
            f"--{boundary}--",
        ]
        body = "\r\n".join(body_parts)

        response = await self.api.raw_request(
            method,
            url,
            params={"uploadType": "multipart", "fields": fields},
            content=body.encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            timeout=60.0,
        )
        result: dict[str, Any] = response.json()
        return result

    @remote_operation("upload file")
    async def upload_file(
        self,
        name: str,
        content: str,
        mime_type: str = "text/plain",
        parent_id: str | None = None,
    ) -> DriveFile:
        """Upload a text file.

        Args:
            name: File name.
            content: File content.
            mime_type: MIME type of the content.
            parent_id: Parent folder; defaults to the configured default folder.
        """
        metadata: dict[str, Any] = {"name": name, "mimeType": mime_type}
        parent = parent_id or self.default_folder_id
        if parent:
            metadata["parents"] = [parent]

        result = await self._multipart_upload(
            "POST",
            f"{DRIVE_UPLOAD_BASE}/files",
            metadata,
            content,
            mime_type,
            "id, name, mimeType, size, webViewLink",
        )
        log_drive(logger, "Uploaded file %s (%s)", result.get("name"), result.get("id"))
        return DriveFile.model_validate(result)

    @remote_operation("update file")
    async def update_file(
        self,
        file_id: str,
        name: str | None = None,
        content: str | None = None,
        mime_type: str | None = None,
    ) -> DriveFile:
        """Rename a file and/or replace its content."""
        metadata: dict[str, Any] = {}
        if name:
            metadata["name"] = name
        fields = "id, name, mimeType, size, modifiedTime, webViewLink"

        if content is not None:
            result = await self._multipart_upload(
                "PATCH",
                f"{DRIVE_UPLOAD_BASE}/files/{file_id}",
                metadata,
                content,
                mime_type or "text/plain",
                fields,
            )
        else:
            result = await self.api.request(
                "PATCH",
                f"{DRIVE_API_BASE}/files/{file_id}",
                params={"fields": fields},
                json_data=metadata,
            )
        return DriveFile.model_validate(result)

    @remote_operation("delete file")
    async def delete_file(self, file_id: str, permanent: bool = False) -> OperationStatus:
        """Move a file to the trash, or delete it permanently.

        Args:
            file_id: File to delete.
            permanent: Skip the trash and delete irreversibly.
        """
        url = f"{DRIVE_API_BASE}/files/{file_id}"
        if permanent:
            await self.api.request("DELETE", url)
            log_drive(logger, "Permanently deleted %s", file_id)
            return OperationStatus(success=True, message="File permanently deleted")

        await self.api.request("PATCH", url, json_data={"trashed": True})
        log_drive(logger, "Moved %s to trash", file_id)
        return OperationStatus(success=True, message="File moved to trash")

    @remote_operation("copy file")
    async def copy_file(
        self, file_id: str, name: str | None = None, parent_id: str | None = None
    ) -> DriveFile:
        copy_body: dict[str, Any] = {}
        if name:
            copy_body["name"] = name
        if parent_id:
            copy_body["parents"] = [parent_id]

        response = await self.api.request(
            "POST",
            f"{DRIVE_API_BASE}/files/{file_id}/copy",
            params={"fields": "id, name, mimeType, parents, webViewLink"},
            json_data=copy_body,
        )
        return DriveFile.model_validate(response)

    @remote_operation("move file")
    async def move_file(
        self,
        file_id: str,
        new_parent_id: str,
        remove_from_parents: str | None = None,
    ) -> DriveFile:
        """Move a file to another folder.

        When ``remove_from_parents`` is not given, the file's current parents
        are looked up and all of them are removed.

        Args:
            file_id: File to move.
            new_parent_id: Destination folder.
            remove_from_parents: Comma-separated parent IDs to detach.
        """
        url = f"{DRIVE_API_BASE}/files/{file_id}"

        remove_parents = remove_from_parents
        if not remove_parents:
            file_info = await self.api.request("GET", url, params={"fields": "parents"})
            remove_parents = ",".join(file_info.get("parents") or [])

        params: dict[str, Any] = {
            "addParents": new_parent_id,
            "fields": "id, name, parents",
        }
        if remove_parents:
            params["removeParents"] = remove_parents

        response = await self.api.request("PATCH", url, params=params, json_data={})
        return DriveFile.model_validate(response)

    # =========================================================================
    # Folders
    # =========================================================================

    @remote_operation("create folder")
    async def create_folder(self, name: str, parent_id: str | None = None) -> DriveFile:
        metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        parent = parent_id or self.default_folder_id
        if parent:
            metadata["parents"] = [parent]

        response = await self.api.request(
            "POST",
            f"{DRIVE_API_BASE}/files",
            params={"fields": "id, name, mimeType, parents, webViewLink"},
            json_data=metadata,
        )
        log_drive(logger, "Created folder %s (%s)", response.get("name"), response.get("id"))
        return DriveFile.model_validate(response)

    @remote_operation("get folder info")
    async def get_folder_info(self, folder_id: str, include_files: bool = True) -> FolderInfo:
        """Folder metadata, plus its children when requested."""
        response = await self.api.request(
            "GET",
            f"{DRIVE_API_BASE}/files/{folder_id}",
            params={
                "fields": "id, name, mimeType, modifiedTime, createdTime, parents, shared, webViewLink"
            },
        )
        folder = FolderInfo.model_validate(response)

        if include_files:
            listing = await self._list_files(folder_id=folder_id)
            folder.files = listing.files
            folder.file_count = listing.total_count

        return folder

    # =========================================================================
    # Sharing
    # =========================================================================

    @remote_operation("share file")
    async def share_file(
        self,
        file_id: str,
        email: str | None = None,
        role: str = "reader",
        permission_type: str = "user",
        send_notification_email: bool = True,
    ) -> Permission:
        """Grant a permission on a file.

        Args:
            file_id: File to share.
            email: Grantee email; used only for ``user`` permissions.
            role: One of :data:`PERMISSION_ROLES`.
            permission_type: One of :data:`PERMISSION_TYPES`.
            send_notification_email: Notify the grantee by email.

        Raises:
            InvalidArguments: If role or type is not recognized.
        """
        if role not in PERMISSION_ROLES:
            raise InvalidArguments(
                f"Invalid role '{role}'. Expected one of: {', '.join(PERMISSION_ROLES)}"
            )
        if permission_type not in PERMISSION_TYPES:
            raise InvalidArguments(
                f"Invalid type '{permission_type}'. Expected one of: {', '.join(PERMISSION_TYPES)}"
            )

        permission: dict[str, Any] = {"role": role, "type": permission_type}
        if email and permission_type == "user":
            permission["emailAddress"] = email

        response = await self.api.request(
            "POST",
            f"{DRIVE_API_BASE}/files/{file_id}/permissions",
            params={
                "sendNotificationEmail": str(send_notification_email).lower(),
                "fields": "id, role, type, emailAddress, displayName",
            },
            json_data=permission,
        )
        return Permission.model_validate(response)

    @remote_operation("get permissions")
    async def get_permissions(self, file_id: str) -> PermissionList:
        response = await self.api.request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}/permissions",
            params={
                "fields": "permissions(id, role, type, emailAddress, displayName, expirationTime)"
            },
        )
        return PermissionList.model_validate({"permissions": response.get("permissions") or []})

    @remote_operation("remove permission")
    async def remove_permission(self, file_id: str, permission_id: str) -> OperationStatus:
        await self.api.request(
            "DELETE", f"{DRIVE_API_BASE}/files/{file_id}/permissions/{permission_id}"
        )
        return OperationStatus(success=True, message="Permission removed")

    # =========================================================================
    # Comments and revisions
    # =========================================================================

    @remote_operation("get comments")
    async def get_comments(self, file_id: str, include_deleted: bool = False) -> CommentList:
        response = await self.api.request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}/comments",
            params={
                "includeDeleted": str(include_deleted).lower(),
                "fields": "comments(id, content, createdTime, modifiedTime, author, replies)",
            },
        )
        return CommentList.model_validate({"comments": response.get("comments") or []})

    @remote_operation("add comment")
    async def add_comment(self, file_id: str, content: str, anchor: str | None = None) -> Comment:
        comment: dict[str, Any] = {"content": content}
        if anchor:
            comment["anchor"] = anchor

        response = await self.api.request(
            "POST",
            f"{DRIVE_API_BASE}/files/{file_id}/comments",
            params={"fields": "id, content, createdTime, author"},
            json_data=comment,
        )
        return Comment.model_validate(response)

    @remote_operation("get revisions")
    async def get_revisions(self, file_id: str) -> RevisionList:
        response = await self.api.request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}/revisions",
            params={"fields": "revisions(id, modifiedTime, size, originalFilename, mimeType)"},
        )
        return RevisionList.model_validate({"revisions": response.get("revisions") or []})

    # =========================================================================
    # Account
    # =========================================================================

    @remote_operation("get account info")
    async def get_about(self) -> AboutInfo:
        response = await self.api.request(
            "GET",
            f"{DRIVE_API_BASE}/about",
            params={
                "fields": "user, storageQuota, importFormats, exportFormats, "
                "maxImportSizes, maxUploadSize"
            },
        )
        return AboutInfo.model_validate(response)

    @remote_operation("empty trash")
    async def empty_trash(self) -> OperationStatus:
        await self.api.request("DELETE", f"{DRIVE_API_BASE}/files/trash")
        log_drive(logger, "Trash emptied")
        return OperationStatus(success=True, message="Trash emptied successfully")
