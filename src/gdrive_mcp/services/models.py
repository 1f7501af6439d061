"""Result structures for Drive and Gmail operations.

Google API responses are untyped JSON documents. Each operation projects
the fields it actually uses into one of these models as soon as the
response arrives; unknown fields are dropped. Models serialize back to the
API's camelCase names via :meth:`ApiModel.to_dict`.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for projections of Google API payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with API field names, omitting unset values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Drive
# =============================================================================


class DriveUser(ApiModel):
    display_name: str | None = None
    email_address: str | None = None
    photo_link: str | None = None


class DriveFile(ApiModel):
    """File or folder metadata."""

    id: str | None = None
    name: str | None = None
    mime_type: str | None = None
    size: str | None = None
    modified_time: str | None = None
    created_time: str | None = None
    parents: list[str] | None = None
    owners: list[DriveUser] | None = None
    shared: bool | None = None
    trashed: bool | None = None
    web_view_link: str | None = None
    web_content_link: str | None = None
    description: str | None = None
    properties: dict[str, str] | None = None
    content: str | None = None
    content_error: str | None = None


class FileList(ApiModel):
    files: list[DriveFile] = Field(default_factory=list)
    next_page_token: str | None = None
    total_count: int = 0


class SearchResult(ApiModel):
    files: list[DriveFile] = Field(default_factory=list)
    query: str
    total_count: int = 0


class FolderInfo(DriveFile):
    files: list[DriveFile] | None = None
    file_count: int | None = None


class DownloadedFile(ApiModel):
    """Content of a downloaded or exported file.

    ``encoding`` is ``"base64"`` when the bytes were not valid UTF-8.
    """

    file_name: str | None = None
    mime_type: str | None = None
    export_mime_type: str | None = None
    content: str
    encoding: str = "utf-8"
    size: int = 0


class Permission(ApiModel):
    id: str | None = None
    role: str | None = None
    type: str | None = None
    email_address: str | None = None
    display_name: str | None = None
    domain: str | None = None
    expiration_time: str | None = None


class PermissionList(ApiModel):
    permissions: list[Permission] = Field(default_factory=list)


class Comment(ApiModel):
    id: str | None = None
    content: str | None = None
    anchor: str | None = None
    created_time: str | None = None
    modified_time: str | None = None
    author: DriveUser | None = None
    deleted: bool | None = None
    resolved: bool | None = None
    replies: list[dict[str, Any]] | None = None


class CommentList(ApiModel):
    comments: list[Comment] = Field(default_factory=list)


class Revision(ApiModel):
    id: str | None = None
    modified_time: str | None = None
    size: str | None = None
    original_filename: str | None = None
    mime_type: str | None = None


class RevisionList(ApiModel):
    revisions: list[Revision] = Field(default_factory=list)


class AboutInfo(ApiModel):
    """Drive account and quota information."""

    user: DriveUser | None = None
    storage_quota: dict[str, str] | None = None
    import_formats: dict[str, list[str]] | None = None
    export_formats: dict[str, list[str]] | None = None
    max_import_sizes: dict[str, str] | None = None
    max_upload_size: str | None = None


class OperationStatus(ApiModel):
    success: bool
    message: str


# =============================================================================
# Gmail
# =============================================================================


class MessageRef(ApiModel):
    id: str
    thread_id: str | None = None


class MessageList(ApiModel):
    messages: list[MessageRef] = Field(default_factory=list)
    next_page_token: str | None = None
    result_size_estimate: int | None = None


class Message(ApiModel):
    """A full Gmail message; ``payload`` is kept as the raw MIME tree."""

    id: str | None = None
    thread_id: str | None = None
    label_ids: list[str] | None = None
    snippet: str | None = None
    history_id: str | None = None
    internal_date: str | None = None
    size_estimate: int | None = None
    payload: dict[str, Any] | None = None


class MessageSummary(ApiModel):
    """Search result entry with decoded headers and plain-text body."""

    id: str | None = None
    thread_id: str | None = None
    snippet: str | None = None
    subject: str = ""
    sender: str = Field(default="", alias="from")
    to: str = ""
    date: str = ""
    body: str = ""


class SentMessage(ApiModel):
    id: str | None = None
    thread_id: str | None = None
    label_ids: list[str] | None = None


class Profile(ApiModel):
    email_address: str | None = None
    messages_total: int | None = None
    threads_total: int | None = None
    history_id: str | None = None
