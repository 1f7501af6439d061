"""Gmail operations for the MCP server.

Gmail needs an OAuth2 user credential: service accounts cannot read a
personal mailbox. The provider's refresh token is kept alive by its
maintenance timer, which the server starts alongside the stdio loop.
"""

import asyncio
import base64
import logging
from typing import Any

from gdrive_mcp.auth.models import AuthKind, RefreshResult, TokenHealthSnapshot
from gdrive_mcp.auth.providers import OAuthCredentialProvider
from gdrive_mcp.errors import ConfigurationError
from gdrive_mcp.logging_config import log_gmail
from gdrive_mcp.services.http import GMAIL_API_BASE, GoogleApiClient, remote_operation
from gdrive_mcp.services.models import (
    Message,
    MessageList,
    MessageSummary,
    Profile,
    SentMessage,
)

logger = logging.getLogger(__name__)

USER_ID = "me"


def _decode_body(data: str) -> str:
    # Gmail uses unpadded base64url
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_text_from_message(message: dict[str, Any] | None) -> str:
    """Extract plain-text content from a Gmail message.

    Uses the top-level body if it has data, otherwise the first
    ``text/plain`` part among the payload's direct parts. HTML-only messages
    yield an empty string.

    Args:
        message: Gmail message resource (``format=full``).

    Returns:
        Decoded text, or ``""`` when no plain text is present.
    """
    payload = (message or {}).get("payload") or {}

    body = payload.get("body") or {}
    if body.get("data"):
        return _decode_body(body["data"])

    for part in payload.get("parts") or []:
        part = part or {}
        part_body = part.get("body") or {}
        if part.get("mimeType") == "text/plain" and part_body.get("data"):
            return _decode_body(part_body["data"])

    return ""


def get_header_value(message: dict[str, Any] | None, header_name: str) -> str:
    """Return a header value from a Gmail message, case-insensitively.

    Returns:
        The header value, or ``""`` if the header or payload is missing.
    """
    payload = (message or {}).get("payload") or {}
    wanted = header_name.lower()
    for header in payload.get("headers") or []:
        if header and (header.get("name") or "").lower() == wanted:
            return header.get("value") or ""
    return ""


def build_raw_message(to: str, subject: str, body: str, sender: str | None = None) -> str:
    """Build an RFC 2822 message and return it base64url encoded.

    Args:
        to: Recipient address.
        subject: Subject line.
        body: Plain-text body.
        sender: Optional From address; the mailbox owner is used if omitted.

    Returns:
        Base64url encoded message suitable for the ``raw`` field.
    """
    lines = [f"To: {to}"]
    if sender:
        lines.append(f"From: {sender}")
    lines.extend([f"Subject: {subject}", "", body])

    email = "\n".join(lines)
    return base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii")


class GmailService:
    """Mail Operations Facade.

    Attributes:
        provider: OAuth credential provider used for every call.
        api: Authenticated HTTP client.
    """

    def __init__(self, provider: OAuthCredentialProvider) -> None:
        """Initialize the Gmail facade.

        Raises:
            ConfigurationError: If the provider is not an OAuth provider.
        """
        if provider is None or getattr(provider, "kind", None) != AuthKind.OAUTH:
            raise ConfigurationError(
                "Gmail requires OAuth2 authentication. Please set:\n"
                "- GOOGLE_CLIENT_ID\n"
                "- GOOGLE_CLIENT_SECRET\n"
                "- GOOGLE_REFRESH_TOKEN (optional but recommended)\n\n"
                "Service accounts cannot access personal Gmail accounts."
            )
        self.provider = provider
        self.api = GoogleApiClient(provider)

    async def close(self) -> None:
        await self.api.close()

    # =========================================================================
    # Token management
    # =========================================================================

    def token_status(self) -> TokenHealthSnapshot:
        """Current health of the Gmail OAuth token."""
        return self.provider.status()

    async def refresh_token(self) -> RefreshResult:
        """Force a token refresh; never raises."""
        result = await self.provider.manual_refresh()
        log_gmail(logger, "Manual token refresh: %s", result.message)
        return result

    # =========================================================================
    # Messages
    # =========================================================================

    @remote_operation("list messages")
    async def list_messages(self, query: str | None = None, max_results: int = 10) -> MessageList:
        """List message IDs, optionally filtered by a Gmail search query.

        Args:
            query: Gmail search query (e.g. ``is:unread``).
            max_results: Maximum number of messages to return.
        """
        params: dict[str, Any] = {"maxResults": max_results}
        if query:
            params["q"] = query

        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages"
        response = await self.api.request("GET", url, params=params)
        return MessageList.model_validate(response)

    @remote_operation("get message")
    async def get_message(self, message_id: str) -> Message:
        """Fetch a full message, including its MIME payload."""
        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages/{message_id}"
        response = await self.api.request("GET", url, params={"format": "full"})
        return Message.model_validate(response)

    @remote_operation("send message")
    async def send_message(
        self, to: str, subject: str, body: str, sender: str | None = None
    ) -> SentMessage:
        """Send a plain-text message.

        Args:
            to: Recipient address.
            subject: Subject line.
            body: Message body.
            sender: Optional From address.
        """
        raw_message = build_raw_message(to, subject, body, sender)

        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages/send"
        response = await self.api.request("POST", url, json_data={"raw": raw_message})
        log_gmail(logger, "Message sent: %s", response.get("id"))
        return SentMessage.model_validate(response)

    async def _modify_labels(
        self,
        message_id: str,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
    ) -> SentMessage:
        body: dict[str, Any] = {}
        if add_label_ids:
            body["addLabelIds"] = add_label_ids
        if remove_label_ids:
            body["removeLabelIds"] = remove_label_ids

        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages/{message_id}/modify"
        response = await self.api.request("POST", url, json_data=body)
        return SentMessage.model_validate(response)

    @remote_operation("mark message as read")
    async def mark_as_read(self, message_id: str) -> SentMessage:
        return await self._modify_labels(message_id, remove_label_ids=["UNREAD"])

    @remote_operation("mark message as unread")
    async def mark_as_unread(self, message_id: str) -> SentMessage:
        return await self._modify_labels(message_id, add_label_ids=["UNREAD"])

    @remote_operation("get profile")
    async def get_profile(self) -> Profile:
        url = f"{GMAIL_API_BASE}/users/{USER_ID}/profile"
        response = await self.api.request("GET", url)
        return Profile.model_validate(response)

    @remote_operation("search messages")
    async def search_messages(self, query: str, max_results: int = 50) -> list[MessageSummary]:
        """Search messages and return decoded summaries.

        Message details are fetched concurrently.

        Args:
            query: Gmail search query.
            max_results: Maximum number of messages to return.
        """
        url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages"
        response = await self.api.request(
            "GET", url, params={"q": query, "maxResults": max_results}
        )

        message_list = response.get("messages") or []
        if not message_list:
            return []

        async def fetch_message_detail(msg_id: str) -> dict[str, Any]:
            msg_url = f"{GMAIL_API_BASE}/users/{USER_ID}/messages/{msg_id}"
            return await self.api.request("GET", msg_url, params={"format": "full"})

        details = await asyncio.gather(*[fetch_message_detail(msg["id"]) for msg in message_list])

        return [
            MessageSummary(
                id=detail.get("id"),
                thread_id=detail.get("threadId"),
                snippet=detail.get("snippet"),
                subject=get_header_value(detail, "Subject"),
                sender=get_header_value(detail, "From"),
                to=get_header_value(detail, "To"),
                date=get_header_value(detail, "Date"),
                body=extract_text_from_message(detail),
            )
            for detail in details
        ]
