"""Data models for credentials and access-token state.

None of these models are persisted. Access tokens live in memory for the
lifetime of the process and are replaced on every renewal.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field


class AuthKind(str, Enum):
    """Discriminant for the two supported credential variants."""

    OAUTH = "oauth"
    SERVICE_ACCOUNT = "service_account"


class OAuthCredentialSet(BaseModel):
    """OAuth client credentials with an optional refresh token.

    Attributes:
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        redirect_uri: Redirect URI registered for the client.
        refresh_token: Long-lived refresh token, if one was issued.
    """

    kind: AuthKind = Field(default=AuthKind.OAUTH, frozen=True)
    client_id: str
    client_secret: str
    redirect_uri: str
    refresh_token: str | None = None


class ServiceIdentityCredentialSet(BaseModel):
    """Service account identity and its signing key.

    Attributes:
        identity_email: Service account email address.
        private_key: PEM-encoded RSA private key.
    """

    kind: AuthKind = Field(default=AuthKind.SERVICE_ACCOUNT, frozen=True)
    identity_email: str
    private_key: str


class AccessTokenLease(BaseModel):
    """A short-lived bearer token held in memory.

    Attributes:
        token: Opaque access token string.
        acquired_at: When the token was issued to this process.
        expires_at: Expiry reported by the authorization server, if any.
    """

    token: str
    acquired_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime | None = None

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check if the lease is expired or about to expire.

        A lease without a known expiry is treated as expired so that it is
        renewed on next use.

        Args:
            buffer_seconds: Seconds before actual expiry to consider expired.

        Returns:
            True if the token should be renewed before use.
        """
        if self.expires_at is None:
            return True
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(seconds=buffer_seconds)


class TokenHealthSnapshot(BaseModel):
    """Point-in-time view of the OAuth provider's token state."""

    has_refresh_token: bool = Field(serialization_alias="hasRefreshToken")
    last_refresh: datetime | None = Field(serialization_alias="lastRefresh")
    minutes_since_refresh: int | None = Field(serialization_alias="minutesSinceRefresh")
    maintenance_active: bool = Field(serialization_alias="maintenanceActive")


class RefreshResult(BaseModel):
    """Outcome of an operator-triggered token refresh."""

    success: bool
    last_refresh: datetime | None = Field(serialization_alias="lastRefresh")
    message: str
