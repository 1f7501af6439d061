"""Credential providers that mint Google access tokens.

Two providers exist, one per credential variant:

- :class:`OAuthCredentialProvider` exchanges a stored refresh token for
  access tokens and can keep that refresh token alive with a
  :class:`~gdrive_mcp.auth.maintenance.TokenMaintenanceTimer`.
- :class:`ServiceIdentityCredentialProvider` signs a JWT assertion with a
  service account key for every new access token.

Both satisfy the :class:`CredentialProvider` protocol, which is all the
API facades depend on. The variant is selected once, at startup, by
:func:`build_providers`.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from gdrive_mcp.auth.maintenance import DEFAULT_MAINTENANCE_INTERVAL, TokenMaintenanceTimer
from gdrive_mcp.auth.models import (
    AccessTokenLease,
    AuthKind,
    OAuthCredentialSet,
    RefreshResult,
    ServiceIdentityCredentialSet,
    TokenHealthSnapshot,
)
from gdrive_mcp.config import ServerConfig, validate_credentials
from gdrive_mcp.errors import (
    AuthorizationRejected,
    ConfigurationError,
    InvalidSigningKey,
    MissingRefreshCredential,
)
from gdrive_mcp.logging_config import log_gmail

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public Google endpoint
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(moment: datetime | None) -> datetime | None:
    # google-auth reports naive UTC expiry times
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class CredentialProvider(Protocol):
    """Capability shared by both credential variants."""

    kind: AuthKind

    async def acquire_lease(self) -> AccessTokenLease: ...

    async def access_token(self) -> str: ...


class OAuthCredentialProvider:
    """Access tokens from an OAuth client ID, secret and refresh token.

    The only observable side effect of a successful exchange is an update
    of :attr:`last_refresh`.

    Attributes:
        kind: Always :attr:`AuthKind.OAUTH`.
        credentials: The configured OAuth credential set.
        last_refresh: Time of the last successful exchange, None before one.
    """

    kind = AuthKind.OAUTH

    def __init__(
        self,
        credentials: OAuthCredentialSet,
        maintenance_interval: float = DEFAULT_MAINTENANCE_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the provider.

        Args:
            credentials: OAuth client credentials.
            maintenance_interval: Seconds between background renewals.
            clock: Source of the current UTC time.

        Raises:
            ConfigurationError: If client ID or secret is empty.
        """
        if not credentials.client_id or not credentials.client_secret:
            raise ConfigurationError(
                "OAuth requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET. "
                "Service accounts cannot access personal Gmail accounts."
            )

        self.credentials = credentials
        self.last_refresh: datetime | None = None
        self._clock = clock
        self._lease: AccessTokenLease | None = None
        self._maintenance: TokenMaintenanceTimer | None = None

        if credentials.refresh_token:
            self._maintenance = TokenMaintenanceTimer(
                self.acquire_lease, interval=maintenance_interval
            )
        else:
            logger.warning(
                "No refresh token provided for Gmail. "
                "You may need to re-authenticate periodically."
            )

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.credentials.refresh_token)

    @property
    def maintenance_active(self) -> bool:
        return self._maintenance is not None and self._maintenance.active

    def _build_credentials(self) -> Credentials:
        return Credentials(  # nosec B106 - token_uri is public Google OAuth endpoint
            token=None,
            refresh_token=self.credentials.refresh_token,
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret,
            token_uri=TOKEN_URI,
        )

    async def acquire_lease(self) -> AccessTokenLease:
        """Force an access-token exchange using the refresh token.

        Returns:
            The newly issued lease.

        Raises:
            MissingRefreshCredential: If no refresh token is configured.
            AuthorizationRejected: If Google refuses the exchange.
        """
        if not self.credentials.refresh_token:
            raise MissingRefreshCredential("No refresh token available for validation")

        credentials = self._build_credentials()

        # Run refresh in executor (blocking)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, credentials.refresh, Request())
        except GoogleAuthError as e:
            logger.error("Token validation failed: %s", e)
            raise AuthorizationRejected(str(e)) from e

        if not credentials.token:
            raise AuthorizationRejected("Failed to obtain access token")

        now = self._clock()
        self._lease = AccessTokenLease(
            token=credentials.token,
            acquired_at=now,
            expires_at=_aware(credentials.expiry),
        )
        self.last_refresh = now
        log_gmail(logger, "Token validated and refreshed at %s", now.isoformat())
        return self._lease

    async def access_token(self) -> str:
        """Return a usable access token, renewing the lease when needed."""
        lease = self._lease
        if lease is None or lease.is_expired():
            lease = await self.acquire_lease()
        return lease.token

    def status(self) -> TokenHealthSnapshot:
        """Report token health without any network call."""
        minutes: int | None = None
        if self.last_refresh is not None:
            elapsed = (self._clock() - self.last_refresh).total_seconds()
            minutes = round(elapsed / 60)

        return TokenHealthSnapshot(
            has_refresh_token=self.has_refresh_token,
            last_refresh=self.last_refresh,
            minutes_since_refresh=minutes,
            maintenance_active=self.maintenance_active,
        )

    async def manual_refresh(self) -> RefreshResult:
        """Refresh the access token on operator request.

        Never raises: failures are reported in the result.
        """
        try:
            await self.acquire_lease()
        except Exception as e:
            return RefreshResult(
                success=False,
                last_refresh=self.last_refresh,
                message=str(e) or type(e).__name__,
            )
        return RefreshResult(
            success=True,
            last_refresh=self.last_refresh,
            message="Token refreshed successfully",
        )

    def start_maintenance(self) -> bool:
        """Start background renewal if a refresh token is configured.

        Returns:
            True if maintenance is running after the call.
        """
        if self._maintenance is None:
            log_gmail(logger, "No refresh token available - token maintenance disabled")
            return False
        self._maintenance.start()
        return True

    def stop_maintenance(self) -> None:
        """Stop background renewal. Safe to call repeatedly."""
        if self._maintenance is not None:
            self._maintenance.stop()


class ServiceIdentityCredentialProvider:
    """Access tokens minted from a service account signing key.

    Tokens are always minted fresh from the permanent key, so there is no
    refresh token to keep alive and no maintenance timer.

    Attributes:
        kind: Always :attr:`AuthKind.SERVICE_ACCOUNT`.
        credentials: The configured service identity.
        scopes: OAuth scopes requested for every token.
    """

    kind = AuthKind.SERVICE_ACCOUNT

    def __init__(
        self,
        credentials: ServiceIdentityCredentialSet,
        scopes: list[str] | None = None,
    ) -> None:
        """Initialize the provider.

        The private key is parsed lazily on the first :meth:`acquire_lease`.

        Raises:
            ConfigurationError: If the identity email or private key is empty.
        """
        if not credentials.identity_email or not credentials.private_key:
            raise ConfigurationError(
                "Service account requires GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY."
            )

        self.credentials = credentials
        self.scopes = scopes or list(DRIVE_SCOPES)
        self._signer: Any = None
        self._lease: AccessTokenLease | None = None

    def _load_signer(self) -> Any:
        if self._signer is None:
            info = {
                "type": "service_account",
                "client_email": self.credentials.identity_email,
                "private_key": self.credentials.private_key,
                "token_uri": TOKEN_URI,
            }
            try:
                self._signer = service_account.Credentials.from_service_account_info(
                    info, scopes=self.scopes
                )
            except (ValueError, TypeError, IndexError) as e:
                raise InvalidSigningKey(f"Invalid service account private key: {e}") from e
        return self._signer

    async def acquire_lease(self) -> AccessTokenLease:
        """Sign a fresh assertion and exchange it for an access token.

        Raises:
            InvalidSigningKey: If the private key is malformed.
            AuthorizationRejected: If Google rejects the assertion.
        """
        credentials = self._load_signer()

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, credentials.refresh, Request())
        except GoogleAuthError as e:
            raise AuthorizationRejected(str(e)) from e

        if not credentials.token:
            raise AuthorizationRejected("Failed to obtain access token")

        self._lease = AccessTokenLease(
            token=credentials.token,
            expires_at=_aware(credentials.expiry),
        )
        return self._lease

    async def access_token(self) -> str:
        """Return a usable access token, minting a new one when needed."""
        lease = self._lease
        if lease is None or lease.is_expired():
            lease = await self.acquire_lease()
        return lease.token


def build_providers(
    config: ServerConfig,
) -> tuple[OAuthCredentialProvider | None, ServiceIdentityCredentialProvider | None]:
    """Construct the providers for every complete credential set.

    Args:
        config: Loaded server configuration.

    Returns:
        ``(oauth_provider, service_account_provider)``; either may be None,
        never both.

    Raises:
        ConfigurationError: If neither credential set is complete.
    """
    validate_credentials(config)

    oauth: OAuthCredentialProvider | None = None
    client_id, client_secret = config.google_client_id, config.google_client_secret
    if client_id and client_secret:
        oauth = OAuthCredentialProvider(
            OAuthCredentialSet(
                client_id=client_id,
                client_secret=client_secret,
                redirect_uri=config.google_redirect_uri,
                refresh_token=config.google_refresh_token,
            )
        )

    service: ServiceIdentityCredentialProvider | None = None
    identity_email, private_key = config.google_service_account_email, config.google_private_key
    if identity_email and private_key:
        service = ServiceIdentityCredentialProvider(
            ServiceIdentityCredentialSet(
                identity_email=identity_email,
                private_key=private_key,
            )
        )

    return oauth, service
