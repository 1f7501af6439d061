"""Credential handling for the Google Drive / Gmail MCP server.

Two credential variants are supported and can be configured together:

- OAuth2 client + refresh token (required for Gmail, usable for Drive)
- Service account email + private key (Drive)

Quick Start:
    ```python
    from gdrive_mcp.auth import build_providers
    from gdrive_mcp.config import load_config

    oauth, service = build_providers(load_config())

    lease = await oauth.acquire_lease()
    print(oauth.status())
    ```
"""

from gdrive_mcp.auth.maintenance import TokenMaintenanceTimer
from gdrive_mcp.auth.models import (
    AccessTokenLease,
    AuthKind,
    OAuthCredentialSet,
    RefreshResult,
    ServiceIdentityCredentialSet,
    TokenHealthSnapshot,
)
from gdrive_mcp.auth.providers import (
    CredentialProvider,
    OAuthCredentialProvider,
    ServiceIdentityCredentialProvider,
    build_providers,
)

__all__ = [
    "AccessTokenLease",
    "AuthKind",
    "CredentialProvider",
    "OAuthCredentialProvider",
    "OAuthCredentialSet",
    "RefreshResult",
    "ServiceIdentityCredentialProvider",
    "ServiceIdentityCredentialSet",
    "TokenHealthSnapshot",
    "TokenMaintenanceTimer",
    "build_providers",
]
