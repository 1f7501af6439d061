"""Exceptions raised by the Google Drive / Gmail MCP server."""


class GDriveMCPError(Exception):
    """Base exception for all gdrive-mcp errors."""


# ========================================
# Configuration
# ========================================


class ConfigurationError(GDriveMCPError):
    """Configuration is unusable; the server cannot start."""


class ServiceNotConfigured(GDriveMCPError):
    """A tool was called for a service whose credentials are not configured."""

    def __init__(self, service: str, hint: str = "") -> None:
        self.service = service
        message = f"{service} is not configured"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


# ========================================
# Request validation
# ========================================


class InvalidArguments(GDriveMCPError):
    """Tool arguments are missing or have an unusable value."""


class UnknownOperation(GDriveMCPError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


# ========================================
# Authentication
# ========================================


class AuthenticationError(GDriveMCPError):
    """Base exception for access-token acquisition failures."""


class MissingRefreshCredential(AuthenticationError):
    """No refresh token is configured, so no access token can be minted."""


class InvalidSigningKey(AuthenticationError):
    """The service account private key could not be loaded."""


class AuthorizationRejected(AuthenticationError):
    """The Google authorization server refused to issue an access token."""


# ========================================
# Remote API calls
# ========================================


class RemoteOperationFailed(GDriveMCPError):
    """A Drive or Gmail API call failed.

    Attributes:
        operation_name: Human-readable operation, e.g. ``"list files"``.
        underlying_message: Message reported by the HTTP layer or the API.
    """

    def __init__(self, operation_name: str, underlying_message: str) -> None:
        self.operation_name = operation_name
        self.underlying_message = underlying_message
        super().__init__(f"Failed to {operation_name}: {underlying_message}")
